"""
Payload preprocessing for scanned ZATCA QR codes.

QR readers hand back text. ZATCA payloads are Base64 over the TLV bytes, but
some printers and older POS systems put the TLV characters in the code
directly. This module picks the byte representation to scan:

  - Base64 text:  decoded bytes
  - anything else: the raw string itself, one byte per character
"""

from __future__ import annotations

import base64
import binascii
import enum
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_DROP_WHITESPACE = str.maketrans("", "", " \t\n\r\f")


class PayloadEncoding(enum.Enum):
    """How a raw payload was turned into bytes."""

    BASE64 = "base64"
    RAW = "raw"


@dataclass(frozen=True)
class PreparedPayload:
    """Bytes ready for the TLV walk, plus the path that produced them."""

    data: bytes
    encoding: PayloadEncoding


def decode_base64(raw: str) -> bytes | None:
    """
    Strict standard-alphabet Base64 decode.

    ASCII whitespace anywhere in the text is ignored (line-wrapped payloads
    decode) and missing ``=`` padding is restored, as browser ``atob`` does.

    Returns:
        Decoded bytes, or None when ``raw`` is not Base64
    """
    text = raw.translate(_DROP_WHITESPACE)
    if len(text) % 4 == 1:
        return None
    text += "=" * (-len(text) % 4)
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        # ValueError: non-ASCII characters in the input
        return None


def _raw_bytes(raw: str) -> bytes:
    try:
        return raw.encode("latin-1")
    except UnicodeEncodeError:
        # surrogatepass: lone surrogates arrive from JSON "\ud800" escapes
        return raw.encode("utf-8", "surrogatepass")


def decode_payload(raw: str) -> PreparedPayload:
    """Choose between the Base64 and raw representations of ``raw``."""
    decoded = decode_base64(raw)
    if decoded is not None:
        return PreparedPayload(decoded, PayloadEncoding.BASE64)
    logger.debug("Payload is not Base64, scanning raw characters")
    return PreparedPayload(_raw_bytes(raw), PayloadEncoding.RAW)


def prepare(raw: str) -> bytes:
    """Return the byte sequence to scan for TLV fields. Never raises."""
    return decode_payload(raw).data
