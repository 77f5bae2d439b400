"""
TLV (Tag-Length-Value) walking and encoding for ZATCA QR codes.

ZATCA mandates QR codes on all invoices using TLV format:
  - Tag:    1 byte (0x01 to 0x09)
  - Length: 1 byte (length of value in bytes)
  - Value:  UTF-8 encoded bytes (tags 8-9 may carry raw DER bytes)

Tags 1-5: Mandatory (Phase 1 + Phase 2)
Tags 6-9: Phase 2 only (digital signature data)

``scan`` is the lenient walker used by the decode pipeline: it stops quietly
at the first truncated field. ``decode_tlv`` is the strict variant for
inspecting payloads and raises on the same conditions.
"""

from __future__ import annotations

import base64
import enum
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

HEADER_SIZE = 2

TAG_NAMES = {
    1: "seller_name",
    2: "vat_number",
    3: "timestamp",
    4: "total_amount",
    5: "vat_amount",
    6: "invoice_hash",
    7: "ecdsa_signature",
    8: "ecdsa_public_key",
    9: "ecdsa_stamp",
}


@dataclass(frozen=True)
class TLVField:
    """A (tag, length, value) triple found while walking a payload."""

    tag: int
    length: int
    value: bytes

    @property
    def size(self) -> int:
        """Bytes occupied in the stream, header included."""
        return HEADER_SIZE + self.length


class ScanStop(enum.Enum):
    """Why a walk step produced no field."""

    END_OF_INPUT = "end_of_input"
    TRUNCATED_HEADER = "truncated_header"
    TRUNCATED_VALUE = "truncated_value"


def read_field(data: bytes, cursor: int) -> TLVField | ScanStop:
    """
    Read the field starting at ``cursor``.

    Args:
        data: TLV byte sequence
        cursor: Offset of the tag byte

    Returns:
        The field, or the ScanStop reason when no complete field starts here
    """
    remaining = len(data) - cursor
    if remaining <= 0:
        return ScanStop.END_OF_INPUT
    if remaining < HEADER_SIZE:
        return ScanStop.TRUNCATED_HEADER
    tag = data[cursor]
    length = data[cursor + 1]
    start = cursor + HEADER_SIZE
    if length > len(data) - start:
        return ScanStop.TRUNCATED_VALUE
    return TLVField(tag, length, bytes(data[start : start + length]))


def scan(data: bytes) -> list[TLVField]:
    """
    Walk ``data`` and collect every complete field.

    Unknown tags are kept; the caller decides what they mean. A truncated
    header or value ends the walk and the partial field is dropped.
    """
    fields = []
    cursor = 0
    while True:
        step = read_field(data, cursor)
        if isinstance(step, ScanStop):
            if step is not ScanStop.END_OF_INPUT:
                logger.debug(
                    "TLV walk stopped at offset %d of %d: %s",
                    cursor,
                    len(data),
                    step.value,
                )
            return fields
        fields.append(step)
        cursor += step.size


@dataclass
class TLVTag:
    """A single TLV segment to encode."""

    tag: int
    value: str | bytes

    def encode(self) -> bytes:
        """Encode this tag as TLV bytes."""
        if isinstance(self.value, bytes):
            value_bytes = self.value
        else:
            value_bytes = self.value.encode("utf-8")
        if len(value_bytes) > 255:
            raise ValueError(
                f"Tag {self.tag} value too long: {len(value_bytes)} bytes (max 255)"
            )
        if self.tag < 1 or self.tag > 9:
            raise ValueError(f"Invalid tag number: {self.tag} (must be 1-9)")
        return bytes([self.tag, len(value_bytes)]) + value_bytes


def encode_tlv(
    seller_name: str,
    vat_number: str,
    timestamp: str,
    total_amount: str,
    vat_amount: str,
    # Phase 2 optional
    invoice_hash: str | None = None,
    ecdsa_signature: str | None = None,
    ecdsa_public_key: str | bytes | None = None,
) -> str:
    """
    Encode invoice data as TLV and return Base64 string.

    Args:
        seller_name: Business name (Arabic or English)
        vat_number: 15-digit VAT registration number
        timestamp: ISO 8601 datetime string
        total_amount: Total including VAT (e.g., "1150.00")
        vat_amount: Total VAT (e.g., "150.00")
        invoice_hash: SHA-256 hash of invoice (Phase 2)
        ecdsa_signature: Digital signature (Phase 2)
        ecdsa_public_key: Public key from certificate (Phase 2)

    Returns:
        Base64-encoded TLV string for QR code
    """
    tags = [
        TLVTag(1, seller_name),
        TLVTag(2, vat_number),
        TLVTag(3, timestamp),
        TLVTag(4, total_amount),
        TLVTag(5, vat_amount),
    ]

    if invoice_hash is not None:
        tags.append(TLVTag(6, invoice_hash))
    if ecdsa_signature is not None:
        tags.append(TLVTag(7, ecdsa_signature))
    if ecdsa_public_key is not None:
        tags.append(TLVTag(8, ecdsa_public_key))

    tlv_bytes = b"".join(tag.encode() for tag in tags)
    return base64.b64encode(tlv_bytes).decode("ascii")


def decode_tlv(base64_string: str) -> dict[int, str]:
    """
    Strictly decode a TLV-encoded QR code string.

    Args:
        base64_string: Base64-encoded TLV data

    Returns:
        Dict mapping tag numbers to their string values

    Raises:
        ValueError: on bad Base64, truncated data or non-UTF-8 values
    """
    data = base64.b64decode(base64_string)
    result = {}
    cursor = 0
    while True:
        step = read_field(data, cursor)
        if step is ScanStop.END_OF_INPUT:
            return result
        if step is ScanStop.TRUNCATED_HEADER:
            raise ValueError(f"Truncated TLV data at position {cursor}")
        if step is ScanStop.TRUNCATED_VALUE:
            raise ValueError(
                f"Tag {data[cursor]} claims length {data[cursor + 1]} but only "
                f"{len(data) - cursor - HEADER_SIZE} bytes remain"
            )
        result[step.tag] = step.value.decode("utf-8")
        cursor += step.size


def decode_tlv_named(base64_string: str) -> dict[str, str]:
    """Decode TLV and return human-readable tag names."""
    raw = decode_tlv(base64_string)
    return {TAG_NAMES.get(k, f"tag_{k}"): v for k, v in raw.items()}
