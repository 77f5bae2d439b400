"""
ZATCA invoice QR decoding.

    invoice = parse_invoice_qr(qr_text)
    if invoice is None:
        print("not a recognized invoice QR")

Both functions accept any string and never raise.
"""

from __future__ import annotations

from typing import Callable

from zatca_scan.utils.interpreter import ParsedInvoice, interpret
from zatca_scan.utils.payload import PreparedPayload, prepare
from zatca_scan.utils.tlv import scan


def parse_invoice_qr(
    raw: str,
    invoice_number_factory: Callable[[], str] | None = None,
) -> ParsedInvoice | None:
    """
    Decode a scanned ZATCA QR payload.

    Args:
        raw: Text read from the QR code (Base64 or raw TLV characters)
        invoice_number_factory: Source for the placeholder invoice number

    Returns:
        ParsedInvoice, or None when the payload is not a complete invoice QR
    """
    return interpret(scan(prepare(raw)), invoice_number_factory)


def parse_prepared(
    prepared: PreparedPayload,
    invoice_number_factory: Callable[[], str] | None = None,
) -> ParsedInvoice | None:
    """Same as ``parse_invoice_qr`` for a payload already run through ``decode_payload``."""
    return interpret(scan(prepared.data), invoice_number_factory)


def is_valid_invoice_qr(raw: str) -> bool:
    """True when ``raw`` decodes to a complete invoice."""
    return parse_invoice_qr(raw) is not None
