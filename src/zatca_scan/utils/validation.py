"""
Format checks for invoice fields.

These are advisory: a decoded QR with an oddly formatted VAT number is still
a decoded QR. Callers surface the messages as warnings.
"""

from __future__ import annotations

import re

from zatca_scan.utils.interpreter import ParsedInvoice

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_vat_number(vat: str) -> list[str]:
    """Validate a Saudi VAT number format."""
    errors = []
    if not vat:
        errors.append("VAT number is required")
        return errors
    if len(vat) != 15:
        errors.append(f"VAT number must be 15 digits, got {len(vat)}")
    if not vat.isdigit():
        errors.append("VAT number must contain only digits")
    if vat and not vat.startswith("3"):
        errors.append("VAT number must start with 3")
    if vat and not vat.endswith("3"):
        errors.append("VAT number must end with 3")
    return errors


def invoice_warnings(invoice: ParsedInvoice) -> list[str]:
    """
    Advisory checks on a decoded invoice.

    Args:
        invoice: Invoice returned by ``parse_invoice_qr``

    Returns:
        List of human-readable warnings (empty when nothing looks off)
    """
    warnings = [f"Seller VAT - {e}" for e in validate_vat_number(invoice.vat_number)]

    if invoice.invoice_date is None:
        warnings.append("Invoice timestamp (tag 3) is missing")
    elif not _DATE_RE.match(invoice.invoice_date):
        warnings.append(
            f"Invoice date is not YYYY-MM-DD: {invoice.invoice_date}"
        )

    if invoice.vat_amount is None:
        warnings.append("VAT total (tag 5) is missing or not numeric")
    elif invoice.total_amount < invoice.vat_amount:
        warnings.append(
            f"VAT total {invoice.vat_amount:.2f} exceeds invoice total "
            f"{invoice.total_amount:.2f}"
        )

    if invoice.total_amount < 0:
        warnings.append("Invoice total is negative")

    return warnings
