"""
Field interpretation for decoded ZATCA QR payloads.

Maps TLV fields to invoice fields, coerces amounts, derives the subtotal and
applies the completeness gate. Only tags 1-5 carry meaning here; signature
data (tags 6-9) and unknown tags are skipped.
"""

from __future__ import annotations

import hashlib
import itertools
import json
import logging
import math
import time
from dataclasses import asdict, dataclass
from typing import Callable, Iterable

from zatca_scan.utils.tlv import TLVField

logger = logging.getLogger(__name__)

SELLER_NAME_TAG = 1
VAT_NUMBER_TAG = 2
TIMESTAMP_TAG = 3
TOTAL_AMOUNT_TAG = 4
VAT_AMOUNT_TAG = 5

_invoice_counter = itertools.count(1)


def next_invoice_number() -> str:
    """Placeholder invoice number, unique per call within the process."""
    return f"INV-{int(time.time() * 1000)}-{next(_invoice_counter)}"


@dataclass(frozen=True)
class ParsedInvoice:
    """A validated invoice decoded from a ZATCA QR code."""

    seller_name: str
    vat_number: str
    invoice_number: str
    total_amount: float
    invoice_date: str | None = None
    subtotal: float | None = None
    vat_amount: float | None = None

    def content_key(self) -> str:
        """SHA-256 over every decoded field; the placeholder number is left out."""
        fields = asdict(self)
        del fields["invoice_number"]
        canonical = json.dumps(fields, sort_keys=True, ensure_ascii=False)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def decode_text(value: bytes) -> str:
    """UTF-8 text, or Latin-1 when the bytes are not valid UTF-8."""
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value.decode("latin-1")


def parse_amount(text: str) -> float | None:
    """Parse a decimal amount; None for anything that is not a finite number."""
    try:
        amount = float(text)
    except ValueError:
        return None
    if not math.isfinite(amount):
        return None
    return amount


def date_portion(timestamp: str) -> str | None:
    """``2024-03-15T10:30:00Z`` -> ``2024-03-15``."""
    day = timestamp.partition("T")[0].strip()
    return day or None


@dataclass
class InvoiceBuilder:
    """Accumulates recognized fields until the completeness gate."""

    seller_name: str | None = None
    vat_number: str | None = None
    invoice_number: str | None = None
    invoice_date: str | None = None
    total_amount: float | None = None
    vat_amount: float | None = None
    subtotal: float | None = None

    def add(self, field: TLVField) -> None:
        if field.tag == SELLER_NAME_TAG:
            self.seller_name = decode_text(field.value)
        elif field.tag == VAT_NUMBER_TAG:
            self.vat_number = decode_text(field.value)
        elif field.tag == TIMESTAMP_TAG:
            self.invoice_date = date_portion(decode_text(field.value))
        elif field.tag == TOTAL_AMOUNT_TAG:
            self.total_amount = parse_amount(decode_text(field.value))
        elif field.tag == VAT_AMOUNT_TAG:
            self.vat_amount = parse_amount(decode_text(field.value))

    def derive_subtotal(self) -> None:
        if self.total_amount is not None and self.vat_amount is not None:
            self.subtotal = self.total_amount - self.vat_amount

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.seller_name:
            missing.append("seller_name")
        if not self.vat_number:
            missing.append("vat_number")
        if self.total_amount is None:
            missing.append("total_amount")
        return missing

    def build(self) -> ParsedInvoice:
        """Package the accumulated fields. No validation happens here."""
        return ParsedInvoice(
            seller_name=self.seller_name,
            vat_number=self.vat_number,
            invoice_number=self.invoice_number,
            total_amount=self.total_amount,
            invoice_date=self.invoice_date,
            subtotal=self.subtotal,
            vat_amount=self.vat_amount,
        )


def interpret(
    fields: Iterable[TLVField],
    invoice_number_factory: Callable[[], str] | None = None,
) -> ParsedInvoice | None:
    """
    Turn scanned TLV fields into a ParsedInvoice.

    Args:
        fields: Fields from ``scan``, in stream order
        invoice_number_factory: Source for the placeholder invoice number
            (defaults to ``next_invoice_number``)

    Returns:
        The invoice, or None when seller name, VAT number or total is missing
    """
    builder = InvoiceBuilder()
    for field in fields:
        builder.add(field)

    builder.derive_subtotal()
    if builder.invoice_number is None:
        builder.invoice_number = (invoice_number_factory or next_invoice_number)()

    missing = builder.missing_fields()
    if missing:
        logger.debug("Not a ZATCA invoice QR, missing: %s", ", ".join(missing))
        return None
    return builder.build()
