"""
Scan sessions: the session-scoped list of decoded QR codes.

A session collects every scan (valid or not) and manual entries for later
review and export. Repeated reads of the same code within the cooldown window
are dropped, which is what a camera loop reading several frames per second
needs. Duplicate invoices are detected by content, never by the placeholder
invoice number.
"""

from __future__ import annotations

import enum
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from pydantic import BaseModel, Field, field_validator

from zatca_scan.parser import parse_invoice_qr
from zatca_scan.utils.interpreter import ParsedInvoice

logger = logging.getLogger(__name__)


class ScanStatus(str, enum.Enum):
    VALID = "valid"
    INVALID = "invalid"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ScanRecord(BaseModel):
    """One row in a scan session."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    session_id: str
    raw_data: str
    status: ScanStatus
    seller_name: str | None = None
    vat_number: str | None = None
    invoice_number: str | None = None
    invoice_date: str | None = None
    subtotal: float | None = None
    vat_amount: float | None = None
    total_amount: float | None = None
    is_manual_entry: bool = False
    notes: str | None = None
    persisted: bool = False
    content_key: str | None = Field(
        default=None, description="ParsedInvoice.content_key() for decoded scans"
    )
    scanned_at: datetime = Field(default_factory=_now)

    @classmethod
    def from_scan(
        cls,
        session_id: str,
        raw: str,
        invoice: ParsedInvoice | None,
    ) -> ScanRecord:
        if invoice is None:
            return cls(session_id=session_id, raw_data=raw, status=ScanStatus.INVALID)
        return cls(
            session_id=session_id,
            raw_data=raw,
            status=ScanStatus.VALID,
            seller_name=invoice.seller_name,
            vat_number=invoice.vat_number,
            invoice_number=invoice.invoice_number,
            invoice_date=invoice.invoice_date,
            subtotal=invoice.subtotal,
            vat_amount=invoice.vat_amount,
            total_amount=invoice.total_amount,
            content_key=invoice.content_key(),
        )


class ManualEntry(BaseModel):
    """Invoice details typed in by hand when a QR code cannot be read."""

    seller_name: str = Field(min_length=1)
    vat_number: str = Field(min_length=1)
    invoice_number: str = Field(min_length=1)
    invoice_date: str = Field(min_length=1)
    subtotal: float = Field(ge=0)
    vat_amount: float = Field(ge=0)
    total_amount: float = Field(ge=0)
    notes: str | None = None

    @field_validator("seller_name", "vat_number", "invoice_number", "invoice_date")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("notes")
    @classmethod
    def _empty_notes_to_none(cls, value: str | None) -> str | None:
        return value or None


class ScanSession:
    """In-memory list of scans for one review session."""

    def __init__(
        self,
        session_id: str | None = None,
        cooldown: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            session_id: Identifier (random UUID when omitted)
            cooldown: Seconds during which the same raw payload is ignored
            clock: Monotonic time source, replaceable in tests
        """
        self.id = session_id or str(uuid.uuid4())
        self.cooldown = cooldown
        self._clock = clock
        self._records: list[ScanRecord] = []
        self._last_seen: dict[str, float] = {}

    @property
    def records(self) -> list[ScanRecord]:
        return list(self._records)

    def get(self, record_id: str) -> ScanRecord | None:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def is_duplicate(self, invoice: ParsedInvoice) -> bool:
        """True when a valid record with the same decoded content exists."""
        key = invoice.content_key()
        return any(r.content_key == key for r in self._records)

    def add_scan(self, raw: str) -> ScanRecord | None:
        """
        Decode ``raw`` and append the result.

        Invalid payloads are recorded with status ``invalid``.

        Returns:
            The new record, or None when the payload was seen within the cooldown
        """
        now = self._clock()
        last = self._last_seen.get(raw)
        if last is not None and now - last < self.cooldown:
            logger.debug("Ignoring repeated scan in session %s", self.id)
            return None
        self._last_seen[raw] = now

        invoice = parse_invoice_qr(raw)
        if invoice is not None and self.is_duplicate(invoice):
            logger.warning(
                "Session %s: invoice from %s already scanned",
                self.id,
                invoice.seller_name,
            )
        record = ScanRecord.from_scan(self.id, raw, invoice)
        self._records.append(record)
        logger.info("Session %s: recorded %s scan %s", self.id, record.status.value, record.id)
        return record

    def add_manual_entry(self, entry: ManualEntry) -> ScanRecord:
        record = ScanRecord(
            session_id=self.id,
            raw_data=f"Manual Entry: {entry.invoice_number}",
            status=ScanStatus.VALID,
            seller_name=entry.seller_name,
            vat_number=entry.vat_number,
            invoice_number=entry.invoice_number,
            invoice_date=entry.invoice_date,
            subtotal=entry.subtotal,
            vat_amount=entry.vat_amount,
            total_amount=entry.total_amount,
            is_manual_entry=True,
            notes=entry.notes,
        )
        self._records.append(record)
        logger.info("Session %s: added manual entry %s", self.id, record.id)
        return record

    def mark_persisted(self, record_id: str) -> None:
        for idx, record in enumerate(self._records):
            if record.id == record_id:
                self._records[idx] = record.model_copy(update={"persisted": True})
                return
        raise KeyError(record_id)

    def remove(self, record_id: str) -> bool:
        for idx, record in enumerate(self._records):
            if record.id == record_id:
                del self._records[idx]
                return True
        return False

    def clear(self) -> None:
        self._records.clear()
        self._last_seen.clear()

    def stats(self) -> dict:
        """Counts and sums over the session's records."""
        valid = [r for r in self._records if r.status is ScanStatus.VALID]
        return {
            "total": len(self._records),
            "valid": len(valid),
            "invalid": len(self._records) - len(valid),
            "manual": sum(1 for r in self._records if r.is_manual_entry),
            "total_amount": round(sum(r.total_amount or 0.0 for r in valid), 2),
            "total_vat": round(sum(r.vat_amount or 0.0 for r in valid), 2),
        }


class SessionRegistry:
    """Open scan sessions keyed by id."""

    def __init__(self, cooldown: float = 3.0):
        self.cooldown = cooldown
        self._sessions: dict[str, ScanSession] = {}

    def create(self) -> ScanSession:
        session = ScanSession(cooldown=self.cooldown)
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> ScanSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise KeyError(f"Unknown session: {session_id}") from None

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)
