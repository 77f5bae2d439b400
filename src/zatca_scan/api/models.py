"""
Pydantic v2 models for the scan records service requests and responses.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from zatca_scan.sessions import ScanRecord


def _amount(value: float | None) -> str | None:
    # The records service stores amounts as decimal strings
    return None if value is None else f"{value:.2f}"


class ScannedQRCreate(BaseModel):
    """Request body for storing one scanned or manually entered invoice."""

    sessionId: str = Field(description="Scan session identifier")
    rawData: str = Field(description="QR payload as read, or 'Manual Entry: <no>'")
    status: str = Field(description="valid or invalid")
    sellerName: str | None = None
    vatNumber: str | None = None
    invoiceNumber: str | None = None
    invoiceDate: str | None = None
    subtotal: str | None = None
    vatAmount: str | None = None
    totalAmount: str | None = None
    isManualEntry: bool = False
    notes: str | None = None

    @classmethod
    def from_record(cls, record: ScanRecord) -> ScannedQRCreate:
        return cls(
            sessionId=record.session_id,
            rawData=record.raw_data,
            status=record.status.value,
            sellerName=record.seller_name,
            vatNumber=record.vat_number,
            invoiceNumber=record.invoice_number,
            invoiceDate=record.invoice_date,
            subtotal=_amount(record.subtotal),
            vatAmount=_amount(record.vat_amount),
            totalAmount=_amount(record.total_amount),
            isManualEntry=record.is_manual_entry,
            notes=record.notes,
        )


class ScannedQR(ScannedQRCreate):
    """A stored record as returned by the service."""

    id: str = Field(description="Record identifier")
    createdAt: str | None = Field(default=None, description="ISO 8601 timestamp")


class SessionInfo(BaseModel):
    """Response from the session creation endpoint."""

    id: str = Field(description="Session identifier")
    createdAt: str | None = None


class SessionStats(BaseModel):
    """Aggregates for one session."""

    totalScanned: int = Field(default=0)
    validCount: int = Field(default=0)
    invalidCount: int = Field(default=0)
    totalAmount: str = Field(default="0.00", description="Sum of valid totals")
