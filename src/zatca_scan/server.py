"""
ZATCA Scan MCP Server - Saudi invoice QR decoding for AI agents.

An MCP (Model Context Protocol) server that decodes the QR codes printed on
ZATCA tax invoices, keeps scan sessions, and exports them as CSV.

Usage:
    # With MCP Inspector (development)
    mcp dev src/zatca_scan/server.py

    # With Claude Desktop
    Add to ~/.claude/claude_desktop_config.json:
    {
        "mcpServers": {
            "zatca-scan": {
                "command": "python",
                "args": ["-m", "zatca_scan.server"]
            }
        }
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict

import httpx
from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

from zatca_scan.api.client import RecordsClient
from zatca_scan.api.models import ScannedQRCreate
from zatca_scan.config import configure_logging, settings
from zatca_scan.parser import parse_invoice_qr, parse_prepared
from zatca_scan.sessions import ManualEntry, ScanStatus, SessionRegistry
from zatca_scan.utils.export import to_csv
from zatca_scan.utils.payload import decode_payload
from zatca_scan.utils.tlv import encode_tlv, decode_tlv_named
from zatca_scan.utils.validation import invoice_warnings, validate_vat_number

logger = logging.getLogger(__name__)

NOT_AN_INVOICE = "QR code is not in ZATCA format"

# Create the MCP server
mcp = FastMCP(
    "zatca-scan",
    instructions=(
        "Decode QR codes from Saudi (ZATCA) tax invoices, collect them in "
        "scan sessions, and export the sessions as CSV."
    ),
)

sessions = SessionRegistry(cooldown=settings.scan_cooldown)


def _dumps(payload) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


# ═══════════════════════════════════════════════════
# TOOL 1: QR Decoding
# ═══════════════════════════════════════════════════

@mcp.tool()
async def decode_invoice_qr(raw: str) -> str:
    """Decode the text of a ZATCA invoice QR code.

    Accepts the Base64 payload most QR readers return, or the raw TLV
    characters. Seller name, VAT number and invoice total are required;
    anything less is reported as not a ZATCA invoice QR.

    Args:
        raw: Text read from the QR code

    Returns:
        JSON with is_valid, the decoded invoice, the payload encoding and
        advisory warnings
    """
    prepared = decode_payload(raw)
    invoice = parse_prepared(prepared)
    encoding = prepared.encoding.value
    if invoice is None:
        return _dumps({"is_valid": False, "encoding": encoding, "error": NOT_AN_INVOICE})
    return _dumps(
        {
            "is_valid": True,
            "encoding": encoding,
            "invoice": asdict(invoice),
            "warnings": invoice_warnings(invoice),
        }
    )


@mcp.tool()
async def validate_invoice_qr(raw: str) -> str:
    """Check whether text read from a QR code is a complete ZATCA invoice QR.

    Args:
        raw: Text read from the QR code

    Returns:
        JSON with is_valid (boolean)
    """
    invoice = parse_invoice_qr(raw)
    return _dumps({"is_valid": invoice is not None})


# ═══════════════════════════════════════════════════
# TOOL 2: QR Generation (for test payloads)
# ═══════════════════════════════════════════════════

@mcp.tool()
async def generate_qr_code(
    seller_name: str,
    vat_number: str,
    timestamp: str,
    total_amount: str,
    vat_amount: str,
) -> str:
    """Generate a ZATCA TLV-encoded QR payload.

    Useful for producing sample codes to exercise a scanner.

    Args:
        seller_name: Business/taxpayer name (Arabic or English)
        vat_number: 15-digit Saudi VAT registration number (starts and ends with 3)
        timestamp: Invoice date/time in ISO 8601 format (e.g., "2024-01-15T10:30:00Z")
        total_amount: Invoice total including VAT as string (e.g., "1150.00")
        vat_amount: Total VAT charged as string (e.g., "150.00")

    Returns:
        JSON with qr_base64 (the encoded string) and decoded verification data
    """
    vat_errors = validate_vat_number(vat_number)
    if vat_errors:
        return _dumps({"error": "Invalid VAT number", "details": vat_errors})

    try:
        qr_base64 = encode_tlv(
            seller_name=seller_name,
            vat_number=vat_number,
            timestamp=timestamp,
            total_amount=total_amount,
            vat_amount=vat_amount,
        )
    except ValueError as e:
        return _dumps({"error": str(e)})

    return _dumps(
        {"qr_base64": qr_base64, "decoded_verification": decode_tlv_named(qr_base64)}
    )


# ═══════════════════════════════════════════════════
# TOOL 3: Scan Sessions
# ═══════════════════════════════════════════════════

@mcp.tool()
async def start_session() -> str:
    """Open a new scan session.

    Returns:
        JSON with session_id
    """
    session = sessions.create()
    return _dumps({"session_id": session.id})


@mcp.tool()
async def record_scan(session_id: str, raw: str) -> str:
    """Decode a QR code and add it to a scan session.

    Codes that do not decode are still recorded, with status "invalid".
    The same code read again within the cooldown window is ignored.

    Args:
        session_id: Session from start_session
        raw: Text read from the QR code

    Returns:
        JSON with the stored record, or skipped=true for a repeated read
    """
    try:
        session = sessions.get(session_id)
    except KeyError as e:
        return _dumps({"error": str(e.args[0])})

    record = session.add_scan(raw)
    if record is None:
        return _dumps({"skipped": True, "reason": "Repeated scan within cooldown"})

    result = {"record": record.model_dump(mode="json")}
    if record.status is ScanStatus.INVALID:
        result["error"] = NOT_AN_INVOICE
    return _dumps(result)


@mcp.tool()
async def add_manual_entry(
    session_id: str,
    seller_name: str,
    vat_number: str,
    invoice_number: str,
    invoice_date: str,
    subtotal: float,
    vat_amount: float,
    total_amount: float,
    notes: str | None = None,
) -> str:
    """Add an invoice typed in by hand to a scan session.

    Args:
        session_id: Session from start_session
        seller_name: Seller business name
        vat_number: Seller VAT number
        invoice_number: Invoice number as printed
        invoice_date: Invoice date (YYYY-MM-DD)
        subtotal: Amount before VAT
        vat_amount: VAT amount
        total_amount: Total including VAT
        notes: Optional free text

    Returns:
        JSON with the stored record
    """
    try:
        session = sessions.get(session_id)
    except KeyError as e:
        return _dumps({"error": str(e.args[0])})

    try:
        entry = ManualEntry(
            seller_name=seller_name,
            vat_number=vat_number,
            invoice_number=invoice_number,
            invoice_date=invoice_date,
            subtotal=subtotal,
            vat_amount=vat_amount,
            total_amount=total_amount,
            notes=notes,
        )
    except ValidationError as e:
        return _dumps(
            {
                "error": "Invalid manual entry",
                "details": [
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in e.errors()
                ],
            }
        )

    record = session.add_manual_entry(entry)
    return _dumps({"record": record.model_dump(mode="json")})


@mcp.tool()
async def list_session_records(session_id: str) -> str:
    """List every record in a scan session.

    Args:
        session_id: Session from start_session

    Returns:
        JSON array of records
    """
    try:
        session = sessions.get(session_id)
    except KeyError as e:
        return _dumps({"error": str(e.args[0])})
    return _dumps([r.model_dump(mode="json") for r in session.records])


@mcp.tool()
async def session_stats(session_id: str) -> str:
    """Counts and totals for a scan session.

    Args:
        session_id: Session from start_session

    Returns:
        JSON with total, valid, invalid, manual, total_amount and total_vat
    """
    try:
        session = sessions.get(session_id)
    except KeyError as e:
        return _dumps({"error": str(e.args[0])})
    return _dumps(session.stats())


@mcp.tool()
async def export_session_csv(session_id: str) -> str:
    """Export a scan session as CSV text for a spreadsheet.

    Args:
        session_id: Session from start_session

    Returns:
        CSV text with a header row, or a JSON error
    """
    try:
        session = sessions.get(session_id)
    except KeyError as e:
        return _dumps({"error": str(e.args[0])})
    return to_csv(session.records)


@mcp.tool()
async def remove_record(session_id: str, record_id: str) -> str:
    """Delete one record from a scan session.

    Args:
        session_id: Session from start_session
        record_id: Record id from record_scan or add_manual_entry

    Returns:
        JSON with removed (boolean)
    """
    try:
        session = sessions.get(session_id)
    except KeyError as e:
        return _dumps({"error": str(e.args[0])})
    removed = session.remove(record_id)
    if not removed:
        return _dumps({"removed": False, "error": f"Unknown record: {record_id}"})
    return _dumps({"removed": True})


@mcp.tool()
async def end_session(session_id: str) -> str:
    """Close a scan session and discard its records.

    Export or push the session first if its records are still needed.

    Args:
        session_id: Session from start_session

    Returns:
        JSON with ended (boolean) and the number of records discarded
    """
    try:
        session = sessions.get(session_id)
    except KeyError as e:
        return _dumps({"error": str(e.args[0])})
    discarded = len(session.records)
    session.clear()
    sessions.delete(session_id)
    logger.info("Ended session %s, discarded %d records", session_id, discarded)
    return _dumps({"ended": True, "discarded": discarded})


# ═══════════════════════════════════════════════════
# TOOL 4: Records Service Sync
# ═══════════════════════════════════════════════════

@mcp.tool()
async def push_session(session_id: str) -> str:
    """Send a session's unsaved records to the records service.

    Requires ZATCA_SCAN_RECORDS_API_URL to be set.

    Args:
        session_id: Session from start_session

    Returns:
        JSON with the number of records pushed
    """
    if not settings.records_api_url:
        return _dumps({"error": "ZATCA_SCAN_RECORDS_API_URL is not configured"})
    try:
        session = sessions.get(session_id)
    except KeyError as e:
        return _dumps({"error": str(e.args[0])})

    client = RecordsClient(
        settings.records_api_url,
        token=settings.records_api_token,
        timeout=settings.http_timeout,
    )
    pushed = 0
    for record in session.records:
        if record.persisted:
            continue
        try:
            await client.create_record(ScannedQRCreate.from_record(record))
        except httpx.HTTPError as e:
            logger.warning("Failed to save record %s: %s", record.id, e)
            return _dumps(
                {"error": f"Failed to save QR code data: {str(e)}", "pushed": pushed}
            )
        session.mark_persisted(record.id)
        pushed += 1
    return _dumps({"pushed": pushed})


def main():
    """Entry point for the ZATCA Scan MCP server."""
    configure_logging(settings.log_level)
    mcp.run()


if __name__ == "__main__":
    main()
