"""
CSV export of scan session records, for opening in a spreadsheet.
"""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Iterable, Sequence

from zatca_scan.sessions import ScanRecord

EXPORT_FIELDS = [
    "invoice_number",
    "invoice_date",
    "seller_name",
    "vat_number",
    "subtotal",
    "vat_amount",
    "total_amount",
    "status",
    "is_manual_entry",
    "notes",
    "scanned_at",
]


def _cell(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return f"{value:.2f}"
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(getattr(value, "value", value))


def records_to_rows(
    records: Iterable[ScanRecord],
    fields: Sequence[str] = EXPORT_FIELDS,
) -> list[list[str]]:
    """Header row followed by one row per record."""
    rows = [list(fields)]
    for record in records:
        data = dict(record)
        rows.append([_cell(data.get(field)) for field in fields])
    return rows


def to_csv(records: Iterable[ScanRecord], fields: Sequence[str] = EXPORT_FIELDS) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerows(records_to_rows(records, fields))
    return buffer.getvalue()


def write_csv(
    records: Iterable[ScanRecord],
    output_path: Path,
    fields: Sequence[str] = EXPORT_FIELDS,
) -> None:
    # utf-8-sig so spreadsheet apps detect the encoding of Arabic seller names
    with output_path.open("w", encoding="utf-8-sig", newline="") as fh:
        writer = csv.writer(fh)
        writer.writerows(records_to_rows(records, fields))
