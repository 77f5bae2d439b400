"""Tests for CSV export of scan sessions."""

import csv
import io
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from zatca_scan.sessions import ManualEntry, ScanSession
from zatca_scan.utils.export import EXPORT_FIELDS, records_to_rows, to_csv, write_csv
from zatca_scan.utils.tlv import encode_tlv


def _session():
    session = ScanSession("export-test")
    session.add_scan(
        encode_tlv(
            seller_name="شركة فكرة",
            vat_number="300012345600003",
            timestamp="2024-01-10T08:00:00Z",
            total_amount="230.00",
            vat_amount="30.00",
        )
    )
    session.add_scan("garbage")
    session.add_manual_entry(
        ManualEntry(
            seller_name="Corner Shop",
            vat_number="310000000000003",
            invoice_number="INV-77",
            invoice_date="2024-02-01",
            subtotal=100,
            vat_amount=15,
            total_amount=115,
            notes="paper receipt, faded",
        )
    )
    return session


def _by_name(row):
    return dict(zip(EXPORT_FIELDS, row))


class TestRows:
    def test_header(self):
        rows = records_to_rows([])
        assert rows == [EXPORT_FIELDS]

    def test_valid_scan_row(self):
        rows = records_to_rows(_session().records)
        row = _by_name(rows[1])
        assert row["seller_name"] == "شركة فكرة"
        assert row["invoice_date"] == "2024-01-10"
        assert row["subtotal"] == "200.00"
        assert row["vat_amount"] == "30.00"
        assert row["total_amount"] == "230.00"
        assert row["status"] == "valid"
        assert row["is_manual_entry"] == "false"
        assert row["notes"] == ""
        assert row["scanned_at"].startswith("20")

    def test_invalid_scan_row(self):
        row = _by_name(records_to_rows(_session().records)[2])
        assert row["status"] == "invalid"
        assert row["seller_name"] == ""
        assert row["total_amount"] == ""

    def test_manual_row(self):
        row = _by_name(records_to_rows(_session().records)[3])
        assert row["invoice_number"] == "INV-77"
        assert row["is_manual_entry"] == "true"
        assert row["notes"] == "paper receipt, faded"

    def test_custom_fields(self):
        rows = records_to_rows(_session().records, fields=["seller_name", "total_amount"])
        assert rows[0] == ["seller_name", "total_amount"]
        assert rows[3] == ["Corner Shop", "115.00"]


class TestCSV:
    def test_to_csv_parses_back(self):
        text = to_csv(_session().records)
        rows = list(csv.reader(io.StringIO(text)))
        assert rows[0] == EXPORT_FIELDS
        assert len(rows) == 4
        assert rows[3][EXPORT_FIELDS.index("notes")] == "paper receipt, faded"

    def test_write_csv(self, tmp_path):
        path = tmp_path / "session.csv"
        write_csv(_session().records, path)
        with path.open(encoding="utf-8-sig", newline="") as fh:
            rows = list(csv.reader(fh))
        assert rows[0] == EXPORT_FIELDS
        assert rows[1][EXPORT_FIELDS.index("seller_name")] == "شركة فكرة"
