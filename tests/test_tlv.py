"""Tests for TLV walking, encoding and strict decoding."""

import base64
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from zatca_scan.utils.tlv import (
    ScanStop,
    TLVField,
    TLVTag,
    decode_tlv,
    decode_tlv_named,
    encode_tlv,
    read_field,
    scan,
)


def _tlv(tag, value):
    if isinstance(value, str):
        value = value.encode("utf-8")
    return bytes([tag, len(value)]) + value


class TestReadField:
    def test_end_of_input(self):
        assert read_field(b"", 0) is ScanStop.END_OF_INPUT
        assert read_field(b"\x01\x00", 2) is ScanStop.END_OF_INPUT

    def test_truncated_header(self):
        assert read_field(b"\x01", 0) is ScanStop.TRUNCATED_HEADER
        assert read_field(b"\x01\x00\x02", 2) is ScanStop.TRUNCATED_HEADER

    def test_truncated_value(self):
        # Tag 1 claims 5 bytes, only 2 follow
        assert read_field(b"\x01\x05ab", 0) is ScanStop.TRUNCATED_VALUE

    def test_complete_field(self):
        field = read_field(b"\x01\x03abc", 0)
        assert field == TLVField(tag=1, length=3, value=b"abc")
        assert field.size == 5

    def test_zero_length(self):
        assert read_field(b"\x02\x00", 0) == TLVField(tag=2, length=0, value=b"")

    def test_reads_at_cursor(self):
        data = _tlv(1, "ab") + _tlv(2, "xyz")
        field = read_field(data, 4)
        assert field.tag == 2
        assert field.value == b"xyz"

    def test_full_byte_range(self):
        field = read_field(bytes([255, 255]) + b"x" * 255, 0)
        assert field.tag == 255
        assert field.length == 255


class TestScan:
    def test_empty(self):
        assert scan(b"") == []

    def test_fields_in_order(self):
        data = _tlv(1, "Seller") + _tlv(2, "300000000000003") + _tlv(4, "10.00")
        fields = scan(data)
        assert [f.tag for f in fields] == [1, 2, 4]
        assert fields[0].value == b"Seller"
        assert fields[2].value == b"10.00"

    def test_unknown_tags_returned(self):
        data = _tlv(1, "A") + _tlv(99, "x" * 40) + _tlv(2, "B")
        assert [f.tag for f in scan(data)] == [1, 99, 2]

    def test_stops_at_truncated_value(self):
        data = _tlv(1, "Seller") + b"\x02\x0f300"
        fields = scan(data)
        assert [f.tag for f in fields] == [1]

    def test_stops_at_truncated_header(self):
        data = _tlv(1, "Seller") + b"\x02"
        assert [f.tag for f in scan(data)] == [1]

    def test_zero_length_field_then_more(self):
        data = _tlv(6, "") + _tlv(1, "A")
        fields = scan(data)
        assert [(f.tag, f.value) for f in fields] == [(6, b""), (1, b"A")]

    def test_every_cutoff_is_safe(self):
        data = _tlv(1, "Seller") + _tlv(2, "300000000000003") + _tlv(4, "115.00")
        boundaries = [0, 8, 25, 33]
        for cutoff in range(len(data) + 1):
            fields = scan(data[:cutoff])
            complete = sum(1 for b in boundaries[1:] if b <= cutoff)
            assert len(fields) == complete


class TestTLVTag:
    def test_encode_basic(self):
        tag = TLVTag(1, "Fikrah Tech")
        encoded = tag.encode()
        assert encoded[0] == 1  # tag number
        assert encoded[1] == len("Fikrah Tech".encode("utf-8"))  # length
        assert encoded[2:] == b"Fikrah Tech"  # value

    def test_encode_arabic(self):
        tag = TLVTag(1, "شركة فكرة")
        encoded = tag.encode()
        value_bytes = "شركة فكرة".encode("utf-8")
        assert encoded[1] == len(value_bytes)
        assert encoded[2:] == value_bytes

    def test_encode_raw_bytes(self):
        encoded = TLVTag(8, b"\x30\x56\x30\x10").encode()
        assert encoded == b"\x08\x04\x30\x56\x30\x10"

    def test_encode_invalid_tag(self):
        with pytest.raises(ValueError, match="Invalid tag number"):
            TLVTag(0, "test").encode()
        with pytest.raises(ValueError, match="Invalid tag number"):
            TLVTag(10, "test").encode()

    def test_encode_value_too_long(self):
        with pytest.raises(ValueError, match="too long"):
            TLVTag(1, "x" * 256).encode()

    def test_empty_string_value(self):
        encoded = TLVTag(1, "").encode()
        assert encoded == b"\x01\x00"


class TestStrictDecode:
    def test_encoded_payload(self):
        encoded = encode_tlv(
            seller_name="Fikrah Tech",
            vat_number="300000000000003",
            timestamp="2024-01-15T10:30:00Z",
            total_amount="1150.00",
            vat_amount="150.00",
        )
        decoded = decode_tlv(encoded)
        assert decoded == {
            1: "Fikrah Tech",
            2: "300000000000003",
            3: "2024-01-15T10:30:00Z",
            4: "1150.00",
            5: "150.00",
        }

    def test_phase2_tags(self):
        encoded = encode_tlv(
            seller_name="Test",
            vat_number="300000000000003",
            timestamp="2024-01-01T00:00:00Z",
            total_amount="100.00",
            vat_amount="15.00",
            invoice_hash="abc123hash",
            ecdsa_signature="sig456",
            ecdsa_public_key="pubkey789",
        )
        decoded = decode_tlv(encoded)
        assert decoded[6] == "abc123hash"
        assert decoded[7] == "sig456"
        assert decoded[8] == "pubkey789"

    def test_decode_named(self):
        encoded = base64.b64encode(_tlv(1, "Test Co") + _tlv(42, "extra")).decode()
        named = decode_tlv_named(encoded)
        assert named == {"seller_name": "Test Co", "tag_42": "extra"}

    def test_decode_truncated_data(self):
        bad_data = base64.b64encode(b"\x01").decode()
        with pytest.raises(ValueError, match="Truncated"):
            decode_tlv(bad_data)

    def test_decode_length_exceeds_data(self):
        # Tag 1, claims 10 bytes, but only 3 provided
        bad_data = base64.b64encode(b"\x01\x0aabc").decode()
        with pytest.raises(ValueError, match="only 3 bytes remain"):
            decode_tlv(bad_data)
