import pytest
from eth_utils import to_checksum_address

from medledger.errors import InvalidInput, InvalidInputReason
from medledger.validation import (
    decode_sealed_key,
    require_address,
    require_cid,
    require_digest,
    require_future_expiry,
    require_payload,
    require_record_id,
)


def _reason(excinfo):
    return excinfo.value.reason


class TestPayload:
    @pytest.mark.parametrize("data", [None, b"", bytearray()])
    def test_missing_payload(self, data):
        with pytest.raises(InvalidInput) as ei:
            require_payload(data)
        assert _reason(ei) is InvalidInputReason.NO_FILE_SELECTED

    def test_snapshot_is_immutable_copy(self):
        buf = bytearray(b"scan")
        snap = require_payload(buf)
        buf[0] = ord("X")
        assert snap == b"scan"


class TestAddress:
    def test_checksums(self):
        addr = "0x" + "bb" * 20
        assert require_address(addr) == to_checksum_address(addr)

    @pytest.mark.parametrize("value", [None, "", "doctor.eth", "0x1234", "0x" + "zz" * 20])
    def test_rejects_malformed(self, value):
        with pytest.raises(InvalidInput) as ei:
            require_address(value)
        assert _reason(ei) is InvalidInputReason.INVALID_ADDRESS


class TestRecordId:
    def test_accepts_int_and_decimal_string(self):
        assert require_record_id(7) == 7
        assert require_record_id(" 12 ") == 12

    def test_accepts_largest_uint256(self):
        assert require_record_id(2**256 - 1) == 2**256 - 1

    @pytest.mark.parametrize(
        "value", [None, -1, "abc", "1.5", True, "", "\u00b2", "\u0663", 2**256, str(2**256)]
    )
    def test_rejects(self, value):
        with pytest.raises(InvalidInput) as ei:
            require_record_id(value)
        assert _reason(ei) is InvalidInputReason.INVALID_RECORD_ID


class TestExpiry:
    def test_future(self):
        assert require_future_expiry("1010", now=1000) == 1010

    @pytest.mark.parametrize(
        "value", [1000, 999, "soon", None, "\u00b2", float("inf"), float("nan"), 2**256]
    )
    def test_rejects_non_future_or_garbage(self, value):
        with pytest.raises(InvalidInput) as ei:
            require_future_expiry(value, now=1000)
        assert _reason(ei) is InvalidInputReason.INVALID_EXPIRY


class TestLedgerArgs:
    def test_cid(self):
        assert require_cid(" bafy123 ") == "bafy123"
        with pytest.raises(InvalidInput):
            require_cid("  ")

    def test_digest(self):
        assert require_digest(b"\x01" * 32) == b"\x01" * 32
        with pytest.raises(InvalidInput):
            require_digest(b"\x01" * 31)

    def test_sealed_key(self):
        assert decode_sealed_key("0x1234") == b"\x12\x34"
        assert decode_sealed_key(b"\x00\x01") == b"\x00\x01"
        assert decode_sealed_key(None) == b""
        with pytest.raises(InvalidInput) as ei:
            decode_sealed_key("not-hex")
        assert _reason(ei) is InvalidInputReason.INVALID_SEALED_KEY
