"""
Test bytecode lock verification.

Verifies:
- Matching bytecode passes
- Mismatched bytecode raises
- Missing code raises even without an expected hash
"""

from __future__ import annotations

import pytest
from web3 import Web3

from medledger.errors import ConfigurationError
from medledger_eth.bytecode_lock import BytecodeLock, keccak_hex

ADDR = "0x" + "11" * 20
CODE = b"\x60\x80\x60\x40"


class FakeEth:
    """Mock eth module."""

    def __init__(self, code: bytes):
        self._code = code

    def get_code(self, _addr):
        return self._code


class FakeWeb3:
    """Mock Web3 instance."""

    def __init__(self, code: bytes):
        self.eth = FakeEth(code)


def test_bytecode_lock_matching_passes():
    """Bytecode lock passes when hash matches."""
    expected = keccak_hex(CODE)
    BytecodeLock(FakeWeb3(CODE), ADDR, expected_codehash=expected).verify_or_raise()


def test_bytecode_lock_mismatch_raises():
    """Bytecode lock raises when hash mismatches."""
    lock = BytecodeLock(FakeWeb3(CODE), ADDR, expected_codehash="0x" + "00" * 32)

    with pytest.raises(ConfigurationError, match="BYTECODE_MISMATCH"):
        lock.verify_or_raise()


def test_bytecode_lock_case_and_prefix_insensitive():
    """Comparison ignores case and the 0x prefix."""
    bare = Web3.keccak(CODE).hex().lower().removeprefix("0x")

    BytecodeLock(FakeWeb3(CODE), ADDR, bare).verify_or_raise()
    BytecodeLock(FakeWeb3(CODE), ADDR, "0x" + bare.upper()).verify_or_raise()


def test_no_code_fails_closed():
    """An address with no deployed code is never trusted."""
    with pytest.raises(ConfigurationError, match="NO_CONTRACT_CODE"):
        BytecodeLock(FakeWeb3(b""), ADDR).verify_or_raise()


def test_any_code_passes_without_expected_hash():
    BytecodeLock(FakeWeb3(CODE), ADDR).verify_or_raise()


def test_fetch_codehash_is_prefixed():
    h = BytecodeLock(FakeWeb3(CODE), ADDR).fetch_codehash()
    assert h.startswith("0x")
    assert len(h) == 66
