"""
Bytecode integrity verification - fail-closed contract trust.

Compares deployed bytecode hash to expected value before any record or
grant is written, so a redeployed or swapped contract is caught at wiring
time rather than after a transaction lands somewhere unexpected.
"""

from __future__ import annotations

from dataclasses import dataclass

from web3 import Web3

from medledger.errors import ConfigurationError


def keccak_hex(data: bytes) -> str:
    """Compute Keccak256 hash and return 0x-prefixed hex string."""
    return Web3.to_hex(Web3.keccak(data))


def _norm(h: str) -> str:
    h = h.strip().lower()
    return h[2:] if h.startswith("0x") else h


@dataclass(frozen=True)
class BytecodeLock:
    """
    Fail-closed contract integrity check.

    Compares deployed bytecode (eth_getCode) keccak hash to expected hash.
    An empty expected hash only requires that *some* code is deployed.
    """

    w3: Web3
    contract_address: str
    expected_codehash: str = ""  # 0x-prefixed keccak256(code)

    def fetch_code(self) -> bytes:
        return bytes(self.w3.eth.get_code(Web3.to_checksum_address(self.contract_address)))

    def fetch_codehash(self) -> str:
        """Fetch deployed bytecode and compute its hash."""
        return keccak_hex(self.fetch_code())

    def verify_or_raise(self) -> None:
        """
        Raises:
            ConfigurationError: If no code is deployed, or its hash doesn't match
        """
        code = self.fetch_code()
        if not code:
            raise ConfigurationError(f"NO_CONTRACT_CODE at {self.contract_address}")
        if not self.expected_codehash:
            return
        got = _norm(keccak_hex(code))
        exp = _norm(self.expected_codehash)
        if got != exp:
            raise ConfigurationError(
                f"BYTECODE_MISMATCH {self.contract_address} "
                f"expected=0x{exp} got=0x{got}"
            )
