"""
Client configuration, validated at construction.

Environment variables:
- RPC_URL: Ledger JSON-RPC endpoint (required)
- RECORD_REGISTRY_ADDR: Record registry contract (required)
- ACCESS_MANAGER_ADDR: Access manager contract (required)
- UPLOAD_URL: Upload relay endpoint (see api.server)
- UPLOAD_TOKEN: Bearer token for the upload relay
- CONFIRMATION_TIMEOUT: Upper bound on waiting for a receipt, seconds (default: 120)
- RPC_TIMEOUT: Per-request RPC timeout, seconds (default: 8)
- BYTECODE_LOCK_ENABLED: Verify deployed contract code hashes (default: false)
- RECORD_REGISTRY_CODEHASH / ACCESS_MANAGER_CODEHASH: Expected keccak256(code)

Pinning-service credentials are deliberately absent: they are held by the
upload relay, never by the client.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

from eth_utils import is_address

from medledger.errors import ConfigurationError

_CODEHASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


def _req(name: str) -> str:
    """Get required environment variable or raise."""
    v = os.getenv(name)
    if not v:
        raise ConfigurationError(f"Missing required env var: {name}")
    return v


def _opt(name: str, default: str) -> str:
    """Get optional environment variable with default."""
    return os.getenv(name, default)


def _opt_bool(name: str, default: bool) -> bool:
    """Parse boolean environment variable."""
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _opt_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return float(v)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {v!r}") from None


@dataclass(frozen=True)
class Settings:
    """Deployment configuration for the ledger and upload clients."""

    RPC_URL: str
    RECORD_REGISTRY_ADDR: str
    ACCESS_MANAGER_ADDR: str

    UPLOAD_URL: str = ""
    UPLOAD_TOKEN: str = ""

    CONFIRMATION_TIMEOUT: float = 120.0
    RPC_TIMEOUT: float = 8.0

    # Bytecode lock (recommended ON in production)
    BYTECODE_LOCK_ENABLED: bool = False
    RECORD_REGISTRY_CODEHASH: str = ""
    ACCESS_MANAGER_CODEHASH: str = ""

    def __post_init__(self) -> None:
        if not self.RPC_URL.startswith(("http://", "https://", "ws://", "wss://")):
            raise ConfigurationError(f"RPC_URL is not an http(s)/ws(s) URL: {self.RPC_URL!r}")

        # Reject anything that is not a literal 20-byte address (no ENS names).
        for name in ("RECORD_REGISTRY_ADDR", "ACCESS_MANAGER_ADDR"):
            addr = getattr(self, name)
            if not addr or not is_address(addr):
                raise ConfigurationError(
                    f"{name} is invalid or missing: {addr!r} (expected 42-char 0x address)"
                )

        if self.UPLOAD_URL and not self.UPLOAD_URL.startswith(("http://", "https://")):
            raise ConfigurationError(f"UPLOAD_URL is not an http(s) URL: {self.UPLOAD_URL!r}")

        if self.CONFIRMATION_TIMEOUT <= 0 or self.RPC_TIMEOUT <= 0:
            raise ConfigurationError("Timeouts must be positive")

        if self.BYTECODE_LOCK_ENABLED:
            for name in ("RECORD_REGISTRY_CODEHASH", "ACCESS_MANAGER_CODEHASH"):
                if not _CODEHASH_RE.match(getattr(self, name)):
                    raise ConfigurationError(
                        f"BYTECODE_LOCK_ENABLED but {name} is missing or malformed"
                    )

    @staticmethod
    def load() -> Settings:
        """Load settings from environment variables."""
        return Settings(
            RPC_URL=_req("RPC_URL"),
            RECORD_REGISTRY_ADDR=_req("RECORD_REGISTRY_ADDR"),
            ACCESS_MANAGER_ADDR=_req("ACCESS_MANAGER_ADDR"),
            UPLOAD_URL=_opt("UPLOAD_URL", ""),
            UPLOAD_TOKEN=_opt("UPLOAD_TOKEN", ""),
            CONFIRMATION_TIMEOUT=_opt_float("CONFIRMATION_TIMEOUT", 120.0),
            RPC_TIMEOUT=_opt_float("RPC_TIMEOUT", 8.0),
            BYTECODE_LOCK_ENABLED=_opt_bool("BYTECODE_LOCK_ENABLED", False),
            RECORD_REGISTRY_CODEHASH=_opt("RECORD_REGISTRY_CODEHASH", ""),
            ACCESS_MANAGER_CODEHASH=_opt("ACCESS_MANAGER_CODEHASH", ""),
        )
