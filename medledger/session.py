"""
Connected identity and its lifecycle.

WalletSession replaces "whatever account the UI currently holds": it is
acquired on connect, invalidated on disconnect or on an account change
reported by the wallet, and handed explicitly to the orchestrators.

SerializationDomain makes one signing identity a serialization domain:
ledger transactions from one account are ordered by nonce, so at most one
write per identity may be in flight.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Set

from medledger.errors import (
    IdentityBusy,
    InvalidInput,
    InvalidInputReason,
    MedLedgerError,
    WalletUnavailable,
)
from medledger.wallet import Signer, Wallet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityHandle:
    """A connected account; ``signer`` is None for read-only observers."""

    address: str
    signer: Optional[Signer] = None
    generation: int = 0

    @property
    def can_sign(self) -> bool:
        return self.signer is not None

    @staticmethod
    def observer(address: str) -> IdentityHandle:
        return IdentityHandle(address=address)


class WalletSession:
    """
    One wallet connection. Writers built on the same session share its
    ``domain``, so they serialize per identity without extra wiring.
    """

    def __init__(self, wallet: Wallet):
        self._wallet = wallet
        self.domain = SerializationDomain()
        self._identity: Optional[IdentityHandle] = None
        self._generation = 0

    @property
    def identity(self) -> Optional[IdentityHandle]:
        return self._identity

    @property
    def connected(self) -> bool:
        return self._identity is not None

    def connect(self) -> IdentityHandle:
        """
        Ask the wallet for its account and signer.

        Raises:
            WalletUnavailable: No wallet / key, or the wallet failed
            UserRejected: The holder declined the connection
        """
        try:
            address = self._wallet.request_accounts()
            signer = self._wallet.get_signer()
        except MedLedgerError:
            raise
        except Exception as e:
            raise WalletUnavailable(f"Wallet connection failed: {e}", cause=e) from e

        if signer.address.lower() != address.lower():
            raise WalletUnavailable(
                f"Wallet signer {signer.address} does not match account {address}"
            )

        self._generation += 1
        self._identity = IdentityHandle(address=address, signer=signer, generation=self._generation)
        logger.info(f"Wallet connected: {address}")
        return self._identity

    def disconnect(self) -> None:
        if self._identity is not None:
            logger.info(f"Wallet disconnected: {self._identity.address}")
        self._identity = None
        self._generation += 1

    def accounts_changed(self, accounts: Sequence[str]) -> None:
        """Wallet event: the active account list changed."""
        current = self._identity
        if current is None:
            return
        if not accounts or accounts[0].lower() != current.address.lower():
            logger.info(f"Wallet account changed, session for {current.address} invalidated")
            self.disconnect()

    def is_current(self, handle: IdentityHandle) -> bool:
        """False once the session was disconnected or reconnected after ``handle`` was issued."""
        return self._identity is not None and handle.generation == self._identity.generation

    def require_signing(self) -> IdentityHandle:
        identity = self._identity
        if identity is None or not identity.can_sign:
            raise InvalidInput(
                InvalidInputReason.NO_IDENTITY,
                "No wallet connected. Connect a wallet first.",
            )
        return identity


class SerializationDomain:
    """Tracks which identities have a write in flight. Fails fast, never queues."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._busy: Set[str] = set()

    def is_busy(self, address: str) -> bool:
        with self._lock:
            return address.lower() in self._busy

    @contextmanager
    def hold(self, address: str) -> Iterator[None]:
        key = address.lower()
        with self._lock:
            if key in self._busy:
                raise IdentityBusy(address)
            self._busy.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._busy.discard(key)
