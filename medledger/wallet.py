"""
Wallet collaborator.

A wallet exposes the connected account and a signer for it. The only
implementation shipped here holds a local secp256k1 key (raw hex or an
encrypted keystore); anything with the same two methods can be plugged in.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from eth_account import Account
from eth_account.signers.local import LocalAccount

from medledger.errors import UserRejected, WalletUnavailable

logger = logging.getLogger(__name__)

ApprovalHook = Callable[[Dict[str, Any]], bool]


class Signer(Protocol):
    address: str

    def sign_transaction(self, tx: Dict[str, Any]) -> bytes:
        """Return the raw signed transaction. Raises UserRejected on decline."""
        ...


class Wallet(Protocol):
    def request_accounts(self) -> str:
        ...

    def get_signer(self) -> Signer:
        ...


@dataclass
class LocalSigner:
    """
    Signs with an in-process key.

    ``approve`` sees the unsigned transaction and may decline it, which is
    the local equivalent of the holder pressing "reject" in a wallet UI.
    """

    account: LocalAccount
    approve: Optional[ApprovalHook] = None

    @property
    def address(self) -> str:
        return self.account.address

    def sign_transaction(self, tx: Dict[str, Any]) -> bytes:
        if self.approve is not None and not self.approve(tx):
            raise UserRejected("Transaction signature declined")
        signed = self.account.sign_transaction(tx)
        return bytes(signed.raw_transaction)


class LocalKeyWallet:
    """Wallet backed by a private key held by this process."""

    def __init__(self, private_key: Optional[str], *, approve: Optional[ApprovalHook] = None):
        self._private_key = private_key
        self._approve = approve
        self._account: Optional[LocalAccount] = None

    @classmethod
    def from_env(cls, name: str = "MEDLEDGER_PRIVATE_KEY", **kwargs: Any) -> LocalKeyWallet:
        return cls(os.getenv(name), **kwargs)

    @classmethod
    def from_keystore(cls, path: str, password: str, **kwargs: Any) -> LocalKeyWallet:
        """
        Load an encrypted JSON keystore.

        Raises:
            WalletUnavailable: If the file is unreadable or the password is wrong
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                keyfile = json.load(f)
            key = Account.decrypt(keyfile, password)
        except (OSError, ValueError) as e:
            raise WalletUnavailable(f"Keystore unusable: {e}", cause=e) from e
        return cls("0x" + bytes(key).hex(), **kwargs)

    def request_accounts(self) -> str:
        return self._load_account().address

    def get_signer(self) -> LocalSigner:
        return LocalSigner(self._load_account(), approve=self._approve)

    def _load_account(self) -> LocalAccount:
        if self._account is not None:
            return self._account
        if not self._private_key:
            raise WalletUnavailable("No signing key configured")
        try:
            account = Account.from_key(self._private_key)
        except (ValueError, TypeError) as e:
            raise WalletUnavailable(f"Signing key is malformed: {e}", cause=e) from e
        logger.info(f"Wallet account loaded: {account.address}")
        self._account = account
        return account
