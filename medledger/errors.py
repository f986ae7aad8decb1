"""
Classified failures.

Every call into an external collaborator (wallet, content store, ledger) is
wrapped so that whatever it raises comes out as one of these. Callers decide
on ``kind`` (and on ``reason`` for InvalidInput), never on message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class MedLedgerError(Exception):
    """Base class for all classified failures."""

    kind: str = "error"
    retryable: bool = False

    def __init__(self, message: str = "", *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        return self.message or self.kind


class ConfigurationError(MedLedgerError):
    """Malformed deployment configuration (e.g. contract address). Fatal."""

    kind = "configuration"


class WalletUnavailable(MedLedgerError):
    """No usable wallet / signing key."""

    kind = "wallet-unavailable"
    retryable = True


class UserRejected(MedLedgerError):
    """The wallet holder declined a connection or signature request."""

    kind = "user-rejected"
    retryable = True


class UploadFailure(MedLedgerError):
    """Content store did not return a CID (transport, auth, rejection, bad body)."""

    kind = "upload-failure"
    retryable = True

    def __init__(
        self,
        message: str = "",
        *,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause=cause)
        self.status_code = status_code


class TransactionRejected(MedLedgerError):
    """Signer declined before anything was submitted."""

    kind = "transaction-rejected"
    retryable = True


class TransactionReverted(MedLedgerError):
    """Ledger rejected the transaction on business rules."""

    kind = "transaction-reverted"

    def __init__(
        self,
        message: str = "",
        *,
        tx_hash: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause=cause)
        self.tx_hash = tx_hash


class NetworkError(MedLedgerError):
    """
    Submission or confirmation could not be observed.

    ``outcome_unknown`` is set when a transaction was handed to the ledger but
    its confirmation was not seen (it may still land later).
    """

    kind = "network"
    retryable = True

    CONFIRMATION_TIMEOUT = "confirmation-timeout"

    def __init__(
        self,
        reason: str,
        message: str = "",
        *,
        tx_hash: Optional[str] = None,
        outcome_unknown: bool = False,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message or reason, cause=cause)
        self.reason = reason
        self.tx_hash = tx_hash
        self.outcome_unknown = outcome_unknown


class InvalidInputReason(str, Enum):
    NO_FILE_SELECTED = "NoFileSelected"
    NO_IDENTITY = "NoIdentity"
    INVALID_ADDRESS = "InvalidAddress"
    INVALID_EXPIRY = "InvalidExpiry"
    INVALID_RECORD_ID = "InvalidRecordId"
    INVALID_CID = "InvalidCid"
    INVALID_DIGEST = "InvalidDigest"
    INVALID_SEALED_KEY = "InvalidSealedKey"
    # arguments the contract ABI refuses to encode
    INVALID_ARGUMENT = "InvalidArgument"


class InvalidInput(MedLedgerError):
    """Local validation failed; nothing was sent anywhere."""

    kind = "invalid-input"

    def __init__(self, reason: InvalidInputReason, message: str = ""):
        super().__init__(message or reason.value)
        self.reason = reason


class HashMismatch(MedLedgerError):
    """Registered digest/CID diverge from what was uploaded. Internal bug."""

    kind = "hash-mismatch"


class IdentityBusy(MedLedgerError):
    """Another write for the same signing identity is still in flight."""

    kind = "identity-busy"
    retryable = True

    def __init__(self, address: str):
        super().__init__(f"Another operation is in flight for {address}")
        self.address = address
