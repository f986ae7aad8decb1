"""
Record submission pipeline.

    Idle -> Validating -> Uploading -> Hashing -> Registering -> Confirmed
                 \\            \\                      \\
                  +------------+----------------------+--> Errored(stage, cause)

Stages never overlap and nothing is retried. The digest is computed from the
same immutable byte snapshot that was uploaded. A registration failure after
a successful upload leaves the blob orphaned in the store (there is no
delete primitive); the result says so. The same holds when the wallet session
ends or switches account while the upload is in flight.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from medledger.errors import (
    HashMismatch,
    IdentityBusy,
    InvalidInput,
    MedLedgerError,
    NetworkError,
    WalletUnavailable,
)
from medledger.hashing import IntegrityHasher, to_hex32
from medledger.models import TransactionReceipt
from medledger.session import SerializationDomain, WalletSession
from medledger.status import StatusEvent, StatusListener, StatusStream
from medledger.validation import require_payload

if TYPE_CHECKING:
    from medledger_eth.record_registry import RecordLedgerClient
    from pinning.client import ContentStoreClient

logger = logging.getLogger(__name__)


class SubmissionState(str, Enum):
    IDLE = "Idle"
    VALIDATING = "Validating"
    UPLOADING = "Uploading"
    HASHING = "Hashing"
    REGISTERING = "Registering"
    CONFIRMED = "Confirmed"
    ERRORED = "Errored"


@dataclass
class Submission:
    """
    One pass through the pipeline. Terminal (Confirmed or Errored) once
    returned from SubmissionOrchestrator.submit.
    """

    state: SubmissionState = SubmissionState.IDLE
    cid: Optional[str] = None
    digest: Optional[bytes] = None
    receipt: Optional[TransactionReceipt] = None
    stage: Optional[str] = None
    error: Optional[MedLedgerError] = None
    history: List[SubmissionState] = field(default_factory=lambda: [SubmissionState.IDLE])

    @property
    def confirmed(self) -> bool:
        return self.state is SubmissionState.CONFIRMED

    @property
    def record_id(self) -> Optional[int]:
        return self.receipt.record_id if self.receipt else None

    @property
    def tx_hash(self) -> Optional[str]:
        return self.receipt.tx_hash if self.receipt else None

    @property
    def outcome_unknown(self) -> bool:
        """Registration was submitted but its confirmation was not observed."""
        return isinstance(self.error, NetworkError) and self.error.outcome_unknown

    @property
    def orphaned(self) -> bool:
        """Blob is in the store but definitely not registered."""
        return (
            self.state is SubmissionState.ERRORED
            and self.stage == "register"
            and self.cid is not None
            and not self.outcome_unknown
        )

    @property
    def digest_hex(self) -> Optional[str]:
        return to_hex32(self.digest) if self.digest is not None else None


class SubmissionOrchestrator:
    """
    Upload -> hash -> register, for the session's signing identity.

    Args:
        session: Wallet session supplying the signing identity
        store: Content store client
        hasher: Integrity hasher
        records: Read-write record registry client
        domain: Serialization domain (defaults to the session's)
        verify: Re-read the registered record and compare cid/digest
        confirmation_timeout: Default confirmation bound (client default if None)
        on_status: Listener for the status stream
    """

    def __init__(
        self,
        session: WalletSession,
        store: ContentStoreClient,
        hasher: IntegrityHasher,
        records: RecordLedgerClient,
        *,
        domain: Optional[SerializationDomain] = None,
        verify: bool = False,
        confirmation_timeout: Optional[float] = None,
        on_status: Optional[StatusListener] = None,
        status: Optional[StatusStream] = None,
    ):
        self.session = session
        self.store = store
        self.hasher = hasher
        self.records = records
        self.domain = domain or session.domain
        self.verify = verify
        self.confirmation_timeout = confirmation_timeout
        self.status = status or StatusStream(on_status)

    async def submit(
        self,
        payload: Optional[bytes],
        *,
        mime_hint: Optional[str] = None,
        filename: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Submission:
        sub = Submission()
        self._advance(sub, SubmissionState.VALIDATING, "Validating submission...")

        try:
            data = require_payload(payload)
            identity = self.session.require_signing()
        except InvalidInput as e:
            return self._fail(sub, "validate", e)

        try:
            with self.domain.hold(identity.address):
                await self._run(sub, identity, data, mime_hint, filename, timeout)
        except IdentityBusy as e:
            return self._fail(sub, "validate", e)
        return sub

    async def _run(self, sub, identity, data, mime_hint, filename, timeout) -> None:
        self._advance(sub, SubmissionState.UPLOADING, "Uploading file to IPFS...")
        try:
            sub.cid = await asyncio.to_thread(self.store.upload, data, mime_hint, filename)
        except MedLedgerError as e:
            self._fail(sub, "upload", e)
            return

        self._advance(sub, SubmissionState.HASHING, "Generating file hash...")
        sub.digest = self.hasher.digest(data)

        if not self.session.is_current(identity):
            self._fail(
                sub,
                "register",
                WalletUnavailable(f"Wallet session for {identity.address} ended before registration"),
            )
            logger.warning(f"Upload {sub.cid} is orphaned: wallet session changed")
            return

        self._advance(sub, SubmissionState.REGISTERING, "Sending transaction...")
        wait = self.confirmation_timeout if timeout is None else timeout
        try:
            sub.receipt = await asyncio.to_thread(
                self.records.register, identity, sub.cid, sub.digest, timeout=wait
            )
        except MedLedgerError as e:
            self._fail(sub, "register", e)
            if sub.orphaned:
                logger.warning(f"Upload {sub.cid} is orphaned: registration failed ({e.kind})")
            return

        if self.verify and sub.record_id is not None:
            try:
                record = await asyncio.to_thread(self.records.fetch, sub.record_id)
            except MedLedgerError as e:
                self._fail(sub, "verify", e)
                return
            if record is None or record.cid != sub.cid or record.digest != sub.digest_hex:
                self._fail(
                    sub,
                    "verify",
                    HashMismatch(f"Record {sub.record_id} does not match uploaded payload {sub.cid}"),
                )
                return

        suffix = f" (record {sub.record_id})" if sub.record_id is not None else ""
        self._advance(sub, SubmissionState.CONFIRMED, f"Record added! CID: {sub.cid}{suffix}")

    def _advance(self, sub: Submission, state: SubmissionState, message: str) -> None:
        sub.state = state
        sub.history.append(state)
        self.status.emit(StatusEvent("submit", state.value, message))

    def _fail(self, sub: Submission, stage: str, error: MedLedgerError) -> Submission:
        sub.state = SubmissionState.ERRORED
        sub.stage = stage
        sub.error = error
        sub.history.append(SubmissionState.ERRORED)
        self.status.emit(
            StatusEvent(
                "submit",
                SubmissionState.ERRORED.value,
                f"Add record error ({stage}): {error}",
                stage=stage,
                error=error,
            )
        )
        return sub
