"""
Access-control flows.

Grant / revoke:  Idle -> Validating -> Submitting -> Confirmed
Check:           Idle -> Validating -> Querying   -> Resolved(bool)

Any stage may end in Errored(stage, cause). Grant and revoke occupy the
identity's serialization slot; check is a read and never does.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, List, Optional, Union

from medledger.errors import ConfigurationError, IdentityBusy, InvalidInput, MedLedgerError
from medledger.models import AccessGrant, TransactionReceipt
from medledger.session import SerializationDomain, WalletSession
from medledger.status import StatusEvent, StatusListener, StatusStream
from medledger.validation import (
    decode_sealed_key,
    require_address,
    require_future_expiry,
    require_record_id,
)

if TYPE_CHECKING:
    from medledger_eth.access_manager import AccessLedgerReader

logger = logging.getLogger(__name__)


class AccessState(str, Enum):
    IDLE = "Idle"
    VALIDATING = "Validating"
    SUBMITTING = "Submitting"
    CONFIRMED = "Confirmed"
    QUERYING = "Querying"
    RESOLVED = "Resolved"
    ERRORED = "Errored"


@dataclass
class AccessOperation:
    operation: str  # grant | revoke | check
    record_id: Union[int, str, None] = None
    grantee: Optional[str] = None
    expiry: Optional[int] = None
    state: AccessState = AccessState.IDLE
    receipt: Optional[TransactionReceipt] = None
    grant: Optional[AccessGrant] = None  # set once a grant is confirmed
    has_access: Optional[bool] = None
    stage: Optional[str] = None
    error: Optional[MedLedgerError] = None
    history: List[AccessState] = field(default_factory=lambda: [AccessState.IDLE])

    @property
    def succeeded(self) -> bool:
        return self.state in (AccessState.CONFIRMED, AccessState.RESOLVED)


class AccessOrchestrator:
    """
    Grant, revoke and check access for (record, grantee) pairs.

    ``ledger`` may be a read-only AccessLedgerReader, in which case only
    check is available; grant/revoke end in Errored("validate",
    ConfigurationError).
    """

    def __init__(
        self,
        session: Optional[WalletSession],
        ledger: AccessLedgerReader,
        *,
        domain: Optional[SerializationDomain] = None,
        clock: Callable[[], float] = time.time,
        confirmation_timeout: Optional[float] = None,
        on_status: Optional[StatusListener] = None,
        status: Optional[StatusStream] = None,
    ):
        self.session = session
        self.ledger = ledger
        self.domain = domain or (session.domain if session is not None else SerializationDomain())
        self.clock = clock
        self.confirmation_timeout = confirmation_timeout
        self.status = status or StatusStream(on_status)

    async def grant(
        self,
        record_id: Union[int, str],
        grantee: str,
        expiry: Union[int, str],
        sealed_key: Union[bytes, str, None] = b"",
        *,
        timeout: Optional[float] = None,
    ) -> AccessOperation:
        op = AccessOperation("grant", record_id=record_id, grantee=grantee)
        self._advance(op, AccessState.VALIDATING, "Validating grant...")
        try:
            identity = self._require_writer()
            rid = require_record_id(record_id)
            who = require_address(grantee)
            exp = require_future_expiry(expiry, self.clock())
            key = decode_sealed_key(sealed_key)
        except (InvalidInput, ConfigurationError) as e:
            return self._fail(op, "validate", e)
        op.record_id, op.grantee, op.expiry = rid, who, exp

        return await self._submit(
            op,
            identity,
            lambda: self.ledger.grant(identity, rid, who, exp, key, timeout=self._wait(timeout)),
            f"Access granted to {who} on record {rid} until {exp}.",
            grant=AccessGrant(record_id=rid, grantee=who, expiry=exp, sealed_key="0x" + key.hex()),
        )

    async def revoke(
        self,
        record_id: Union[int, str],
        grantee: str,
        *,
        timeout: Optional[float] = None,
    ) -> AccessOperation:
        op = AccessOperation("revoke", record_id=record_id, grantee=grantee)
        self._advance(op, AccessState.VALIDATING, "Validating revoke...")
        try:
            identity = self._require_writer()
            rid = require_record_id(record_id)
            who = require_address(grantee)
        except (InvalidInput, ConfigurationError) as e:
            return self._fail(op, "validate", e)
        op.record_id, op.grantee = rid, who

        return await self._submit(
            op,
            identity,
            lambda: self.ledger.revoke(identity, rid, who, timeout=self._wait(timeout)),
            f"Access revoked for {who} on record {rid}.",
        )

    async def check(self, record_id: Union[int, str], grantee: str) -> AccessOperation:
        op = AccessOperation("check", record_id=record_id, grantee=grantee)
        self._advance(op, AccessState.VALIDATING, "Validating check...")
        try:
            rid = require_record_id(record_id)
            who = require_address(grantee)
        except InvalidInput as e:
            return self._fail(op, "validate", e)
        op.record_id, op.grantee = rid, who

        self._advance(op, AccessState.QUERYING, "Checking access...")
        try:
            op.has_access = await asyncio.to_thread(self.ledger.check, rid, who)
        except MedLedgerError as e:
            return self._fail(op, "query", e)

        verdict = "granted" if op.has_access else "denied"
        self._advance(op, AccessState.RESOLVED, f"Checked access: {verdict}.")
        return op

    async def _submit(self, op, identity, call, done_message, grant=None) -> AccessOperation:
        try:
            with self.domain.hold(identity.address):
                self._advance(op, AccessState.SUBMITTING, "Sending transaction...")
                try:
                    op.receipt = await asyncio.to_thread(call)
                except MedLedgerError as e:
                    return self._fail(op, "submit", e)
        except IdentityBusy as e:
            return self._fail(op, "validate", e)

        op.grant = grant
        self._advance(op, AccessState.CONFIRMED, done_message)
        return op

    def _require_writer(self):
        if not getattr(self.ledger, "writable", False):
            raise ConfigurationError("Access manager client is read-only")
        if self.session is None:
            raise ConfigurationError("No wallet session attached")
        return self.session.require_signing()

    def _wait(self, timeout: Optional[float]) -> Optional[float]:
        return self.confirmation_timeout if timeout is None else timeout

    def _advance(self, op: AccessOperation, state: AccessState, message: str) -> None:
        op.state = state
        op.history.append(state)
        self.status.emit(StatusEvent(op.operation, state.value, message))

    def _fail(self, op: AccessOperation, stage: str, error: MedLedgerError) -> AccessOperation:
        op.state = AccessState.ERRORED
        op.stage = stage
        op.error = error
        op.history.append(AccessState.ERRORED)
        self.status.emit(
            StatusEvent(
                op.operation,
                AccessState.ERRORED.value,
                f"{op.operation.capitalize()} access error ({stage}): {error}",
                stage=stage,
                error=error,
            )
        )
        return op
