"""
Wiring for a UI layer.

MedLedger builds every collaborator from one validated Settings object and
shares a single status stream, wallet session and serialization domain
between the submission and access flows. LedgerObserver is the read-only
counterpart for callers without a wallet.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Union

from medledger.access import AccessOperation, AccessOrchestrator
from medledger.errors import ConfigurationError, MedLedgerError
from medledger.hashing import IntegrityHasher
from medledger.models import Record
from medledger.session import IdentityHandle, WalletSession
from medledger.status import StatusEvent, StatusListener, StatusStream
from medledger.submission import Submission, SubmissionOrchestrator
from medledger.wallet import Wallet
from medledger_eth.access_manager import AccessLedgerClient, AccessLedgerReader
from medledger_eth.bytecode_lock import BytecodeLock
from medledger_eth.chain_client import LedgerGateway
from medledger_eth.metrics import Metrics
from medledger_eth.record_registry import RecordLedgerClient, RecordLedgerReader
from medledger_eth.settings import Settings
from pinning.client import ContentStoreClient

logger = logging.getLogger(__name__)


def verify_deployment(gateway: LedgerGateway, settings: Settings) -> None:
    """
    Check that both contracts are deployed, and match the locked code hashes
    when BYTECODE_LOCK_ENABLED.

    Raises:
        ConfigurationError: On missing code or hash mismatch
    """
    expected_records = settings.RECORD_REGISTRY_CODEHASH if settings.BYTECODE_LOCK_ENABLED else ""
    expected_access = settings.ACCESS_MANAGER_CODEHASH if settings.BYTECODE_LOCK_ENABLED else ""
    BytecodeLock(gateway.w3, settings.RECORD_REGISTRY_ADDR, expected_records).verify_or_raise()
    BytecodeLock(gateway.w3, settings.ACCESS_MANAGER_ADDR, expected_access).verify_or_raise()


class _FetchMixin:
    records: RecordLedgerReader
    status: StatusStream

    async def fetch_record(self, record_id: Union[int, str]) -> Optional[Record]:
        """
        Read a record. Classified failures are reported on the status stream
        and re-raised.
        """
        try:
            record = await asyncio.to_thread(self.records.fetch, record_id)
        except MedLedgerError as e:
            self.status.emit(
                StatusEvent("fetch", "Errored", f"Fetch record error: {e}", stage="query", error=e)
            )
            raise
        message = "Record fetched." if record is not None else f"Record {record_id} not found."
        self.status.emit(StatusEvent("fetch", "Resolved", message))
        return record


class MedLedger(_FetchMixin):
    """
    Read-write client for a connected wallet.

    Usage:
        app = MedLedger(Settings.load(), LocalKeyWallet.from_env())
        app.connect()
        sub = await app.submit(pdf_bytes, mime_hint="application/pdf")
        op = await app.access.grant(sub.record_id, doctor, expiry)
    """

    def __init__(
        self,
        settings: Settings,
        wallet: Wallet,
        *,
        store: Optional[ContentStoreClient] = None,
        gateway: Optional[LedgerGateway] = None,
        metrics: Optional[Metrics] = None,
        verify: bool = False,
        on_status: Optional[StatusListener] = None,
    ):
        self.settings = settings
        self.metrics = metrics or Metrics()
        self.status = StatusStream(on_status)
        self.gateway = gateway or LedgerGateway.from_settings(settings, metrics=self.metrics)

        if store is None:
            if not settings.UPLOAD_URL:
                raise ConfigurationError("UPLOAD_URL is required for record submission")
            store = ContentStoreClient.for_relay(
                settings.UPLOAD_URL, settings.UPLOAD_TOKEN, metrics=self.metrics
            )
        self.store = store

        self.session = WalletSession(wallet)
        self.records = RecordLedgerClient(self.gateway, settings.RECORD_REGISTRY_ADDR)
        self.access_ledger = AccessLedgerClient(self.gateway, settings.ACCESS_MANAGER_ADDR)

        self.submissions = SubmissionOrchestrator(
            self.session,
            self.store,
            IntegrityHasher(),
            self.records,
            verify=verify,
            confirmation_timeout=settings.CONFIRMATION_TIMEOUT,
            status=self.status,
        )
        self.access = AccessOrchestrator(
            self.session,
            self.access_ledger,
            confirmation_timeout=settings.CONFIRMATION_TIMEOUT,
            status=self.status,
        )

    @property
    def last_status(self) -> Optional[StatusEvent]:
        return self.status.last

    def verify_deployment(self) -> None:
        verify_deployment(self.gateway, self.settings)

    def connect(self) -> IdentityHandle:
        try:
            identity = self.session.connect()
        except MedLedgerError as e:
            self.status.emit(
                StatusEvent("connect", "Errored", f"Failed to connect: {e}", stage="connect", error=e)
            )
            raise
        self.status.emit(StatusEvent("connect", "Connected", f"Wallet connected: {identity.address}"))
        return identity

    def disconnect(self) -> None:
        self.session.disconnect()
        self.status.emit(StatusEvent("connect", "Disconnected", "Wallet disconnected."))

    async def submit(self, payload: Optional[bytes], **kwargs) -> Submission:
        return await self.submissions.submit(payload, **kwargs)


class LedgerObserver(_FetchMixin):
    """Read-only access to records and grants; no wallet, no writes."""

    def __init__(
        self,
        settings: Settings,
        *,
        gateway: Optional[LedgerGateway] = None,
        metrics: Optional[Metrics] = None,
        on_status: Optional[StatusListener] = None,
    ):
        self.metrics = metrics or Metrics()
        self.status = StatusStream(on_status)
        self.gateway = gateway or LedgerGateway.from_settings(settings, metrics=self.metrics)
        self.records = RecordLedgerReader(self.gateway, settings.RECORD_REGISTRY_ADDR)
        self.access = AccessOrchestrator(
            None,
            AccessLedgerReader(self.gateway, settings.ACCESS_MANAGER_ADDR),
            status=self.status,
        )

    async def check(self, record_id: Union[int, str], grantee: str) -> AccessOperation:
        return await self.access.check(record_id, grantee)
