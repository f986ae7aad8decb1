"""
Ledger gateway: the one place that talks JSON-RPC.

Provides:
- Contract binding with address validation
- Function binding with ABI argument validation
- Read calls with failure classification
- Write path: build -> sign -> send -> wait for receipt
- RPC health check
- Non-behavioral metrics

Everything web3 or the transport raises is classified into
medledger.errors before leaving this module.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from web3 import Web3
from web3.contract import Contract
from web3.exceptions import (
    ContractLogicError,
    MismatchedABI,
    TimeExhausted,
    Web3Exception,
    Web3ValidationError,
)

from medledger.errors import (
    ConfigurationError,
    InvalidInput,
    InvalidInputReason,
    MedLedgerError,
    NetworkError,
    TransactionRejected,
    TransactionReverted,
    UserRejected,
)
from medledger.models import TransactionReceipt
from medledger.session import IdentityHandle
from medledger_eth.metrics import Metrics
from medledger_eth.settings import Settings

logger = logging.getLogger(__name__)

# requests' exceptions derive from OSError, as do socket errors.
TRANSPORT_ERRORS = (Web3Exception, OSError)


def _why(e: BaseException) -> str:
    """Revert reason without the (message, data) tuple web3 stringifies to."""
    return getattr(e, "message", None) or str(e)


def to_receipt(raw: Any, *, record_id: Optional[int] = None) -> TransactionReceipt:
    """Normalise a web3 receipt (AttributeDict) into a TransactionReceipt."""
    return TransactionReceipt(
        tx_hash=Web3.to_hex(raw["transactionHash"]),
        block_number=int(raw["blockNumber"]),
        status=int(raw["status"]),
        gas_used=int(raw["gasUsed"]) if raw.get("gasUsed") is not None else None,
        record_id=record_id,
    )


@dataclass
class LedgerGateway:
    """
    Shared RPC access for the record and access-manager clients.

    Signing is local (the identity's signer produces a raw transaction), so
    one gateway serves both read-only and read-write clients.
    """

    w3: Web3
    metrics: Metrics
    confirmation_timeout: float = 120.0
    poll_latency: float = 0.5

    @staticmethod
    def from_settings(settings: Settings, *, metrics: Optional[Metrics] = None) -> LedgerGateway:
        w3 = Web3(
            Web3.HTTPProvider(settings.RPC_URL, request_kwargs={"timeout": settings.RPC_TIMEOUT})
        )
        return LedgerGateway(
            w3=w3,
            metrics=metrics or Metrics(),
            confirmation_timeout=settings.CONFIRMATION_TIMEOUT,
        )

    def contract(self, address: str, abi: list) -> Contract:
        """
        Bind a contract, refusing anything that is not a literal address.

        Raises:
            ConfigurationError: If address is malformed
        """
        if not address or not Web3.is_address(address):
            raise ConfigurationError(f"Contract address is invalid or missing: {address!r}")
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def ping(self) -> bool:
        """
        Check RPC health by fetching current block number.

        Returns:
            True if RPC reachable, False otherwise
        """
        try:
            with self.metrics.timed("rpc_ping"):
                _ = self.w3.eth.block_number
            return True
        except TRANSPORT_ERRORS as e:
            logger.warning(f"RPC ping failed: {e}")
            return False

    def bind(self, function: Any, *args: Any) -> Any:
        """
        Bind arguments to a contract function.

        web3 encodes against the ABI here, so out-of-range values fail
        before anything reaches the node.

        Raises:
            InvalidInput: If the ABI refuses the arguments
        """
        try:
            return function(*args)
        except (MismatchedABI, Web3ValidationError) as e:
            raise InvalidInput(
                InvalidInputReason.INVALID_ARGUMENT,
                f"{getattr(function, 'fn_name', 'contract function')}: arguments rejected: {e}",
            ) from e

    def call(self, fn: Any, what: str) -> Any:
        """
        Run a view function.

        Raises:
            TransactionReverted: If the call reverts
            NetworkError: If the node could not be reached
        """
        try:
            with self.metrics.timed("ledger_read"):
                return fn.call()
        except ContractLogicError as e:
            raise TransactionReverted(f"{what} reverted: {_why(e)}", cause=e) from e
        except TRANSPORT_ERRORS as e:
            raise NetworkError("read-failed", f"{what} failed: {e}", cause=e) from e

    def transact(
        self,
        identity: IdentityHandle,
        fn: Any,
        what: str,
        *,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Build, sign, submit and wait for a write.

        Blocks until the receipt is observed or ``timeout`` (default
        ``confirmation_timeout``) elapses.

        Returns:
            Raw web3 receipt (status 1)

        Raises:
            InvalidInput: If the identity cannot sign
            TransactionRejected: If the signer declined
            TransactionReverted: If simulation failed or the receipt has status 0
            NetworkError: If submission or confirmation was not observed
        """
        if identity is None or not identity.can_sign:
            raise InvalidInput(InvalidInputReason.NO_IDENTITY, "A signing identity is required")
        sender = identity.address

        try:
            nonce = self.w3.eth.get_transaction_count(sender, "pending")
            tx = fn.build_transaction(
                {"from": sender, "nonce": nonce, "chainId": self.w3.eth.chain_id}
            )
        except ContractLogicError as e:
            self.metrics.inc("tx_reverted_total")
            raise TransactionReverted(f"{what} would revert: {_why(e)}", cause=e) from e
        except TRANSPORT_ERRORS as e:
            raise NetworkError("submission-failed", f"{what}: {e}", cause=e) from e

        try:
            raw_tx = identity.signer.sign_transaction(tx)  # type: ignore[union-attr]
        except UserRejected as e:
            raise TransactionRejected(f"{what}: {e}", cause=e) from e
        except MedLedgerError:
            raise
        except Exception as e:
            raise TransactionRejected(f"{what}: signer failed: {e}", cause=e) from e

        try:
            with self.metrics.timed("tx_send"):
                tx_hash = self.w3.eth.send_raw_transaction(raw_tx)
        except ContractLogicError as e:
            self.metrics.inc("tx_reverted_total")
            raise TransactionReverted(f"{what} rejected: {_why(e)}", cause=e) from e
        except TRANSPORT_ERRORS as e:
            raise NetworkError("submission-failed", f"{what}: {e}", cause=e) from e

        tx_hex = Web3.to_hex(tx_hash)
        self.metrics.inc("tx_sent_total")
        logger.info(f"{what} submitted: {tx_hex}")

        wait = self.confirmation_timeout if timeout is None else timeout
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=wait, poll_latency=self.poll_latency
            )
        except TimeExhausted as e:
            self.metrics.inc("tx_confirmation_timeouts_total")
            logger.warning(f"{what} not confirmed within {wait}s: {tx_hex} (may still land)")
            raise NetworkError(
                NetworkError.CONFIRMATION_TIMEOUT,
                f"{what} {tx_hex} not confirmed within {wait}s; outcome unknown",
                tx_hash=tx_hex,
                outcome_unknown=True,
                cause=e,
            ) from e
        except TRANSPORT_ERRORS as e:
            raise NetworkError(
                "confirmation-lost",
                f"{what} {tx_hex}: {e}",
                tx_hash=tx_hex,
                outcome_unknown=True,
                cause=e,
            ) from e

        if int(receipt["status"]) != 1:
            self.metrics.inc("tx_reverted_total")
            raise TransactionReverted(f"{what} reverted in block {receipt['blockNumber']}", tx_hash=tx_hex)

        self.metrics.inc("tx_confirmed_total")
        logger.info(f"{what} confirmed: {tx_hex} block={receipt['blockNumber']}")
        return receipt
