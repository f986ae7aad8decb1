"""
Record registry and access manager clients over the in-memory ledger.

Coverage:
- register/fetch round trip, record id from the RecordAdded event
- grant/check expiry boundary, revoke idempotence, re-grant overwrite
- local validation spends no submission
- failure classification (revert, status 0, timeout, signer decline, RPC down)
"""

import pytest
from eth_utils import to_checksum_address
from web3.exceptions import MismatchedABI

from fakes import ACCESS_ADDR, DOCTOR, OWNER, REGISTRY_ADDR, STRANGER, FakeSigner
from medledger.errors import (
    ConfigurationError,
    InvalidInput,
    InvalidInputReason,
    NetworkError,
    TransactionRejected,
    TransactionReverted,
)
from medledger.hashing import IntegrityHasher, to_hex32
from medledger.session import IdentityHandle
from medledger_eth.access_manager import AccessLedgerClient, AccessLedgerReader
from medledger_eth.record_registry import RecordLedgerClient, RecordLedgerReader

PAYLOAD = b"%PDF-1.7 MRI report"
CID = "bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi"


@pytest.fixture
def digest():
    return IntegrityHasher().digest(PAYLOAD)


@pytest.fixture
def record_id(records, identity, digest):
    return records.register(identity, CID, digest).record_id


class TestRecordRegistry:
    def test_register_then_fetch_roundtrip(self, records, identity, digest, chain):
        receipt = records.register(identity, CID, digest)

        assert receipt.status == 1
        assert receipt.tx_hash.startswith("0x")
        assert receipt.record_id == 1
        assert chain.mined == ["addRecord"]

        record = records.fetch(receipt.record_id)
        assert record is not None
        assert record.cid == CID
        assert record.digest == to_hex32(digest)
        assert record.owner == OWNER
        assert record.record_id == receipt.record_id

    def test_record_ids_are_assigned_by_ledger(self, records, identity, digest):
        first = records.register(identity, CID, digest)
        second = records.register(identity, CID, digest)
        assert (first.record_id, second.record_id) == (1, 2)

    def test_missing_event_leaves_record_id_unknown(self, records, identity, digest, chain):
        chain.emit_events = False
        receipt = records.register(identity, CID, digest)
        assert receipt.record_id is None
        assert chain.records  # registered all the same

    def test_fetch_unknown_id_is_none(self, records):
        assert records.fetch(42) is None

    def test_fetch_accepts_string_id(self, records, record_id):
        assert records.fetch(str(record_id)).record_id == record_id

    def test_fetch_out_of_range_id(self, records):
        with pytest.raises(InvalidInput) as ei:
            records.fetch(2**256)
        assert ei.value.reason is InvalidInputReason.INVALID_RECORD_ID

    def test_abi_rejection_is_invalid_input(self, records, monkeypatch):
        def getRecord(rid):
            raise MismatchedABI("Could not identify the intended function")

        monkeypatch.setattr(records.contract.functions, "getRecord", getRecord)
        with pytest.raises(InvalidInput) as ei:
            records.fetch(1)
        assert ei.value.reason is InvalidInputReason.INVALID_ARGUMENT

    def test_reader_has_no_write_path(self, gateway, record_id):
        reader = RecordLedgerReader(gateway, REGISTRY_ADDR)
        assert not reader.writable
        assert not hasattr(reader, "register")
        assert reader.fetch(record_id).cid == CID

    @pytest.mark.parametrize(
        "cid,bad_digest,reason",
        [
            ("", b"\x01" * 32, InvalidInputReason.INVALID_CID),
            (CID, b"\x01" * 31, InvalidInputReason.INVALID_DIGEST),
        ],
    )
    def test_preconditions_checked_before_submission(self, records, identity, chain, cid, bad_digest, reason):
        with pytest.raises(InvalidInput) as ei:
            records.register(identity, cid, bad_digest)
        assert ei.value.reason is reason
        assert chain.mined == []

    def test_observer_identity_cannot_register(self, records, digest, chain):
        with pytest.raises(InvalidInput) as ei:
            records.register(IdentityHandle.observer(OWNER), CID, digest)
        assert ei.value.reason is InvalidInputReason.NO_IDENTITY
        assert chain.mined == []

    def test_malformed_contract_address(self, gateway):
        with pytest.raises(ConfigurationError):
            RecordLedgerClient(gateway, "records.eth")


class TestLedgerFailures:
    def test_signer_decline_is_rejected_not_submitted(self, records, digest, chain):
        declining = IdentityHandle(OWNER, FakeSigner(OWNER, decline=True))
        with pytest.raises(TransactionRejected):
            records.register(declining, CID, digest)
        assert chain.mined == []

    def test_status_zero_is_reverted(self, records, identity, digest, chain):
        chain.fail_status.add("addRecord")
        with pytest.raises(TransactionReverted) as ei:
            records.register(identity, CID, digest)
        assert ei.value.tx_hash is not None
        assert chain.records == {}

    def test_confirmation_timeout_is_ambiguous(self, records, identity, digest, chain, gateway):
        chain.stall = True
        with pytest.raises(NetworkError) as ei:
            records.register(identity, CID, digest, timeout=0.01)

        err = ei.value
        assert err.reason == NetworkError.CONFIRMATION_TIMEOUT
        assert err.outcome_unknown
        assert err.tx_hash is not None
        # the transaction landed even though we never saw the receipt
        assert len(chain.records) == 1
        assert gateway.metrics.counters["tx_confirmation_timeouts_total"] == 1

    def test_rpc_down_on_write(self, records, identity, digest, chain):
        chain.rpc_down = True
        with pytest.raises(NetworkError) as ei:
            records.register(identity, CID, digest)
        assert ei.value.reason == "submission-failed"
        assert not ei.value.outcome_unknown

    def test_rpc_down_on_read(self, records, chain):
        chain.rpc_down = True
        with pytest.raises(NetworkError) as ei:
            records.fetch(1)
        assert ei.value.reason == "read-failed"

    def test_nonce_advances_per_submission(self, records, identity, digest, chain, session):
        records.register(identity, CID, digest)
        records.register(identity, CID, digest)
        nonces = [tx["nonce"] for tx in session.identity.signer.signed]
        assert nonces == [0, 1]
        assert chain.nonces[OWNER] == 2


class TestAccessManager:
    def test_grant_then_check_until_expiry(self, access_ledger, identity, record_id, clock):
        access_ledger.grant(identity, record_id, DOCTOR, int(clock()) + 10, b"\x12\x34")

        assert access_ledger.check(record_id, DOCTOR) is True
        clock.advance(9)
        assert access_ledger.check(record_id, DOCTOR) is True
        clock.advance(1)  # now == expiry
        assert access_ledger.check(record_id, DOCTOR) is False

    def test_no_grant_means_no_access(self, access_ledger, record_id):
        assert access_ledger.check(record_id, DOCTOR) is False

    def test_sealed_key_is_passed_through(self, access_ledger, identity, record_id, clock, chain):
        access_ledger.grant(identity, record_id, DOCTOR, int(clock()) + 60, "0xdeadbeef")
        _, key = chain.grants[(record_id, DOCTOR)]
        assert key == bytes.fromhex("deadbeef")

    def test_regrant_overwrites_expiry(self, access_ledger, identity, record_id, clock, chain):
        now = int(clock())
        access_ledger.grant(identity, record_id, DOCTOR, now + 1000)
        access_ledger.grant(identity, record_id, DOCTOR, now + 10)

        assert chain.grants[(record_id, DOCTOR)][0] == now + 10
        assert len([k for k in chain.grants if k[0] == record_id]) == 1
        clock.advance(10)
        assert access_ledger.check(record_id, DOCTOR) is False

    def test_revoke_is_idempotent(self, access_ledger, identity, record_id, clock, chain):
        access_ledger.grant(identity, record_id, DOCTOR, int(clock()) + 100)

        access_ledger.revoke(identity, record_id, DOCTOR)
        assert access_ledger.check(record_id, DOCTOR) is False

        access_ledger.revoke(identity, record_id, DOCTOR)  # no error the second time
        assert access_ledger.check(record_id, DOCTOR) is False
        assert chain.mined.count("revokeAccess") == 2

    def test_past_expiry_fails_before_submission(self, access_ledger, identity, record_id, clock, chain):
        mined_before = list(chain.mined)
        with pytest.raises(InvalidInput) as ei:
            access_ledger.grant(identity, record_id, DOCTOR, int(clock()))
        assert ei.value.reason is InvalidInputReason.INVALID_EXPIRY
        assert chain.mined == mined_before

    def test_malformed_grantee_fails_before_submission(self, access_ledger, identity, record_id, clock, chain):
        mined_before = list(chain.mined)
        with pytest.raises(InvalidInput) as ei:
            access_ledger.grant(identity, record_id, "dr-smith", int(clock()) + 10)
        assert ei.value.reason is InvalidInputReason.INVALID_ADDRESS
        assert chain.mined == mined_before

    def test_non_owner_grant_reverts(self, access_ledger, record_id, clock, chain):
        stranger = IdentityHandle(STRANGER, FakeSigner(STRANGER))
        with pytest.raises(TransactionReverted, match="not record owner"):
            access_ledger.grant(stranger, record_id, DOCTOR, int(clock()) + 10)
        assert "grantAccess" not in chain.mined

    def test_grantee_is_checksummed_on_the_wire(self, access_ledger, identity, record_id, clock, session):
        access_ledger.grant(identity, record_id, DOCTOR, int(clock()) + 10)
        assert access_ledger.check(record_id, to_checksum_address(DOCTOR)) is True

    def test_reader_only_checks(self, gateway, record_id):
        reader = AccessLedgerReader(gateway, ACCESS_ADDR)
        assert not reader.writable
        assert not hasattr(reader, "grant")
        assert reader.check(record_id, DOCTOR) is False

    def test_access_client_exposes_writes(self, access_ledger):
        assert isinstance(access_ledger, AccessLedgerClient)
        assert access_ledger.writable
