from __future__ import annotations

import pytest

from fakes import ACCESS_ADDR, OWNER, REGISTRY_ADDR, FakeChain, FakeStore, FakeWallet, FakeWeb3, SimClock
from medledger.hashing import IntegrityHasher
from medledger.session import SerializationDomain, WalletSession
from medledger_eth.access_manager import AccessLedgerClient
from medledger_eth.chain_client import LedgerGateway
from medledger_eth.metrics import Metrics
from medledger_eth.record_registry import RecordLedgerClient


@pytest.fixture
def clock():
    return SimClock()


@pytest.fixture
def chain(clock):
    return FakeChain(clock)


@pytest.fixture
def gateway(chain):
    return LedgerGateway(w3=FakeWeb3(chain), metrics=Metrics(), confirmation_timeout=5, poll_latency=0)


@pytest.fixture
def records(gateway):
    return RecordLedgerClient(gateway, REGISTRY_ADDR)


@pytest.fixture
def access_ledger(gateway, clock):
    return AccessLedgerClient(gateway, ACCESS_ADDR, clock=clock)


@pytest.fixture
def wallet():
    return FakeWallet(OWNER)


@pytest.fixture
def session(wallet):
    s = WalletSession(wallet)
    s.connect()
    return s


@pytest.fixture
def identity(session):
    return session.identity


@pytest.fixture
def domain():
    return SerializationDomain()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def hasher():
    return IntegrityHasher()
