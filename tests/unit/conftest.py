from pathlib import Path
from typing import Iterable

import pytest

from pubkey_sync.confirm import ConfirmationPoller
from pubkey_sync.estimator import ResourceEstimator
from pubkey_sync.models.txn import Fee
from pubkey_sync.session import LedgerSession
from pubkey_sync.signer import Secp256k1Key

from .fakes import ADDRESS, CHAIN_ID, PRIVATE_KEY_HEX, FakeLedgerRpc

UNIT_TEST_DIR = Path(__file__).parent


def pytest_collection_modifyitems(config, items: Iterable[pytest.Item]):
    for item in items:
        path = Path(item.path)
        if path.is_relative_to(UNIT_TEST_DIR):
            item.add_marker(pytest.mark.unit)


@pytest.fixture
def key() -> Secp256k1Key:
    return Secp256k1Key.from_hex(PRIVATE_KEY_HEX)


@pytest.fixture
def rpc() -> FakeLedgerRpc:
    return FakeLedgerRpc()


@pytest.fixture
def session(rpc: FakeLedgerRpc, key: Secp256k1Key) -> LedgerSession:
    return LedgerSession(
        rpc,
        key,
        ADDRESS,
        chain_id=CHAIN_ID,
        fee=Fee("ufairy", 800),
        estimator=ResourceEstimator(rpc),
        poller=ConfirmationPoller(rpc, interval=0.01),
    )
