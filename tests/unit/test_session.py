"""Test the submission path through a ledger session."""

import asyncio
import base64

import pytest
from cosmpy.protos.cosmos.tx.v1beta1.tx_pb2 import AuthInfo, TxRaw

from pubkey_sync.confirm import ConfirmationPoller
from pubkey_sync.estimator import ResourceEstimator
from pubkey_sync.ledger import (
    ConfirmationCancelled,
    ConfirmationTimeout,
    LedgerError,
    NotFoundError,
    RejectedError,
    SigningError,
)
from pubkey_sync.models.ledger import TxResponse
from pubkey_sync.models.txn import Fee, Operation
from pubkey_sync.session import LedgerSession
from pubkey_sync.signer import Secp256k1Key
from pubkey_sync.txn import transaction_hash, verify_signed_transaction

from .fakes import ADDRESS, CHAIN_ID, FakeLedgerRpc

OPERATION = Operation("/cosmwasm.wasm.v1.MsgExecuteContract", b"\x0a\x03abc")


def signed_sequences(rpc: FakeLedgerRpc) -> list[int]:
    return [
        AuthInfo.FromString(TxRaw.FromString(tx).auth_info_bytes)
        .signer_infos[0]
        .sequence
        for tx in rpc.broadcasts
    ]


@pytest.mark.asyncio
async def test_submit(session: LedgerSession, rpc: FakeLedgerRpc):
    result = await session.submit([OPERATION])

    assert result.found
    assert result.succeeded
    assert result.height == 42
    (tx_bytes,) = rpc.broadcasts
    assert result.transaction_hash == transaction_hash(tx_bytes)
    assert verify_signed_transaction(tx_bytes, CHAIN_ID, rpc.account_number)
    assert session.tracker.current.address == ADDRESS


@pytest.mark.asyncio
async def test_sequence_follows_ledger(session: LedgerSession, rpc: FakeLedgerRpc):
    rpc.sequence = 4
    for _ in range(3):
        await session.submit([OPERATION], adjust_resource=False)
    assert signed_sequences(rpc) == [4, 5, 6]


@pytest.mark.asyncio
async def test_concurrent_submissions_use_distinct_sequences(
    session: LedgerSession, rpc: FakeLedgerRpc
):
    await asyncio.gather(*(session.submit([OPERATION]) for _ in range(4)))
    assert sorted(signed_sequences(rpc)) == [0, 1, 2, 3]


@pytest.mark.asyncio
async def test_refused_broadcast(session: LedgerSession, rpc: FakeLedgerRpc):
    rpc.broadcast_code = 32
    rpc.broadcast_log = "account sequence mismatch"
    with pytest.raises(RejectedError) as exc_info:
        await session.submit([OPERATION])

    assert exc_info.value.code == 32
    assert exc_info.value.raw_log == "account sequence mismatch"
    assert rpc.get_tx_calls == 0


@pytest.mark.asyncio
async def test_refused_then_retried_uses_same_sequence(
    session: LedgerSession, rpc: FakeLedgerRpc
):
    rpc.broadcast_code = 13
    with pytest.raises(RejectedError):
        await session.submit([OPERATION])
    rpc.broadcast_code = 0
    await session.submit([OPERATION])
    assert signed_sequences(rpc) == [0, 0]


@pytest.mark.asyncio
async def test_missing_account(session: LedgerSession, rpc: FakeLedgerRpc):
    rpc.account_exists = False
    with pytest.raises(NotFoundError, match="fund it first"):
        await session.submit([OPERATION])
    assert rpc.broadcasts == []


@pytest.mark.asyncio
async def test_account_key_matches(
    session: LedgerSession, rpc: FakeLedgerRpc, key: Secp256k1Key
):
    rpc.account_pub_key = base64.b64encode(key.public_key).decode()
    await session.submit([OPERATION])
    assert session.tracker.current.public_key == key.public_key


@pytest.mark.asyncio
async def test_account_key_mismatch(session: LedgerSession, rpc: FakeLedgerRpc):
    other = Secp256k1Key.from_hex("2e" * 32)
    rpc.account_pub_key = base64.b64encode(other.public_key).decode()
    with pytest.raises(SigningError):
        await session.submit([OPERATION])
    assert rpc.broadcasts == []


@pytest.mark.asyncio
async def test_failed_execution_returned(session: LedgerSession, rpc: FakeLedgerRpc):
    rpc.lookups = [TxResponse(txhash="", code=5, raw_log="insufficient funds")]
    result = await session.submit([OPERATION])

    assert result.found
    assert result.execution_code == 5
    assert not result.succeeded


@pytest.mark.asyncio
async def test_cancelled(session: LedgerSession, rpc: FakeLedgerRpc):
    cancel = asyncio.Event()
    cancel.set()
    with pytest.raises(ConfirmationCancelled) as exc_info:
        await session.submit([OPERATION], cancel=cancel)
    assert exc_info.value.transaction_hash == transaction_hash(rpc.broadcasts[0])


@pytest.mark.asyncio
async def test_not_confirmed(rpc: FakeLedgerRpc, key: Secp256k1Key):
    session = LedgerSession(
        rpc,
        key,
        ADDRESS,
        chain_id=CHAIN_ID,
        fee=Fee("ufairy", 800),
        estimator=ResourceEstimator(rpc),
        poller=ConfirmationPoller(rpc, interval=0.01, max_attempts=2),
    )
    rpc.lookups = [NotFoundError("tx not found")] * 5
    with pytest.raises(ConfirmationTimeout):
        await session.submit([OPERATION])
    assert rpc.get_tx_calls == 2


@pytest.mark.asyncio
async def test_lookup_failure_passes_through(
    session: LedgerSession, rpc: FakeLedgerRpc
):
    error = LedgerError("internal error")
    rpc.lookups = [error]
    with pytest.raises(LedgerError) as exc_info:
        await session.submit([OPERATION])
    assert exc_info.value is error


@pytest.mark.asyncio
async def test_lock_released_after_failure(
    session: LedgerSession, rpc: FakeLedgerRpc
):
    rpc.account_exists = False
    with pytest.raises(NotFoundError):
        await session.submit([OPERATION])
    assert not session.lock.locked()
