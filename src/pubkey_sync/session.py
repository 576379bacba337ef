"""Ledger session: the single entry point for submitting operations."""

import asyncio
import logging
from typing import Sequence

from pubkey_sync.account import AccountStateTracker
from pubkey_sync.broadcast import Broadcaster
from pubkey_sync.confirm import ConfirmationPoller
from pubkey_sync.estimator import ResourceEstimator
from pubkey_sync.ledger import (
    ConfirmationCancelled,
    ConfirmationTimeout,
    LedgerError,
    LedgerRpc,
    RejectedError,
    SigningError,
)
from pubkey_sync.models.txn import (
    ConfirmationResult,
    ConfirmationStatus,
    Fee,
    Operation,
)
from pubkey_sync.signer import Secp256k1Key
from pubkey_sync.txn import TransactionSigner

LOGGER = logging.getLogger(__name__)


class LedgerSession:
    """Submission path for a single account.

    The session owns the signing key and the account snapshot. Submissions
    are serialized from account refresh through confirmation, so the sequence
    read at refresh is never reused or raced by another caller sharing this
    session.
    """

    def __init__(
        self,
        rpc: LedgerRpc,
        key: Secp256k1Key,
        address: str,
        *,
        chain_id: str,
        fee: Fee,
        estimator: ResourceEstimator,
        poller: ConfirmationPoller,
    ):
        """Init the session."""
        self.rpc = rpc
        self.address = address
        self.tracker = AccountStateTracker(rpc, address)
        self.estimator = estimator
        self.signer = TransactionSigner(
            key.sign,
            key.public_key,
            chain_id=chain_id,
            fee=fee,
            estimator=estimator,
        )
        self.broadcaster = Broadcaster(rpc)
        self.poller = poller
        self.lock = asyncio.Lock()

    @property
    def chain_id(self) -> str:
        """Chain the session signs for."""
        return self.signer.chain_id

    async def submit(
        self,
        operations: Sequence[Operation],
        adjust_resource: bool = True,
        *,
        cancel: asyncio.Event | None = None,
    ) -> ConfirmationResult:
        """Sign, broadcast and confirm operations as one transaction.

        A found transaction is returned whatever its execution code. Raises
        RejectedError when the node refuses the transaction at broadcast,
        ConfirmationCancelled or ConfirmationTimeout when waiting ends early,
        and lower layer errors unchanged otherwise.
        """
        async with self.lock:
            account = await self.tracker.refresh()
            if account.public_key and account.public_key != self.signer.public_key:
                raise SigningError(
                    f"Signing key does not control account {account.address}"
                )

            tx_bytes = await self.signer.build_and_sign(
                operations, account, adjust_resource
            )
            receipt = await self.broadcaster.submit(tx_bytes)
            if not receipt.accepted:
                raise RejectedError(
                    f"Transaction refused: code={receipt.initial_response_code}, "
                    f"log={receipt.raw_log}",
                    code=receipt.initial_response_code,
                    raw_log=receipt.raw_log,
                )

            outcome = await self.poller.await_confirmation(
                receipt.transaction_hash, cancel=cancel
            )

        if outcome.status is ConfirmationStatus.FOUND:
            assert outcome.result
            return outcome.result
        if outcome.status is ConfirmationStatus.CANCELLED:
            raise ConfirmationCancelled(
                f"Stopped waiting for {outcome.transaction_hash}",
                transaction_hash=outcome.transaction_hash,
            )
        if outcome.status is ConfirmationStatus.DEADLINE_EXCEEDED:
            raise ConfirmationTimeout(
                f"Transaction {outcome.transaction_hash} not confirmed "
                f"after {outcome.attempts} attempts",
                transaction_hash=outcome.transaction_hash,
            )

        assert outcome.error
        if isinstance(outcome.error, LedgerError):
            raise outcome.error
        raise LedgerError("Confirmation failed") from outcome.error
