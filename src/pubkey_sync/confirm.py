"""Confirmation polling."""

import asyncio
import logging

from pubkey_sync.ledger import LedgerError, LedgerRpc, NotFoundError
from pubkey_sync.models.ledger import TxResponse
from pubkey_sync.models.txn import (
    ConfirmationOutcome,
    ConfirmationResult,
    ConfirmationStatus,
)
from pubkey_sync.utils import RepeatSequence

LOGGER = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0


class ConfirmationPoller:
    """Wait for the execution result of a broadcast transaction.

    Polling continues while the node reports the transaction as not found.
    Any other error ends polling as FATAL. A found transaction ends polling
    as FOUND whatever its execution code; interpreting the code is up to the
    caller.
    """

    def __init__(
        self,
        rpc: LedgerRpc,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        deadline: float | None = None,
        max_attempts: int | None = None,
    ):
        """Init the poller.

        Args:
            rpc: ledger rpc used to look up transactions
            interval: seconds to wait between lookups
            deadline: default limit, in seconds, on the total wait
            max_attempts: default limit on the number of lookups
        """
        self.rpc = rpc
        self.interval = interval
        self.deadline = deadline
        self.max_attempts = max_attempts

    async def _lookup(
        self, transaction_hash: str, cancel: asyncio.Event | None
    ) -> TxResponse | None:
        """Look up transaction_hash; None when cancel is set before it completes."""
        if cancel is None:
            return await self.rpc.get_tx(transaction_hash)

        lookup = asyncio.create_task(self.rpc.get_tx(transaction_hash))
        waiter = asyncio.create_task(cancel.wait())
        try:
            await asyncio.wait({lookup, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            lookup.cancel()

        if cancel.is_set():
            if lookup.done() and not lookup.cancelled():
                # discard a late result or error
                lookup.exception()
            return None
        return lookup.result()

    async def await_confirmation(
        self,
        transaction_hash: str,
        *,
        cancel: asyncio.Event | None = None,
        deadline: float | None = None,
        max_attempts: int | None = None,
    ) -> ConfirmationOutcome:
        """Poll for transaction_hash until found, failed, cancelled or expired."""
        deadline = self.deadline if deadline is None else deadline
        max_attempts = self.max_attempts if max_attempts is None else max_attempts

        outcome = ConfirmationOutcome(
            transaction_hash, ConfirmationStatus.DEADLINE_EXCEEDED
        )
        repeat = RepeatSequence(
            limit=max_attempts or 0, interval=self.interval, cancel=cancel
        )
        try:
            async with asyncio.timeout(deadline):
                async for attempt in repeat:
                    outcome.attempts = attempt.index
                    try:
                        response = await self._lookup(transaction_hash, cancel)
                    except NotFoundError:
                        LOGGER.debug(
                            "Transaction %s not yet indexed (attempt %d)",
                            transaction_hash,
                            attempt.index,
                        )
                        continue
                    except LedgerError as err:
                        if attempt.cancelled:
                            break
                        LOGGER.error(
                            "Lookup of transaction %s failed: %s", transaction_hash, err
                        )
                        outcome.status = ConfirmationStatus.FATAL
                        outcome.error = err
                        return outcome

                    # cancellation wins over a result that arrived late
                    if response is None or attempt.cancelled:
                        break

                    outcome.status = ConfirmationStatus.FOUND
                    outcome.result = ConfirmationResult(
                        transaction_hash=transaction_hash,
                        found=True,
                        execution_code=response.code,
                        raw_log=response.raw_log,
                        height=response.height,
                        gas_wanted=response.gas_wanted,
                        gas_used=response.gas_used,
                    )
                    LOGGER.info(
                        "Transaction %s included at height %d with code %d",
                        transaction_hash,
                        response.height,
                        response.code,
                    )
                    return outcome
        except TimeoutError:
            LOGGER.warning(
                "Transaction %s not confirmed within %s seconds",
                transaction_hash,
                deadline,
            )
            return outcome

        if cancel and cancel.is_set():
            LOGGER.info("Stopped waiting for transaction %s", transaction_hash)
            outcome.status = ConfirmationStatus.CANCELLED
        else:
            LOGGER.warning(
                "Transaction %s not confirmed after %d attempts",
                transaction_hash,
                outcome.attempts,
            )
        return outcome
