"""Transaction broadcast."""

import logging

from pubkey_sync.ledger import LedgerRpc
from pubkey_sync.models.txn import SubmissionReceipt
from pubkey_sync.txn import transaction_hash

LOGGER = logging.getLogger(__name__)


class Broadcaster:
    """Submit signed transactions in accept-into-queue mode."""

    def __init__(self, rpc: LedgerRpc):
        """Init the broadcaster."""
        self.rpc = rpc

    async def submit(self, tx_bytes: bytes) -> SubmissionReceipt:
        """Send signed transaction bytes to the node.

        Returns as soon as the node admits or refuses the transaction; a
        non-zero response code means it was refused before execution.
        """
        response = await self.rpc.broadcast(tx_bytes)
        expected = transaction_hash(tx_bytes)
        if response.txhash and response.txhash.upper() != expected:
            LOGGER.warning(
                "Node reported hash %s for transaction %s", response.txhash, expected
            )

        receipt = SubmissionReceipt(
            transaction_hash=response.txhash or expected,
            initial_response_code=response.code,
            raw_log=response.raw_log,
            codespace=response.codespace,
        )
        if receipt.accepted:
            LOGGER.info("Transaction %s accepted", receipt.transaction_hash)
        else:
            LOGGER.warning(
                "Transaction %s refused: code=%d log=%s",
                receipt.transaction_hash,
                receipt.initial_response_code,
                receipt.raw_log,
            )
        return receipt
