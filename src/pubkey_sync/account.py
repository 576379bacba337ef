"""Account state tracking."""

import base64
import logging

from pubkey_sync.ledger import LedgerRpc, NotFoundError
from pubkey_sync.models.txn import Account

LOGGER = logging.getLogger(__name__)


class AccountStateTracker:
    """Keep the most recent on-chain snapshot of the signing account.

    The sequence is never incremented locally; every submission refreshes the
    snapshot from the ledger so that rejected transactions and transactions
    issued elsewhere from the same account cannot cause drift.
    """

    def __init__(self, rpc: LedgerRpc, address: str):
        """Init the tracker."""
        self.rpc = rpc
        self.address = address
        self.current: Account | None = None

    async def refresh(self, address: str | None = None) -> Account:
        """Query the ledger for the account's number and sequence."""
        address = address or self.address
        try:
            info = await self.rpc.query_account(address)
        except NotFoundError as err:
            raise NotFoundError(
                f"Account {address} does not exist on chain; fund it first"
            ) from err

        public_key = base64.b64decode(info.pub_key.key) if info.pub_key else None
        account = Account(
            address=info.address,
            account_number=info.account_number,
            sequence=info.sequence,
            public_key=public_key,
        )
        LOGGER.debug(
            "Account %s: number=%d sequence=%d",
            address,
            account.account_number,
            account.sequence,
        )
        self.current = account
        return account
