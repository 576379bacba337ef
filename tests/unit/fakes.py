"""Test doubles for the ledger node."""

import asyncio
from typing import Any, Mapping

from pubkey_sync.ledger import NotFoundError
from pubkey_sync.models.ledger import (
    BaseAccountInfo,
    GasInfo,
    SimulateResponse,
    TxResponse,
)
from pubkey_sync.txn import transaction_hash


ADDRESS = "fairy1qypqxpq9qcrsszg2pvxq6rs0zqg3yyc5lzv7xu"
CONTRACT = "fairy14hj2tavq8fpesdwxxcu44rty3hh90vhujrvcmstl4zr3txmfvw9s4hmalr"
CHAIN_ID = "fairyring-testnet-1"
PRIVATE_KEY_HEX = "1f" * 32


class FakeLedgerRpc:
    """In memory ledger node.

    The account sequence is incremented for every accepted broadcast.
    Transaction lookups follow `lookups` when scripted, otherwise they find
    the transaction with code 0.
    """

    def __init__(self, *, account_number: int = 7, sequence: int = 0):
        self.account_number = account_number
        self.sequence = sequence
        self.account_exists = True
        self.account_pub_key: str | None = None
        self.gas_used = 120000
        self.simulate_error: Exception | None = None
        self.broadcast_code = 0
        self.broadcast_log = ""
        self.lookups: list[TxResponse | Exception] = []
        self.contract_data: Any = None

        self.simulations: list[bytes] = []
        self.broadcasts: list[bytes] = []
        self.get_tx_calls = 0
        self.lookup_delay = 0.0
        self.queries: list[Mapping[str, Any]] = []

    async def query_account(self, address: str) -> BaseAccountInfo:
        if not self.account_exists:
            raise NotFoundError(f"account {address} not found")
        pub_key = None
        if self.account_pub_key:
            pub_key = {
                "@type": "/cosmos.crypto.secp256k1.PubKey",
                "key": self.account_pub_key,
            }
        return BaseAccountInfo.model_validate(
            {
                "address": address,
                "pub_key": pub_key,
                "account_number": str(self.account_number),
                "sequence": str(self.sequence),
            }
        )

    async def simulate(self, tx_bytes: bytes) -> SimulateResponse:
        self.simulations.append(tx_bytes)
        if self.simulate_error:
            raise self.simulate_error
        return SimulateResponse(gas_info=GasInfo(gas_used=self.gas_used))

    async def broadcast(self, tx_bytes: bytes) -> TxResponse:
        self.broadcasts.append(tx_bytes)
        if self.broadcast_code == 0:
            self.sequence += 1
        return TxResponse(
            txhash=transaction_hash(tx_bytes),
            code=self.broadcast_code,
            raw_log=self.broadcast_log,
        )

    async def get_tx(self, tx_hash: str) -> TxResponse:
        self.get_tx_calls += 1
        if self.lookup_delay:
            await asyncio.sleep(self.lookup_delay)
        if self.lookups:
            item = self.lookups.pop(0)
            if isinstance(item, Exception):
                raise item
            return item.model_copy(update={"txhash": tx_hash})
        return TxResponse(txhash=tx_hash, code=0, height=42)

    async def query_contract(self, address: str, query: Mapping[str, Any]) -> Any:
        self.queries.append(query)
        return self.contract_data


