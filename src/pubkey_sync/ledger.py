"""Ledger node RPC surface and error taxonomy.

The node is reached over the Cosmos SDK REST gateway. Failures are classified
into a structured ErrorKind from the HTTP status and the gRPC status code in
the error body so that callers branch on type rather than on message text.
"""

import base64
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Protocol, TypeVar

from httpx import AsyncBaseTransport
from pydantic import BaseModel, ValidationError

from pubkey_sync.http import HTTPClient, HTTPClientError, HTTPTransportError
from pubkey_sync.models.ledger import (
    BaseAccountInfo,
    BroadcastTxResponse,
    GetTxResponse,
    QueryAccountResponse,
    RpcStatus,
    SimulateResponse,
    SmartQueryResponse,
    TxResponse,
)

LOGGER = logging.getLogger(__name__)

BROADCAST_MODE_SYNC = "BROADCAST_MODE_SYNC"

# gRPC status codes carried in gateway error bodies
GRPC_INVALID_ARGUMENT = 3
GRPC_DEADLINE_EXCEEDED = 4
GRPC_NOT_FOUND = 5
GRPC_FAILED_PRECONDITION = 9
GRPC_OUT_OF_RANGE = 11
GRPC_UNAVAILABLE = 14

REJECTED_GRPC_CODES = {
    GRPC_INVALID_ARGUMENT,
    GRPC_FAILED_PRECONDITION,
    GRPC_OUT_OF_RANGE,
}
UNREACHABLE_GRPC_CODES = {GRPC_DEADLINE_EXCEEDED, GRPC_UNAVAILABLE}


class ErrorKind(Enum):
    """Structured classification of ledger errors."""

    NOT_FOUND = "not_found"
    REJECTED = "rejected"
    NETWORK = "network"
    OTHER = "other"


class LedgerError(Exception):
    """Raised on general ledger errors."""

    kind = ErrorKind.OTHER


class NetworkError(LedgerError):
    """Raised when the ledger node cannot be reached."""

    kind = ErrorKind.NETWORK


class NotFoundError(LedgerError):
    """Raised when an account or transaction is not (yet) visible."""

    kind = ErrorKind.NOT_FOUND


class RejectedError(LedgerError):
    """Raised when the node refuses a request or transaction."""

    kind = ErrorKind.REJECTED

    def __init__(self, message: str, *, code: int | None = None, raw_log: str = ""):
        """Init the error."""
        super().__init__(message)
        self.code = code
        self.raw_log = raw_log


class EstimationError(LedgerError):
    """Raised when the node rejects a simulation."""

    kind = ErrorKind.REJECTED


class SigningError(LedgerError):
    """Raised on invalid key material or signature failure."""


class EncodingError(LedgerError):
    """Raised when a transaction cannot be serialized."""


class ConfirmationCancelled(LedgerError):
    """Raised when waiting for confirmation was cancelled."""

    def __init__(self, message: str, *, transaction_hash: str):
        """Init the error."""
        super().__init__(message)
        self.transaction_hash = transaction_hash


class ConfirmationTimeout(LedgerError):
    """Raised when a transaction was not confirmed before the deadline."""

    def __init__(self, message: str, *, transaction_hash: str):
        """Init the error."""
        super().__init__(message)
        self.transaction_hash = transaction_hash


def classify_error(err: HTTPClientError) -> LedgerError:
    """Map an HTTP client error onto the ledger error taxonomy."""
    if isinstance(err, HTTPTransportError):
        return NetworkError(str(err))

    status: RpcStatus | None = None
    if isinstance(err.body, Mapping):
        try:
            status = RpcStatus.model_validate(err.body)
        except ValidationError:
            status = None

    message = status.message if status else str(err)
    grpc_code = status.code if status else None

    if err.status_code == 404 or grpc_code == GRPC_NOT_FOUND:
        return NotFoundError(message)
    if grpc_code in UNREACHABLE_GRPC_CODES or err.status_code in (502, 503, 504):
        return NetworkError(message)
    if grpc_code in REJECTED_GRPC_CODES or err.status_code == 400:
        return RejectedError(message, code=grpc_code, raw_log=message)
    return LedgerError(message)


class LedgerRpc(Protocol):
    """Ledger node operations consumed by the submission path."""

    async def query_account(self, address: str) -> BaseAccountInfo:
        """Retrieve account number and sequence for an address."""
        ...

    async def simulate(self, tx_bytes: bytes) -> SimulateResponse:
        """Simulate a transaction."""
        ...

    async def broadcast(self, tx_bytes: bytes) -> TxResponse:
        """Broadcast signed transaction bytes, accept-into-queue mode."""
        ...

    async def get_tx(self, tx_hash: str) -> TxResponse:
        """Retrieve the execution result of a transaction by hash."""
        ...

    async def query_contract(self, address: str, query: Mapping[str, Any]) -> Any:
        """Run a smart query against a contract."""
        ...


M = TypeVar("M", bound=BaseModel)


class RestLedgerRpc(HTTPClient):
    """Ledger RPC over the Cosmos SDK REST gateway."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: AsyncBaseTransport | None = None,
    ):
        """Init the client."""
        super().__init__(base_url, timeout=timeout, transport=transport)

    async def _call(
        self, request: Callable[[], Awaitable[M]], what: str
    ) -> M:
        try:
            return await request()
        except HTTPClientError as err:
            LOGGER.debug("%s failed: %s", what, err)
            raise classify_error(err) from err
        except (ValidationError, ValueError) as err:
            raise LedgerError(f"Unexpected response to {what}") from err

    async def query_account(self, address: str) -> BaseAccountInfo:
        """Retrieve account number and sequence for an address."""
        result = await self._call(
            lambda: self.get(
                f"/cosmos/auth/v1beta1/accounts/{address}",
                response=QueryAccountResponse,
            ),
            "account query",
        )
        return result.account

    async def simulate(self, tx_bytes: bytes) -> SimulateResponse:
        """Simulate a transaction."""
        return await self._call(
            lambda: self.post(
                "/cosmos/tx/v1beta1/simulate",
                json={"tx_bytes": base64.b64encode(tx_bytes).decode()},
                response=SimulateResponse,
            ),
            "simulation",
        )

    async def broadcast(self, tx_bytes: bytes) -> TxResponse:
        """Broadcast signed transaction bytes, accept-into-queue mode."""
        result = await self._call(
            lambda: self.post(
                "/cosmos/tx/v1beta1/txs",
                json={
                    "tx_bytes": base64.b64encode(tx_bytes).decode(),
                    "mode": BROADCAST_MODE_SYNC,
                },
                response=BroadcastTxResponse,
            ),
            "broadcast",
        )
        return result.tx_response

    async def get_tx(self, tx_hash: str) -> TxResponse:
        """Retrieve the execution result of a transaction by hash."""
        result = await self._call(
            lambda: self.get(
                f"/cosmos/tx/v1beta1/txs/{tx_hash}",
                response=GetTxResponse,
            ),
            "transaction lookup",
        )
        return result.tx_response

    async def query_contract(self, address: str, query: Mapping[str, Any]) -> Any:
        """Run a smart query against a contract."""
        encoded = base64.urlsafe_b64encode(json.dumps(query).encode()).decode()
        result = await self._call(
            lambda: self.get(
                f"/cosmwasm/wasm/v1/contract/{address}/smart/{encoded}",
                response=SmartQueryResponse,
            ),
            "contract query",
        )
        return result.data
