"""Models for responses from the ledger node REST gateway."""

from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PubKeyInfo(BaseModel):
    """Public key attached to an account."""

    type_url: str = Field(alias="@type")
    key: str


class BaseAccountInfo(BaseModel):
    """Base account as returned by the auth module."""

    model_config = ConfigDict(extra="ignore")

    address: str
    pub_key: PubKeyInfo | None = None
    account_number: int
    sequence: int

    @model_validator(mode="before")
    @classmethod
    def unwrap_account(cls, value: Any) -> Any:
        """Unwrap module and vesting accounts down to the base account."""
        while isinstance(value, dict):
            if "base_account" in value:
                value = value["base_account"]
            elif "base_vesting_account" in value:
                value = value["base_vesting_account"]
            else:
                break
        return value


class QueryAccountResponse(BaseModel):
    """Response to an account query."""

    account: BaseAccountInfo


class GasInfo(BaseModel):
    """Gas usage reported by simulation."""

    gas_wanted: int = 0
    gas_used: int


class SimulateResponse(BaseModel):
    """Response to a simulation request."""

    model_config = ConfigDict(extra="ignore")

    gas_info: GasInfo


class TxResponse(BaseModel):
    """Transaction result as reported by the node."""

    model_config = ConfigDict(extra="ignore")

    txhash: str
    code: int = 0
    codespace: str = ""
    raw_log: str = ""
    height: int = 0
    gas_wanted: int = 0
    gas_used: int = 0


class BroadcastTxResponse(BaseModel):
    """Response to a broadcast request."""

    tx_response: TxResponse


class GetTxResponse(BaseModel):
    """Response to a transaction lookup."""

    model_config = ConfigDict(extra="ignore")

    tx_response: TxResponse


class RpcStatus(BaseModel):
    """Error body returned by the gateway."""

    code: int
    message: str = ""
    details: List[Any] = []


class SmartQueryResponse(BaseModel):
    """Response to a contract smart query."""

    data: Any
