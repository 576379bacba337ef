"""Transaction submission models."""

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from google.protobuf.message import EncodeError, Message

from pubkey_sync.ledger import EncodingError


@dataclass(frozen=True)
class Account:
    """Snapshot of an on-chain account."""

    address: str
    account_number: int
    sequence: int
    public_key: bytes | None = None


@dataclass(frozen=True)
class Fee:
    """Fixed transaction fee."""

    denom: str
    amount: int

    def __str__(self) -> str:
        """Format like the node does, e.g. 800ufairy."""
        return f"{self.amount}{self.denom}"


@dataclass(frozen=True)
class Operation:
    """Opaque message to be bundled into a transaction."""

    type_url: str
    value: bytes

    @classmethod
    def from_message(cls, message: Message) -> "Operation":
        """Pack a protobuf message."""
        try:
            value = message.SerializeToString()
        except EncodeError as err:
            raise EncodingError(
                f"Could not serialize {message.DESCRIPTOR.full_name}"
            ) from err
        return cls(type_url=f"/{message.DESCRIPTOR.full_name}", value=value)


@dataclass(frozen=True)
class UnsignedTransaction:
    """Transaction contents prior to signing."""

    operations: Sequence[Operation]
    fee: Fee
    resource_limit: int
    memo: str = ""


@dataclass(frozen=True)
class SignerMetadata:
    """Who is signing, taken from a single account snapshot."""

    chain_id: str
    account_number: int
    sequence: int
    public_key: bytes

    @classmethod
    def from_account(
        cls, chain_id: str, account: Account, public_key: bytes
    ) -> "SignerMetadata":
        """Bind signer metadata to an account snapshot."""
        return cls(
            chain_id=chain_id,
            account_number=account.account_number,
            sequence=account.sequence,
            public_key=public_key,
        )


@dataclass(frozen=True)
class SubmissionReceipt:
    """Immediate result of broadcasting a transaction."""

    transaction_hash: str
    initial_response_code: int
    raw_log: str = ""
    codespace: str = ""

    @property
    def accepted(self) -> bool:
        """Whether the node accepted the transaction into its queue."""
        return self.initial_response_code == 0


@dataclass(frozen=True)
class ConfirmationResult:
    """Final execution result of a transaction included in a block."""

    transaction_hash: str
    found: bool
    execution_code: int
    raw_log: str = ""
    height: int = 0
    gas_wanted: int = 0
    gas_used: int = 0

    @property
    def succeeded(self) -> bool:
        """Whether the transaction executed successfully."""
        return self.found and self.execution_code == 0


class ConfirmationStatus(Enum):
    """Terminal states of confirmation polling."""

    FOUND = "found"
    FATAL = "fatal"
    CANCELLED = "cancelled"
    DEADLINE_EXCEEDED = "deadline_exceeded"


@dataclass
class ConfirmationOutcome:
    """Result of waiting for a transaction to be confirmed."""

    transaction_hash: str
    status: ConfirmationStatus
    result: ConfirmationResult | None = None
    error: Exception | None = None
    attempts: int = 0
