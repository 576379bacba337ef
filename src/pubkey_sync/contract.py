"""Workflows against the identity contract."""

import json
import logging
from typing import Any, Mapping

from cosmpy.protos.cosmwasm.wasm.v1.tx_pb2 import MsgExecuteContract
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from pydantic import ValidationError

from pubkey_sync.models.contract import (
    AllIdentitiesResponse,
    IdentityRecord,
)
from pubkey_sync.models.txn import ConfirmationResult, Operation
from pubkey_sync.session import LedgerSession

LOGGER = logging.getLogger(__name__)


class ContractError(Exception):
    """Raised on errors in contract workflows."""


class ExecutionFailure(ContractError):
    """Raised when a transaction was included but failed to execute."""

    def __init__(self, action: str, result: ConfirmationResult):
        """Init the error."""
        super().__init__(
            f"{action} failed: code={result.execution_code}, "
            f"raw_log={result.raw_log}"
        )
        self.result = result


class IdentityNotFound(ContractError):
    """Raised when no identity exists for an authorized address."""


def _register_contract_message_class():
    """Build the pep module's MsgRegisterContract type."""
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="fairyring/pep/register_contract.proto",
        package="fairyring.pep",
        syntax="proto3",
    )
    message = file_proto.message_type.add(name="MsgRegisterContract")
    for number, name in enumerate(("creator", "contract_address", "identity"), 1):
        message.field.add(
            name=name,
            number=number,
            type=descriptor_pb2.FieldDescriptorProto.TYPE_STRING,
            label=descriptor_pb2.FieldDescriptorProto.LABEL_OPTIONAL,
        )

    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(file_proto.SerializeToString())
    return message_factory.GetMessageClass(
        pool.FindMessageTypeByName("fairyring.pep.MsgRegisterContract")
    )


MsgRegisterContract = _register_contract_message_class()


def execute_contract_operation(
    sender: str, contract: str, msg: Mapping[str, Any]
) -> Operation:
    """Wrap a contract execute message as an operation."""
    return Operation.from_message(
        MsgExecuteContract(
            sender=sender,
            contract=contract,
            msg=json.dumps(msg, separators=(",", ":")).encode(),
        )
    )


def register_contract_operation(
    creator: str, contract: str, identity: str
) -> Operation:
    """Register a contract against an identity in the pep module."""
    return Operation.from_message(
        MsgRegisterContract(
            creator=creator, contract_address=contract, identity=identity
        )
    )


class IdentityContract:
    """Client to the identity contract, submitting through a ledger session."""

    def __init__(self, session: LedgerSession, address: str):
        """Init the contract client."""
        self.session = session
        self.address = address

    async def _submit(self, action: str, operation: Operation) -> ConfirmationResult:
        result = await self.session.submit([operation], adjust_resource=True)
        if not result.succeeded:
            raise ExecutionFailure(action, result)
        return result

    async def execute(self, action: str, msg: Mapping[str, Any]) -> ConfirmationResult:
        """Execute a message on the contract."""
        LOGGER.info("Executing %s on %s", action, self.address)
        return await self._submit(
            action,
            execute_contract_operation(self.session.address, self.address, msg),
        )

    async def query(self, query: Mapping[str, Any]) -> Any:
        """Smart query the contract."""
        return await self.session.rpc.query_contract(self.address, query)

    async def request_identity(self, authorized_address: str) -> ConfirmationResult:
        """Ask the contract to request a new private identity."""
        return await self.execute(
            "request_identity",
            {"request_identity": {"authorized_address": authorized_address}},
        )

    async def get_all_identities(self) -> list[IdentityRecord]:
        """List all identity records."""
        data = await self.query({"get_all_identity": {}})
        try:
            return AllIdentitiesResponse.model_validate(data).records
        except ValidationError as err:
            raise ContractError("Unexpected get_all_identity response") from err

    async def fetch_identity(self, authorized_address: str) -> str:
        """Find the newest identity created for authorized_address."""
        found = None
        for record in await self.get_all_identities():
            if record.creator == authorized_address:
                found = record.identity
        if not found:
            raise IdentityNotFound(
                f"No identity found for authorized address {authorized_address}"
            )
        return found

    async def register_contract(self, identity: str) -> ConfirmationResult:
        """Register this contract for identity with the pep module."""
        LOGGER.info("Registering %s with identity %s", self.address, identity)
        return await self._submit(
            "register_contract",
            register_contract_operation(self.session.address, self.address, identity),
        )

    async def update_pubkey(self, pubkey: str) -> ConfirmationResult:
        """Publish a new public key in the contract."""
        return await self.execute("update_pubkey", {"update_pubkey": {"pubkey": pubkey}})

    async def store_encrypted_data(
        self, identity: str, ciphertext: bytes
    ) -> ConfirmationResult:
        """Store ciphertext for identity, hex encoded."""
        return await self.execute(
            "store_encrypted_data",
            {
                "store_encrypted_data": {
                    "identity": identity,
                    "data": ciphertext.hex(),
                }
            },
        )
