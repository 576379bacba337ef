"""Transaction building and signing.

Transactions are signed in SIGN_MODE_DIRECT: the signature covers a SignDoc
made of the encoded body, the encoded auth info and the chain and account
identifiers. The auth info embeds the signer's public key, sequence and sign
mode, so it must be final before the payload is produced. Building therefore
happens in two steps: prepare the payload with the signature slot left empty,
then attach the signature without touching the already encoded parts.
"""

import hashlib
import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Sequence

from cosmpy.protos.cosmos.base.v1beta1.coin_pb2 import Coin
from cosmpy.protos.cosmos.crypto.secp256k1.keys_pb2 import PubKey
from cosmpy.protos.cosmos.tx.signing.v1beta1.signing_pb2 import SignMode
from cosmpy.protos.cosmos.tx.v1beta1.tx_pb2 import (
    AuthInfo,
    Fee as ProtoFee,
    ModeInfo,
    SignDoc,
    SignerInfo,
    TxBody,
    TxRaw,
)
from google.protobuf.any_pb2 import Any as ProtoAny
from google.protobuf.message import DecodeError, EncodeError

from pubkey_sync.ledger import EncodingError, SigningError
from pubkey_sync.models.txn import (
    Account,
    Fee,
    Operation,
    SignerMetadata,
    UnsignedTransaction,
)
from pubkey_sync.signer import Signer, sign_message, verify_signature

if TYPE_CHECKING:
    from pubkey_sync.estimator import ResourceEstimator

LOGGER = logging.getLogger(__name__)

SIGNATURE_LENGTH = 64
PUBKEY_TYPE_URL = "/cosmos.crypto.secp256k1.PubKey"


def transaction_hash(tx_bytes: bytes) -> str:
    """Hash of the wire encoding, as the node reports it."""
    return hashlib.sha256(tx_bytes).hexdigest().upper()


def _encode_body(unsigned: UnsignedTransaction) -> bytes:
    if not unsigned.operations:
        raise EncodingError("A transaction needs at least one operation")

    messages = []
    for op in unsigned.operations:
        if not op.type_url.startswith("/"):
            raise EncodingError(f"Invalid operation type url: {op.type_url!r}")
        try:
            messages.append(ProtoAny(type_url=op.type_url, value=op.value))
        except (TypeError, ValueError) as err:
            raise EncodingError(f"Could not encode operation {op.type_url}") from err

    try:
        return TxBody(messages=messages, memo=unsigned.memo).SerializeToString()
    except EncodeError as err:
        raise EncodingError("Could not encode transaction body") from err


def _encode_auth_info(
    unsigned: UnsignedTransaction, metadata: SignerMetadata
) -> bytes:
    public_key = ProtoAny(
        type_url=PUBKEY_TYPE_URL,
        value=PubKey(key=metadata.public_key).SerializeToString(),
    )
    signer_info = SignerInfo(
        public_key=public_key,
        mode_info=ModeInfo(single=ModeInfo.Single(mode=SignMode.SIGN_MODE_DIRECT)),
        sequence=metadata.sequence,
    )
    fee = ProtoFee(
        amount=[Coin(denom=unsigned.fee.denom, amount=str(unsigned.fee.amount))],
        gas_limit=unsigned.resource_limit,
    )
    return AuthInfo(signer_infos=[signer_info], fee=fee).SerializeToString()


def _sign_doc(
    body_bytes: bytes, auth_info_bytes: bytes, chain_id: str, account_number: int
) -> bytes:
    return SignDoc(
        body_bytes=body_bytes,
        auth_info_bytes=auth_info_bytes,
        chain_id=chain_id,
        account_number=account_number,
    ).SerializeToString()


def encode_draft(unsigned: UnsignedTransaction, metadata: SignerMetadata) -> bytes:
    """Encode a transaction with an empty signature, as used for simulation."""
    return TxRaw(
        body_bytes=_encode_body(unsigned),
        auth_info_bytes=_encode_auth_info(unsigned, metadata),
        signatures=[b""],
    ).SerializeToString()


class TransactionBuilder:
    """Two step builder for a single signer transaction."""

    def __init__(self, unsigned: UnsignedTransaction, metadata: SignerMetadata):
        """Init the builder."""
        self.unsigned = unsigned
        self.metadata = metadata
        self._body_bytes: bytes | None = None
        self._auth_info_bytes: bytes | None = None
        self._payload: bytes | None = None
        self._signature: bytes | None = None

    @property
    def prepared(self) -> bool:
        """Whether the payload has been produced."""
        return self._payload is not None

    def prepare_unsigned_payload(self) -> bytes:
        """Populate signer info with an empty signature and return the payload.

        The encoded body and auth info are fixed from here on.
        """
        if self._payload is None:
            self._body_bytes = _encode_body(self.unsigned)
            self._auth_info_bytes = _encode_auth_info(self.unsigned, self.metadata)
            self._signature = b""
            self._payload = _sign_doc(
                self._body_bytes,
                self._auth_info_bytes,
                self.metadata.chain_id,
                self.metadata.account_number,
            )
        return self._payload

    def attach_signature(self, signature: bytes) -> bytes:
        """Substitute the real signature and return the wire encoding."""
        if self._body_bytes is None or self._auth_info_bytes is None:
            raise EncodingError("Payload must be prepared before attaching a signature")
        if self._signature:
            raise SigningError("Transaction has already been signed")
        if len(signature) != SIGNATURE_LENGTH:
            raise SigningError(
                f"Expected {SIGNATURE_LENGTH} byte signature, got {len(signature)}"
            )

        self._signature = signature
        return TxRaw(
            body_bytes=self._body_bytes,
            auth_info_bytes=self._auth_info_bytes,
            signatures=[signature],
        ).SerializeToString()


class TransactionSigner:
    """Build and sign transactions for one account."""

    def __init__(
        self,
        sign: Signer,
        public_key: bytes,
        *,
        chain_id: str,
        fee: Fee,
        estimator: "ResourceEstimator",
    ):
        """Init the signer."""
        self.sign = sign
        self.public_key = public_key
        self.chain_id = chain_id
        self.fee = fee
        self.estimator = estimator

    async def build_and_sign(
        self,
        operations: Sequence[Operation],
        account: Account,
        adjust_resource: bool = True,
    ) -> bytes:
        """Build, estimate, sign and encode a transaction.

        The signer metadata is taken from the single account snapshot given.
        """
        unsigned = UnsignedTransaction(
            operations=tuple(operations),
            fee=self.fee,
            resource_limit=self.estimator.default_limit,
        )
        metadata = SignerMetadata.from_account(self.chain_id, account, self.public_key)

        if adjust_resource:
            limit = await self.estimator.estimate(unsigned, metadata)
            unsigned = replace(unsigned, resource_limit=limit)

        builder = TransactionBuilder(unsigned, metadata)
        payload = builder.prepare_unsigned_payload()

        try:
            signature = await sign_message(self.sign, payload)
        except SigningError:
            raise
        except Exception as err:
            raise SigningError("Failed to sign transaction") from err

        tx_bytes = builder.attach_signature(signature)
        LOGGER.debug(
            "Signed transaction %s with sequence %d, limit %d",
            transaction_hash(tx_bytes),
            metadata.sequence,
            unsigned.resource_limit,
        )
        return tx_bytes


def verify_signed_transaction(
    tx_bytes: bytes, chain_id: str, account_number: int
) -> bool:
    """Check the embedded signature against the embedded public key."""
    try:
        raw = TxRaw.FromString(tx_bytes)
        auth_info = AuthInfo.FromString(raw.auth_info_bytes)
    except DecodeError:
        return False

    if len(raw.signatures) != 1 or len(auth_info.signer_infos) != 1:
        return False

    any_key = auth_info.signer_infos[0].public_key
    if any_key.type_url != PUBKEY_TYPE_URL:
        return False
    try:
        public_key = PubKey.FromString(any_key.value).key
    except DecodeError:
        return False

    payload = _sign_doc(raw.body_bytes, raw.auth_info_bytes, chain_id, account_number)
    return verify_signature(public_key, payload, raw.signatures[0])
