"""Contract and key distribution models."""

from typing import Dict, List

from pydantic import BaseModel, ConfigDict


class IndexedEncryptedKeyshare(BaseModel):
    """Encrypted keyshare with its index."""

    encrypted_keyshare_value: str
    encrypted_keyshare_index: int


class IdentityRecord(BaseModel):
    """Identity record held by the contract."""

    model_config = ConfigDict(extra="ignore")

    identity: str
    pubkey: str = ""
    creator: str
    encrypted_data: str = ""
    last_submission: int = 0
    private_keyshares: Dict[str, List[IndexedEncryptedKeyshare]] = {}


class AllIdentitiesResponse(BaseModel):
    """Response to get_all_identity."""

    records: List[IdentityRecord]


class KeysharePubKey(BaseModel):
    """Public key published by the key distribution service."""

    public_key: str = ""
    creator: str = ""
    expiry: str = ""


class KeysharePubKeyResponse(BaseModel):
    """Active and queued public keys."""

    model_config = ConfigDict(extra="ignore")

    active_pubkey: KeysharePubKey = KeysharePubKey()
    queued_pubkey: KeysharePubKey = KeysharePubKey()
