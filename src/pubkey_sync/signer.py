"""Signature abstraction to enable flexible cryptography backends."""

from typing import Awaitable, Callable

from cosmpy.crypto.address import Address
from cosmpy.crypto.keypairs import PublicKey
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

Signer = Callable[[bytes], bytes | Awaitable[bytes]]

# Order of the secp256k1 group
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


class InvalidKeyError(Exception):
    """Raised on invalid key material."""


async def sign_message(sign: Signer, message: bytes) -> bytes:
    """Sign a message.

    The signer must either be a callable returning bytes or a callable returning
    an awaitable of bytes.
    """
    value = sign(message)
    if isinstance(value, bytes):
        return value

    # If you give anything other than an awaitable, this will raise a TypeError.
    # Callers be warned!
    return await value


class Secp256k1Key:
    """A secp256k1 signing key producing compact, low-S ECDSA signatures."""

    def __init__(self, private_key: ec.EllipticCurvePrivateKey):
        """Init the key."""
        self._key = private_key

    @classmethod
    def from_hex(cls, private_key_hex: str) -> "Secp256k1Key":
        """Load a key from a 32 byte hex encoded secret."""
        try:
            secret = bytes.fromhex(private_key_hex.removeprefix("0x"))
        except ValueError as err:
            raise InvalidKeyError("Private key is not valid hex") from err
        if len(secret) != 32:
            raise InvalidKeyError(f"Expected 32 byte private key, got {len(secret)}")

        value = int.from_bytes(secret, "big")
        if not 0 < value < SECP256K1_N:
            raise InvalidKeyError("Private key is out of range for secp256k1")
        return cls(ec.derive_private_key(value, ec.SECP256K1()))

    @property
    def public_key(self) -> bytes:
        """Compressed SEC1 public key (33 bytes)."""
        return self._key.public_key().public_bytes(
            Encoding.X962, PublicFormat.CompressedPoint
        )

    def address(self, prefix: str) -> str:
        """Bech32 account address controlled by this key."""
        return str(Address(PublicKey(self.public_key), prefix=prefix))

    def sign(self, message: bytes) -> bytes:
        """Sign SHA-256 of message, returning 64 byte r || s."""
        der = self._key.sign(
            message, ec.ECDSA(hashes.SHA256(), deterministic_signing=True)
        )
        r, s = decode_dss_signature(der)
        # Cosmos SDK only accepts the lower of the two valid s values
        if s > SECP256K1_N // 2:
            s = SECP256K1_N - s
        return r.to_bytes(32, "big") + s.to_bytes(32, "big")


def verify_signature(public_key: bytes, message: bytes, signature: bytes) -> bool:
    """Verify a compact r || s signature over message."""
    if len(signature) != 64:
        return False

    try:
        key = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), public_key)
    except ValueError:
        return False

    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:], "big")
    try:
        key.verify(encode_dss_signature(r, s), message, ec.ECDSA(hashes.SHA256()))
    except InvalidSignature:
        return False
    return True
