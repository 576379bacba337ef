"""Test secp256k1 signing."""

import pytest

from pubkey_sync.signer import (
    SECP256K1_N,
    InvalidKeyError,
    Secp256k1Key,
    sign_message,
    verify_signature,
)

from .fakes import PRIVATE_KEY_HEX


@pytest.mark.parametrize(
    "private_key_hex",
    ["not hex", "1f" * 31, "00" * 32, f"{SECP256K1_N:064x}"],
)
def test_invalid_private_key(private_key_hex: str):
    with pytest.raises(InvalidKeyError):
        Secp256k1Key.from_hex(private_key_hex)


def test_public_key_is_compressed(key: Secp256k1Key):
    assert len(key.public_key) == 33
    assert key.public_key[0] in (2, 3)


def test_hex_prefix_accepted(key: Secp256k1Key):
    assert Secp256k1Key.from_hex("0x" + PRIVATE_KEY_HEX).public_key == key.public_key


def test_sign_is_deterministic_and_low_s(key: Secp256k1Key):
    first = key.sign(b"payload")
    second = key.sign(b"payload")
    assert first == second
    assert len(first) == 64
    assert int.from_bytes(first[32:], "big") <= SECP256K1_N // 2


def test_verify(key: Secp256k1Key):
    signature = key.sign(b"payload")
    assert verify_signature(key.public_key, b"payload", signature)
    assert not verify_signature(key.public_key, b"payloae", signature)
    assert not verify_signature(key.public_key, b"payload", signature[:63])
    assert not verify_signature(b"\x02" + b"\x00" * 32, b"payload", signature)


@pytest.mark.asyncio
async def test_sign_message_sync_and_async(key: Secp256k1Key):
    async def async_sign(message: bytes) -> bytes:
        return key.sign(message)

    assert await sign_message(key.sign, b"msg") == await sign_message(
        async_sign, b"msg"
    )


def test_address(key: Secp256k1Key):
    address = key.address("fairy")
    assert address.startswith("fairy1")
    assert len(address) == len("fairy1") + 38
    assert key.address("cosmos").startswith("cosmos1")
    assert key.address("fairy") != Secp256k1Key.from_hex("2e" * 32).address("fairy")
