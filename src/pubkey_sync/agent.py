"""Public key sync agent."""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable

from httpx import AsyncBaseTransport

from pubkey_sync.confirm import ConfirmationPoller
from pubkey_sync.config import Config, ConfigError
from pubkey_sync.contract import ContractError, IdentityContract
from pubkey_sync.encryption import CommandEncryptor, EncryptionError, Encryptor
from pubkey_sync.estimator import ResourceEstimator
from pubkey_sync.keyshare import KeyshareError, fetch_public_key
from pubkey_sync.ledger import LedgerError, RestLedgerRpc
from pubkey_sync.session import LedgerSession
from pubkey_sync.signer import InvalidKeyError, Secp256k1Key

LOGGER = logging.getLogger(__name__)

CYCLE_ERRORS = (LedgerError, ContractError, KeyshareError, EncryptionError, OSError)

PublicKeySource = Callable[[], Awaitable[str]]


async def _pause(seconds: float, stop: asyncio.Event | None):
    """Sleep, waking early when stop is set."""
    if stop is None:
        await asyncio.sleep(seconds)
        return
    try:
        async with asyncio.timeout(seconds):
            await stop.wait()
    except TimeoutError:
        pass


class Agent:
    """Keep the contract's public key current and store encrypted data.

    Each cycle fetches the key distribution service's public key, publishes
    it in the contract, encrypts the plaintext file to it and stores the
    ciphertext under the agent's identity.
    """

    def __init__(
        self,
        contract: IdentityContract,
        encryptor: Encryptor,
        public_key_source: PublicKeySource,
        *,
        authorized_address: str,
        plaintext_file: Path,
        identity: str | None = None,
        identity_settle: float = 5.0,
        cycle_interval: float = 20.0,
        retry_backoff: float = 10.0,
    ):
        """Init the agent."""
        self.contract = contract
        self.encryptor = encryptor
        self.public_key_source = public_key_source
        self.authorized_address = authorized_address
        self.plaintext_file = plaintext_file
        self.identity = identity
        self.identity_settle = identity_settle
        self.cycle_interval = cycle_interval
        self.retry_backoff = retry_backoff

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        transport: AsyncBaseTransport | None = None,
    ) -> "Agent":
        """Wire up the agent and its ledger session from configuration."""
        try:
            key = Secp256k1Key.from_hex(config.private_key_hex)
        except InvalidKeyError as err:
            raise ConfigError(f"Invalid private key: {err}") from err
        address = key.address(config.address_prefix)
        if config.account_address and config.account_address != address:
            raise ConfigError(
                f"Account address {config.account_address} does not match "
                f"the private key, which controls {address}"
            )
        try:
            encryptor = CommandEncryptor(config.encrypt_command)
        except ValueError as err:
            raise ConfigError(str(err)) from err

        rpc = RestLedgerRpc(
            config.ledger_url, timeout=config.request_timeout, transport=transport
        )
        session = LedgerSession(
            rpc,
            key,
            address,
            chain_id=config.chain_id,
            fee=config.fee,
            estimator=ResourceEstimator(
                rpc,
                adjustment_factor=config.resource_adjustment,
                default_limit=config.default_resource_limit,
            ),
            poller=ConfirmationPoller(
                rpc,
                interval=config.poll_interval,
                deadline=config.confirm_timeout,
                max_attempts=config.confirm_max_attempts,
            ),
        )

        async def public_key_source() -> str:
            return await fetch_public_key(config.keyshare_url, transport=transport)

        return cls(
            IdentityContract(session, config.contract_address),
            encryptor,
            public_key_source,
            authorized_address=config.authorized_address,
            plaintext_file=config.plaintext_file,
            identity=config.identity,
            identity_settle=config.identity_settle,
            cycle_interval=config.cycle_interval,
            retry_backoff=config.retry_backoff,
        )

    async def bootstrap(self) -> str:
        """Obtain an identity and register the contract with it."""
        if self.identity:
            LOGGER.info("Using existing identity %s", self.identity)
            return self.identity

        await self.contract.request_identity(self.authorized_address)
        LOGGER.info("Identity requested for %s", self.authorized_address)

        # The identity is created asynchronously by the pep module
        await asyncio.sleep(self.identity_settle)

        identity = await self.contract.fetch_identity(self.authorized_address)
        LOGGER.info("New identity: %s", identity)

        await self.contract.register_contract(identity)
        LOGGER.info(
            "Contract %s registered with identity %s", self.contract.address, identity
        )
        self.identity = identity
        return identity

    async def run_cycle(self) -> str:
        """Publish the current public key and store freshly encrypted data."""
        if not self.identity:
            raise ContractError("Agent has no identity; bootstrap first")

        public_key = await self.public_key_source()
        await self.contract.update_pubkey(public_key)
        LOGGER.info("Published public key %s", public_key)

        plaintext = self.plaintext_file.read_bytes()
        ciphertext = await self.encryptor.encrypt(public_key, self.identity, plaintext)
        await self.contract.store_encrypted_data(self.identity, ciphertext)
        LOGGER.info("Stored new encrypted data for identity %s", self.identity)
        return public_key

    async def run_forever(self, stop: asyncio.Event | None = None):
        """Run cycles until stop is set, backing off after failures."""
        while not (stop and stop.is_set()):
            try:
                await self.run_cycle()
            except CYCLE_ERRORS:
                LOGGER.exception(
                    "Cycle failed, retrying in %s seconds", self.retry_backoff
                )
                await _pause(self.retry_backoff, stop)
                continue
            await _pause(self.cycle_interval, stop)

    async def run(self, stop: asyncio.Event | None = None):
        """Bootstrap, retrying after failures, then run cycles until stopped."""
        while not self.identity:
            if stop and stop.is_set():
                return
            try:
                await self.bootstrap()
            except CYCLE_ERRORS:
                LOGGER.exception(
                    "Bootstrap failed, retrying in %s seconds", self.retry_backoff
                )
                await _pause(self.retry_backoff, stop)
        await self.run_forever(stop)
