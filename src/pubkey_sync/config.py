"""Agent configuration."""

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pubkey_sync.models.txn import Fee

LOGGER = logging.getLogger(__name__)


class ConfigError(Exception):
    """Configuration error."""


class Config(BaseSettings):
    """Agent configuration, read from the environment or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ledger_url: str
    private_key_hex: str
    chain_id: str
    contract_address: str
    authorized_address: str
    keyshare_url: str
    plaintext_file: Path
    encrypt_command: str
    identity: str | None = None
    account_address: str | None = None
    address_prefix: str = "fairy"

    fee_denom: str = "ufairy"
    fee_amount: int = Field(default=800, ge=0)
    default_resource_limit: int = Field(default=300000, gt=0)
    resource_adjustment: float = Field(default=3.0, gt=0)
    poll_interval: float = Field(default=1.0, gt=0)
    confirm_timeout: float | None = Field(default=60.0, gt=0)
    confirm_max_attempts: int | None = None
    request_timeout: float = 10.0
    identity_settle: float = 5.0
    cycle_interval: float = 20.0
    retry_backoff: float = 10.0
    log_level: Literal["debug", "info", "warning", "error"] = "info"

    @field_validator("log_level", mode="before")
    @classmethod
    def lower_log_level(cls, value):
        """Accept upper case log levels."""
        return value.lower() if isinstance(value, str) else value

    @property
    def fee(self) -> Fee:
        """Fixed fee attached to every transaction."""
        return Fee(denom=self.fee_denom, amount=self.fee_amount)
