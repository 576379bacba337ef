import pytest
from pydantic import ValidationError

from pubkey_sync.agent import Agent
from pubkey_sync.config import Config, ConfigError
from pubkey_sync.signer import Secp256k1Key

from .fakes import ADDRESS, CHAIN_ID, CONTRACT, PRIVATE_KEY_HEX

REQUIRED = {
    "LEDGER_URL": "http://node.test:1317",
    "PRIVATE_KEY_HEX": PRIVATE_KEY_HEX,
    "CHAIN_ID": CHAIN_ID,
    "CONTRACT_ADDRESS": CONTRACT,
    "AUTHORIZED_ADDRESS": ADDRESS,
    "KEYSHARE_URL": "http://keyshare.test:1317",
    "PLAINTEXT_FILE": "plaintext.txt",
    "ENCRYPT_COMMAND": "encrypter {identity} {pubkey}",
}


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch):
    for name, value in REQUIRED.items():
        monkeypatch.setenv(name, value)
    monkeypatch.delenv("ACCOUNT_ADDRESS", raising=False)
    return monkeypatch


def test_defaults(env):
    config = Config(_env_file=None)  # type: ignore
    assert config.fee_denom == "ufairy"
    assert str(config.fee) == "800ufairy"
    assert config.default_resource_limit == 300000
    assert config.resource_adjustment == 3.0
    assert config.identity is None
    assert config.confirm_timeout == 60.0
    assert config.account_address is None
    assert config.address_prefix == "fairy"
    assert config.log_level == "info"


def test_overrides(env):
    env.setenv("FEE_AMOUNT", "1200")
    env.setenv("FEE_DENOM", "uatom")
    env.setenv("LOG_LEVEL", "DEBUG")
    env.setenv("CONFIRM_MAX_ATTEMPTS", "30")
    config = Config(_env_file=None)  # type: ignore
    assert str(config.fee) == "1200uatom"
    assert config.log_level == "debug"
    assert config.confirm_max_attempts == 30


def test_missing_required(env):
    env.delenv("CHAIN_ID")
    with pytest.raises(ValidationError):
        Config(_env_file=None)  # type: ignore


def test_invalid_adjustment(env):
    env.setenv("RESOURCE_ADJUSTMENT", "0")
    with pytest.raises(ValidationError):
        Config(_env_file=None)  # type: ignore


def test_agent_from_config(env):
    agent = Agent.from_config(Config(_env_file=None))  # type: ignore
    assert agent.contract.address == CONTRACT
    assert agent.contract.session.chain_id == CHAIN_ID
    assert agent.contract.session.estimator.adjustment_factor == 3.0
    assert agent.authorized_address == ADDRESS


def test_agent_from_config_bad_key(env):
    env.setenv("PRIVATE_KEY_HEX", "zz")
    with pytest.raises(ConfigError):
        Agent.from_config(Config(_env_file=None))  # type: ignore


def test_agent_from_config_empty_command(env):
    env.setenv("ENCRYPT_COMMAND", " ")
    with pytest.raises(ConfigError):
        Agent.from_config(Config(_env_file=None))  # type: ignore


def test_agent_address_derived_from_key(env):
    agent = Agent.from_config(Config(_env_file=None))  # type: ignore
    expected = Secp256k1Key.from_hex(PRIVATE_KEY_HEX).address("fairy")
    assert agent.contract.session.address == expected
    assert agent.contract.session.poller.deadline == 60.0


def test_agent_address_matches_configured(env):
    address = Secp256k1Key.from_hex(PRIVATE_KEY_HEX).address("fairy")
    env.setenv("ACCOUNT_ADDRESS", address)
    agent = Agent.from_config(Config(_env_file=None))  # type: ignore
    assert agent.contract.session.address == address


def test_agent_address_mismatch(env):
    env.setenv("ACCOUNT_ADDRESS", ADDRESS)
    with pytest.raises(ConfigError, match="does not match"):
        Agent.from_config(Config(_env_file=None))  # type: ignore
