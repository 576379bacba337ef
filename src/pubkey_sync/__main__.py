"""Run the public key sync agent."""

import asyncio
import logging.config
import signal
import sys

from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from pubkey_sync.agent import Agent
from pubkey_sync.config import Config, ConfigError

LOGGER = logging.getLogger("pubkey_sync")


def configure_logging(level: str):
    """Send package logs to stdout."""
    level = level.upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": {
                "pubkey_sync": {
                    "handlers": ["default"],
                    "level": level,
                    "propagate": False,
                },
                "httpx": {
                    "handlers": ["default"],
                    "level": "WARNING",
                    "propagate": False,
                },
            },
        }
    )


def print_summary(config: Config, address: str):
    """Print the settings the agent runs with."""
    table = Table(title="pubkey-sync", show_header=True, header_style="bold")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Ledger", config.ledger_url)
    table.add_row("Chain", config.chain_id)
    table.add_row("Account", address)
    table.add_row("Contract", config.contract_address)
    table.add_row("Authorized", config.authorized_address)
    table.add_row("Fee", str(config.fee))
    table.add_row("Identity", config.identity or "(request new)")
    Console(width=120).print(table)


async def main(config: Config):
    """Run until interrupted."""
    agent = Agent.from_config(config)
    print_summary(config, agent.contract.session.address)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await agent.run(stop)
    LOGGER.info("Stopped")


def cli() -> int:
    """Entry point."""
    try:
        config = Config()  # type: ignore
    except ValidationError as err:
        print(f"Invalid configuration:\n{err}", file=sys.stderr)
        return 1

    configure_logging(config.log_level)
    try:
        asyncio.run(main(config))
    except ConfigError as err:
        LOGGER.error("Invalid configuration: %s", err)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(cli())
