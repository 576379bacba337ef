"""Encryption hand-off.

Identity based encryption is performed by an external tool; this module only
defines the interface the agent uses and a runner for such a tool.
"""

import asyncio
import logging
import shlex
from typing import Protocol

LOGGER = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when encryption fails."""


class Encryptor(Protocol):
    """Encrypt plaintext to a public key and identity."""

    async def encrypt(self, public_key: str, identity: str, plaintext: bytes) -> bytes:
        """Return ciphertext bytes."""
        ...


class CommandEncryptor:
    """Run an external encryption tool.

    The command is a shell style string whose arguments may contain the
    placeholders {identity}, {pubkey} and {plaintext_hex}. The plaintext is
    also written to the tool's stdin. The tool must print the ciphertext as
    hex on stdout.
    """

    def __init__(self, command: str, *, timeout: float = 60.0):
        """Init the encryptor."""
        self.args = shlex.split(command)
        if not self.args:
            raise ValueError("Encryption command must not be empty")
        self.timeout = timeout

    def render(self, public_key: str, identity: str, plaintext: bytes) -> list[str]:
        """Substitute placeholders in the command arguments."""
        values = {
            "identity": identity,
            "pubkey": public_key,
            "plaintext_hex": plaintext.hex(),
        }
        try:
            return [arg.format(**values) for arg in self.args]
        except (KeyError, IndexError, ValueError) as err:
            raise EncryptionError(f"Unknown placeholder in command: {err}") from err

    async def encrypt(self, public_key: str, identity: str, plaintext: bytes) -> bytes:
        """Run the tool and decode its output."""
        args = self.render(public_key, identity, plaintext)
        LOGGER.debug("Running %s", args[0])
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as err:
            raise EncryptionError(f"Could not start {args[0]}") from err

        try:
            async with asyncio.timeout(self.timeout):
                stdout, stderr = await proc.communicate(plaintext)
        except TimeoutError as err:
            proc.kill()
            await proc.wait()
            raise EncryptionError(f"{args[0]} timed out") from err

        if proc.returncode != 0:
            raise EncryptionError(
                f"{args[0]} exited with {proc.returncode}: "
                f"{stderr.decode(errors='replace').strip()}"
            )

        try:
            return bytes.fromhex(stdout.decode().strip())
        except ValueError as err:
            raise EncryptionError(f"{args[0]} did not print hex ciphertext") from err
