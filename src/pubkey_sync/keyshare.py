"""Key distribution lookup."""

import logging

from httpx import AsyncBaseTransport
from pydantic import ValidationError

from pubkey_sync.models.contract import KeysharePubKeyResponse
from pubkey_sync.utils import FetchError, fetch

LOGGER = logging.getLogger(__name__)


class KeyshareError(Exception):
    """Raised when the public key cannot be retrieved."""


async def fetch_public_key(
    rest_url: str,
    *,
    max_attempts: int = 3,
    transport: AsyncBaseTransport | None = None,
) -> str:
    """Retrieve the queued public key, or the active one when none is queued."""
    url = rest_url.rstrip("/") + "/fairyring/keyshare/pubkey"
    try:
        body = await fetch(url, json=True, max_attempts=max_attempts, transport=transport)
    except FetchError as err:
        raise KeyshareError(f"Failed to fetch public key from {url}") from err
    except ValueError as err:
        raise KeyshareError(f"Malformed public key response from {url}") from err

    try:
        response = KeysharePubKeyResponse.model_validate(body)
    except ValidationError as err:
        raise KeyshareError(f"Malformed public key response from {url}") from err

    public_key = response.queued_pubkey.public_key or response.active_pubkey.public_key
    if not public_key:
        raise KeyshareError("Key distribution service has no public key")
    LOGGER.debug("Queued public key: %s", public_key)
    return public_key
