"""Base HTTP Client.

This provides convenient elements like logging requests and responses,
automatically deserializing responses into an object, etc.
"""

import logging
from typing import Any, Literal, Mapping, Type, TypeVar, overload

from httpx import AsyncBaseTransport, AsyncClient, Response, TransportError
from pydantic import BaseModel


LOGGER = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def _deserialize(value: Any, as_type: Type[T] | None = None) -> T | Any:
    """Deserialize value."""
    if value is None:
        return None
    if as_type is None:
        return value
    return as_type.model_validate(value)


class HTTPClientError(Exception):
    """Raised on errors in HTTP client."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: Any = None,
    ):
        """Init the error."""
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class HTTPTransportError(HTTPClientError):
    """Raised when the remote end could not be reached."""


class HTTPClient:
    """Base HTTP Client."""

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        *,
        timeout: float = 10.0,
        transport: AsyncBaseTransport | None = None,
    ):
        """Init the client."""
        self.base_url = base_url
        self.headers = headers or {}
        self.timeout = timeout
        self.transport = transport

    async def _handle_response(
        self,
        resp: Response,
    ) -> Mapping[str, Any]:
        content_type = resp.headers.get("content-type", "")
        is_json = content_type.startswith("application/json")
        if resp.status_code >= 200 and resp.status_code < 300 and is_json:
            try:
                body = resp.json()
            except ValueError as err:
                raise HTTPClientError(
                    f"Malformed JSON response: {resp.content!r}",
                    status_code=resp.status_code,
                    body=resp.content,
                ) from err
            LOGGER.debug("%s: %s", resp.status_code, body)
            return body

        if resp.status_code >= 200 and resp.status_code < 300:
            raise HTTPClientError(
                f"Unexpected content type {content_type}: {resp.content!r}",
                status_code=resp.status_code,
                body=resp.content,
            )

        try:
            body = resp.json() if is_json else resp.content
        except ValueError:
            body = resp.content
        raise HTTPClientError(
            f"Request failed: {resp.url} {resp.status_code} {body}",
            status_code=resp.status_code,
            body=body,
        )

    async def _request(
        self,
        method: Literal["GET", "POST"],
        url: str,
        *,
        json: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        response: Type[T] | None = None,
    ) -> T | Mapping[str, Any]:
        """Make an HTTP request."""
        headers = dict(headers) if headers else {}
        headers.update(self.headers)

        LOGGER.info("%s %s", method, url)
        if params:
            LOGGER.debug("Query: %s", params)
        if json:
            LOGGER.debug("%s", json)

        async with AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        ) as session:
            try:
                if method == "GET":
                    resp = await session.request(method, url, params=params)
                elif method == "POST":
                    resp = await session.request(
                        method, url, json=json or {}, params=params
                    )
                else:
                    raise ValueError(f"Unsupported method {method}")
            except TransportError as err:
                raise HTTPTransportError(
                    f"Could not reach {self.base_url}: {err}"
                ) from err

            body = await self._handle_response(resp)
            value = _deserialize(body, response)

        return value

    @overload
    async def get(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Mapping[str, Any]: ...

    @overload
    async def get(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        response: Type[T],
    ) -> T: ...

    async def get(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        response: Type[T] | None = None,
    ) -> T | Mapping[str, Any]:
        """HTTP Get."""
        return await self._request(
            "GET", url, params=params, headers=headers, response=response
        )

    @overload
    async def post(
        self,
        url: str,
        *,
        json: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Mapping[str, Any]: ...

    @overload
    async def post(
        self,
        url: str,
        *,
        json: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        response: Type[T],
    ) -> T: ...

    async def post(
        self,
        url: str,
        *,
        json: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        response: Type[T] | None = None,
    ) -> T | Mapping[str, Any]:
        """HTTP POST."""
        return await self._request(
            "POST",
            url,
            json=json,
            params=params,
            headers=headers,
            response=response,
        )
