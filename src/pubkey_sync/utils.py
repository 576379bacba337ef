"""Utilities."""

import asyncio
from typing import Any

from httpx import AsyncBaseTransport, AsyncClient, HTTPError, Response


class RepeatAttempt:
    """Represents the current iteration in a repeat sequence."""

    def __init__(self, seq: "RepeatSequence", index: int = 1):
        """Initialize the attempt instance."""
        self.index = index
        self.seq = seq

    async def __anext__(self) -> "RepeatAttempt":
        """Implement async iterator protocol to wait between attempts.

        When the sequence carries a cancel event, the wait ends as soon as the
        event is set and the iteration stops.
        """
        if not self.index:
            if self.cancelled:
                raise StopAsyncIteration
            self.index = 1
            return self
        else:
            if self.final or self.cancelled:
                raise StopAsyncIteration
            interval = self.next_interval
            if interval:
                await self.seq.wait(interval)
            if self.cancelled:
                raise StopAsyncIteration
            self.index += 1
            return self

    @property
    def final(self) -> bool:
        """Check if this is the last instance in the sequence."""
        return bool(self.seq.limit and self.index >= self.seq.limit)

    @property
    def cancelled(self) -> bool:
        """Check if the sequence has been cancelled."""
        return bool(self.seq.cancel and self.seq.cancel.is_set())

    @property
    def next_interval(self) -> float:
        """Calculate the interval before the next attempt."""
        return self.seq.next_interval(self.index)

    def timeout(self, interval: float | None = None):
        """Create a context manager for timing out an attempt."""
        return asyncio.timeout(self.next_interval if interval is None else interval)

    def __repr__(self) -> str:
        """Format as a string for debugging."""
        return f"<{self.__class__.__name__} index={self.index} seq={self.seq}>"


class RepeatSequence:
    """Represents a repetition sequence."""

    def __init__(
        self,
        limit: int = 0,
        interval: float = 0.0,
        backoff: float = 0.0,
        *,
        cancel: asyncio.Event | None = None,
    ):
        """Initialize the sequence instance."""
        self.limit = limit
        self.interval = interval
        self.backoff = backoff
        self.cancel = cancel

    def next_interval(self, index: int) -> float:
        """Calculate the time before the next attempt."""
        return pow(self.interval, 1 + (self.backoff * (index - 1)))

    async def wait(self, interval: float):
        """Sleep for interval, returning early if cancelled."""
        if not self.cancel:
            await asyncio.sleep(interval)
            return
        try:
            async with asyncio.timeout(interval):
                await self.cancel.wait()
        except TimeoutError:
            pass

    def __aiter__(self):
        """Implement async iterator protocol to wait between attempts."""
        return RepeatAttempt(self, index=0)

    def __repr__(self) -> str:
        """Format as a string for debugging."""
        return (
            f"<{self.__class__.__name__} "
            f"limit={self.limit} interval={self.interval} backoff={self.backoff}>"
        )


class FetchError(Exception):
    """Error raised when an HTTP fetch fails."""


async def fetch(
    url: str,
    *,
    headers: dict | None = None,
    retry: bool = True,
    max_attempts: int = 5,
    interval: float = 1.0,
    backoff: float = 0.25,
    request_timeout: float = 10.0,
    json: bool = False,
    transport: AsyncBaseTransport | None = None,
) -> Any:
    """Fetch from an HTTP server with automatic retries and timeouts.

    Args:
        url: the address to fetch
        headers: an optional dict of headers to send
        retry: flag to retry the fetch
        max_attempts: the maximum number of attempts to make
        interval: the interval between retries, in seconds
        backoff: the backoff interval, in seconds
        request_timeout: the HTTP request timeout, in seconds
        json: flag to parse the result as JSON
        transport: optional httpx transport, used in testing

    """
    limit = max_attempts if retry else 1
    session = AsyncClient(transport=transport)
    async with session:
        async for attempt in RepeatSequence(limit, interval, backoff):
            try:
                async with attempt.timeout(request_timeout):
                    response: Response = await session.get(url, headers=headers)
                    response.raise_for_status()
                    return response.json() if json else response.text
            except (HTTPError, asyncio.TimeoutError) as e:
                if attempt.final:
                    raise FetchError("Exceeded maximum fetch attempts") from e
