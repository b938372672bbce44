# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Outbound request envelope, payload variants and cancellation.

An ``OutboundRequest`` is created by the client for one operation, filled
in by the signing step and handed to the transport.  It is never shared
between concurrent operations.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable
from dataclasses import dataclass, field

import httpx


#: Size of the pieces a bytes payload is uploaded in (progress granularity).
CHUNK_SIZE = 64 * 1024

ProgressCallback = Callable[[int], None]


# ---------------------------------------------------------------------------
# Payload variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EmptyPayload:
    """No request body."""

    @property
    def size(self) -> int:
        return 0


@dataclass(frozen=True)
class BytesPayload:
    """A request body held in memory."""

    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class StreamPayload:
    """A request body produced lazily, chunk by chunk.

    The underlying iterable is consumed once, either by the transport or by
    ``buffer_payload()``.
    """

    chunks: AsyncIterable[bytes] | Iterable[bytes]

    @property
    def size(self) -> int | None:
        return None


Payload = EmptyPayload | BytesPayload | StreamPayload

EMPTY = EmptyPayload()


def as_payload(value: object) -> Payload:
    """Coerce a caller-supplied body to a ``Payload``.

    Args:
        value: None, str (encoded as UTF-8), bytes-like, an iterable or
            async iterable of bytes, or an existing payload.

    Returns:
        The payload variant for ``value``.

    Raises:
        TypeError: If ``value`` cannot be sent as a request body.
    """
    if isinstance(value, (EmptyPayload, BytesPayload, StreamPayload)):
        return value
    if value is None:
        return EMPTY
    if isinstance(value, str):
        value = value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        data = bytes(value)
        return BytesPayload(data) if data else EMPTY
    if isinstance(value, (AsyncIterable, Iterable)) and not isinstance(
        value, dict
    ):
        return StreamPayload(value)
    raise TypeError(f"Unsupported payload type: {type(value).__name__}")


async def buffer_payload(payload: Payload) -> EmptyPayload | BytesPayload:
    """Read a payload fully into memory.

    Empty and bytes payloads are returned unchanged.
    """
    if not isinstance(payload, StreamPayload):
        return payload
    parts = [chunk async for chunk in iter_payload(payload)]
    data = b"".join(parts)
    return BytesPayload(data) if data else EMPTY


async def iter_payload(
    payload: Payload, chunk_size: int = CHUNK_SIZE
) -> AsyncIterator[bytes]:
    """Yield the payload's bytes in order.

    Bytes payloads are split into ``chunk_size`` pieces; streams are passed
    through chunk by chunk.  Empty chunks are skipped.
    """
    if isinstance(payload, BytesPayload):
        for start in range(0, len(payload.data), chunk_size):
            yield payload.data[start : start + chunk_size]
    elif isinstance(payload, StreamPayload):
        source = payload.chunks
        if isinstance(source, AsyncIterable):
            async for chunk in source:
                if chunk:
                    yield bytes(chunk)
        else:
            for chunk in source:
                if chunk:
                    yield bytes(chunk)


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class CancelToken:
    """Cooperative cancellation handle for one or more operations.

    Triggering the token makes the transport abandon the in-flight send or
    receive; the operation then settles to a failed response instead of
    raising or hanging.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Trigger cancellation.  Only the first reason is kept."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()


# ---------------------------------------------------------------------------
# Outbound request
# ---------------------------------------------------------------------------


@dataclass
class OutboundRequest:
    """Mutable envelope passed from the resolver to the signer and transport.

    Attributes:
        method: HTTP method.
        url: Fully resolved request URL.
        headers: Request headers with lower-case names, in insertion order.
        body: Request payload.
        on_progress: Called with the cumulative number of bytes sent, then
            with the cumulative number of bytes received.
        cancel_token: Cancels the request when triggered.
    """

    method: str
    url: httpx.URL
    headers: dict[str, str] = field(default_factory=dict)
    body: Payload = EMPTY
    on_progress: ProgressCallback | None = None
    cancel_token: CancelToken | None = None

    def replace(
        self,
        *,
        method: str | None = None,
        url: httpx.URL | None = None,
        headers: dict[str, str] | None = None,
        body: Payload | None = None,
    ) -> OutboundRequest:
        """Return a copy with the given fields overridden.

        The copy gets its own header dict; this request is left untouched.
        Progress and cancellation hooks carry over.
        """
        return OutboundRequest(
            method=method if method is not None else self.method,
            url=url if url is not None else self.url,
            headers=dict(headers if headers is not None else self.headers),
            body=body if body is not None else self.body,
            on_progress=self.on_progress,
            cancel_token=self.cancel_token,
        )

    def report_progress(self, transferred: int) -> None:
        """Forward a cumulative byte count to ``on_progress``.

        Nothing is reported once the request has been cancelled.
        """
        if self.on_progress is None:
            return
        if self.cancel_token is not None and self.cancel_token.is_cancelled:
            return
        self.on_progress(transferred)
