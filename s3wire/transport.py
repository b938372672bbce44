# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""HTTP transport.

A ``Transport`` sends an ``OutboundRequest`` and returns a
``TransportResponse`` whose body is still a live stream of chunks.  It never
raises for network-level problems: connection failures, timeouts, TLS errors
and cancellation all come back as a failed response with status 0 and the
error detail in ``reason_phrase``.  A failure while the body is being read
is recorded in ``TransportResponse.error`` and ends the stream early.

``HttpxTransport`` is the default implementation on top of
``httpx.AsyncClient``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

import httpx

from s3wire.request import (
    BytesPayload,
    EmptyPayload,
    OutboundRequest,
    iter_payload,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


class Transport(Protocol):
    """Sends requests; reports failures as degraded responses."""

    async def send(self, request: OutboundRequest) -> TransportResponse: ...

    async def aclose(self) -> None: ...


async def _no_chunks() -> AsyncIterator[bytes]:
    for _ in ():
        yield b""


@dataclass
class TransportResponse:
    """A response as delivered by the transport, body not yet read.

    Attributes:
        status_code: HTTP status, or 0 when no response was received.
        headers: Header pairs in wire order; names may repeat.
        stream: Body chunks in order.  Can be consumed once.
        request: The request that produced this response.
        reason_phrase: HTTP reason phrase, or the failure detail.
        is_redirect: True for 3xx responses carrying a ``location``.
        persistent_connection: False if the server closes the connection.
        error: Set when sending failed or the body stream broke off.
    """

    status_code: int
    headers: list[tuple[str, str]]
    stream: AsyncIterator[bytes]
    request: OutboundRequest
    reason_phrase: str | None = None
    is_redirect: bool = False
    persistent_connection: bool = True
    error: str | None = None
    _closer: Callable[[], Awaitable[None]] | None = field(
        default=None, repr=False
    )

    @classmethod
    def failed(
        cls, request: OutboundRequest, error: str
    ) -> TransportResponse:
        """Build the response for a request that got no HTTP response."""
        return cls(
            status_code=0,
            headers=[],
            stream=_no_chunks(),
            request=request,
            reason_phrase=error,
            persistent_connection=False,
            error=error,
        )

    async def aclose(self) -> None:
        """Release the underlying connection.  Safe to call repeatedly."""
        aclose = getattr(self.stream, "aclose", None)
        if aclose is not None:
            await aclose()
        if self._closer is not None:
            await self._closer()


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class _Cancelled(Exception):
    """Internal signal: the request's cancel token fired."""


async def _until_cancelled(
    awaitable: Awaitable[T], request: OutboundRequest
) -> T:
    """Await ``awaitable`` unless the request's cancel token fires first.

    Raises:
        _Cancelled: If the token fired; ``awaitable`` is cancelled.
    """
    token = request.cancel_token
    if token is None:
        return await awaitable
    if token.is_cancelled:
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        raise _Cancelled(token.reason)

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait(
            {task, waiter}, return_when=asyncio.FIRST_COMPLETED
        )
    except BaseException:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    try:
        result = await task
    except (asyncio.CancelledError, httpx.HTTPError):
        pass
    else:
        # Finished before the cancel landed; release what it produced.
        aclose = getattr(result, "aclose", None)
        if aclose is not None:
            await aclose()
    raise _Cancelled(token.reason)


def _describe(exc: BaseException) -> str:
    detail = str(exc) or repr(exc)
    return f"{type(exc).__name__}: {detail}"


def _cancelled_reason(exc: _Cancelled) -> str:
    return f"Request cancelled: {exc.args[0] if exc.args else 'cancelled'}"


# ---------------------------------------------------------------------------
# httpx transport
# ---------------------------------------------------------------------------


class HttpxTransport:
    """Transport on top of ``httpx.AsyncClient``.

    Redirects are not followed and response bodies are delivered raw (no
    content decoding), so object bytes arrive exactly as stored.

    Args:
        client: Client to send through.  When omitted, one is created on
            first use and closed by ``aclose()``.
        timeout_seconds: Timeout for connect, read, write and pool waits
            of the client this transport creates.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout_seconds: float = 60.0,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout_seconds = timeout_seconds

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout_seconds),
                follow_redirects=False,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the client if this transport created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, request: OutboundRequest) -> TransportResponse:
        """Send ``request`` and return the response with an unread body."""
        client = self._get_client()
        headers = dict(request.headers)
        headers.setdefault("accept-encoding", "identity")
        if isinstance(request.body, BytesPayload):
            headers.setdefault("content-length", str(request.body.size))

        content = (
            None
            if isinstance(request.body, EmptyPayload)
            else self._upload(request)
        )
        http_request = client.build_request(
            request.method, request.url, headers=headers, content=content
        )

        try:
            response = await _until_cancelled(
                client.send(http_request, stream=True), request
            )
        except _Cancelled as e:
            reason = _cancelled_reason(e)
            logger.warning("%s %s: %s", request.method, request.url, reason)
            return TransportResponse.failed(request, reason)
        except httpx.HTTPError as e:
            reason = _describe(e)
            logger.warning(
                "%s %s failed: %s", request.method, request.url, reason
            )
            return TransportResponse.failed(request, reason)

        result = TransportResponse(
            status_code=response.status_code,
            headers=list(response.headers.multi_items()),
            stream=_no_chunks(),
            request=request,
            reason_phrase=response.reason_phrase or None,
            is_redirect=response.is_redirect,
            persistent_connection=(
                response.headers.get("connection", "").lower() != "close"
            ),
            _closer=response.aclose,
        )
        result.stream = self._download(response, result)
        return result

    async def _upload(self, request: OutboundRequest) -> AsyncIterator[bytes]:
        sent = 0
        async for chunk in iter_payload(request.body):
            yield chunk
            sent += len(chunk)
            request.report_progress(sent)

    async def _download(
        self, response: httpx.Response, result: TransportResponse
    ) -> AsyncIterator[bytes]:
        request = result.request
        received = 0
        chunks = response.aiter_raw().__aiter__()
        try:
            while True:
                try:
                    chunk = await _until_cancelled(anext(chunks), request)
                except StopAsyncIteration:
                    break
                received += len(chunk)
                request.report_progress(received)
                yield chunk
        except _Cancelled as e:
            result.error = _cancelled_reason(e)
        except httpx.HTTPError as e:
            result.error = _describe(e)
        finally:
            await response.aclose()

        if result.error is not None:
            logger.warning(
                "%s %s: response body incomplete after %d bytes: %s",
                request.method,
                request.url,
                received,
                result.error,
            )
