# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Response normalization.

Every operation settles to a ``NormalizedResponse``: the status, the folded
headers and the complete body as bytes.  The body can be read any number of
times since it no longer depends on the connection.

``StreamingResponse`` is the unbuffered counterpart handed out by
``S3Client.stream()``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from s3wire.request import OutboundRequest
from s3wire.transport import TransportResponse


logger = logging.getLogger(__name__)


def fold_headers(pairs: Iterable[tuple[str, str]]) -> Mapping[str, str]:
    """Fold header pairs into a read-only mapping with lower-case names.

    Values of a repeated header are joined with ``,`` in wire order.
    """
    folded: dict[str, str] = {}
    for name, value in pairs:
        key = name.lower()
        if key in folded:
            folded[key] = f"{folded[key]},{value}"
        else:
            folded[key] = value
    return MappingProxyType(folded)


@dataclass(frozen=True)
class NormalizedResponse:
    """A complete response with its body held in memory.

    Attributes:
        status_code: HTTP status, or 0 when the request got no response.
        body_bytes: The full response body.
        headers: Lower-case header names; repeated headers comma-joined.
        is_redirect: True for 3xx responses carrying a ``location``.
        persistent_connection: False if the connection was not kept alive.
        reason_phrase: HTTP reason phrase, or the failure detail when the
            transport failed.
        request: The request that produced this response.
    """

    status_code: int
    body_bytes: bytes = b""
    headers: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )
    is_redirect: bool = False
    persistent_connection: bool = True
    reason_phrase: str | None = None
    request: OutboundRequest | None = field(
        default=None, repr=False, compare=False
    )

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def content_length(self) -> int:
        """Declared ``content-length``, or -1 if absent or unparseable."""
        try:
            return int(self.headers.get("content-length", "-1"))
        except ValueError:
            return -1

    @property
    def text(self) -> str:
        """The body decoded as UTF-8.

        Raises:
            UnicodeDecodeError: If the body is not valid UTF-8.
        """
        return self.body_bytes.decode("utf-8")

    def iter_bytes(self) -> Iterator[bytes]:
        """Iterate over the body from the start (a single chunk)."""
        if self.body_bytes:
            yield self.body_bytes

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        """Async counterpart of ``iter_bytes()``."""
        if self.body_bytes:
            yield self.body_bytes


async def normalize(response: TransportResponse) -> NormalizedResponse:
    """Read the transport response body to the end and normalize it.

    If the body stream broke off, the partial body is kept and the failure
    replaces the reason phrase.  A stream that raises is treated the same
    way, so no transport fault escapes.
    """
    parts: list[bytes] = []
    try:
        async for chunk in response.stream:
            parts.append(chunk)
    except Exception as e:
        logger.warning("Response body stream raised: %s", e)
        response.error = f"{type(e).__name__}: {e}"
    finally:
        await response.aclose()

    reason = response.reason_phrase
    if response.error is not None:
        reason = response.error

    return NormalizedResponse(
        status_code=response.status_code,
        body_bytes=b"".join(parts),
        headers=fold_headers(response.headers),
        is_redirect=response.is_redirect,
        persistent_connection=response.persistent_connection,
        reason_phrase=reason,
        request=response.request,
    )


class StreamingResponse:
    """A response whose body is read from the connection on demand.

    Obtained from ``S3Client.stream()``; the connection is released when
    the surrounding context exits.
    """

    def __init__(self, response: TransportResponse) -> None:
        self._response = response
        self.headers = fold_headers(response.headers)
        self._consumed = False

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def reason_phrase(self) -> str | None:
        """Reason phrase, replaced by the failure detail if the body broke."""
        if self._response.error is not None:
            return self._response.error
        return self._response.reason_phrase

    @property
    def request(self) -> OutboundRequest:
        return self._response.request

    @property
    def error(self) -> str | None:
        return self._response.error

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", "-1"))
        except ValueError:
            return -1

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        """Yield body chunks as they arrive.  Can be consumed once.

        Raises:
            RuntimeError: If the body was already consumed.
        """
        if self._consumed:
            raise RuntimeError("Response body already consumed")
        self._consumed = True
        async for chunk in self._response.stream:
            yield chunk

    async def aread(self) -> NormalizedResponse:
        """Buffer the rest of the body into a ``NormalizedResponse``."""
        if self._consumed:
            raise RuntimeError("Response body already consumed")
        self._consumed = True
        return await normalize(self._response)

    async def aclose(self) -> None:
        await self._response.aclose()
