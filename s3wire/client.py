# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Request orchestration.

``S3Client`` turns a logical operation into a signed HTTP request and
settles it to a response:

1. resolve the region (explicit, configured, looked up, or ``us-east-1``)
2. resolve the URL (``s3wire.endpoint``)
3. build the ``OutboundRequest`` with the ``host`` header and caller headers
4. attach the payload
5. sign (``s3wire.signing``)
6. dispatch over the transport and normalize the response

Only configuration problems and invalid arguments raise.  Anything that
goes wrong once dispatch starts (connection errors, timeouts, cancellation,
error statuses) comes back as a response object.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Protocol

import httpx

from s3wire._version import VERSION
from s3wire.config import ClientConfig
from s3wire.endpoint import QueryValue, build_authority, resolve_url
from s3wire.request import (
    CancelToken,
    OutboundRequest,
    ProgressCallback,
    StreamPayload,
    as_payload,
    buffer_payload,
)
from s3wire.response import NormalizedResponse, StreamingResponse, normalize
from s3wire.signing import Signer, payload_hash_enabled, sign_request
from s3wire.sigv4 import SigV4Signer
from s3wire.trace import Tracer
from s3wire.transport import HttpxTransport, Transport, TransportResponse


logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"

DEFAULT_USER_AGENT = f"s3wire/{VERSION}"


class RegionLookup(Protocol):
    """Finds the region a bucket lives in.  May return an awaitable."""

    def resolve_bucket_region(
        self, bucket: str
    ) -> str | None | Awaitable[str | None]: ...


class StaticRegionLookup:
    """Region lookup backed by a fixed bucket to region mapping."""

    def __init__(self, regions: Mapping[str, str]) -> None:
        self._regions = dict(regions)

    def resolve_bucket_region(self, bucket: str) -> str | None:
        return self._regions.get(bucket)


class S3Client:
    """Builds, signs and dispatches S3 requests.

    The client keeps no per-request state and can serve any number of
    concurrent operations.  Use it as an async context manager (or call
    ``aclose()``) to release the transport it creates.

    Args:
        config: Endpoint, credentials and client settings.
        signer: Computes ``authorization`` values.  Defaults to SigV4.
        transport: Sends requests.  Defaults to an ``HttpxTransport`` owned
            by this client.
        region_lookup: Finds bucket regions when a request names none and
            the config has no region.
        tracer: Request/response dump sink.  Defaults to one enabled by
            ``config.enable_trace``.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        signer: Signer | None = None,
        transport: Transport | None = None,
        region_lookup: RegionLookup | None = None,
        tracer: Tracer | None = None,
    ) -> None:
        self.config = config
        self.credentials = config.credentials
        self.anonymous = self.credentials.is_anonymous
        self.enable_sha256 = payload_hash_enabled(
            self.credentials, config.use_ssl
        )
        self.user_agent = config.user_agent or DEFAULT_USER_AGENT
        self._signer = signer if signer is not None else SigV4Signer()
        self._owns_transport = transport is None
        self._transport: Transport = (
            transport
            if transport is not None
            else HttpxTransport(timeout_seconds=config.timeout_seconds)
        )
        self._region_lookup = region_lookup
        self._tracer = (
            tracer if tracer is not None else Tracer(config.enable_trace)
        )

    async def __aenter__(self) -> S3Client:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            await self._transport.aclose()

    # -----------------------------------------------------------------------
    # Request construction
    # -----------------------------------------------------------------------

    async def resolve_region(
        self, bucket: str | None, region: str | None = None
    ) -> str:
        """Return the region to sign a request for ``bucket`` with."""
        if region:
            return region
        if self.config.region:
            return self.config.region
        if bucket is not None and self._region_lookup is not None:
            found = self._region_lookup.resolve_bucket_region(bucket)
            if inspect.isawaitable(found):
                found = await found
            if found:
                return found
        return DEFAULT_REGION

    def get_request_url(
        self,
        bucket: str | None,
        object_name: str | None,
        region: str,
        resource: str | None = None,
        queries: Mapping[str, QueryValue] | None = None,
    ) -> httpx.URL:
        """Resolve the URL of an operation against the configured endpoint."""
        return resolve_url(
            self.config.endpoint,
            self.config.use_ssl,
            self.config.path_style,
            region,
            bucket=bucket,
            object_name=object_name,
            resource=resource,
            queries=queries,
            port=self.config.port,
        )

    def get_base_request(
        self,
        method: str,
        bucket: str | None,
        object_name: str | None,
        region: str,
        resource: str | None = None,
        queries: Mapping[str, QueryValue] | None = None,
        headers: Mapping[str, str] | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> OutboundRequest:
        """Build an unsigned request with ``host`` and caller headers set."""
        url = self.get_request_url(
            bucket, object_name, region, resource, queries
        )
        request = OutboundRequest(
            method.upper(),
            url,
            on_progress=on_progress,
            cancel_token=cancel_token,
        )
        request.headers["host"] = build_authority(
            url.host, url.port, self.config.use_ssl
        )
        if headers:
            request.headers.update(
                {name.lower(): value for name, value in headers.items()}
            )
        return request

    async def prepare(
        self,
        method: str,
        bucket: str | None = None,
        object_name: str | None = None,
        region: str | None = None,
        resource: str | None = None,
        payload: object = b"",
        queries: Mapping[str, QueryValue] | None = None,
        headers: Mapping[str, str] | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> OutboundRequest:
        """Build and sign a request without sending it.

        Raises:
            ConfigError: If the endpoint cannot be addressed.
            TypeError: If the payload or a query value is unsupported.
        """
        region = await self.resolve_region(bucket, region)
        request = self.get_base_request(
            method,
            bucket,
            object_name,
            region,
            resource,
            queries,
            headers,
            on_progress,
            cancel_token,
        )
        request.body = as_payload(payload)
        if self.enable_sha256 and isinstance(request.body, StreamPayload):
            request.body = await buffer_payload(request.body)

        if self.credentials.is_expired:
            logger.warning(
                "Credentials for %s expire at %s, signing anyway",
                self.credentials.access_key,
                self.credentials.expiration,
            )

        sign_request(
            request,
            self.credentials,
            region,
            datetime.now(UTC),
            enable_sha256=self.enable_sha256,
            signer=self._signer,
            user_agent=self.user_agent,
        )
        self._tracer.trace_request(request)
        return request

    # -----------------------------------------------------------------------
    # Dispatch
    # -----------------------------------------------------------------------

    async def send(self, request: OutboundRequest) -> TransportResponse:
        """Send a prepared request.  Never raises for transport faults."""
        logger.debug("Dispatching %s %s", request.method, request.url)
        try:
            return await self._transport.send(request)
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            logger.warning(
                "Transport raised for %s %s: %s",
                request.method,
                request.url,
                reason,
            )
            return TransportResponse.failed(request, reason)

    async def execute(
        self,
        method: str,
        bucket: str | None = None,
        object_name: str | None = None,
        region: str | None = None,
        resource: str | None = None,
        payload: object = b"",
        queries: Mapping[str, QueryValue] | None = None,
        headers: Mapping[str, str] | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> NormalizedResponse:
        """Run one operation and return the fully buffered response.

        Args:
            method: HTTP method.
            bucket: Bucket name.
            object_name: Object key.
            region: Region to sign for.  Resolved when omitted.
            resource: Pre-encoded query fragment (e.g. ``uploadId=...``).
            payload: Request body: bytes, str, an (async) iterable of
                bytes, or a payload variant.
            queries: Query parameters, percent-encoded here.
            headers: Extra request headers.
            on_progress: Receives cumulative byte counts.
            cancel_token: Aborts the operation when triggered.

        Returns:
            The response, also for transport failures (status 0).

        Raises:
            ConfigError: If the endpoint cannot be addressed.
            TypeError: If the payload or a query value is unsupported.
        """
        request = await self.prepare(
            method,
            bucket,
            object_name,
            region,
            resource,
            payload,
            queries,
            headers,
            on_progress,
            cancel_token,
        )
        response = await normalize(await self.send(request))
        self._tracer.trace_response(response)
        return response

    request = execute

    async def request_stream(
        self,
        method: str,
        bucket: str | None = None,
        object_name: str | None = None,
        region: str | None = None,
        resource: str | None = None,
        payload: object = b"",
        queries: Mapping[str, QueryValue] | None = None,
        headers: Mapping[str, str] | None = None,
        cancel_token: CancelToken | None = None,
    ) -> NormalizedResponse:
        """Run one download-style operation without progress reporting.

        The body is still accumulated before returning; use ``stream()``
        to read it incrementally.
        """
        return await self.execute(
            method,
            bucket,
            object_name,
            region,
            resource,
            payload,
            queries,
            headers,
            cancel_token=cancel_token,
        )

    @asynccontextmanager
    async def stream(
        self,
        method: str,
        bucket: str | None = None,
        object_name: str | None = None,
        region: str | None = None,
        resource: str | None = None,
        payload: object = b"",
        queries: Mapping[str, QueryValue] | None = None,
        headers: Mapping[str, str] | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> AsyncIterator[StreamingResponse]:
        """Run one operation and expose the body without buffering it.

        Usage::

            async with client.stream("GET", "bucket", "key") as response:
                async for chunk in response.aiter_bytes():
                    ...
        """
        request = await self.prepare(
            method,
            bucket,
            object_name,
            region,
            resource,
            payload,
            queries,
            headers,
            on_progress,
            cancel_token,
        )
        response = StreamingResponse(await self.send(request))
        self._tracer.trace_stream(response)
        try:
            yield response
        finally:
            await response.aclose()
