# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Signing invocation.

Adds the headers every signed S3 request carries and asks a ``Signer`` for
the ``authorization`` value:

- ``user-agent``
- ``x-amz-date`` (ISO-8601 basic format, UTC)
- ``x-amz-content-sha256`` (payload hash or ``UNSIGNED-PAYLOAD``)
- ``x-amz-security-token`` (only with a session token)
- ``authorization`` (last, since it covers the headers above)

The signature algorithm itself lives behind the ``Signer`` protocol; see
``s3wire.sigv4`` for the default implementation.

Payload hashing is enabled only for signed requests over plain HTTP.  Over
TLS the body is sent as ``UNSIGNED-PAYLOAD``.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from s3wire.request import BytesPayload, EmptyPayload, Payload, StreamPayload


if TYPE_CHECKING:
    from s3wire.credentials import Credentials
    from s3wire.request import OutboundRequest


logger = logging.getLogger(__name__)

UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"

_SHA256_EMPTY = hashlib.sha256(b"").hexdigest()


class Signer(Protocol):
    """Computes the ``authorization`` header value of a request."""

    def sign(
        self,
        credentials: Credentials,
        request: OutboundRequest,
        timestamp: datetime,
        region: str,
    ) -> str: ...


def make_date_long(timestamp: datetime) -> str:
    """Format ``timestamp`` as ``YYYYMMDDTHHMMSSZ`` in UTC."""
    return _as_utc(timestamp).strftime("%Y%m%dT%H%M%SZ")


def make_date_short(timestamp: datetime) -> str:
    """Format ``timestamp`` as ``YYYYMMDD`` in UTC."""
    return _as_utc(timestamp).strftime("%Y%m%d")


def _as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=UTC)
    return timestamp.astimezone(UTC)


def sha256_hex(payload: Payload) -> str:
    """Return the hex SHA-256 digest of an in-memory payload.

    Raises:
        ValueError: If the payload is a stream; buffer it first.
    """
    if isinstance(payload, EmptyPayload):
        return _SHA256_EMPTY
    if isinstance(payload, BytesPayload):
        return hashlib.sha256(payload.data).hexdigest()
    raise ValueError("Cannot hash a streaming payload without buffering it")


def payload_hash_enabled(credentials: Credentials, use_ssl: bool) -> bool:
    """Return True if the payload must be hashed into the signature.

    Anonymous requests are never hashed; signed requests are hashed only
    when the connection is not encrypted.
    """
    return not credentials.is_anonymous and not use_ssl


def sign_request(
    request: OutboundRequest,
    credentials: Credentials,
    region: str,
    timestamp: datetime,
    *,
    enable_sha256: bool,
    signer: Signer,
    user_agent: str,
) -> OutboundRequest:
    """Add the signing headers and the ``authorization`` header.

    The request is modified in place and returned.  The ``host`` header is
    expected to be set already.

    Args:
        request: Request to sign.
        credentials: Credentials of the client.
        region: Region of the request.
        timestamp: Signing time, also sent as ``x-amz-date``.
        enable_sha256: Hash the payload instead of sending
            ``UNSIGNED-PAYLOAD``.
        signer: Computes the ``authorization`` value.
        user_agent: Value of the ``user-agent`` header.

    Returns:
        The same request.

    Raises:
        ValueError: If hashing is enabled and the body is still a stream.
    """
    if enable_sha256 and isinstance(request.body, StreamPayload):
        raise ValueError("Streaming payloads must be buffered before hashing")

    content_sha256 = (
        sha256_hex(request.body) if enable_sha256 else UNSIGNED_PAYLOAD
    )
    request.headers["user-agent"] = user_agent
    request.headers["x-amz-date"] = make_date_long(timestamp)
    request.headers["x-amz-content-sha256"] = content_sha256

    if credentials.session_token is not None:
        request.headers["x-amz-security-token"] = credentials.session_token

    if credentials.is_anonymous:
        logger.debug("Anonymous request, not signing %s", request.url)
        return request

    request.headers["authorization"] = signer.sign(
        credentials, request, timestamp, region
    )
    return request
