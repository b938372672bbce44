# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Request/response dumps for debugging.

When tracing is enabled in ``ClientConfig``, every signed request and every
normalized response is written to the ``s3wire.trace`` logger at INFO
level.  Signatures and session tokens are masked.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from s3wire.logging import REDACTED, SecretFilter
from s3wire.request import BytesPayload, EmptyPayload, OutboundRequest
from s3wire.response import NormalizedResponse, StreamingResponse
from s3wire.sigv4 import parse_auth_header


logger = logging.getLogger(__name__)

#: Text bodies up to this size are included in response dumps.
MAX_TEXT_BODY = 4096

_TEXT_TYPES = ("text/", "application/xml", "application/json")


def _mask_header(name: str, value: str) -> str:
    if name == "x-amz-security-token":
        return REDACTED
    if name == "authorization":
        parsed = parse_auth_header(value)
        if parsed is None:
            return REDACTED
        return (
            f"{parsed.algorithm} Credential={parsed.key_id}/{parsed.scope}, "
            f"SignedHeaders={parsed.signed_headers}, Signature={REDACTED}"
        )
    return value


def _format_headers(headers: Mapping[str, str]) -> list[str]:
    return [
        f"{name}: {_mask_header(name.lower(), value)}"
        for name, value in headers.items()
    ]


def format_request(request: OutboundRequest) -> str:
    """Render method, URL, headers and a body summary."""
    lines = [f"REQUEST: {request.method} {request.url}"]
    lines.extend(_format_headers(request.headers))
    if isinstance(request.body, EmptyPayload):
        lines.append("<empty body>")
    elif isinstance(request.body, BytesPayload):
        lines.append(f"<body of {request.body.size} bytes>")
    else:
        lines.append("<streamed body>")
    return SecretFilter.redact("\n".join(lines))


def format_response(response: NormalizedResponse) -> str:
    """Render status, headers and the body (text) or its size."""
    lines = [f"RESPONSE: {response.status_code} {response.reason_phrase}"]
    lines.extend(_format_headers(response.headers))
    content_type = response.headers.get("content-type", "")
    body = response.body_bytes
    if not body:
        lines.append("<empty body>")
    elif content_type.startswith(_TEXT_TYPES) and len(body) <= MAX_TEXT_BODY:
        lines.append(body.decode("utf-8", errors="replace"))
    else:
        lines.append(f"<body of {len(body)} bytes>")
    return SecretFilter.redact("\n".join(lines))


class Tracer:
    """Writes request and response dumps when enabled.

    Attributes:
        enabled: Tracing switch, taken from ``ClientConfig.enable_trace``.
    """

    def __init__(self, enabled: bool, sink: logging.Logger = logger) -> None:
        self.enabled = enabled
        self._sink = sink

    def trace_request(self, request: OutboundRequest) -> None:
        if self.enabled:
            self._sink.info("%s", format_request(request))

    def trace_response(self, response: NormalizedResponse) -> None:
        if self.enabled:
            self._sink.info("%s", format_response(response))

    def trace_stream(self, response: StreamingResponse) -> None:
        """Dump the status line and headers of an unbuffered response."""
        if not self.enabled:
            return
        lines = [f"RESPONSE: {response.status_code} {response.reason_phrase}"]
        lines.extend(_format_headers(response.headers))
        lines.append("<streamed body>")
        self._sink.info("%s", SecretFilter.redact("\n".join(lines)))
