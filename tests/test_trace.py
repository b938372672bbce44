# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for s3wire/trace.py."""

from unittest.mock import MagicMock

import httpx

from s3wire.logging import REDACTED, SecretFilter
from s3wire.request import BytesPayload, OutboundRequest, StreamPayload
from s3wire.response import NormalizedResponse, fold_headers
from s3wire.trace import MAX_TEXT_BODY, Tracer, format_request, format_response


AUTH = (
    "AWS4-HMAC-SHA256 Credential=AKID/20260101/us-east-1/s3/aws4_request, "
    "SignedHeaders=host;x-amz-date, Signature=0123abcd"
)


def _request(**headers: str) -> OutboundRequest:
    return OutboundRequest(
        "GET", httpx.URL("http://localhost/b/k"), headers=dict(headers)
    )


class TestFormatRequest:
    """Tests for format_request."""

    def test_signature_masked(self) -> None:
        """The signature is hidden, the credential scope kept."""
        text = format_request(_request(authorization=AUTH))
        assert "REQUEST: GET http://localhost/b/k" in text
        assert "Credential=AKID/20260101/us-east-1/s3/aws4_request" in text
        assert f"Signature={REDACTED}" in text
        assert "0123abcd" not in text

    def test_unparseable_authorization(self) -> None:
        """Unknown authorization schemes are hidden completely."""
        text = format_request(_request(authorization="Basic dXNlcg=="))
        assert f"authorization: {REDACTED}" in text

    def test_security_token_masked(self) -> None:
        """Session tokens are hidden."""
        headers = {"x-amz-security-token": "FQoGZXIvYXdzE"}
        text = format_request(_request(**headers))
        assert "FQoGZXIvYXdzE" not in text

    def test_body_summary(self) -> None:
        """Bodies are summarised, not dumped."""
        request = _request()
        assert "<empty body>" in format_request(request)
        request.body = BytesPayload(b"secret data")
        assert "<body of 11 bytes>" in format_request(request)
        request.body = StreamPayload([b"x"])
        assert "<streamed body>" in format_request(request)

    def test_registered_secrets_redacted(self) -> None:
        """Registered secrets never appear."""
        SecretFilter.register_secret("hunter2")
        text = format_request(_request(**{"x-custom": "hunter2"}))
        assert "hunter2" not in text


class TestFormatResponse:
    """Tests for format_response."""

    def test_text_body_included(self) -> None:
        """Small XML bodies are dumped."""
        response = NormalizedResponse(
            404,
            body_bytes=b"<Error><Code>NoSuchKey</Code></Error>",
            headers=fold_headers([("content-type", "application/xml")]),
            reason_phrase="Not Found",
        )
        text = format_response(response)
        assert text.startswith("RESPONSE: 404 Not Found")
        assert "<Code>NoSuchKey</Code>" in text

    def test_binary_body_summarised(self) -> None:
        """Binary bodies are summarised."""
        response = NormalizedResponse(
            200,
            body_bytes=b"\x00\x01\x02",
            headers=fold_headers([("content-type", "image/png")]),
        )
        assert "<body of 3 bytes>" in format_response(response)

    def test_large_text_summarised(self) -> None:
        """Text bodies above the limit are summarised."""
        body = b"a" * (MAX_TEXT_BODY + 1)
        response = NormalizedResponse(
            200,
            body_bytes=body,
            headers=fold_headers([("content-type", "text/plain")]),
        )
        assert f"<body of {len(body)} bytes>" in format_response(response)

    def test_empty_body(self) -> None:
        """Empty bodies are marked."""
        assert "<empty body>" in format_response(NormalizedResponse(204))


class TestTracer:
    """Tests for Tracer."""

    def test_disabled_is_silent(self) -> None:
        """A disabled tracer writes nothing."""
        sink = MagicMock()
        tracer = Tracer(False, sink)
        tracer.trace_request(_request())
        tracer.trace_response(NormalizedResponse(200))
        sink.info.assert_not_called()

    def test_enabled_writes(self) -> None:
        """An enabled tracer writes one record per dump."""
        sink = MagicMock()
        tracer = Tracer(True, sink)
        tracer.trace_request(_request())
        tracer.trace_response(NormalizedResponse(200))
        assert sink.info.call_count == 2
