# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""AWS Signature Version 4 signer.

The default ``Signer`` used by ``S3Client``.  It computes the
``authorization`` header value for a fully populated ``OutboundRequest``:

1. canonical request (method, URI, query, headers, signed headers, payload
   hash)
2. string to sign (algorithm, timestamp, credential scope, hashed canonical
   request)
3. signing key derived from the secret key, date, region and service
4. HMAC-SHA256 signature

See https://docs.aws.amazon.com/IAM/latest/UserGuide/reference_sigv.html
"""

from __future__ import annotations

import hashlib
import hmac
import re
import urllib.parse
from datetime import datetime

from s3wire.credentials import Credentials
from s3wire.endpoint import uri_encode
from s3wire.request import OutboundRequest
from s3wire.signing import (
    UNSIGNED_PAYLOAD,
    make_date_long,
    make_date_short,
    sha256_hex,
)


ALGORITHM = "AWS4-HMAC-SHA256"

#: Headers never included in the signature.  The transport or proxies in
#: between may rewrite them.
IGNORED_HEADERS = frozenset(
    {
        "authorization",
        "content-length",
        "content-type",
        "expect",
        "user-agent",
        "x-amzn-trace-id",
    }
)

# Authorization header regex
_AUTH_HEADER_RE = re.compile(
    r"(?P<algorithm>AWS4-HMAC-SHA256)\s+"
    r"Credential=(?P<key_id>[^/]+)/(?P<scope>[^,]+),\s*"
    r"SignedHeaders=(?P<signed_headers>[^,]+),\s*"
    r"Signature=(?P<signature>[0-9a-f]+)"
)


# ---------------------------------------------------------------------------
# Parsed authorization header
# ---------------------------------------------------------------------------


class ParsedAuth:
    """Parsed SigV4 ``authorization`` header."""

    __slots__ = (
        "algorithm",
        "key_id",
        "scope",
        "signed_headers",
        "signature",
    )

    def __init__(
        self,
        algorithm: str,
        key_id: str,
        scope: str,
        signed_headers: str,
        signature: str,
    ) -> None:
        self.algorithm = algorithm
        self.key_id = key_id
        self.scope = scope
        self.signed_headers = signed_headers
        self.signature = signature

    @property
    def scope_parts(self) -> list[str]:
        """Split scope into date/region/service/aws4_request."""
        return self.scope.split("/")

    @property
    def region(self) -> str:
        """Region from credential scope."""
        return self.scope_parts[1]


def parse_auth_header(auth_value: str) -> ParsedAuth | None:
    """Parse a SigV4 ``authorization`` header.

    Args:
        auth_value: Full header value.

    Returns:
        ParsedAuth if valid, None otherwise.
    """
    m = _AUTH_HEADER_RE.match(auth_value)
    if not m:
        return None
    return ParsedAuth(
        algorithm=m.group("algorithm"),
        key_id=m.group("key_id"),
        scope=m.group("scope"),
        signed_headers=m.group("signed_headers"),
        signature=m.group("signature"),
    )


# ---------------------------------------------------------------------------
# Canonical request construction
# ---------------------------------------------------------------------------


def canonical_uri(path: str) -> str:
    """Build the S3 canonical URI from a request path.

    S3 is single-encoded: any existing percent-encoding is decoded first,
    then the path is encoded once.  Double slashes and ``.``/``..``
    segments are preserved.
    """
    if not path:
        return "/"
    path = path.split("?")[0]
    return uri_encode(urllib.parse.unquote(path), encode_slash=False)


def canonical_query_string(query: str) -> str:
    """Build the canonical query string.

    Args:
        query: Raw query string (without leading ?).

    Returns:
        Query parameters encoded and sorted by name, then value.
    """
    if not query:
        return ""

    params = urllib.parse.parse_qsl(query, keep_blank_values=True)
    encoded = [(uri_encode(k), uri_encode(v)) for k, v in params]
    encoded.sort()
    return "&".join(f"{k}={v}" for k, v in encoded)


def canonical_headers_string(
    headers: dict[str, str], signed_headers_list: list[str]
) -> str:
    """Build the canonical headers block.

    Args:
        headers: Request headers (name -> value).
        signed_headers_list: Signed header names (lowercase).

    Returns:
        One ``name:value`` line per signed header, each newline-terminated.
    """
    lower_headers = {name.lower(): value for name, value in headers.items()}
    lines: list[str] = []
    for name in sorted(signed_headers_list):
        value = lower_headers.get(name, "")
        # Trim and collapse sequential spaces
        lines.append(f"{name}:{' '.join(value.split())}\n")
    return "".join(lines)


def signed_header_names(headers: dict[str, str]) -> list[str]:
    """Return the sorted, lower-case names of the headers to sign."""
    return sorted(
        {
            name.lower()
            for name in headers
            if name.lower() not in IGNORED_HEADERS
        }
    )


def build_canonical_request(
    method: str,
    path: str,
    query: str,
    headers: dict[str, str],
    signed_headers: str,
    payload_hash: str,
) -> str:
    """Build the canonical request string.

    Args:
        method: HTTP method.
        path: Request path as sent.
        query: Query string as sent (without leading ?).
        headers: Request headers.
        signed_headers: Semicolon-separated signed header names.
        payload_hash: Value of ``x-amz-content-sha256``.

    Returns:
        Canonical request string.
    """
    return "\n".join(
        [
            method.upper(),
            canonical_uri(path),
            canonical_query_string(query),
            canonical_headers_string(headers, signed_headers.split(";")),
            signed_headers,
            payload_hash,
        ]
    )


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------


def _hmac_sha256(key: bytes, msg: str | bytes) -> bytes:
    if isinstance(msg, str):
        msg = msg.encode("utf-8")
    return hmac.new(key, msg, hashlib.sha256).digest()


def derive_signing_key(
    secret_key: str, date: str, region: str, service: str
) -> bytes:
    """Derive the SigV4 signing key.

    Args:
        secret_key: Secret access key.
        date: Date string (YYYYMMDD).
        region: Region name.
        service: Service name.

    Returns:
        Derived signing key bytes.
    """
    k_date = _hmac_sha256(("AWS4" + secret_key).encode("utf-8"), date)
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, service)
    return _hmac_sha256(k_service, "aws4_request")


def credential_scope(date: str, region: str, service: str) -> str:
    return f"{date}/{region}/{service}/aws4_request"


def build_string_to_sign(
    timestamp: str, scope: str, canonical_request: str
) -> str:
    """Build the SigV4 string to sign.

    Args:
        timestamp: ``x-amz-date`` value.
        scope: Credential scope (date/region/service/aws4_request).
        canonical_request: The canonical request string.
    """
    return "\n".join(
        [
            ALGORITHM,
            timestamp,
            scope,
            hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
        ]
    )


def compute_signature(signing_key: bytes, string_to_sign: str) -> str:
    """Return the hex-encoded HMAC-SHA256 signature."""
    return hmac.new(
        signing_key, string_to_sign.encode("utf-8"), hashlib.sha256
    ).hexdigest()


class SigV4Signer:
    """Signs S3 requests with AWS Signature Version 4.

    Every header on the request is signed except ``IGNORED_HEADERS``, so
    the signer must run after all other headers are in place.

    Attributes:
        service: Service name in the credential scope.
    """

    def __init__(self, service: str = "s3") -> None:
        self.service = service

    def sign(
        self,
        credentials: Credentials,
        request: OutboundRequest,
        timestamp: datetime,
        region: str,
    ) -> str:
        """Return the ``authorization`` header value for ``request``.

        Args:
            credentials: Credentials to sign with.
            request: Request with every other header already set.
            timestamp: Signing time; must match ``x-amz-date``.
            region: Region of the credential scope.
        """
        payload_hash = request.headers.get("x-amz-content-sha256")
        if payload_hash is None:
            payload_hash = (
                UNSIGNED_PAYLOAD
                if request.body.size is None
                else sha256_hex(request.body)
            )

        names = signed_header_names(request.headers)
        signed_headers = ";".join(names)
        canonical_request = build_canonical_request(
            request.method,
            request.url.raw_path.decode("ascii").split("?")[0],
            request.url.query.decode("ascii"),
            request.headers,
            signed_headers,
            payload_hash,
        )

        date = make_date_short(timestamp)
        scope = credential_scope(date, region, self.service)
        string_to_sign = build_string_to_sign(
            make_date_long(timestamp), scope, canonical_request
        )
        signing_key = derive_signing_key(
            credentials.secret_key, date, region, self.service
        )
        signature = compute_signature(signing_key, string_to_sign)

        return (
            f"{ALGORITHM} Credential={credentials.access_key}/{scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )
