# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Request URL resolution for S3-compatible endpoints.

Maps a configured host plus (bucket, object, resource, query parameters) to
a fully qualified URL.  Two addressing styles exist:

* **path-style**: ``http://host/bucket/object``.  The default for arbitrary
  S3-compatible servers, which rarely route bucket subdomains.
* **virtual-hosted-style**: ``http://bucket.host/object``.  Chosen
  automatically for Amazon S3 endpoints whenever the bucket name is a valid
  DNS label.

Amazon endpoints are also rewritten to the canonical regional endpoint of
the request's region.

Percent-encoding follows RFC 3986 (unreserved characters ``A-Z a-z 0-9 - _ .
~`` pass through, everything else becomes ``%XX`` over the UTF-8 bytes).  The
query string built here is exactly what goes on the wire, and the signer
canonicalizes from it, so the two must use the same rules.
"""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Iterable, Mapping

import httpx

from s3wire.config import ConfigError


QueryValue = str | int | bool | Iterable[str] | None

_UNRESERVED = frozenset(
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~"
)

#: ``s3.amazonaws.com``, ``s3.<region>.amazonaws.com``,
#: ``s3-<region>.amazonaws.com``, dualstack and China partition variants.
_AMAZON_ENDPOINT_RE = re.compile(
    r"^s3(?:\.dualstack)?(?:[.-][a-z]{2}(?:-[a-z]+)+-\d+)?"
    r"\.amazonaws\.com(?:\.cn)?$"
)

_BUCKET_CHARS_RE = re.compile(r"^[a-z0-9][a-z0-9.-]*[a-z0-9]$")

# Reserved by S3 for access points and other internal names.
_RESERVED_PREFIXES = ("xn--", "sthree-")
_RESERVED_SUFFIXES = ("-s3alias", "--ol-s3")

_DEFAULT_PORTS = {"http": 80, "https": 443}


def uri_encode(value: str, *, encode_slash: bool = True) -> str:
    """Percent-encode ``value`` with the RFC 3986 unreserved set.

    Args:
        value: String to encode.
        encode_slash: If False, ``/`` is left as is (object keys).

    Returns:
        Encoded string with upper-case hex escapes.
    """
    result: list[str] = []
    for byte in value.encode("utf-8"):
        if byte in _UNRESERVED or (byte == 0x2F and not encode_slash):
            result.append(chr(byte))
        else:
            result.append(f"%{byte:02X}")
    return "".join(result)


def encode_object_key(key: str) -> str:
    """Percent-encode an object key for use as a URL path.

    Separators are kept.  Segments that are exactly ``.`` or ``..`` have
    their dots escaped so no URL library collapses them; the server decodes
    them back to the literal key.
    """
    segments = uri_encode(key, encode_slash=False).split("/")
    return "/".join(
        s.replace(".", "%2E") if s in (".", "..") else s for s in segments
    )


def encode_queries(queries: Mapping[str, QueryValue]) -> str:
    """Serialize a query mapping as ``key=value`` pairs joined with ``&``.

    Pairs keep the mapping's iteration order.  A None value emits the bare
    key; a list or tuple emits the key once per element.  Booleans are
    written as ``true`` or ``false``.

    Raises:
        TypeError: If a value is not a string, int, None or a sequence of
            strings.
    """
    pairs: list[str] = []
    for key, value in queries.items():
        name = uri_encode(key)
        if value is None:
            pairs.append(name)
        elif isinstance(value, bool):
            pairs.append(f"{name}={str(value).lower()}")
        elif isinstance(value, (str, int)):
            pairs.append(f"{name}={uri_encode(str(value))}")
        elif isinstance(value, (list, tuple)):
            pairs.extend(f"{name}={uri_encode(str(v))}" for v in value)
        else:
            raise TypeError(
                f"Unsupported query value for {key!r}: "
                f"{type(value).__name__}"
            )
    return "&".join(pairs)


def is_amazon_endpoint(host: str) -> bool:
    """Return True if ``host`` is an Amazon S3 service endpoint."""
    return _AMAZON_ENDPOINT_RE.match(host.lower()) is not None


def get_s3_endpoint(region: str) -> str:
    """Return the canonical Amazon S3 endpoint for ``region``."""
    if region == "us-east-1":
        return "s3.amazonaws.com"
    if region.startswith("cn-"):
        return f"s3.{region}.amazonaws.com.cn"
    return f"s3.{region}.amazonaws.com"


def is_virtual_host_compatible(bucket: str, use_ssl: bool) -> bool:
    """Return True if ``bucket`` can be used as a DNS label of the host.

    Over TLS a dotted bucket name is rejected as well: the endpoint's
    wildcard certificate only covers a single extra label.
    """
    if not 3 <= len(bucket) <= 63:
        return False
    if not _BUCKET_CHARS_RE.match(bucket):
        return False
    if ".." in bucket or ".-" in bucket or "-." in bucket:
        return False
    if bucket.startswith(_RESERVED_PREFIXES):
        return False
    if bucket.endswith(_RESERVED_SUFFIXES):
        return False
    if use_ssl and "." in bucket:
        return False
    try:
        ipaddress.IPv4Address(bucket)
    except ValueError:
        return True
    return False


def build_authority(host: str, port: int | None, use_ssl: bool) -> str:
    """Return ``host`` or ``host:port`` as sent in the ``host`` header.

    The port is omitted when it is the scheme's default.
    """
    scheme = "https" if use_ssl else "http"
    if port is None or port == _DEFAULT_PORTS[scheme]:
        return host
    return f"{host}:{port}"


def resolve_url(
    host: str,
    use_ssl: bool,
    path_style: bool | None,
    region: str | None,
    bucket: str | None = None,
    object_name: str | None = None,
    resource: str | None = None,
    queries: Mapping[str, QueryValue] | None = None,
    port: int | None = None,
) -> httpx.URL:
    """Build the fully qualified URL for an S3 operation.

    Args:
        host: Configured endpoint host name (no scheme, no port).
        use_ssl: Use ``https`` instead of ``http``.
        path_style: Caller preference for path-style addressing.  None
            means path-style.  Ignored for Amazon endpoints.
        region: Region of the request.  Required for Amazon endpoints.
        bucket: Bucket name.
        object_name: Object key.  ``/`` separators are kept, ``.`` and ``..``
            segments are not normalized.
        resource: Pre-encoded query fragment placed first (e.g.
            ``uploadId=abc``).
        queries: Query parameters appended after ``resource``.
        port: Configured port.  None uses the scheme default.

    Returns:
        The request URL.

    Raises:
        ConfigError: If an Amazon endpoint is used without a region.
    """
    host = host.lower()

    if is_amazon_endpoint(host):
        if not region:
            raise ConfigError(
                f"A region is required to address Amazon endpoint {host}"
            )
        host = get_s3_endpoint(region)
        virtual_host = bucket is not None and is_virtual_host_compatible(
            bucket, use_ssl
        )
    else:
        virtual_host = path_style is False

    segments: list[str] = []
    if virtual_host:
        if bucket is not None:
            host = f"{bucket}.{host}"
    elif bucket is not None:
        segments.append(uri_encode(bucket))
    if object_name is not None:
        segments.append(encode_object_key(object_name))
    path = "/" + "/".join(segments)

    query_parts: list[str] = []
    if resource:
        query_parts.append(resource)
    if queries:
        encoded = encode_queries(queries)
        if encoded:
            query_parts.append(encoded)
    query = "&".join(query_parts)

    scheme = "https" if use_ssl else "http"
    url = f"{scheme}://{build_authority(host, port, use_ssl)}{path}"
    if query:
        url = f"{url}?{query}"
    return httpx.URL(url)
