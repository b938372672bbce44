# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Request orchestration core for S3-compatible object storage.

Provides:
- Endpoint resolution with path-style and virtual-hosted-style addressing
- Request signing invocation (SigV4 by default)
- Dispatch over httpx with failures returned as responses
- Buffered and streamed response normalization
"""

from s3wire._version import VERSION
from s3wire.client import (
    DEFAULT_REGION,
    RegionLookup,
    S3Client,
    StaticRegionLookup,
)
from s3wire.config import ClientConfig, ConfigError
from s3wire.credentials import Credentials
from s3wire.request import (
    BytesPayload,
    CancelToken,
    EmptyPayload,
    OutboundRequest,
    Payload,
    StreamPayload,
)
from s3wire.response import NormalizedResponse, StreamingResponse
from s3wire.signing import UNSIGNED_PAYLOAD, Signer
from s3wire.sigv4 import SigV4Signer
from s3wire.transport import HttpxTransport, Transport, TransportResponse


__version__ = VERSION

__all__ = [
    "DEFAULT_REGION",
    "UNSIGNED_PAYLOAD",
    "BytesPayload",
    "CancelToken",
    "ClientConfig",
    "ConfigError",
    "Credentials",
    "EmptyPayload",
    "HttpxTransport",
    "NormalizedResponse",
    "OutboundRequest",
    "Payload",
    "RegionLookup",
    "S3Client",
    "SigV4Signer",
    "Signer",
    "StaticRegionLookup",
    "StreamPayload",
    "StreamingResponse",
    "Transport",
    "TransportResponse",
]
