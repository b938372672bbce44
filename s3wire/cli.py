# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Command line entry point: send one signed request and print the result.

Examples::

    s3wire GET my-bucket --query list-type=2
    s3wire PUT my-bucket hello.txt --data ./hello.txt
    s3wire GET my-bucket hello.txt --trace > hello.txt

The status line and response headers go to stderr, the body to stdout.
Ctrl-C cancels the in-flight request.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import signal
import sys
from pathlib import Path

from s3wire.client import S3Client
from s3wire.config import ClientConfig, ConfigError
from s3wire.logging import configure_logging
from s3wire.request import CancelToken


logger = logging.getLogger(__name__)


def _parse_pairs(values: list[str], sep: str, what: str) -> dict[str, str]:
    """Split ``key<sep>value`` arguments into a dict.

    Raises:
        ValueError: If an argument has no separator.
    """
    pairs: dict[str, str] = {}
    for item in values:
        key, found, value = item.partition(sep)
        if not found:
            raise ValueError(f"Invalid {what} {item!r}, expected KEY{sep}VALUE")
        pairs[key.strip()] = value.strip() if sep == ":" else value
    return pairs


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3wire",
        description="Send one signed request to an S3-compatible endpoint.",
    )
    parser.add_argument("method", help="HTTP method (GET, PUT, ...)")
    parser.add_argument("bucket", nargs="?", default=None, help="Bucket name")
    parser.add_argument(
        "object_name", nargs="?", default=None, help="Object key"
    )
    parser.add_argument(
        "--query",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Query parameter (repeatable)",
    )
    parser.add_argument(
        "--resource",
        default=None,
        help="Pre-encoded query fragment placed before --query values",
    )
    parser.add_argument(
        "--header",
        action="append",
        default=[],
        metavar="NAME:VALUE",
        help="Extra request header (repeatable)",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=None,
        metavar="FILE",
        help="Send the contents of FILE as the request body",
    )
    parser.add_argument(
        "--region", default=None, help="Region to sign the request for"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help=(
            "Path to s3wire.yaml config file"
            " (default: ~/.config/s3wire/s3wire.yaml)"
        ),
    )
    parser.add_argument(
        "--trace", action="store_true", help="Dump requests and responses"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


async def _run(config: ClientConfig, args: argparse.Namespace) -> int:
    """Execute the request described by ``args``; return the exit code."""
    token = CancelToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel, "interrupted")
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers unavailable, Ctrl-C will not cancel")

    payload = args.data.read_bytes() if args.data is not None else b""

    async with S3Client(config) as client:
        response = await client.execute(
            args.method,
            bucket=args.bucket,
            object_name=args.object_name,
            region=args.region,
            resource=args.resource,
            payload=payload,
            queries=_parse_pairs(args.query, "=", "query") or None,
            headers=_parse_pairs(args.header, ":", "header") or None,
            cancel_token=token,
        )

    print(
        f"{response.status_code} {response.reason_phrase or ''}".rstrip(),
        file=sys.stderr,
    )
    for name, value in response.headers.items():
        print(f"{name}: {value}", file=sys.stderr)
    sys.stdout.buffer.write(response.body_bytes)
    sys.stdout.flush()
    return 0 if response.ok else 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments. If None, uses sys.argv[1:].

    Returns:
        Exit code (0=2xx response, 1=other response, 2=config or usage
        error).
    """
    args = _build_parser().parse_args(argv)

    if args.verbose:
        configure_logging(logging.DEBUG, http_level=logging.DEBUG)
    else:
        configure_logging(logging.INFO)

    try:
        config = ClientConfig.from_yaml(config_path=args.config)
        if args.trace:
            config = dataclasses.replace(config, enable_trace=True)
        return asyncio.run(_run(config, args))
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 2
    except (ValueError, TypeError, OSError) as e:
        logger.error("%s", e)
        return 2


def cli() -> None:
    """Console script entry point."""
    sys.exit(main())
