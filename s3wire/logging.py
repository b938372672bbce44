# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Log redaction for S3 credentials.

Building a ``Credentials`` object registers its secret key and session
token with ``SecretFilter``.  From then on neither value reaches a handler
carrying the filter, nor a request dump produced by ``s3wire.trace``.

Library modules log through ``logging.getLogger(__name__)`` and leave
handler setup to the application; the ``s3wire`` command calls
``configure_logging()`` once at start-up.
"""

import logging
import re
from collections.abc import Mapping
from typing import ClassVar


#: Replacement text for redacted secrets.
REDACTED = "[REDACTED]"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

#: Loggers of the HTTP stack; httpx logs every request at INFO.
HTTP_LOGGERS = ("httpx", "httpcore")


class SecretFilter(logging.Filter):
    """Replaces registered secrets in log records with ``[REDACTED]``.

    The registry is process-wide, so one filter instance on a handler
    covers every client in the process.  The message, string arguments
    (positional or mapping) and any formatted traceback are scrubbed.
    """

    _secrets: ClassVar[set[str]] = set()
    _pattern: ClassVar[re.Pattern[str] | None] = None

    def filter(self, record: logging.LogRecord) -> bool:
        pattern = self._pattern
        if pattern is None:
            return True

        record.msg = pattern.sub(REDACTED, str(record.msg))
        if isinstance(record.args, Mapping):
            record.args = {
                key: self._scrub(pattern, value)
                for key, value in record.args.items()
            }
        elif record.args:
            record.args = tuple(
                self._scrub(pattern, arg) for arg in record.args
            )
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(
                record.exc_info
            )
        if record.exc_text:
            record.exc_text = pattern.sub(REDACTED, record.exc_text)
        return True

    @staticmethod
    def _scrub(pattern: re.Pattern[str], value: object) -> object:
        if isinstance(value, str):
            return pattern.sub(REDACTED, value)
        return value

    @classmethod
    def redact(cls, text: str) -> str:
        """Return ``text`` with every registered secret replaced."""
        if cls._pattern is None:
            return text
        return cls._pattern.sub(REDACTED, text)

    @classmethod
    def register_secret(cls, secret: str | None) -> None:
        """Add ``secret`` to the registry.  Empty values are ignored."""
        if not secret or secret in cls._secrets:
            return
        cls._secrets.add(secret)
        # Longest first so a secret containing another is fully replaced.
        ordered = sorted(cls._secrets, key=len, reverse=True)
        cls._pattern = re.compile("|".join(re.escape(s) for s in ordered))

    @classmethod
    def clear_secrets(cls) -> None:
        """Forget every registered secret.  Used by tests."""
        cls._secrets.clear()
        cls._pattern = None


def configure_logging(
    level: int = logging.INFO,
    *,
    fmt: str = DEFAULT_FORMAT,
    redact_secrets: bool = True,
    http_level: int = logging.WARNING,
) -> None:
    """Install a single stderr handler on the root logger.

    Handlers already on the root logger are removed, so calling this twice
    does not duplicate output.

    Args:
        level: Level of the root logger.
        fmt: Format string of the handler.
        redact_secrets: Attach a ``SecretFilter`` to the handler.
        http_level: Level of the httpx and httpcore loggers, never below
            ``level``.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt))
    if redact_secrets:
        handler.addFilter(SecretFilter())

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(max(level, http_level))
