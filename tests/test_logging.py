# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for s3wire/logging.py."""

import logging
import sys
from collections.abc import Iterator

import pytest

from s3wire.logging import (
    HTTP_LOGGERS,
    REDACTED,
    SecretFilter,
    configure_logging,
)


def _record(msg: str, *args: object) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg=msg,
        args=args,
        exc_info=None,
    )


class TestSecretFilter:
    """Tests for SecretFilter class."""

    def test_filter_returns_true(self) -> None:
        """Filter should always return True (never suppress records)."""
        assert SecretFilter().filter(_record("test message")) is True

    def test_no_secrets_no_redaction(self) -> None:
        """Without registered secrets, messages pass through unchanged."""
        record = _record("key wJalrXUtnFEMI")
        SecretFilter().filter(record)
        assert record.msg == "key wJalrXUtnFEMI"

    def test_redacts_message(self) -> None:
        """Registered secrets are redacted from messages."""
        SecretFilter.register_secret("wJalrXUtnFEMI")
        record = _record("key wJalrXUtnFEMI")
        SecretFilter().filter(record)
        assert record.msg == f"key {REDACTED}"

    def test_redacts_args(self) -> None:
        """String arguments are redacted, others left alone."""
        SecretFilter.register_secret("tok3n")
        record = _record("%s %d", "tok3n", 5)
        SecretFilter().filter(record)
        assert record.args == (REDACTED, 5)
        assert record.getMessage() == f"{REDACTED} 5"

    def test_longest_secret_first(self) -> None:
        """A secret containing another is fully replaced."""
        SecretFilter.register_secret("abc")
        SecretFilter.register_secret("abcdef")
        assert SecretFilter.redact("xabcdefx") == f"x{REDACTED}x"

    def test_empty_and_none_ignored(self) -> None:
        """Empty strings and None are never registered."""
        SecretFilter.register_secret("")
        SecretFilter.register_secret(None)
        assert SecretFilter.redact("anything") == "anything"

    def test_clear(self) -> None:
        """clear_secrets() stops redaction."""
        SecretFilter.register_secret("s3cr3t")
        SecretFilter.clear_secrets()
        assert SecretFilter.redact("s3cr3t") == "s3cr3t"

    def test_regex_characters_escaped(self) -> None:
        """Secrets are matched literally."""
        SecretFilter.register_secret("a+b/c")
        assert SecretFilter.redact("aab/c a+b/c") == f"aab/c {REDACTED}"

    def test_redacts_mapping_args(self) -> None:
        """Mapping arguments are scrubbed too."""
        SecretFilter.register_secret("tok3n")
        record = _record("%(token)s", {"token": "tok3n"})
        SecretFilter().filter(record)
        assert record.getMessage() == REDACTED

    def test_redacts_traceback(self) -> None:
        """Secrets in exception messages do not leak through tracebacks."""
        SecretFilter.register_secret("wJalrXUtnFEMI")
        try:
            raise ValueError("bad key wJalrXUtnFEMI")
        except ValueError:
            record = _record("failed")
            record.exc_info = sys.exc_info()
        SecretFilter().filter(record)
        assert record.exc_text is not None
        assert "wJalrXUtnFEMI" not in record.exc_text
        assert REDACTED in record.exc_text


class TestConfigureLogging:
    """Tests for configure_logging."""

    @pytest.fixture(autouse=True)
    def _restore_root(self) -> Iterator[None]:
        root = logging.getLogger()
        handlers = root.handlers[:]
        level = root.level
        http_levels = {
            name: logging.getLogger(name).level for name in HTTP_LOGGERS
        }
        yield
        root.handlers[:] = handlers
        root.setLevel(level)
        for name, http_level in http_levels.items():
            logging.getLogger(name).setLevel(http_level)

    def test_single_handler(self) -> None:
        """Existing handlers are replaced by one stderr handler."""
        configure_logging(level=logging.DEBUG)
        configure_logging(level=logging.DEBUG)
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG

    def test_secret_filter_installed(self) -> None:
        """The redaction filter is on the handler by default."""
        configure_logging()
        handler = logging.getLogger().handlers[0]
        assert any(isinstance(f, SecretFilter) for f in handler.filters)

    def test_secret_filter_optional(self) -> None:
        """The filter can be left out."""
        configure_logging(redact_secrets=False)
        assert logging.getLogger().handlers[0].filters == []

    def test_custom_format(self) -> None:
        """A custom format string is used."""
        configure_logging(fmt="%(message)s")
        formatter = logging.getLogger().handlers[0].formatter
        assert formatter is not None
        assert formatter._fmt == "%(message)s"

    def test_http_loggers_quiet_by_default(self) -> None:
        """httpx and httpcore only log warnings unless asked."""
        configure_logging(level=logging.DEBUG)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_http_level_never_below_root(self) -> None:
        """A low http_level does not undercut the root level."""
        configure_logging(level=logging.ERROR, http_level=logging.DEBUG)
        assert logging.getLogger("httpx").level == logging.ERROR
