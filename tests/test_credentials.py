# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for s3wire/credentials.py."""

from dataclasses import FrozenInstanceError
from datetime import UTC, datetime, timedelta

import pytest

from s3wire.credentials import EXPIRY_MARGIN, Credentials
from s3wire.logging import SecretFilter


class TestCredentials:
    """Tests for Credentials construction."""

    def test_anonymous(self) -> None:
        """Empty keys make anonymous credentials."""
        creds = Credentials.anonymous()
        assert creds.is_anonymous
        assert not creds.has_session_token
        assert not creds.has_expiration

    def test_signed(self) -> None:
        """Non-empty keys are not anonymous."""
        creds = Credentials("AKID", "secret")
        assert not creds.is_anonymous

    def test_secret_not_in_repr(self) -> None:
        """Secret key and session token never appear in repr."""
        creds = Credentials("AKID", "s3cr3t", session_token="tok3n")
        text = repr(creds)
        assert "AKID" in text
        assert "s3cr3t" not in text
        assert "tok3n" not in text

    def test_registers_secrets(self) -> None:
        """Secrets are registered for log redaction."""
        Credentials("AKID", "s3cr3t", session_token="tok3n")
        assert SecretFilter.redact("s3cr3t tok3n") == "[REDACTED] [REDACTED]"

    def test_session_token(self) -> None:
        """has_session_token reflects the token."""
        creds = Credentials("AKID", "secret", session_token="token")
        assert creds.has_session_token

    def test_naive_expiration_is_utc(self) -> None:
        """A naive expiration is interpreted as UTC."""
        creds = Credentials(
            "AKID", "secret", expiration=datetime(2030, 1, 1, 12, 0)
        )
        assert creds.expiration == datetime(2030, 1, 1, 12, 0, tzinfo=UTC)

    def test_frozen(self) -> None:
        """Credentials are immutable."""
        creds = Credentials("AKID", "secret")
        with pytest.raises(FrozenInstanceError):
            creds.access_key = "other"  # type: ignore[misc]


class TestExpiry:
    """Tests for the expiry margin."""

    def test_margin_is_fifteen_minutes(self) -> None:
        """The margin is 15 minutes."""
        assert EXPIRY_MARGIN == timedelta(minutes=15)

    def test_no_expiration_never_expires(self) -> None:
        """Credentials without expiration are never expired."""
        assert not Credentials("AKID", "secret").is_expired

    def test_expires_within_margin(self) -> None:
        """Expiring in 10 minutes counts as expired."""
        creds = Credentials(
            "AKID",
            "secret",
            expiration=datetime.now(UTC) + timedelta(minutes=10),
        )
        assert creds.is_expired

    def test_expires_after_margin(self) -> None:
        """Expiring in 20 minutes is still valid."""
        creds = Credentials(
            "AKID",
            "secret",
            expiration=datetime.now(UTC) + timedelta(minutes=20),
        )
        assert not creds.is_expired

    def test_already_expired(self) -> None:
        """An expiration in the past is expired."""
        creds = Credentials(
            "AKID",
            "secret",
            expiration=datetime.now(UTC) - timedelta(hours=1),
        )
        assert creds.is_expired

    def test_expires_before(self) -> None:
        """expires_before compares against the given instant."""
        expiration = datetime(2030, 1, 1, tzinfo=UTC)
        creds = Credentials("AKID", "secret", expiration=expiration)
        assert creds.expires_before(expiration + timedelta(seconds=1))
        assert not creds.expires_before(expiration)
        assert not creds.expires_before(expiration - timedelta(days=1))

    def test_expires_before_naive_instant(self) -> None:
        """A naive instant is interpreted as UTC."""
        creds = Credentials(
            "AKID", "secret", expiration=datetime(2030, 1, 1, tzinfo=UTC)
        )
        assert creds.expires_before(datetime(2030, 1, 2))
