# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Access credentials and their expiry policy."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from s3wire.logging import SecretFilter


#: Credentials count as expired this long before their real expiration, so a
#: session token never dies while a signed request is in flight.
EXPIRY_MARGIN = timedelta(minutes=15)


@dataclass(frozen=True)
class Credentials:
    """Identity and secret used to sign requests.

    Attributes:
        access_key: Access key ID. Empty for anonymous access.
        secret_key: Secret access key. Empty for anonymous access.
        session_token: STS session token, sent as ``x-amz-security-token``
            (AWS specific).
        expiration: When the session token expires (AWS specific).  Naive
            datetimes are taken to be UTC.
    """

    access_key: str
    secret_key: str = field(repr=False)
    session_token: str | None = field(default=None, repr=False)
    expiration: datetime | None = None

    def __post_init__(self) -> None:
        if self.expiration is not None and self.expiration.tzinfo is None:
            object.__setattr__(
                self, "expiration", self.expiration.replace(tzinfo=UTC)
            )
        SecretFilter.register_secret(self.secret_key)
        SecretFilter.register_secret(self.session_token)

    @classmethod
    def anonymous(cls) -> Credentials:
        """Return credentials that sign nothing."""
        return cls("", "")

    @property
    def is_anonymous(self) -> bool:
        """True when both the access key and the secret key are empty."""
        return not self.access_key and not self.secret_key

    @property
    def has_session_token(self) -> bool:
        return self.session_token is not None

    @property
    def has_expiration(self) -> bool:
        return self.expiration is not None

    @property
    def is_expired(self) -> bool:
        """True if the credentials expire within ``EXPIRY_MARGIN`` from now.

        Credentials without an expiration never expire.
        """
        return self.expires_before(datetime.now(UTC) + EXPIRY_MARGIN)

    def expires_before(self, instant: datetime) -> bool:
        """Return True if an expiration is set and falls before ``instant``."""
        if self.expiration is None:
            return False
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=UTC)
        return self.expiration < instant
