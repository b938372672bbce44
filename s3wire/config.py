# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Client configuration.

A ``ClientConfig`` is built directly in code or loaded from a YAML file.  The
default file location follows the XDG Base Directory Specification:

    ``$XDG_CONFIG_HOME/s3wire/s3wire.yaml``
    (typically ``~/.config/s3wire/s3wire.yaml``)

``!env`` tags resolve values from environment variables, after ``.env``
files have been loaded (see ``s3wire.dotenv_loader``).  Example::

    endpoint: play.min.io
    port: 9000
    use_ssl: false
    region: us-east-1
    trace: false
    credentials:
      access_key: !env S3WIRE_ACCESS_KEY
      secret_key: !env S3WIRE_SECRET_KEY
      session_token: !env S3WIRE_SESSION_TOKEN

The configuration is read-only once built and may be shared by any number
of concurrent requests.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeVar, overload

import yaml
from platformdirs import user_config_path

from s3wire.credentials import Credentials
from s3wire.logging import SecretFilter


logger = logging.getLogger(__name__)

#: Application name for XDG path resolution.
_APP_NAME = "s3wire"

_BOOL_TRUTHY = frozenset({"true", "1", "yes", "on"})
_BOOL_FALSY = frozenset({"false", "0", "no", "off"})


class ConfigError(Exception):
    """Invalid or incomplete client configuration.

    Raised before any network attempt is made.
    """


def get_config_path() -> Path:
    """Return the default config file path.

    Uses XDG: ``$XDG_CONFIG_HOME/s3wire/s3wire.yaml``.
    """
    return user_config_path(_APP_NAME) / "s3wire.yaml"


def get_dotenv_path() -> Path:
    """Return the default ``.env`` file path inside the XDG config directory."""
    return user_config_path(_APP_NAME) / ".env"


# ---------------------------------------------------------------------------
# YAML tag placeholders
# ---------------------------------------------------------------------------


class _EnvVar:
    """Placeholder for an unresolved ``!env VAR_NAME`` tag."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvVar:
    """Handle ``!env VAR_NAME`` in YAML."""
    value = loader.construct_scalar(node)
    return _EnvVar(str(value))


def _make_loader() -> type[yaml.SafeLoader]:
    """Create a YAML loader that understands ``!env``."""

    class EnvLoader(yaml.SafeLoader):
        pass

    EnvLoader.add_constructor("!env", _env_constructor)
    return EnvLoader


# ---------------------------------------------------------------------------
# Value resolution
# ---------------------------------------------------------------------------


def _coerce_bool(value: object) -> bool:
    """Coerce a value to bool, handling string representations."""
    if isinstance(value, bool):
        return value
    s = str(value).lower().strip()
    if s in _BOOL_TRUTHY:
        return True
    if s in _BOOL_FALSY:
        return False
    raise ConfigError(f"Cannot convert {value!r} to bool")


def _coerce_datetime(value: object) -> datetime:
    """Coerce an ISO-8601 string (or a YAML timestamp) to an aware datetime."""
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError as e:
            raise ConfigError(f"Cannot convert {value!r} to datetime") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _raw_resolve(value: object) -> str | None:
    """Resolve an ``_EnvVar`` to its string value, or stringify literals.

    Returns None if the value is None or the env var is unset or empty.
    """
    if isinstance(value, _EnvVar):
        return os.environ.get(value.var_name) or None
    if value is None:
        return None
    return str(value)


_MISSING = object()

_T = TypeVar("_T")


@overload
def _resolve(value: object, coerce: type[_T], *, default: _T) -> _T: ...


@overload
def _resolve(value: object, coerce: type[_T]) -> _T | None: ...


def _resolve(
    value: object,
    coerce: type[Any],
    *,
    default: object = _MISSING,
) -> Any:
    """Resolve a YAML value, handling ``!env`` tags and type coercion.

    Args:
        value: Raw value from YAML (may be ``_EnvVar``, None, or a literal
            already parsed by PyYAML).
        coerce: Target type (``str``, ``int``, ``bool``, ``datetime``).
        default: Value returned when the input is absent.

    Returns:
        The resolved, coerced value, or None when absent without default.

    Raises:
        ConfigError: If the value cannot be coerced.
    """
    if not isinstance(value, _EnvVar) and value is not None:
        if coerce is bool:
            return _coerce_bool(value)
        if coerce is datetime:
            return _coerce_datetime(value)
        if isinstance(value, coerce) and not isinstance(value, bool):
            return value

    resolved = _raw_resolve(value)
    if resolved is None:
        return None if default is _MISSING else default

    if coerce is bool:
        return _coerce_bool(resolved)
    if coerce is datetime:
        return _coerce_datetime(resolved)
    try:
        return coerce(resolved)
    except ValueError as e:
        raise ConfigError(
            f"Cannot convert {resolved!r} to {coerce.__name__}"
        ) from e


# ---------------------------------------------------------------------------
# Client configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClientConfig:
    """Settings shared by every request a client issues.

    Attributes:
        endpoint: Server host name, without scheme or port.
        port: Server port.  None uses the scheme default.
        use_ssl: Connect over HTTPS.
        access_key: Access key ID.  Empty (with an empty secret key) for
            anonymous access.
        secret_key: Secret access key (auto-redacted in logs).
        session_token: Optional STS session token (auto-redacted in logs).
        session_expiration: Optional expiry of the session token.
        region: Default region.  Used when a request names no region and
            the bucket region cannot be looked up.
        path_style: Addressing preference for non-Amazon endpoints.  None
            means path-style.
        enable_trace: Dump every request and response to the trace logger.
        user_agent: Value of the ``user-agent`` header.  None uses
            ``s3wire/<version>``.
        timeout_seconds: Transport timeout for connect, read and write.
    """

    endpoint: str
    port: int | None = None
    use_ssl: bool = True
    access_key: str = ""
    secret_key: str = field(default="", repr=False)
    session_token: str | None = field(default=None, repr=False)
    session_expiration: datetime | None = None
    region: str | None = None
    path_style: bool | None = None
    enable_trace: bool = False
    user_agent: str | None = None
    timeout_seconds: float = 60.0

    def __post_init__(self) -> None:
        """Validate configuration and register secrets.

        Raises:
            ConfigError: If configuration is invalid.
        """
        SecretFilter.register_secret(self.secret_key)
        SecretFilter.register_secret(self.session_token)

        if not self.endpoint:
            raise ConfigError("Endpoint cannot be empty")
        if "://" in self.endpoint or "/" in self.endpoint:
            raise ConfigError(
                f"Endpoint must be a bare host name: {self.endpoint!r}"
            )
        if self.port is not None and not 1 <= self.port <= 65535:
            raise ConfigError(f"Invalid port: {self.port}")
        if self.timeout_seconds <= 0:
            raise ConfigError(
                f"Timeout must be positive: {self.timeout_seconds}"
            )
        if bool(self.access_key) != bool(self.secret_key):
            raise ConfigError(
                "access_key and secret_key must both be set or both be empty"
            )

    @property
    def credentials(self) -> Credentials:
        """Credentials built from the configured keys."""
        return Credentials(
            access_key=self.access_key,
            secret_key=self.secret_key,
            session_token=self.session_token,
            expiration=self.session_expiration,
        )

    @classmethod
    def from_yaml(cls, config_path: Path | None = None) -> ClientConfig:
        """Load configuration from a YAML file.

        Values tagged with ``!env VAR_NAME`` are resolved from the
        environment at load time.  A ``.env`` file is loaded first if
        present.

        Args:
            config_path: Path to YAML config file.  Defaults to
                ``~/.config/s3wire/s3wire.yaml`` (XDG).

        Returns:
            ClientConfig instance.

        Raises:
            ConfigError: If the file is missing, malformed, or values are
                invalid.
        """
        from s3wire.dotenv_loader import load_dotenv_once

        load_dotenv_once()

        if config_path is None:
            config_path = get_config_path()

        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            with open(config_path) as f:
                raw = yaml.load(f, Loader=_make_loader())
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigError(
                f"Config file must be a YAML mapping: {config_path}"
            )

        config = cls._from_raw(raw)
        logger.debug(
            "Loaded client config from %s: endpoint=%s, ssl=%s",
            config_path,
            config.endpoint,
            config.use_ssl,
        )
        return config

    @classmethod
    def _from_raw(cls, raw: dict) -> ClientConfig:
        """Build config from a parsed (but unresolved) YAML dict."""
        creds = raw.get("credentials") or {}
        if not isinstance(creds, dict):
            raise ConfigError("'credentials' must be a YAML mapping")

        endpoint = _resolve(raw.get("endpoint"), str)
        if not endpoint:
            raise ConfigError("Required config 'endpoint' is missing")

        return cls(
            endpoint=endpoint,
            port=_resolve(raw.get("port"), int),
            use_ssl=_resolve(raw.get("use_ssl"), bool, default=True),
            access_key=_resolve(creds.get("access_key"), str, default=""),
            secret_key=_resolve(creds.get("secret_key"), str, default=""),
            session_token=_resolve(creds.get("session_token"), str),
            session_expiration=_resolve(creds.get("expiration"), datetime),
            region=_resolve(raw.get("region"), str),
            path_style=_resolve(raw.get("path_style"), bool),
            enable_trace=_resolve(raw.get("trace"), bool, default=False),
            user_agent=_resolve(raw.get("user_agent"), str),
            timeout_seconds=_resolve(raw.get("timeout"), float, default=60.0),
        )
