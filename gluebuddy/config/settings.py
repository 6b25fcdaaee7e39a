"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_ROOT_GROUPS = ["Arch Linux Staff", "External Contributors"]
DEFAULT_MAX_CONCURRENCY = 8
DEFAULT_REQUEST_TIMEOUT = 5.0


class ConfigurationError(RuntimeError):
    """Required configuration is missing or invalid."""
    pass


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
        except OSError as e:
            logger.warning("Failed to read /run/secrets/%s: %s", secret_name, e)
        else:
            if secret_value:
                logger.info("Loaded %s from /run/secrets", secret_name)
                return secret_value

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


@dataclass
class Settings:
    """Gluebuddy configuration container."""
    keycloak_url: str
    keycloak_username: str
    keycloak_password: str = field(repr=False)
    keycloak_realm: str
    keycloak_auth_realm: str = "master"
    root_groups: list[str] = field(default_factory=lambda: list(DEFAULT_ROOT_GROUPS))
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


def _require(var_name: str) -> str:
    value = os.environ.get(var_name, "").strip()
    if not value:
        raise ConfigurationError(f"Missing env var {var_name}")
    return value


def _positive(var_name: str, default, cast):
    raw = os.environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{var_name} must be a number, got {raw!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{var_name} must be a positive finite number, got {raw!r}")
    return value


def parse_root_groups(raw: str | None) -> list[str]:
    """Split a comma-separated list of group names, dropping blanks."""
    if raw is None:
        return list(DEFAULT_ROOT_GROUPS)
    return [name.strip() for name in raw.split(",") if name.strip()]


def load_settings() -> Settings:
    """Load settings from environment variables and /run/secrets.

    Raises:
        ConfigurationError: If a required variable is missing or malformed
    """
    password = _load_secret_from_file("gluebuddy_keycloak_password", "GLUEBUDDY_KEYCLOAK_PASSWORD")
    if not password:
        raise ConfigurationError("Missing env var GLUEBUDDY_KEYCLOAK_PASSWORD")

    root_groups = parse_root_groups(os.environ.get("GLUEBUDDY_KEYCLOAK_ROOT_GROUPS"))
    if not root_groups:
        raise ConfigurationError("GLUEBUDDY_KEYCLOAK_ROOT_GROUPS must name at least one group")

    return Settings(
        keycloak_url=_require("GLUEBUDDY_KEYCLOAK_URL"),
        keycloak_username=_require("GLUEBUDDY_KEYCLOAK_USERNAME"),
        keycloak_password=password,
        keycloak_realm=_require("GLUEBUDDY_KEYCLOAK_REALM"),
        keycloak_auth_realm=os.environ.get("GLUEBUDDY_KEYCLOAK_AUTH_REALM", "").strip() or "master",
        root_groups=root_groups,
        max_concurrency=_positive("GLUEBUDDY_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY, int),
        request_timeout=_positive("GLUEBUDDY_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, float),
    )
