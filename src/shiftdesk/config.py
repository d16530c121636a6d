"""Client configuration loading and validation.

Reads shiftdesk.toml from a config directory, resolves ``${VAR}`` references
against the environment, and returns a validated ClientConfig dataclass.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_FILENAME = "shiftdesk.toml"

# Matches ${VAR_NAME}; names are alphanumeric plus underscore.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigError(Exception):
    """Raised when client configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from [client.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class CacheConfig:
    """Fetch sizing from the [cache] section."""

    notification_page_size: int = 50
    user_page_size: int | None = None


@dataclass
class ClientConfig:
    """Parsed and validated client configuration."""

    name: str
    base_url: str
    timeout_s: float = 20.0
    connect_timeout_s: float = 10.0
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings.  Non-string leaf values (int, bool,
    float, None) are returned unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _positive_float(section: dict, key: str, default: float, path: str) -> float:
    raw = section.get(key, default)
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {path}.{key}: {raw!r}. Must be a number.") from exc
    if value <= 0:
        raise ConfigError(f"Invalid {path}.{key}: {raw!r}. Must be positive.")
    return value


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _parse_cache(data: dict) -> CacheConfig:
    """Parse the optional top-level [cache] section."""
    cache_section = data.get("cache", {})
    if not isinstance(cache_section, dict):
        raise ConfigError("[cache] must be a TOML table")

    page_size = cache_section.get("notification_page_size", 50)
    if not _is_positive_int(page_size):
        raise ConfigError(
            f"Invalid cache.notification_page_size: {page_size!r}. Must be a positive integer."
        )

    user_page_size = cache_section.get("user_page_size")
    if user_page_size is not None and not _is_positive_int(user_page_size):
        raise ConfigError(
            f"Invalid cache.user_page_size: {user_page_size!r}. Must be a positive integer."
        )

    return CacheConfig(notification_page_size=page_size, user_page_size=user_page_size)


def load_config(config_dir: Path) -> ClientConfig:
    """Load and validate a shiftdesk.toml from *config_dir*.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or lacks required fields.
    """
    toml_path = Path(config_dir) / CONFIG_FILENAME

    if not toml_path.exists():
        raise ConfigError(f"Config file not found: {toml_path}")

    try:
        data = tomllib.loads(toml_path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    data = resolve_env_vars(data)

    # --- [client] section (required) ---
    client_section = data.get("client")
    if not isinstance(client_section, dict):
        raise ConfigError("Missing [client] section in config")

    name = client_section.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ConfigError("Missing required field: client.name")

    base_url = client_section.get("base_url")
    if not isinstance(base_url, str) or not base_url.strip():
        raise ConfigError("Missing required field: client.base_url")
    base_url = base_url.strip()
    if not base_url.startswith(("http://", "https://")):
        raise ConfigError(f"Invalid client.base_url: {base_url!r}. Expected an http(s) URL.")

    timeout_s = _positive_float(client_section, "timeout_s", 20.0, "client")
    connect_timeout_s = _positive_float(client_section, "connect_timeout_s", 10.0, "client")

    # --- [client.logging] sub-section ---
    logging_section = client_section.get("logging", {})
    if not isinstance(logging_section, dict):
        raise ConfigError("[client.logging] must be a TOML table")
    log_level = str(logging_section.get("level", "INFO")).upper()
    log_format = str(logging_section.get("format", "text")).lower()
    if log_format not in ("text", "json"):
        raise ConfigError(
            f"Invalid client.logging.format: {log_format!r}. Expected 'text' or 'json'."
        )
    logging_config = LoggingConfig(
        level=log_level,
        format=log_format,
        log_root=logging_section.get("log_root"),
    )

    return ClientConfig(
        name=name.strip(),
        base_url=base_url,
        timeout_s=timeout_s,
        connect_timeout_s=connect_timeout_s,
        logging=logging_config,
        cache=_parse_cache(data),
    )
