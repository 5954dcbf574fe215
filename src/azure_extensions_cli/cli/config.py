"""Configuration helpers for the azure-extensions-cli."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from azure_extensions_cli.poller import (
    DEFAULT_MAX_QUERY_FAILURES,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_TIMEOUT,
)
from azure_extensions_cli.transport import (
    DEFAULT_API_VERSION,
    DEFAULT_MANAGEMENT_URL,
    DEFAULT_REQUEST_TIMEOUT,
)

DEFAULT_CONFIG_PATH = Path.home() / ".azure_extensions_cli" / "config.toml"
SUBSCRIPTION_ID_ENV_VAR = "AZURE_SUBSCRIPTION_ID"
SUBSCRIPTION_CERT_ENV_VAR = "AZURE_SUBSCRIPTION_CERT"
MANAGEMENT_URL_ENV_VAR = "AZURE_MANAGEMENT_URL"


@dataclass(frozen=True)
class CLIConfig:
    subscription_id: str | None = None
    subscription_cert: str | None = None
    management_url: str = DEFAULT_MANAGEMENT_URL
    api_version: str = DEFAULT_API_VERSION
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT
    http_retries: int = 0
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL
    poll_timeout_seconds: float = DEFAULT_POLL_TIMEOUT
    max_query_failures: int = DEFAULT_MAX_QUERY_FAILURES


class ConfigError(ValueError):
    """Raised when CLI config is invalid."""


def _load_toml(path: Path) -> dict[str, Any]:
    raw = path.read_text(encoding="utf-8")

    try:  # Python 3.11+
        import tomllib  # type: ignore[attr-defined]
        try:
            return tomllib.loads(raw)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc
    except ModuleNotFoundError:
        try:
            import tomli
        except ModuleNotFoundError as exc:
            raise ConfigError("toml parser unavailable; install tomli for Python < 3.11") from exc
        try:
            return tomli.loads(raw)
        except tomli.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc


def _optional_str(source: dict[str, Any], key: str, env_var: str | None = None) -> str | None:
    env_value = os.getenv(env_var) if env_var else None
    if env_value and env_value.strip():
        return env_value.strip()
    value = source.get(key)
    if value is None:
        return None
    return str(value).strip() or None


def _positive_number(source: dict[str, Any], key: str, default: float) -> float:
    value = source.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{key} must be a number")
    if value <= 0:
        raise ConfigError(f"{key} must be > 0")
    return float(value)


def _int(source: dict[str, Any], key: str, default: int, *, minimum: int) -> int:
    value = source.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key} must be an integer")
    if value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}")
    return value


def load_cli_config(path: str | Path | None = None) -> CLIConfig:
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    parsed: dict[str, Any] = _load_toml(config_path) if config_path.exists() else {}

    section = parsed.get("cli")
    if isinstance(section, dict):
        source = section
    elif section is None:
        source = parsed
    else:
        raise ConfigError("[cli] must be a table")

    management_url = _optional_str(source, "management_url", MANAGEMENT_URL_ENV_VAR)
    api_version = str(source.get("api_version", DEFAULT_API_VERSION)).strip()
    if not api_version:
        raise ConfigError("api_version must not be empty")

    return CLIConfig(
        subscription_id=_optional_str(source, "subscription_id", SUBSCRIPTION_ID_ENV_VAR),
        subscription_cert=_optional_str(source, "subscription_cert", SUBSCRIPTION_CERT_ENV_VAR),
        management_url=management_url or DEFAULT_MANAGEMENT_URL,
        api_version=api_version,
        request_timeout_seconds=_positive_number(
            source, "request_timeout_seconds", DEFAULT_REQUEST_TIMEOUT
        ),
        http_retries=_int(source, "http_retries", 0, minimum=0),
        poll_interval_seconds=_positive_number(
            source, "poll_interval_seconds", DEFAULT_POLL_INTERVAL
        ),
        poll_timeout_seconds=_positive_number(source, "poll_timeout_seconds", DEFAULT_POLL_TIMEOUT),
        max_query_failures=_int(
            source, "max_query_failures", DEFAULT_MAX_QUERY_FAILURES, minimum=1
        ),
    )
