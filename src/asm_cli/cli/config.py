"""Settings for the asm CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from asm_cli.client import DEFAULT_ENDPOINT

DEFAULT_CONFIG_DIR = Path.home() / ".asm"
DEFAULT_SETTINGS_PATH = DEFAULT_CONFIG_DIR / "cli.toml"
CONFIG_DIR_ENV_VAR = "ASM_CONFIG_DIR"
ENDPOINT_ENV_VAR = "ASM_ENDPOINT"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


@dataclass(frozen=True)
class CLISettings:
    config_dir: str = str(DEFAULT_CONFIG_DIR)
    default_endpoint: str = DEFAULT_ENDPOINT
    resource_types: tuple[str, ...] = ()
    request_timeout: float = 30.0
    retries: int = 2
    log_level: str = "WARNING"


class SettingsError(ValueError):
    """Raised when CLI settings are invalid."""


def _load_toml(path: Path) -> dict[str, Any]:
    raw = path.read_text(encoding="utf-8")

    try:  # Python 3.11+
        import tomllib  # type: ignore[attr-defined]
        try:
            return tomllib.loads(raw)
        except tomllib.TOMLDecodeError as exc:
            raise SettingsError(f"invalid TOML in {path}: {exc}") from exc
    except ModuleNotFoundError:
        try:
            import tomli
        except ModuleNotFoundError as exc:
            raise SettingsError("toml parser unavailable; install tomli for Python < 3.11") from exc
        try:
            return tomli.loads(raw)
        except tomli.TOMLDecodeError as exc:
            raise SettingsError(f"invalid TOML in {path}: {exc}") from exc


def _to_positive_number(value: Any, field_name: str, kind: type) -> Any:
    if isinstance(value, bool):
        raise SettingsError(f"{field_name} must be a number")
    try:
        number = kind(value)
    except (TypeError, ValueError) as exc:
        raise SettingsError(f"{field_name} must be a number") from exc
    if number < 0:
        raise SettingsError(f"{field_name} must not be negative")
    return number


def load_cli_settings(path: str | Path | None = None) -> CLISettings:
    settings_path = Path(path) if path else DEFAULT_SETTINGS_PATH
    source: dict[str, Any] = {}
    if settings_path.exists():
        parsed = _load_toml(settings_path)
        section = parsed.get("cli")
        if isinstance(section, dict):
            source = section
        elif section is None:
            source = parsed
        else:
            raise SettingsError("[cli] must be a table")

    env_config_dir = os.getenv(CONFIG_DIR_ENV_VAR)
    configured_dir = str(source.get("config_dir", DEFAULT_CONFIG_DIR)).strip()
    config_dir = env_config_dir.strip() if env_config_dir else configured_dir
    if not config_dir:
        raise SettingsError("config_dir must not be empty")

    env_endpoint = os.getenv(ENDPOINT_ENV_VAR)
    configured_endpoint = str(source.get("default_endpoint", DEFAULT_ENDPOINT)).strip()
    default_endpoint = env_endpoint.strip() if env_endpoint else configured_endpoint
    if not default_endpoint.startswith(("https://", "http://")):
        raise SettingsError("default_endpoint must be an absolute http(s) URL")

    resource_types = source.get("resource_types", [])
    if not isinstance(resource_types, list) or any(
        not isinstance(t, str) or not t.strip() for t in resource_types
    ):
        raise SettingsError("resource_types must be a list of names")

    log_level = str(source.get("log_level", "WARNING")).strip().upper()
    if log_level not in _LOG_LEVELS:
        raise SettingsError("log_level must be one of: DEBUG, INFO, WARNING, ERROR")

    return CLISettings(
        config_dir=str(Path(config_dir).expanduser()),
        default_endpoint=default_endpoint,
        resource_types=tuple(t.strip() for t in resource_types),
        request_timeout=_to_positive_number(source.get("request_timeout", 30.0), "request_timeout", float),
        retries=_to_positive_number(source.get("retries", 2), "retries", int),
        log_level=log_level,
    )
