"""Centralized settings for the billkhata client.

Settings are resolved once, lowest precedence first:
1. Built-in defaults
2. TOML file (``BILLKHATA_CONFIG`` or ``~/.config/billkhata/config.toml``)
3. ``BILLKHATA_*`` environment variables
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

DEFAULT_API_URL = "http://localhost:3000/api"
DEFAULT_TIMEOUT = 30.0

ENV_VARS = {
    "api_url": "BILLKHATA_API_URL",
    "token": "BILLKHATA_TOKEN",
    "khata_id": "BILLKHATA_KHATA_ID",
    "user_id": "BILLKHATA_USER_ID",
    "timeout": "BILLKHATA_TIMEOUT",
    "log_level": "BILLKHATA_LOG_LEVEL",
}


def _default_config_path() -> Path:
    override = os.environ.get("BILLKHATA_CONFIG")
    if override:
        return Path(override).expanduser()
    return Path("~/.config/billkhata/config.toml").expanduser()


class SettingsError(ValueError):
    """A configured value cannot be used; the message names the value."""


@dataclass
class Settings:
    """Connection settings for the room API."""

    api_url: str = DEFAULT_API_URL
    token: str | None = None
    khata_id: str | None = None
    user_id: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    log_level: str | None = None
    config_path: Path = field(default_factory=_default_config_path)

    def __post_init__(self) -> None:
        self.api_url = self.api_url.rstrip("/")
        try:
            self.timeout = float(self.timeout)
        except (TypeError, ValueError):
            raise SettingsError(f"Invalid timeout {self.timeout!r}: expected a number of seconds") from None
        if self.timeout <= 0:
            raise SettingsError(f"Invalid timeout {self.timeout!r}: must be greater than zero")

    def with_overrides(self, values: Mapping[str, Any]) -> Settings:
        """Return a copy with known keys from ``values`` applied; None values are ignored."""
        known = {f.name for f in fields(self)} - {"config_path"}
        updates = {key: value for key, value in values.items() if key in known and value is not None}
        return replace(self, **updates)


def load_config_file(path: Path) -> dict[str, Any]:
    """Read the ``[billkhata]`` table (or the top level) of a TOML file."""
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore[no-redef]

    if not path.exists():
        return {}

    with open(path, "rb") as f:
        data = tomllib.load(f)

    section = data.get("billkhata", data)
    return dict(section) if isinstance(section, Mapping) else {}


def _env_values() -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, env_name in ENV_VARS.items():
        raw = os.environ.get(env_name)
        if raw:
            values[key] = raw
    return values


def load_settings(config_path: Path | None = None) -> Settings:
    """Build settings from defaults, the TOML file and the environment."""
    base = Settings() if config_path is None else Settings(config_path=config_path)
    from_file = load_config_file(base.config_path)
    return base.with_overrides(from_file).with_overrides(_env_values())


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the singleton Settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Forget the cached settings so the next get_settings() re-reads them."""
    global _settings
    _settings = None
