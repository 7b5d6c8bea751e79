"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from rate_ledger.core.exceptions import ConfigError
from rate_ledger.core.models import AlignmentMode, validate_currency_code

_ECB_SERIES_URL = (
    "https://www.ecb.europa.eu/stats/policy_and_exchange_rates/"
    "euro_reference_exchange_rates/html/{code}.xml"
)

DEFAULT_SERIES: dict[str, str] = {
    "USD": _ECB_SERIES_URL.format(code="usd"),
    "CAD": _ECB_SERIES_URL.format(code="cad"),
}


class SourceConfig(BaseModel):
    """Reference rate source configuration."""

    model_config = ConfigDict(frozen=True)

    series: dict[str, str] = DEFAULT_SERIES
    request_timeout: int = 15
    user_agent: str = "rate-ledger/0.1"
    alignment: AlignmentMode = AlignmentMode.POSITIONAL

    @field_validator("series")
    @classmethod
    def series_codes_valid(cls, v: dict[str, str]) -> dict[str, str]:
        if not v:
            raise ValueError("at least one currency series must be configured")
        normalized: dict[str, str] = {}
        for code, url in v.items():
            key = validate_currency_code(code)
            if key in normalized:
                raise ValueError(f"duplicate currency code: {key}")
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"series URL for {key} must be http(s), got: {url!r}")
            normalized[key] = url
        return normalized

    @field_validator("request_timeout")
    @classmethod
    def timeout_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("request_timeout must be >= 1")
        return v

    @property
    def currencies(self) -> list[str]:
        """Configured currency codes, in declaration order."""
        return list(self.series)


class StorageConfig(BaseModel):
    """Storage backend configuration."""

    model_config = ConfigDict(frozen=True)

    sqlite_path: str = "./data/rate_ledger.db"


class ExportConfig(BaseModel):
    """Spreadsheet export configuration."""

    model_config = ConfigDict(frozen=True)

    filename: str = "rates.xlsx"
    sheet_title: str = "Rates"

    @field_validator("filename")
    @classmethod
    def filename_is_xlsx(cls, v: str) -> str:
        if not v.lower().endswith(".xlsx"):
            raise ValueError("export filename must end with .xlsx")
        return v


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 8000
    api_key: str | None = None


class LedgerConfig(BaseModel):
    """Root configuration for rate-ledger."""

    model_config = ConfigDict(frozen=True)

    source: SourceConfig = SourceConfig()
    storage: StorageConfig = StorageConfig()
    export: ExportConfig = ExportConfig()
    api: APIConfig = APIConfig()


def load_config(
    config_path: str | None = None,
    env_prefix: str = "RATE_LEDGER_",
) -> LedgerConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (RATE_LEDGER_STORAGE__SQLITE_PATH, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        RATE_LEDGER_SOURCE__REQUEST_TIMEOUT=5  ->  source.request_timeout = 5

    Currency codes under source.series are kept uppercase:
        RATE_LEDGER_SOURCE__SERIES__GBP=https://...  ->  source.series["GBP"]
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        return LedgerConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_path = os.environ.get("RATE_LEDGER_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from RATE_LEDGER_CONFIG not found: {env_path}",
                context={"field": "RATE_LEDGER_CONFIG", "value": env_path},
            )
        return p

    default = Path("rate-ledger.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        # Skip the CONFIG env var itself
        if parts == ["config"]:
            continue

        # Series keys are currency codes
        if parts[:2] == ["source", "series"] and len(parts) == 3:
            parts[2] = parts[2].upper()

        cast_value = _auto_cast(value)

        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = dict(target.get(part) or {})
            else:
                target[part] = dict(target[part])
            target = target[part]
        target[parts[-1]] = cast_value

    return result


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
