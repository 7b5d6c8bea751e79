"""Pydantic data models — the system's type contracts."""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator

# --- Type Aliases ---

CurrencyCode = str
SourceId = str
Timestamp = int

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def validate_currency_code(code: str) -> CurrencyCode:
    """Normalize and check an ISO-4217 style code (three letters)."""
    normalized = code.strip().upper()
    if not _CURRENCY_RE.match(normalized):
        raise ValueError(f"Currency code must be three letters, got: {code!r}")
    return normalized


# --- Enumerations ---


class AlignmentMode(StrEnum):
    """How observations from independent series are paired."""

    POSITIONAL = "positional"
    BY_DATE = "by_date"


class HistoryFormat(StrEnum):
    """Output formats for the `history` command."""

    TABLE = "table"
    JSON = "json"
    CSV = "csv"


# --- Ingestion Models ---


class Observation(BaseModel):
    """One data point of a single currency series, as published.

    Values stay textual here; numeric and calendar interpretation belongs
    to the aligner so that bad points can be rejected per index.
    """

    model_config = ConfigDict(frozen=True)

    time_period: str
    value: str | None = None


class MergedRecord(BaseModel):
    """One row of canonical history: every currency's rate for one day."""

    model_config = ConfigDict(frozen=True)

    timestamp: Timestamp
    values: dict[CurrencyCode, float]

    @field_validator("values")
    @classmethod
    def codes_uppercase(cls, v: dict[str, float]) -> dict[str, float]:
        return {validate_currency_code(k): val for k, val in v.items()}

    @property
    def day(self) -> date:
        """UTC calendar date of the record."""
        return datetime.fromtimestamp(self.timestamp / 1000, tz=timezone.utc).date()

    def missing(self, currencies: list[CurrencyCode]) -> list[CurrencyCode]:
        """Currencies from `currencies` with no value in this record."""
        return [c for c in currencies if c not in self.values]


class SyncResult(BaseModel):
    """Outcome of one ingestion run."""

    model_config = ConfigDict(frozen=True)

    fetched: dict[CurrencyCode, int]
    aligned: int
    skipped: int
    inserted: int
    latest_timestamp: Timestamp | None = None
