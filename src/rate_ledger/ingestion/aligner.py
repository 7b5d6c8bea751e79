"""Combines independently fetched currency series into merged records.

Two pairing strategies are available:

- POSITIONAL: the i-th observation of every series is taken to describe
  the same day, dated by the first currency's observation. Dates are not
  cross-checked, so a holiday present in one series but not another shifts
  every later value onto the wrong day. This is the historical behavior
  and the default.
- BY_DATE: observations are keyed by their parsed date and a record is
  emitted only for dates every series publishes a valid value for.

Either way an index (or date) that cannot be fully combined is dropped,
never emitted as a partial record.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

from rate_ledger.core.exceptions import AlignmentError
from rate_ledger.core.models import (
    AlignmentMode,
    CurrencyCode,
    MergedRecord,
    Observation,
    Timestamp,
)

logger = logging.getLogger(__name__)

_EPOCH = date(1970, 1, 1)
_MS_PER_DAY = 86_400_000


def to_timestamp(time_period: str) -> Timestamp:
    """Epoch milliseconds at UTC midnight of a YYYY-MM-DD date.

    Raises:
        ValueError: If the text is not a valid YYYY-MM-DD date.
    """
    parsed = datetime.strptime(time_period.strip(), "%Y-%m-%d").date()
    return (parsed - _EPOCH).days * _MS_PER_DAY


def from_timestamp(timestamp: Timestamp) -> date:
    """UTC calendar date of an epoch-millisecond timestamp."""
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).date()


def parse_rate(value: str | None) -> float:
    """Parse a published rate as a finite decimal number.

    Raises:
        ValueError: If the value is missing, non-numeric, NaN or infinite.
    """
    if value is None or not value.strip():
        raise ValueError("missing value")
    try:
        number = Decimal(value.strip())
    except InvalidOperation as e:
        raise ValueError(f"non-numeric value {value!r}") from e
    if not number.is_finite():
        raise ValueError(f"non-finite value {value!r}")
    return float(number)


class SeriesAligner:
    """Aligns per-currency observation sequences into MergedRecords.

    Parameters
    ----------
    currencies : list[str]
        The currencies every record must carry. Their order fixes which
        series dates a positional record (the first one).
    mode : AlignmentMode
        Pairing strategy, positional by default.
    """

    def __init__(
        self,
        currencies: Sequence[CurrencyCode],
        mode: AlignmentMode = AlignmentMode.POSITIONAL,
    ) -> None:
        if not currencies:
            raise ValueError("SeriesAligner needs at least one currency")
        self.currencies = list(currencies)
        self.mode = mode

    def align(
        self, series: Mapping[CurrencyCode, Sequence[Observation]]
    ) -> list[MergedRecord]:
        """Combine the series, dropping indexes that fail to align.

        Raises:
            ValueError: If `series` does not hold exactly the configured
                currencies.
        """
        self._check_currencies(series)
        if self.mode == AlignmentMode.BY_DATE:
            return self._align_by_date(series)
        return self._align_positional(series)

    def combine(
        self, index: int, series: Mapping[CurrencyCode, Sequence[Observation]]
    ) -> MergedRecord:
        """Build the record for one positional index.

        Raises:
            AlignmentError: If the date or any currency's value at `index`
                is missing or unparseable.
        """
        lead = self.currencies[0]
        try:
            timestamp = to_timestamp(series[lead][index].time_period)
        except (IndexError, ValueError) as e:
            raise AlignmentError(
                f"Index {index}: bad date in {lead} series: {e}",
                context={"index": index, "currency": lead, "reason": str(e)},
            ) from e

        values: dict[CurrencyCode, float] = {}
        for currency in self.currencies:
            try:
                values[currency] = parse_rate(series[currency][index].value)
            except (IndexError, ValueError) as e:
                raise AlignmentError(
                    f"Index {index}: bad {currency} value: {e}",
                    context={"index": index, "currency": currency, "reason": str(e)},
                ) from e

        return MergedRecord(timestamp=timestamp, values=values)

    # --- Strategies ---

    def _align_positional(
        self, series: Mapping[CurrencyCode, Sequence[Observation]]
    ) -> list[MergedRecord]:
        length = min(len(series[c]) for c in self.currencies)
        records: list[MergedRecord] = []
        for index in range(length):
            try:
                records.append(self.combine(index, series))
            except AlignmentError as e:
                logger.warning("Skipping index %d: %s", index, e)
        return records

    def _align_by_date(
        self, series: Mapping[CurrencyCode, Sequence[Observation]]
    ) -> list[MergedRecord]:
        partial: dict[Timestamp, dict[CurrencyCode, float]] = {}
        for currency in self.currencies:
            for index, obs in enumerate(series[currency]):
                try:
                    timestamp = to_timestamp(obs.time_period)
                    rate = parse_rate(obs.value)
                except ValueError as e:
                    logger.warning(
                        "Skipping %s observation %d (%s): %s",
                        currency, index, obs.time_period, e,
                    )
                    continue
                partial.setdefault(timestamp, {})[currency] = rate

        records: list[MergedRecord] = []
        for timestamp in sorted(partial):
            values = partial[timestamp]
            if len(values) != len(self.currencies):
                missing = [c for c in self.currencies if c not in values]
                logger.warning(
                    "Skipping %s: no value for %s",
                    from_timestamp(timestamp).isoformat(), ", ".join(missing),
                )
                continue
            records.append(MergedRecord(timestamp=timestamp, values=values))
        return records

    def _check_currencies(
        self, series: Mapping[CurrencyCode, Sequence[Observation]]
    ) -> None:
        if set(series) != set(self.currencies):
            raise ValueError(
                f"Expected series for {sorted(self.currencies)}, got {sorted(series)}"
            )
