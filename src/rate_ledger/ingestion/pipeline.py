"""Sync pipeline: fetch every series, align, merge into the store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

from rate_ledger.core.exceptions import ConfigError
from rate_ledger.core.models import CurrencyCode, Observation, SourceId, SyncResult
from rate_ledger.ingestion.aligner import SeriesAligner
from rate_ledger.ingestion.reader import SourceReader
from rate_ledger.ingestion.store import StorageProtocol

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Updates local history from the configured sources.

    Fetches run concurrently, but results are consumed in the aligner's
    currency order. A fetch or parse failure aborts the run before the
    store is touched, so a run either merges every currency or nothing.
    The store must not be shared with another concurrent run.
    """

    def __init__(
        self,
        reader: SourceReader,
        aligner: SeriesAligner,
        store: StorageProtocol,
        sources: Mapping[CurrencyCode, SourceId] | None = None,
    ) -> None:
        self._reader = reader
        self._aligner = aligner
        self._store = store
        self._sources = dict(sources or {})

    async def run(
        self, sources: Mapping[CurrencyCode, SourceId] | None = None
    ) -> SyncResult:
        """Fetch, align and merge. Returns counts for the run.

        Args:
            sources: currency -> source id. Defaults to the sources given
                at construction.

        Raises:
            ConfigError: `sources` does not cover exactly the aligner's
                currencies.
            FetchError, ParseError: A source could not be read; nothing
                was merged.
            StorageError: The merge batch failed and was rolled back.
        """
        sources = dict(sources if sources is not None else self._sources)
        currencies = self._aligner.currencies
        if set(sources) != set(currencies):
            raise ConfigError(
                f"Sources {sorted(sources)} do not match currencies {sorted(currencies)}",
                context={"field": "sources", "value": sorted(sources)},
            )

        fetched = await self._fetch_all([sources[currency] for currency in currencies])
        series: dict[CurrencyCode, list[Observation]] = dict(zip(currencies, fetched))

        records = self._aligner.align(series)
        shortest = min(len(obs) for obs in fetched)
        inserted = await self._store.merge_insert(records)
        latest = await self._store.max_timestamp()

        result = SyncResult(
            fetched={currency: len(obs) for currency, obs in series.items()},
            aligned=len(records),
            skipped=max(shortest - len(records), 0),
            inserted=inserted,
            latest_timestamp=latest,
        )
        logger.info(
            "Sync complete: %d aligned, %d skipped, %d inserted",
            result.aligned, result.skipped, result.inserted,
        )
        return result

    async def _fetch_all(self, source_ids: list[SourceId]) -> list[list[Observation]]:
        """Fetch concurrently; the first failure cancels the rest and is re-raised."""
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(self._reader.fetch(s)) for s in source_ids]
        except ExceptionGroup as eg:
            first = eg.exceptions[0]
            if isinstance(first, ExceptionGroup):
                raise
            raise first from None
        return [task.result() for task in tasks]
