"""Tabular rendering of stored rate history."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date
from typing import IO, Any, Protocol, runtime_checkable

from rate_ledger.core.exceptions import ExportError
from rate_ledger.core.models import CurrencyCode, MergedRecord
from rate_ledger.ingestion.aligner import from_timestamp
from rate_ledger.ingestion.store import StorageProtocol

logger = logging.getLogger(__name__)

Grid = list[list[Any]]
ExportTarget = str | IO[bytes]


@runtime_checkable
class SpreadsheetWriter(Protocol):
    """Collaborator that turns a 2-D grid into a file or stream."""

    def write(self, grid: Grid, target: ExportTarget) -> None: ...


class TableExporter:
    """Builds the export grid and hands it to a spreadsheet writer.

    The first row is ["Date", <currencies...>]; each following row is one
    record with its timestamp as a `datetime.date`, the writer's native
    date type, and the rates in header order.
    """

    def __init__(self, currencies: Sequence[CurrencyCode]) -> None:
        self.currencies = list(currencies)

    @property
    def header(self) -> list[str]:
        return ["Date", *self.currencies]

    def build_grid(self, records: Sequence[MergedRecord]) -> Grid:
        grid: Grid = [self.header]
        for record in records:
            row: list[date | float | None] = [from_timestamp(record.timestamp)]
            row.extend(record.values.get(c) for c in self.currencies)
            grid.append(row)
        return grid

    async def export(
        self,
        store: StorageProtocol,
        writer: SpreadsheetWriter,
        target: ExportTarget,
    ) -> int:
        """Write the store's ordered history through `writer`.

        Returns:
            Number of data rows written (header excluded).

        Raises:
            ExportError: The writer failed.
            StorageError: The history could not be read.
        """
        records = await store.ordered_history()
        grid = self.build_grid(records)
        target_name = target if isinstance(target, str) else getattr(target, "name", "<stream>")
        try:
            writer.write(grid, target)
        except Exception as e:
            raise ExportError(
                f"Failed to write export: {e}",
                context={"target": str(target_name)},
            ) from e
        logger.info("Exported %d rows to %s", len(records), target_name)
        return len(records)
