"""Storage backend: Protocol definition, SQLite implementation, factory."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

import aiosqlite

from rate_ledger.core.config import StorageConfig
from rate_ledger.core.exceptions import StorageError
from rate_ledger.core.models import (
    CurrencyCode,
    MergedRecord,
    Timestamp,
    validate_currency_code,
)

logger = logging.getLogger(__name__)

TABLE = "exchange_rate"


@runtime_checkable
class StorageProtocol(Protocol):
    """Abstract storage interface for merged rate history."""

    async def exists(self, timestamp: Timestamp) -> bool: ...
    async def merge_insert(self, records: Sequence[MergedRecord]) -> int: ...
    async def max_timestamp(self) -> Timestamp | None: ...
    async def ordered_history(self) -> list[MergedRecord]: ...
    async def reset(self) -> None: ...
    async def count(self) -> int: ...
    async def initialize(self) -> None: ...
    async def close(self) -> None: ...
    async def health_check(self) -> bool: ...


class SqliteRateStore:
    """SQLite implementation of the storage protocol.

    One table, one REAL column per currency (lowercase code), keyed by a
    unique epoch-millisecond timestamp. Rows are only ever appended or
    wiped wholesale by reset().

    Column names are built from validated three-letter codes; every value
    goes through a bound parameter.
    """

    def __init__(self, config: StorageConfig, currencies: Sequence[CurrencyCode]) -> None:
        self._path = config.sqlite_path
        self.currencies = [validate_currency_code(c) for c in currencies]
        if not self.currencies:
            raise StorageError(
                "At least one currency column is required",
                context={"operation": "initialize", "table": TABLE},
            )
        self._columns = [c.lower() for c in self.currencies]
        # Quoted: ISO codes such as ALL are SQL keywords
        self._quoted = [f'"{col}"' for col in self._columns]
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection, create the table, verify currency columns."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            column_defs = ", ".join(f"{col} REAL" for col in self._quoted)
            await self._db.execute(
                f"CREATE TABLE IF NOT EXISTS {TABLE} "
                f"(timestamp INTEGER UNIQUE, {column_defs})"
            )
            await self._db.commit()
            await self._check_columns()
        except Exception as e:
            await self.close()
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to initialize SQLite store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def health_check(self) -> bool:
        if self._db is None:
            return False
        try:
            async with self._db.execute("SELECT 1") as cursor:
                row = await cursor.fetchone()
            return row is not None
        except Exception:
            return False

    async def _check_columns(self) -> None:
        async with self._db.execute(f"PRAGMA table_info({TABLE})") as cursor:
            rows = await cursor.fetchall()
        present = {row["name"] for row in rows}
        missing = [col for col in self._columns if col not in present]
        if missing:
            raise StorageError(
                f"Table {TABLE} has no column for {', '.join(missing)}; "
                "delete the database or drop the currency from config",
                context={"operation": "initialize", "table": TABLE, "missing": missing},
            )

    # --- Queries ---

    async def exists(self, timestamp: Timestamp) -> bool:
        """True iff a row with exactly this timestamp is stored."""
        try:
            async with self._db.execute(
                f"SELECT 1 FROM {TABLE} WHERE timestamp = ?",
                (int(timestamp),),
            ) as cursor:
                row = await cursor.fetchone()
            return row is not None
        except Exception as e:
            raise StorageError(
                f"Failed to check timestamp existence: {e}",
                context={"operation": "query", "table": TABLE},
            ) from e

    async def max_timestamp(self) -> Timestamp | None:
        """Greatest stored timestamp, or None when the table is empty."""
        try:
            async with self._db.execute(f"SELECT MAX(timestamp) FROM {TABLE}") as cursor:
                row = await cursor.fetchone()
            return row[0] if row is not None else None
        except Exception as e:
            raise StorageError(
                f"Failed to query max timestamp: {e}",
                context={"operation": "query", "table": TABLE},
            ) from e

    async def count(self) -> int:
        try:
            async with self._db.execute(f"SELECT COUNT(*) FROM {TABLE}") as cursor:
                row = await cursor.fetchone()
            return row[0]
        except Exception as e:
            raise StorageError(
                f"Failed to count rows: {e}",
                context={"operation": "query", "table": TABLE},
            ) from e

    async def ordered_history(self) -> list[MergedRecord]:
        """All records, ascending by timestamp."""
        try:
            columns = ", ".join(self._quoted)
            async with self._db.execute(
                f"SELECT timestamp, {columns} FROM {TABLE} ORDER BY timestamp ASC"
            ) as cursor:
                rows = await cursor.fetchall()
            return [self._row_to_record(r) for r in rows]
        except Exception as e:
            raise StorageError(
                f"Failed to read history: {e}",
                context={"operation": "query", "table": TABLE},
            ) from e

    # --- Writes ---

    async def merge_insert(self, records: Sequence[MergedRecord]) -> int:
        """Insert records whose timestamp is not stored yet.

        The whole batch runs in one transaction. A record whose timestamp
        already exists (or appeared earlier in the same batch) is skipped.
        On any failure the batch is rolled back and nothing is written.

        Returns:
            Number of rows inserted.

        Raises:
            StorageError: A record lacks a configured currency, or the
                database rejected the batch.
        """
        for record in records:
            missing = record.missing(self.currencies)
            if missing:
                raise StorageError(
                    f"Record {record.timestamp} has no value for {', '.join(missing)}",
                    context={
                        "operation": "insert",
                        "table": TABLE,
                        "timestamp": record.timestamp,
                        "missing": missing,
                    },
                )
        if not records:
            return 0

        columns = ", ".join(self._quoted)
        placeholders = ", ".join("?" for _ in range(len(self._quoted) + 1))
        insert_sql = f"INSERT INTO {TABLE} (timestamp, {columns}) VALUES ({placeholders})"

        inserted = 0
        try:
            await self._db.execute("BEGIN")
            for record in records:
                if await self.exists(record.timestamp):
                    continue
                await self._db.execute(
                    insert_sql,
                    (record.timestamp, *(record.values[c] for c in self.currencies)),
                )
                inserted += 1
            await self._db.commit()
        except Exception as e:
            try:
                await self._db.rollback()
            except Exception:
                logger.exception("Rollback failed after merge error: %s", e)
            raise StorageError(
                f"Failed to merge batch of {len(records)} records: {e}",
                context={"operation": "insert", "table": TABLE},
            ) from e

        logger.info("Merged %d of %d records", inserted, len(records))
        return inserted

    async def reset(self) -> None:
        """Delete every row. The table stays in place."""
        try:
            await self._db.execute(f"DELETE FROM {TABLE}")
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to reset rates: {e}",
                context={"operation": "delete", "table": TABLE},
            ) from e
        logger.info("Cleared all rows from %s", TABLE)

    # --- Row Mapping Helpers ---

    def _row_to_record(self, row: aiosqlite.Row) -> MergedRecord:
        return MergedRecord(
            timestamp=row["timestamp"],
            values={c: row[c.lower()] for c in self.currencies},
        )


async def create_store(
    config: StorageConfig, currencies: Sequence[CurrencyCode]
) -> SqliteRateStore:
    """Create and initialize the rate store."""
    store = SqliteRateStore(config, currencies)
    await store.initialize()
    return store
