"""Rate ingestion: reader, parser, aligner, storage, and pipeline."""

from rate_ledger.ingestion.aligner import SeriesAligner, from_timestamp, to_timestamp
from rate_ledger.ingestion.parser import SeriesParser
from rate_ledger.ingestion.pipeline import IngestionPipeline
from rate_ledger.ingestion.reader import SourceReader
from rate_ledger.ingestion.store import SqliteRateStore, StorageProtocol, create_store

__all__ = [
    "IngestionPipeline",
    "SeriesAligner",
    "SeriesParser",
    "SourceReader",
    "SqliteRateStore",
    "StorageProtocol",
    "create_store",
    "from_timestamp",
    "to_timestamp",
]
