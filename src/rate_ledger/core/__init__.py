"""rate_ledger.core — Foundation types, config, and exceptions."""

from rate_ledger.core.config import (
    APIConfig,
    ExportConfig,
    LedgerConfig,
    SourceConfig,
    StorageConfig,
    load_config,
)
from rate_ledger.core.exceptions import (
    AlignmentError,
    ConfigError,
    ExportError,
    FetchError,
    ParseError,
    RateLedgerError,
    StorageError,
)
from rate_ledger.core.models import (
    AlignmentMode,
    CurrencyCode,
    HistoryFormat,
    MergedRecord,
    Observation,
    SourceId,
    SyncResult,
    Timestamp,
)

__all__ = [
    # Type aliases
    "CurrencyCode",
    "SourceId",
    "Timestamp",
    # Enums
    "AlignmentMode",
    "HistoryFormat",
    # Models
    "Observation",
    "MergedRecord",
    "SyncResult",
    # Config
    "LedgerConfig",
    "SourceConfig",
    "StorageConfig",
    "ExportConfig",
    "APIConfig",
    "load_config",
    # Exceptions
    "RateLedgerError",
    "ConfigError",
    "FetchError",
    "ParseError",
    "AlignmentError",
    "StorageError",
    "ExportError",
]
