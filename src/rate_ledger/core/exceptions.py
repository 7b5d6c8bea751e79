"""Custom exception hierarchy for rate-ledger."""

from typing import Any


class RateLedgerError(Exception):
    """Base exception for all rate-ledger errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(RateLedgerError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str — the config field that failed validation
        value: Any — the invalid value
    """


class FetchError(RateLedgerError):
    """A source series could not be downloaded.

    Covers timeouts, connection failures and non-2xx HTTP responses.
    Policy: abort the whole ingestion run. Nothing is merged.

    Context keys:
        url: str — the source that was being fetched
        status_code: int | None — HTTP status if a response arrived
        error: str | None — transport error message
    """


class ParseError(RateLedgerError):
    """A fetched payload is not a well-formed series document.

    Policy: abort the whole ingestion run. Nothing is merged.

    Context keys:
        source_id: str — the source whose payload failed to parse
        reason: str — why parsing failed
    """


class AlignmentError(RateLedgerError):
    """A positional index (or date) cannot be combined across all series.

    Policy: log and skip that index. The run continues.

    Context keys:
        index: int | None — position in the fetched series
        currency: str | None — the series that carried the bad value
        reason: str — why the index was rejected
    """


class StorageError(RateLedgerError):
    """Database operation failed.

    Policy: raise immediately. The current merge batch is rolled back,
    previously committed batches are untouched.

    Context keys:
        operation: str — "insert", "query", "initialize", etc.
        table: str — the table involved
    """


class ExportError(RateLedgerError):
    """The spreadsheet writer failed to produce output.

    Context keys:
        target: str — the filename or stream being written
    """
