"""rate-ledger: daily FX reference rate history with idempotent merges."""

__version__ = "0.1.0"
