"""Spreadsheet export of stored rate history."""

from rate_ledger.export.table import SpreadsheetWriter, TableExporter
from rate_ledger.export.xlsx import CONTENT_TYPE, XlsxWriter

__all__ = [
    "CONTENT_TYPE",
    "SpreadsheetWriter",
    "TableExporter",
    "XlsxWriter",
]
