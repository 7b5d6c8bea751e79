"""openpyxl-backed spreadsheet writer."""

from __future__ import annotations

from datetime import date

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from rate_ledger.export.table import ExportTarget, Grid

DATE_FORMAT = "yyyy-mm-dd"
CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class XlsxWriter:
    """Writes a grid to a single-sheet .xlsx workbook.

    Date cells are stored as Excel dates with a yyyy-mm-dd format and
    columns are widened to fit their longest rendered value.
    """

    def __init__(self, sheet_title: str = "Rates") -> None:
        self.sheet_title = sheet_title

    def write(self, grid: Grid, target: ExportTarget) -> None:
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = self.sheet_title

        for row in grid:
            sheet.append(row)

        for row in sheet.iter_rows(min_row=2):
            for cell in row:
                if isinstance(cell.value, date):
                    cell.number_format = DATE_FORMAT

        self._autosize(sheet, grid)
        workbook.save(target)

    @staticmethod
    def _autosize(sheet, grid: Grid) -> None:
        widths: dict[int, int] = {}
        for row in grid:
            for idx, value in enumerate(row, start=1):
                if isinstance(value, date):
                    length = len(DATE_FORMAT)
                else:
                    length = len(str(value)) if value is not None else 0
                widths[idx] = max(widths.get(idx, 0), length)
        for idx, width in widths.items():
            sheet.column_dimensions[get_column_letter(idx)].width = width + 2
