from __future__ import annotations

import io
from datetime import date, datetime, time
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from ..models.cell import EMPTY_CELL, Cell, DecodedTable, RawKind

"""Spreadsheet decoder.

The first row of the sheet is the header row; every following non-empty row is
a data row. Each cell is decoded into a ``Cell`` carrying both the formatted
text and the raw value, so a date-of-birth column stored as day serials can be
converted later by the normalizer.

pandas does the actual file parsing (openpyxl for .xlsx, xlrd for legacy .xls).
Only truly empty cells are treated as NA: strings such as "NA" or "null" are
kept as text.
"""

__all__ = [
    "DecodeError",
    "decode_workbook",
    "read_excel_file",
    "to_cell",
]


class DecodeError(Exception):
    """Raised when a spreadsheet cannot be read or holds no data rows."""


def _open(source: Path | str | bytes) -> pd.ExcelFile:
    if isinstance(source, (bytes, bytearray)):
        return pd.ExcelFile(io.BytesIO(source))
    return pd.ExcelFile(source)


def to_cell(value: Any) -> Cell:
    """Classify one pandas cell value into a Cell."""
    if value is None:
        return EMPTY_CELL
    if isinstance(value, str):
        return Cell.text(value)
    if isinstance(value, (bool, np.bool_)):
        flag = bool(value)
        return Cell(formatted="TRUE" if flag else "FALSE", raw=flag, kind=RawKind.STRING)
    # NaN / NaT / pd.NA
    try:
        if pd.isna(value):
            return EMPTY_CELL
    except (TypeError, ValueError):  # pragma: no cover - array-like values
        pass
    if isinstance(value, pd.Timestamp):
        return Cell.date(value.to_pydatetime())
    if isinstance(value, datetime):
        return Cell.date(value)
    if isinstance(value, date):
        return Cell.date(datetime(value.year, value.month, value.day))
    if isinstance(value, time):
        return Cell.text(value.isoformat())
    if isinstance(value, (np.integer, np.floating)):
        value = value.item()
    if isinstance(value, (int, float)):
        return Cell.number(value)
    return Cell.text(str(value))


def _unique_headers(names: list[str]) -> list[str]:
    """Column mappings are keyed by header text, so repeated headers get a ' (n)' suffix."""
    seen: dict[str, int] = {}
    out: list[str] = []
    for name in names:
        count = seen.get(name, 0) + 1
        seen[name] = count
        out.append(name if count == 1 else f"{name} ({count})")
    return out


def _frame_to_table(df: pd.DataFrame, sheet_name: str) -> DecodedTable:
    if df.shape[0] == 0:
        raise DecodeError(f"sheet '{sheet_name}' is empty")
    header_cells = [to_cell(v) for v in df.iloc[0].tolist()]
    # 末尾の空ヘッダ列は切り捨て
    while header_cells and header_cells[-1].is_empty:
        header_cells.pop()
    if not header_cells:
        raise DecodeError(f"sheet '{sheet_name}' has no header row")
    headers = _unique_headers([c.formatted for c in header_cells])
    width = len(headers)

    rows: list[list[Cell]] = []
    for raw in df.iloc[1:].itertuples(index=False, name=None):
        cells = [to_cell(v) for v in raw[:width]]
        if all(c.is_empty for c in cells):
            continue
        if len(cells) < width:
            cells.extend([EMPTY_CELL] * (width - len(cells)))
        rows.append(cells)

    if not rows:
        raise DecodeError(f"sheet '{sheet_name}' contains only the header row")
    return DecodedTable(headers=headers, rows=rows, sheet_name=sheet_name)


def decode_workbook(source: Path | str | bytes, sheet: str | None = None) -> DecodedTable:
    """Decode one sheet (the first one unless ``sheet`` is given) into a DecodedTable.

    Raises:
        DecodeError: unreadable file, missing sheet, empty sheet, or header without data
    """
    try:
        xls = _open(source)
    except Exception as e:
        raise DecodeError(f"unable to read spreadsheet: {e}") from e
    if not xls.sheet_names:
        raise DecodeError("workbook has no sheets")
    name = sheet if sheet is not None else xls.sheet_names[0]
    if name not in xls.sheet_names:
        raise DecodeError(f"sheet not found: {name}")
    try:
        df = xls.parse(name, header=None, dtype=object, keep_default_na=False, na_values=[""])
    except Exception as e:
        raise DecodeError(f"unable to parse sheet '{name}': {e}") from e
    return _frame_to_table(df, str(name))


def read_excel_file(source: Path | str | bytes) -> dict[str, DecodedTable]:
    """Decode every sheet of a workbook, keyed by sheet name in workbook order.

    Sheets without a header or without data rows are left out; a workbook in
    which no sheet holds data raises DecodeError.
    """
    try:
        xls = _open(source)
    except Exception as e:
        raise DecodeError(f"unable to read spreadsheet: {e}") from e
    tables: dict[str, DecodedTable] = {}
    reasons: list[str] = []
    for name in xls.sheet_names:
        try:
            df = xls.parse(name, header=None, dtype=object, keep_default_na=False, na_values=[""])
            tables[str(name)] = _frame_to_table(df, str(name))
        except DecodeError as e:
            reasons.append(str(e))
        except Exception as e:
            reasons.append(f"unable to parse sheet '{name}': {e}")
    if not tables:
        raise DecodeError("; ".join(reasons) or "workbook has no sheets")
    return tables
