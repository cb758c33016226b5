from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

"""Decoded spreadsheet cell and table models.

A spreadsheet cell has two readings:
- formatted: the text the operator sees (dates already rendered DD/MM/YYYY)
- raw: the stored value (a day serial stays a number, a native date cell is a datetime)

The Value Normalizer needs both, so the decoder keeps them side by side and tags
the raw reading with its kind instead of leaving callers to inspect types.
"""

__all__ = [
    "RawKind",
    "Cell",
    "DecodedTable",
    "EMPTY_CELL",
]


class RawKind(Enum):
    """Kind of the raw reading of a cell."""
    NUMBER = "number"
    STRING = "string"
    DATE = "date"
    EMPTY = "empty"


@dataclass(frozen=True)
class Cell:
    formatted: str
    raw: Any = None  # int | float | str | datetime | None (per kind)
    kind: RawKind = RawKind.EMPTY

    @property
    def is_empty(self) -> bool:
        return self.kind is RawKind.EMPTY

    @classmethod
    def number(cls, value: int | float, formatted: str | None = None) -> Cell:
        if formatted is None:
            formatted = format_number(value)
        return cls(formatted=formatted, raw=value, kind=RawKind.NUMBER)

    @classmethod
    def text(cls, value: str) -> Cell:
        stripped = value.strip()
        if stripped == "":
            return EMPTY_CELL
        return cls(formatted=stripped, raw=value, kind=RawKind.STRING)

    @classmethod
    def date(cls, value: datetime) -> Cell:
        return cls(formatted=value.strftime("%d/%m/%Y"), raw=value, kind=RawKind.DATE)


EMPTY_CELL = Cell(formatted="", raw=None, kind=RawKind.EMPTY)


def format_number(value: int | float) -> str:
    """Render a numeric cell the way a spreadsheet shows a General-format number.

    Integral floats lose the trailing ``.0`` (CPF columns read as float when the
    column has blanks).
    """
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


@dataclass
class DecodedTable:
    """Header row plus body rows of one sheet.

    Invariant: every row has exactly ``len(headers)`` cells.
    """
    headers: list[str]
    rows: list[list[Cell]] = field(default_factory=list)
    sheet_name: str = ""

    def __post_init__(self) -> None:
        width = len(self.headers)
        for i, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(
                    f"row {i} has {len(row)} cells, expected {width} (sheet '{self.sheet_name}')"
                )

    def __len__(self) -> int:
        return len(self.rows)
