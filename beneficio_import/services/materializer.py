from __future__ import annotations

from collections.abc import Sequence

from ..models.cell import Cell, DecodedTable
from ..models.record import CanonicalRecord
from .column_mapper import ColumnMapping
from .normalizer import normalize_cell

"""Row materialization: one decoded row + column mapping -> CanonicalRecord.

Partial mappings are tolerated; unmapped schema fields come out as ''.
Completeness is checked before processing (require_complete), not here.
"""

__all__ = [
    "materialize_row",
    "materialize_table",
]


def materialize_row(
    cells: Sequence[Cell], headers: Sequence[str], mapping: ColumnMapping
) -> CanonicalRecord:
    values: dict[str, str] = {}
    for index, header in enumerate(headers):
        field = mapping.field_for(header)
        if field is None or index >= len(cells):
            continue
        values[field] = normalize_cell(field, cells[index])
    # CanonicalRecord fills the remaining schema keys with ''
    return CanonicalRecord(values=values)


def materialize_table(table: DecodedTable, mapping: ColumnMapping) -> list[CanonicalRecord]:
    return [materialize_row(row, table.headers, mapping) for row in table.rows]
