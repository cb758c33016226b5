from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..models.schema import IDENTIFIER_FIELD, field_keys
from .batch_upsert import BatchUpsertError, batch_upsert, quote_ident
from .store import Page, RecordStore, StoreError

"""PostgreSQL-backed RecordStore.

Expected table (one row per CPF; extra columns such as a serial id or
timestamps are allowed and are read back as record extras):

    CREATE TABLE beneficiarios (
        id bigserial,
        cpf text PRIMARY KEY,
        beneficio text, nome text, valor_beneficio text, data_nascimento text,
        idade text, codigo_especie text, margem_disponivel text, margem_rmc text,
        telefone text
    );

The connection runs in autocommit mode; every unit of work (one imported
file, one repair job, a clear) is bracketed explicitly with begin() and
commit()/rollback(). Reads outside such a bracket see committed data only.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "PostgresStore",
]


class PostgresStore(RecordStore):
    def __init__(self, cursor: Any, table: str, page_size: int = 1000) -> None:
        self.cursor = cursor
        self.table = table
        self.page_size = page_size
        self._table_sql = quote_ident(table)

    def upsert(self, records: Sequence[dict[str, Any]], conflict_key: str = IDENTIFIER_FIELD) -> None:
        columns = field_keys()
        rows = [[record.get(c, "") for c in columns] for record in records]
        try:
            batch_upsert(
                self.cursor,
                table=self.table,
                columns=columns,
                rows=rows,
                conflict_column=conflict_key,
                page_size=self.page_size,
            )
        except BatchUpsertError as e:
            raise StoreError(f"upsert into {self.table} failed: {e}") from e

    def select_range(self, offset: int, limit: int) -> Page:
        key = quote_ident(IDENTIFIER_FIELD)
        try:
            self.cursor.execute(f"SELECT count(*) FROM {self._table_sql}")
            total = self.cursor.fetchone()[0]
            self.cursor.execute(
                f"SELECT * FROM {self._table_sql} ORDER BY {key} LIMIT %s OFFSET %s",
                (limit, offset),
            )
            columns = [d[0] for d in self.cursor.description]
            fetched = self.cursor.fetchall()
        except Exception as e:
            raise StoreError(f"select from {self.table} failed: {e}") from e
        rows = [dict(zip(columns, row, strict=False)) for row in fetched]
        return Page(rows=rows, total_count=int(total) if total is not None else None)

    def begin(self) -> None:
        try:
            self.cursor.execute("BEGIN")
        except Exception as e:
            raise StoreError(f"begin failed: {e}") from e

    def commit(self) -> None:
        try:
            self.cursor.execute("COMMIT")
        except Exception as e:
            raise StoreError(f"commit failed: {e}") from e

    def rollback(self) -> None:
        try:
            self.cursor.execute("ROLLBACK")
        except Exception as e:  # pragma: no cover - connection already gone
            logger.warning("rollback failed: %s", e)

    def delete_all(self, filter_sentinel: str) -> int:
        if not filter_sentinel:
            raise StoreError("delete_all requires a filter sentinel")
        key = quote_ident(IDENTIFIER_FIELD)
        try:
            self.cursor.execute(
                f"DELETE FROM {self._table_sql} WHERE {key} <> %s", (filter_sentinel,)
            )
        except Exception as e:
            raise StoreError(f"delete from {self.table} failed: {e}") from e
        deleted = self.cursor.rowcount
        logger.debug("table=%s deleted_rows=%s", self.table, deleted)
        return int(deleted) if deleted is not None and deleted >= 0 else 0
