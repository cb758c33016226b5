from __future__ import annotations

import re
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

"""DB batch upsert.

psycopg2.extras.execute_values with INSERT ... ON CONFLICT (key) DO UPDATE.
Every non-key column is overwritten from EXCLUDED, so a conflicting row is
replaced wholesale rather than merged field by field.

PostgreSQL refuses a single statement that touches the same key twice
("ON CONFLICT DO UPDATE command cannot affect row a second time"): rows must be
deduplicated by key before they reach this function.
"""

try:  # pragma: no cover - optional until psycopg2 present at runtime
    import psycopg2
    from psycopg2.extras import execute_values
except Exception:  # pragma: no cover
    psycopg2 = None  # type: ignore
    execute_values = None  # type: ignore

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class BatchUpsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single batch upsert call."""
    batch_size: int  # Number of rows in this batch
    elapsed_seconds: float  # Time spent on execute_values call
    start_time: float  # time.time()
    end_time: float  # time.time()


@dataclass(frozen=True)
class UpsertResult:
    upserted_rows: int


def quote_ident(name: str) -> str:
    """Double-quote a table/column identifier after validating its characters."""
    if not _IDENT_RE.match(name):
        raise BatchUpsertError(f"invalid identifier: {name!r}")
    return f'"{name}"'


def build_upsert_sql(table: str, columns: Sequence[str], conflict_column: str) -> str:
    if conflict_column not in columns:
        raise BatchUpsertError(f"conflict column {conflict_column!r} not in columns")
    cols_sql = ",".join(quote_ident(c) for c in columns)
    updates = ",".join(
        f"{quote_ident(c)}=EXCLUDED.{quote_ident(c)}" for c in columns if c != conflict_column
    )
    sql = f"INSERT INTO {quote_ident(table)} ({cols_sql}) VALUES %s ON CONFLICT ({quote_ident(conflict_column)})"
    if updates:
        return f"{sql} DO UPDATE SET {updates}"
    return f"{sql} DO NOTHING"


def batch_upsert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    conflict_column: str,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> UpsertResult:
    """Perform a batched upsert using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table name
    columns: column order of each row
    rows: row value sequences (unique by ``conflict_column``)
    conflict_column: unique key column for ON CONFLICT
    page_size: execute_values page size
    metrics_callback: receives BatchMetrics after the call. Not invoked when
        ``rows`` is empty (the function returns early).
    """
    if execute_values is None:
        raise BatchUpsertError("psycopg2 not available")

    rows_list = list(rows)
    if not rows_list:
        return UpsertResult(upserted_rows=0)

    sql = build_upsert_sql(table, columns, conflict_column)

    start_time = time.time()
    try:
        execute_values(cursor, sql, rows_list, page_size=page_size)
    except Exception as e:
        raise BatchUpsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics = BatchMetrics(
                batch_size=len(rows_list),
                elapsed_seconds=end_time - start_time,
                start_time=start_time,
                end_time=end_time,
            )
            metrics_callback(metrics)

    return UpsertResult(upserted_rows=len(rows_list))
