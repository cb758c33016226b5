from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

"""Persistent store contract.

The pipeline only needs three primitives from a backing store:
- upsert: insert-or-replace keyed by a conflict column
- select_range: paginated full scan (offset/limit), optionally with a total count
- delete_all: bulk delete gated by a filter sentinel that matches no real key

Consistency between an upsert and a following read is whatever the backend
provides; callers must not assume read-your-writes.
"""

__all__ = [
    "InMemoryStore",
    "Page",
    "RecordStore",
    "StoreError",
]


class StoreError(Exception):
    """Raised when the backing store rejects or fails an operation."""


@dataclass(frozen=True)
class Page:
    rows: list[dict[str, Any]]
    total_count: int | None = None


class RecordStore(ABC):
    @abstractmethod
    def upsert(self, records: Sequence[dict[str, Any]], conflict_key: str) -> None:
        """Insert or wholesale-replace ``records`` keyed by ``conflict_key``."""

    @abstractmethod
    def select_range(self, offset: int, limit: int) -> Page:
        """Return at most ``limit`` rows starting at ``offset`` in a stable order."""

    @abstractmethod
    def delete_all(self, filter_sentinel: str) -> int:
        """Delete every row whose key differs from ``filter_sentinel``; return the count."""

    # Transaction hooks: no-ops for stores that apply writes immediately
    def begin(self) -> None:
        return None

    def commit(self) -> None:
        return None

    def rollback(self) -> None:
        return None


@dataclass
class InMemoryStore(RecordStore):
    """Dict-backed store (dry runs and tests).

    ``fail_on_offset`` makes select_range raise for that offset;
    ``fail_on_upsert`` makes every upsert raise. ``upsert_calls`` records the
    batch sizes received.
    """
    conflict_key: str = "cpf"
    rows: dict[str, dict[str, Any]] = field(default_factory=dict)
    fail_on_offset: int | None = None
    fail_on_upsert: bool = False
    report_total: bool = True
    upsert_calls: list[int] = field(default_factory=list)

    def upsert(self, records: Sequence[dict[str, Any]], conflict_key: str) -> None:
        if self.fail_on_upsert:
            raise StoreError("upsert rejected by store")
        self.upsert_calls.append(len(records))
        for record in records:
            key = record.get(conflict_key)
            if key is None or key == "":
                raise StoreError(f"record without {conflict_key}")
            # 既存行はフィールド単位でマージせず丸ごと置換
            self.rows[key] = dict(record)

    def select_range(self, offset: int, limit: int) -> Page:
        if self.fail_on_offset is not None and offset == self.fail_on_offset:
            raise StoreError(f"page fetch failed at offset {offset}")
        ordered = list(self.rows.values())
        page = [dict(r) for r in ordered[offset:offset + limit]]
        return Page(rows=page, total_count=len(ordered) if self.report_total else None)

    def delete_all(self, filter_sentinel: str) -> int:
        if not filter_sentinel:
            raise StoreError("delete_all requires a filter sentinel")
        doomed = [k for k in self.rows if k != filter_sentinel]
        for k in doomed:
            del self.rows[k]
        return len(doomed)

    def __len__(self) -> int:
        return len(self.rows)
