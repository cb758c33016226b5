from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence

from ..db.batch_upsert import BatchMetrics
from ..db.store import RecordStore
from ..models.config_models import DEFAULT_CHUNK_SIZE
from ..models.processing_result import MergeResult
from ..models.record import CanonicalRecord
from ..models.schema import IDENTIFIER_FIELD

"""Merge/upsert engine.

Writes a batch of canonical records into the store keyed by CPF:
- within a batch the last record for an identifier wins
- across batches the stored record is replaced wholesale (the store's upsert)

The batch is deduplicated as a whole before it is split into chunks, so chunk
boundaries cannot reorder two writes for the same identifier. A store failure
aborts the remaining chunks and propagates to the caller.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "dedupe_last_wins",
    "upsert_records",
]


def dedupe_last_wins(records: Iterable[CanonicalRecord]) -> list[CanonicalRecord]:
    """One record per identifier: the last one in batch order.

    Winners are returned in the order of their final position in the batch.
    """
    latest: dict[str, CanonicalRecord] = {}
    for record in records:
        key = record.identifier
        # pop して再挿入: 最後の出現位置の順序を保つ
        latest.pop(key, None)
        latest[key] = record
    return list(latest.values())


def upsert_records(
    store: RecordStore,
    records: Sequence[CanonicalRecord],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> MergeResult:
    """Merge ``records`` into ``store``.

    Records with a blank identifier cannot be keyed and are skipped (logged).

    Raises:
        StoreError: propagated unchanged from the store
        ValueError: chunk_size < 1
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    if not records:
        return MergeResult(written=0, skipped_blank=0, chunks=0)

    keyed = [r for r in records if r.identifier]
    skipped = len(records) - len(keyed)
    if skipped:
        logger.warning("skipped %d record(s) without %s", skipped, IDENTIFIER_FIELD)

    unique = dedupe_last_wins(keyed)
    if len(unique) != len(keyed):
        logger.debug("collapsed %d duplicate identifier(s) in batch", len(keyed) - len(unique))

    chunks = 0
    for start in range(0, len(unique), chunk_size):
        chunk = [r.to_store_row() for r in unique[start:start + chunk_size]]
        t0 = time.time()
        store.upsert(chunk, IDENTIFIER_FIELD)
        t1 = time.time()
        chunks += 1
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(batch_size=len(chunk), elapsed_seconds=t1 - t0, start_time=t0, end_time=t1)
            )
        logger.debug("upsert chunk=%d size=%d", chunks, len(chunk))

    return MergeResult(written=len(unique), skipped_blank=skipped, chunks=chunks)
