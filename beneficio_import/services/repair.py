from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ..db.store import RecordStore, StoreError
from ..models.config_models import DEFAULT_CHUNK_SIZE, DEFAULT_PAGE_SIZE
from ..models.processing_result import RepairResult
from ..models.record import CanonicalRecord
from ..models.schema import BIRTH_DATE_FIELD, CURRENCY_FIELDS
from .collection_reader import read_all
from .merge import upsert_records
from .normalizer import convert_stored_serial, repair_legacy_currency

"""Bulk repair jobs over the whole stored collection.

Both jobs read every record, compute a corrected copy for the ones still in a
pre-normalization form and re-upsert only that subset. Running a job twice in
a row corrects nothing the second time.

- dates: data_nascimento still holding a day serial (numeric, no '/')
- currency: currency fields holding an integer count of cents (no '.' or ',').
  This heuristic cannot tell a legacy '123456' from a genuine whole amount of
  123456; a correctly stored '100' is rewritten to '1.00'.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "fix_birth_date",
    "fix_currency",
    "repair_birth_dates",
    "repair_currency",
]

JOB_DATES = "dates"
JOB_CURRENCY = "currency"


def fix_birth_date(record: CanonicalRecord) -> CanonicalRecord | None:
    """Corrected copy of ``record`` or None when no correction applies."""
    value = record[BIRTH_DATE_FIELD]
    if not value or "/" in value:
        return None
    converted = convert_stored_serial(value)
    if converted is None:
        return None
    return record.replace(**{BIRTH_DATE_FIELD: converted})


def fix_currency(record: CanonicalRecord) -> CanonicalRecord | None:
    changes: dict[str, str] = {}
    for field in CURRENCY_FIELDS:
        fixed = repair_legacy_currency(record[field])
        if fixed is not None:
            changes[field] = fixed
    if not changes:
        return None
    return record.replace(**changes)


def _run_job(
    job: str,
    store: RecordStore,
    fix: Callable[[CanonicalRecord], CanonicalRecord | None],
    page_size: int,
    chunk_size: int,
) -> RepairResult:
    started = time.perf_counter()
    records = read_all(store, page_size=page_size)
    corrected = [fixed for fixed in (fix(r) for r in records) if fixed is not None]
    if corrected:
        try:
            store.begin()
            upsert_records(store, corrected, chunk_size=chunk_size)
            store.commit()
        except StoreError:
            store.rollback()
            raise
    elapsed = time.perf_counter() - started
    logger.info("repair job=%s scanned=%d corrected=%d", job, len(records), len(corrected))
    return RepairResult(job=job, scanned=len(records), corrected=len(corrected), elapsed_seconds=elapsed)


def repair_birth_dates(
    store: RecordStore,
    page_size: int = DEFAULT_PAGE_SIZE,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> RepairResult:
    """Rewrite birth dates stored as day serials as DD/MM/YYYY."""
    return _run_job(JOB_DATES, store, fix_birth_date, page_size, chunk_size)


def repair_currency(
    store: RecordStore,
    page_size: int = DEFAULT_PAGE_SIZE,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> RepairResult:
    """Rewrite cents-as-integer currency values as two-decimal amounts."""
    return _run_job(JOB_CURRENCY, store, fix_currency, page_size, chunk_size)
