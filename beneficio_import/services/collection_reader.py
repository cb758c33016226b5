from __future__ import annotations

import logging

from ..db.store import RecordStore, StoreError
from ..models.config_models import DEFAULT_PAGE_SIZE
from ..models.record import CanonicalRecord

"""Full-collection reader.

Walks the store page by page until a short page, an empty page, or the
reported total count is reached. A failing page is logged and the records
read so far are returned: callers must treat a short result as possibly
incomplete.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "read_all",
]


def read_all(store: RecordStore, page_size: int = DEFAULT_PAGE_SIZE) -> list[CanonicalRecord]:
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    records: list[CanonicalRecord] = []
    offset = 0
    while True:
        try:
            page = store.select_range(offset, page_size)
        except StoreError as e:
            logger.warning("page fetch failed at offset=%d, returning %d record(s): %s", offset, len(records), e)
            break
        records.extend(CanonicalRecord.from_mapping(row) for row in page.rows)
        fetched = len(page.rows)
        offset += fetched
        if fetched < page_size:
            break
        if page.total_count is not None and len(records) >= page.total_count:
            break
    logger.debug("read_all pages_done offset=%d records=%d", offset, len(records))
    return records
