from __future__ import annotations

import csv
import io
from collections.abc import Sequence
from pathlib import Path

from ..models.record import CanonicalRecord

"""CSV export of stored records.

Format: UTF-8 with a leading BOM (so spreadsheet tools pick the encoding),
header row = keys of the first record, every field double-quoted with inner
quotes doubled, rows separated by '\\n' and no trailing newline.
"""

__all__ = [
    "BOM",
    "ExportError",
    "export_csv",
    "render_csv",
]

BOM = "\ufeff"


class ExportError(Exception):
    pass


def render_csv(records: Sequence[CanonicalRecord]) -> str:
    if not records:
        raise ExportError("nothing to export: the collection is empty")
    headers = list(records[0].to_dict().keys())
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    for record in records:
        data = record.to_dict()
        writer.writerow(["" if data.get(h) is None else str(data.get(h)) for h in headers])
    return BOM + buf.getvalue().removesuffix("\n")


def export_csv(records: Sequence[CanonicalRecord], path: Path) -> int:
    """Write ``records`` to ``path``; returns the number of data rows written."""
    text = render_csv(records)
    path.parent.mkdir(parents=True, exist_ok=True)
    # newline="" : 改行コードを変換しない
    with path.open("w", encoding="utf-8", newline="") as fh:
        fh.write(text)
    return len(records)
