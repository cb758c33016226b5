from __future__ import annotations

from collections import Counter
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Per-run error log (JSON Lines).

Records collected during an import run are kept in memory and written in one
go at the end, one JSON object per line, to ``logs/errors-YYYYMMDD-HHMMSS.log``
(UTC stamp taken when the file is first needed). A run without errors leaves
no file behind. Line layout is fixed by error_log_schema.json.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "SCHEMA_PATH",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"
SCHEMA_PATH = Path(__file__).with_name("error_log_schema.json")


class ErrorLogBuffer:
    """Collects ErrorRecords; flush() appends them to the run's log file.

    Repeated flushes go to the same file. Not thread-safe (imports run serially).
    """

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._logs_dir = logs_dir if logs_dir is not None else LOGS_DIR
        self._pending: list[ErrorRecord] = []
        self._target: Path | None = None

    def _target_path(self) -> Path:
        if self._target is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._target = self._logs_dir / f"errors-{stamp}.log"
        return self._target

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._pending)

    def append(self, record: ErrorRecord) -> None:
        self._pending.append(record)

    def counts_by_type(self) -> dict[str, int]:
        """``{error_type: n}`` over the records not yet flushed."""
        return dict(Counter(r.error_type for r in self._pending))

    def __iter__(self) -> Iterator[ErrorRecord]:
        return iter(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def flush(self) -> Path | None:
        """Append pending records; returns the log path, or None when there was nothing to write."""
        if not self._pending:
            return None
        path = self._target_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = "".join(f"{r.to_json_line()}\n" for r in self._pending)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(payload)
        self._pending = []
        return path
