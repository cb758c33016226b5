from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

"""ImportFile domain model and FileStatus enum.

ImportFile is the processing context of one spreadsheet during an import run,
tracking its status from discovery through completion.
"""


class FileStatus(Enum):
    """Status of one spreadsheet in an import run.

    State transitions: pending -> processing -> (success | failed)
    """
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class ImportFile:
    path: Path
    name: str
    start_time: datetime | None = None
    end_time: datetime | None = None
    status: FileStatus = FileStatus.PENDING
    decoded_rows: int = 0  # body rows read from the sheet
    written_rows: int = 0  # distinct identifiers upserted
    skipped_rows: int = 0  # rows without an identifier
    missing_fields: tuple[str, ...] = ()  # labels of unmapped fields
    error: str | None = None  # failure reason summary
    # upsert chunk timing (count, avg, p95)
    batch_stats: tuple[int, float, float] = (0, 0.0, 0.0)
