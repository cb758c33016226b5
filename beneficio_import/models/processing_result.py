from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import datetime

"""Processing result models for import and repair runs.

ImportResult feeds the import SUMMARY line; RepairResult the repair one.
BatchStatsAccumulator collects upsert chunk timings for FileStat.
"""


@dataclass(frozen=True)
class FileStat:
    """Per-file import statistics."""
    file_name: str
    status: str  # success/failed
    written_rows: int  # distinct identifiers upserted
    skipped_rows: int  # rows without an identifier
    elapsed_seconds: float
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0


@dataclass(frozen=True)
class ImportResult:
    """Aggregated results of one import run."""
    success_files: int
    failed_files: int
    total_written_rows: int
    skipped_rows: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float  # total_written / elapsed
    file_stats: list[FileStat] | None = None


@dataclass(frozen=True)
class MergeResult:
    """Outcome of one call to the merge/upsert engine."""
    written: int  # records sent to the store after dedup
    skipped_blank: int  # records dropped for a blank identifier
    chunks: int  # store upsert calls made


@dataclass(frozen=True)
class RepairResult:
    """Outcome of one bulk repair job."""
    job: str
    scanned: int
    corrected: int
    elapsed_seconds: float = 0.0


class BatchStatsAccumulator:
    """Collects per-chunk upsert timings and summarizes them."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate batch statistics.

        Returns:
            tuple: (total_batches, avg_batch_seconds, p95_batch_seconds)
        """
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]  # 19th of 20 cut points

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
