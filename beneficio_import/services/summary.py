from __future__ import annotations

from ..models.processing_result import ImportResult, RepairResult

"""SUMMARY line rendering for import and repair runs."""

__all__ = [
    "format_seconds",
    "render_repair_summary",
    "render_summary_line",
]


def format_seconds(value: float) -> str:
    """Integral values without decimals; tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip('0').rstrip('.')
    return str(round(value, 3))


def render_summary_line(total_files: int, result: ImportResult) -> str:
    """Render the import SUMMARY line.

    Format:
    SUMMARY files={total}/{total} success={success} failed={failed} rows={rows}
    skipped_rows={skipped} elapsed_sec={elapsed} throughput_rps={throughput}

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = ImportResult(
        ...     success_files=1, failed_files=0, total_written_rows=1000,
        ...     skipped_rows=0, start_time=start, end_time=end,
        ...     elapsed_seconds=2.0, throughput_rows_per_sec=500.0
        ... )
        >>> render_summary_line(1, result)
        'SUMMARY files=1/1 success=1 failed=0 rows=1000 skipped_rows=0 elapsed_sec=2 throughput_rps=500'
    """
    return (
        f"SUMMARY files={total_files}/{total_files} "
        f"success={result.success_files} "
        f"failed={result.failed_files} "
        f"rows={result.total_written_rows} "
        f"skipped_rows={result.skipped_rows} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)} "
        f"throughput_rps={format_seconds(result.throughput_rows_per_sec)}"
    )


def render_repair_summary(result: RepairResult) -> str:
    return (
        f"SUMMARY job={result.job} "
        f"scanned={result.scanned} "
        f"corrected={result.corrected} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)}"
    )
