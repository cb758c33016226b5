from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path

from ..db.store import RecordStore, StoreError
from ..excel.reader import DecodeError, decode_workbook
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ImportConfig
from ..models.error_record import FILE_LEVEL_ROW, ErrorRecord
from ..models.import_file import FileStatus, ImportFile
from ..models.processing_result import BatchStatsAccumulator, FileStat, ImportResult
from ..models.schema import label_for
from .column_mapper import MappingIncompleteError, apply_overrides, auto_map, require_complete
from .materializer import materialize_table
from .merge import upsert_records
from .progress import ProgressTracker
from .validation import FieldValidator, ValidationContractError, invalid_fields, validate_records

"""Import orchestration.

Coordinates one import run: scan the source directory, and for each
spreadsheet decode -> map columns -> gate on a complete mapping -> materialize
-> merge into the store. A failing file is recorded in the error log and the
run continues with the next one.
"""

logger = logging.getLogger(__name__)

SPREADSHEET_SUFFIXES = (".xlsx", ".xls")


class ProcessingError(Exception):
    """Fatal condition that stops the whole run."""


def scan_spreadsheets(directory: Path) -> list[Path]:
    """Spreadsheets directly under ``directory`` (non-recursive, sorted by name).

    Raises:
        ProcessingError: directory missing, not a directory, or unreadable
    """
    if not directory.exists():
        raise ProcessingError(f"Directory not found: {directory}")

    if not directory.is_dir():
        raise ProcessingError(f"Path is not a directory: {directory}")

    try:
        found = [p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in SPREADSHEET_SUFFIXES]
    except OSError as e:
        raise ProcessingError(f"Error reading directory {directory}: {e}") from e
    return sorted(found, key=lambda p: p.name)


def _failed(
    file_path: Path,
    start_time: datetime,
    error_log: ErrorLogBuffer,
    error_type: str,
    message: str,
    **fields,
) -> ImportFile:
    error_log.append(
        ErrorRecord.create(file=file_path.name, row=FILE_LEVEL_ROW, error_type=error_type, message=message)
    )
    logger.error("file=%s %s: %s", file_path.name, error_type, message)
    return ImportFile(
        path=file_path,
        name=file_path.name,
        start_time=start_time,
        end_time=datetime.now(UTC),
        status=FileStatus.FAILED,
        error=message,
        **fields,
    )


def import_file(
    file_path: Path,
    store: RecordStore,
    config: ImportConfig,
    error_log: ErrorLogBuffer,
    column_overrides: Mapping[str, str | None] | None = None,
    validator: FieldValidator | None = None,
) -> ImportFile:
    """Import one spreadsheet into ``store``.

    ``column_overrides`` (header -> field key or None) are applied after the
    config overrides, so CLI choices win over the config file.

    With a ``validator`` every materialized record is checked before the merge.
    Rejected fields are logged as INVALID_FIELD (row = 1-based data row) and the
    records are still saved; a malformed validator answer fails the file.
    """
    start_time = datetime.now(UTC)

    try:
        table = decode_workbook(file_path)
    except DecodeError as e:
        return _failed(file_path, start_time, error_log, "DECODE_ERROR", str(e))

    mapping = auto_map(table.headers)
    apply_overrides(mapping, config.column_overrides)
    if column_overrides:
        apply_overrides(mapping, column_overrides)
    logger.info("file=%s rows=%d mapping=%s", file_path.name, len(table), mapping.as_dict())

    try:
        require_complete(mapping)
    except MappingIncompleteError as e:
        return _failed(
            file_path,
            start_time,
            error_log,
            "MAPPING_INCOMPLETE",
            str(e),
            decoded_rows=len(table),
            missing_fields=tuple(e.missing_labels),
        )

    records = materialize_table(table, mapping)

    if validator is not None:
        try:
            verdicts = validate_records(records, validator)
        except ValidationContractError as e:
            return _failed(
                file_path,
                start_time,
                error_log,
                "VALIDATION_ERROR",
                str(e),
                decoded_rows=len(table),
            )
        flagged = 0
        for row_number, results in enumerate(verdicts, start=1):
            problems = invalid_fields(results)
            if not problems:
                continue
            flagged += 1
            message = "; ".join(f"{label_for(field)}: {msg}" for field, msg in problems.items())
            error_log.append(
                ErrorRecord.create(file=file_path.name, row=row_number, error_type="INVALID_FIELD", message=message)
            )
        logger.info("file=%s validated=%d flagged=%d", file_path.name, len(verdicts), flagged)

    accumulator = BatchStatsAccumulator()
    try:
        store.begin()
        merged = upsert_records(
            store,
            records,
            chunk_size=config.upsert_chunk_size,
            metrics_callback=lambda m: accumulator.add_batch_time(m.elapsed_seconds),
        )
        store.commit()
    except StoreError as e:
        # ファイル単位でロールバック
        store.rollback()
        return _failed(
            file_path,
            start_time,
            error_log,
            "STORE_ERROR",
            str(e),
            decoded_rows=len(table),
            batch_stats=accumulator.get_stats(),
        )

    if merged.skipped_blank:
        error_log.append(
            ErrorRecord.create(
                file=file_path.name,
                row=FILE_LEVEL_ROW,
                error_type="MISSING_IDENTIFIER",
                message=f"{merged.skipped_blank} row(s) without CPF were not saved",
            )
        )

    return ImportFile(
        path=file_path,
        name=file_path.name,
        start_time=start_time,
        end_time=datetime.now(UTC),
        status=FileStatus.SUCCESS,
        decoded_rows=len(table),
        written_rows=merged.written,
        skipped_rows=merged.skipped_blank,
        batch_stats=accumulator.get_stats(),
    )


def process_all(
    config: ImportConfig,
    store: RecordStore,
    files: list[Path] | None = None,
    column_overrides: Mapping[str, str | None] | None = None,
    error_log: ErrorLogBuffer | None = None,
    validator: FieldValidator | None = None,
) -> ImportResult:
    """Import every spreadsheet in the configured directory (or ``files``).

    Raises:
        ProcessingError: for fatal errors (missing source directory)
    """
    start_time = datetime.now(UTC)
    if error_log is None:
        error_log = ErrorLogBuffer()

    if files is None:
        file_paths = scan_spreadsheets(Path(config.source_directory))
    else:
        file_paths = list(files)

    file_stats: list[FileStat] = []
    success_count = 0
    failed_count = 0
    total_rows = 0
    skipped_rows = 0

    with ProgressTracker(len(file_paths)) as progress:
        for file_path in file_paths:
            progress.start_file(file_path)
            try:
                result = import_file(file_path, store, config, error_log, column_overrides, validator)
            except Exception as e:
                # 想定外の例外でも次のファイルへ進む
                result = _failed(file_path, datetime.now(UTC), error_log, "PROCESSING_ERROR", str(e))

            if result.status == FileStatus.SUCCESS:
                success_count += 1
                total_rows += result.written_rows
                skipped_rows += result.skipped_rows
            else:
                failed_count += 1

            progress.set_postfix(success=success_count, failed=failed_count, rows=total_rows)
            progress.finish_file(success=(result.status == FileStatus.SUCCESS))

            elapsed = 0.0
            if result.start_time is not None and result.end_time is not None:
                elapsed = (result.end_time - result.start_time).total_seconds()
            batches, avg_batch, p95_batch = result.batch_stats
            file_stats.append(
                FileStat(
                    file_name=file_path.name,
                    status=result.status.value,
                    written_rows=result.written_rows,
                    skipped_rows=result.skipped_rows,
                    elapsed_seconds=elapsed,
                    total_batches=batches,
                    avg_batch_seconds=avg_batch,
                    p95_batch_seconds=p95_batch,
                )
            )

    counts = error_log.counts_by_type()
    try:
        error_path = error_log.flush()
    except OSError as e:
        logger.warning("failed to write error log: %s", e)
    else:
        if error_path is not None:
            logger.info("error log written: %s %s", error_path, counts)

    end_time = datetime.now(UTC)
    elapsed_seconds = (end_time - start_time).total_seconds()
    throughput_rps = total_rows / elapsed_seconds if elapsed_seconds > 0 else 0.0

    return ImportResult(
        success_files=success_count,
        failed_files=failed_count,
        total_written_rows=total_rows,
        skipped_rows=skipped_rows,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=elapsed_seconds,
        throughput_rows_per_sec=throughput_rps,
        file_stats=file_stats,
    )
