from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..db.store import InMemoryStore, RecordStore, StoreError
from ..excel.reader import DecodeError, decode_workbook, read_excel_file
from ..logging.init import log_summary, set_debug, setup_logging
from ..models.config_models import ImportConfig
from ..models.schema import field_keys, label_for
from ..services.collection_reader import read_all
from ..services.column_mapper import apply_overrides, auto_map
from ..services.export import ExportError, export_csv
from ..services.orchestrator import ProcessingError, process_all
from ..services.repair import repair_birth_dates, repair_currency
from ..services.search import find_by_identifier, search_contains
from ..services.stats import dashboard_stats
from ..services.summary import render_repair_summary, render_summary_line

"""CLI entrypoint.

Sub-commands:
- import [FILE ...]   import spreadsheets (default: every file in source_directory)
- inspect FILE        show headers, automatic mapping and sample rows
                      (--all-sheets: every sheet of the workbook)
- repair-dates        rewrite birth dates still stored as day serials
- repair-currency     rewrite currency values stored as cents
- export OUTPUT       write the whole collection as CSV
- lookup CPF          show one record
- search TERM         substring search over every field
- stats               dashboard figures (total, average age, age buckets)
- clear --yes         delete every stored record

DB connection precedence: .env (loaded with override) -> DATABASE_URL / PGDSN
-> PG* variables -> config ``database`` section. DISABLE_DB_CONNECT=1 runs
against an in-memory store.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

# Matches no real CPF (always 11 digits); required by delete_all as a safety gate
CLEAR_SENTINEL = "__none__"


def _resolve_dsn(cfg: ImportConfig) -> str:
    db_cfg = cfg.database
    dsn_env = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn_env:
        return dsn_env
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_connection(cfg: ImportConfig) -> Iterator[object]:  # pragma: no cover (thin wrapper)
    """psycopg2 connection + cursor in autocommit mode.

    Transaction boundaries are explicit BEGIN/COMMIT/ROLLBACK issued by the
    store, so psycopg2 must not open implicit transactions of its own.
    """
    import psycopg2

    conn = psycopg2.connect(_resolve_dsn(cfg))
    conn.autocommit = True
    cur = conn.cursor()
    try:
        yield cur
    finally:
        cur.close()
        conn.close()


@contextmanager
def _open_store(cfg: ImportConfig, logger) -> Iterator[RecordStore]:
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> in-memory store")
        yield InMemoryStore()
        return
    from ..db.postgres import PostgresStore

    with _db_connection(cfg) as cur:
        yield PostgresStore(cur, cfg.table, page_size=cfg.upsert_chunk_size)


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv (override=True: .env wins over the process env)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_mapping_args(values: list[str] | None) -> dict[str, str | None]:
    """Parse repeated ``--map HEADER=FIELD`` values (FIELD "none" clears)."""
    known = set(field_keys())
    overrides: dict[str, str | None] = {}
    for item in values or []:
        header, sep, field = item.rpartition("=")
        if not sep or not header.strip():
            raise argparse.ArgumentTypeError(f"--map expects HEADER=FIELD, got {item!r}")
        field = field.strip()
        if field in ("", "none"):
            overrides[header.strip()] = None
        elif field in known:
            overrides[header.strip()] = field
        else:
            raise argparse.ArgumentTypeError(f"--map: unknown field {field!r} (expected one of {sorted(known)})")
    return overrides


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="beneficio-import", description="Beneficiary spreadsheet importer")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to import.yml")
    sub = p.add_subparsers(dest="command")

    imp = sub.add_parser("import", help="Import spreadsheets into the store")
    imp.add_argument("files", nargs="*", type=Path, help="Spreadsheets (default: source_directory)")
    imp.add_argument(
        "--map", action="append", metavar="HEADER=FIELD",
        help="Assign a header to a field (FIELD 'none' clears). Repeatable",
    )

    ins = sub.add_parser("inspect", help="Show headers, automatic mapping and sample rows")
    ins.add_argument("file", type=Path)
    ins.add_argument("--map", action="append", metavar="HEADER=FIELD")
    ins.add_argument("--all-sheets", action="store_true", help="Inspect every sheet, not only the first")

    sub.add_parser("repair-dates", help="Convert stored day serials to DD/MM/YYYY")
    sub.add_parser("repair-currency", help="Convert stored cents to decimal amounts")

    exp = sub.add_parser("export", help="Export every record as CSV")
    exp.add_argument("output", type=Path)

    look = sub.add_parser("lookup", help="Find a record by CPF")
    look.add_argument("cpf")

    sea = sub.add_parser("search", help="Case-insensitive search across all fields")
    sea.add_argument("term")

    sub.add_parser("stats", help="Dashboard statistics")

    clr = sub.add_parser("clear", help="Delete every stored record")
    clr.add_argument("--yes", action="store_true", help="Confirm the deletion")

    args = p.parse_args(argv)
    if args.command is None:
        args.command = "import"
        args.files = []
        args.map = None
    return args


def _inspect_table(table, cfg: ImportConfig, overrides) -> None:
    mapping = auto_map(table.headers)
    apply_overrides(mapping, cfg.column_overrides)
    apply_overrides(mapping, overrides)
    print(f"SHEET: {table.sheet_name} rows={len(table)}")
    for header in table.headers:
        field = mapping.field_for(header)
        print(f"  {header!r} -> {field if field else '-'}")
    missing = [f.label for f in mapping.missing_fields()]
    print(f"  missing={missing}")
    for row in table.rows[:3]:
        print("    sample_row=", [c.formatted for c in row])


def _inspect(args: argparse.Namespace, cfg: ImportConfig, logger) -> int:
    try:
        if args.all_sheets:
            tables = list(read_excel_file(args.file).values())
        else:
            tables = [decode_workbook(args.file)]
    except DecodeError as e:
        logger.error(f"inspect: {e}")
        return EXIT_FATAL
    print(f"FILE: {args.file.name}")
    for table in tables:
        _inspect_table(table, cfg, args.overrides)
    return EXIT_SUCCESS_ALL


def _print_record(record) -> None:
    for key, value in record.to_dict().items():
        print(f"  {label_for(key)}: {value if value is not None else ''}")


def _run_import(args: argparse.Namespace, cfg: ImportConfig, store: RecordStore, logger) -> int:
    files = list(args.files) or None
    if files is None:
        logger.info(f"Processing files from: {cfg.source_directory}")
    result = process_all(cfg, store, files=files, column_overrides=args.overrides)
    logger.info(f"total_rows={result.total_written_rows}")

    total_files = result.success_files + result.failed_files
    summary_line = render_summary_line(total_files, result)
    log_summary(summary_line.removeprefix("SUMMARY "))

    if result.failed_files > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _dispatch(args: argparse.Namespace, cfg: ImportConfig, store: RecordStore, logger) -> int:
    if args.command == "import":
        return _run_import(args, cfg, store, logger)

    if args.command in ("repair-dates", "repair-currency"):
        job = repair_birth_dates if args.command == "repair-dates" else repair_currency
        result = job(store, page_size=cfg.page_size, chunk_size=cfg.upsert_chunk_size)
        if result.corrected == 0:
            logger.info("no correction needed")
        log_summary(render_repair_summary(result).removeprefix("SUMMARY "))
        return EXIT_SUCCESS_ALL

    if args.command == "clear":
        if not args.yes:
            logger.error("clear: refusing to delete without --yes")
            return EXIT_FATAL
        store.begin()
        try:
            deleted = store.delete_all(CLEAR_SENTINEL)
            store.commit()
        except StoreError:
            store.rollback()
            raise
        logger.info(f"deleted {deleted} record(s)")
        return EXIT_SUCCESS_ALL

    records = read_all(store, page_size=cfg.page_size)

    if args.command == "export":
        try:
            written = export_csv(records, args.output)
        except ExportError as e:
            logger.error(f"export: {e}")
            return EXIT_FATAL
        logger.info(f"exported {written} record(s) to {args.output}")
        return EXIT_SUCCESS_ALL

    if args.command == "lookup":
        record = find_by_identifier(records, args.cpf)
        if record is None:
            logger.warning(f"CPF not found: {args.cpf}")
            return EXIT_FATAL
        _print_record(record)
        return EXIT_SUCCESS_ALL

    if args.command == "search":
        matches = search_contains(records, args.term)
        logger.info(f"{len(matches)} match(es) for {args.term!r}")
        for record in matches:
            print(f"  {record.identifier} {record['nome']}")
        return EXIT_SUCCESS_ALL

    if args.command == "stats":
        stats = dashboard_stats(records)
        print(f"total_clients={stats.total_clients} average_age={stats.average_age}")
        for bucket in stats.age_distribution:
            print(f"  {bucket.range}: {bucket.count}")
        return EXIT_SUCCESS_ALL

    logger.error(f"unknown command: {args.command}")  # pragma: no cover
    return EXIT_FATAL  # pragma: no cover


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # [] を渡されたときに sys.argv (pytest の引数) を読まないよう None のみ判定
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    try:
        args.overrides = _parse_mapping_args(getattr(args, "map", None))
    except argparse.ArgumentTypeError as e:
        logger.error(f"args: {e}")
        return EXIT_FATAL

    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "inspect":
        return _inspect(args, cfg, logger)
    if args.command == "import" and not args.files:
        directory = Path(cfg.source_directory)
        if not directory.exists():
            logger.error(f"directory not found: {directory}")
            return EXIT_FATAL

    try:
        with _open_store(cfg, logger) as store:
            return _dispatch(args, cfg, store, logger)
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL
    except StoreError as e:
        logger.error(f"store: {e}")
        return EXIT_FATAL
    except Exception as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
