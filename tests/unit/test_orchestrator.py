from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from beneficio_import.db.store import InMemoryStore
from beneficio_import.logging.error_log import ErrorLogBuffer
from beneficio_import.models.config_models import ImportConfig
from beneficio_import.models.import_file import FileStatus
from beneficio_import.models.schema import field_keys
from beneficio_import.models.validation import FieldValidation
from beneficio_import.services.orchestrator import (
    ProcessingError,
    import_file,
    process_all,
    scan_spreadsheets,
)


def _config(temp_workdir: Path, **kwargs) -> ImportConfig:
    return ImportConfig(source_directory=str(temp_workdir / "data"), **kwargs)


def test_scan_spreadsheets_sorted_and_filtered(temp_workdir: Path):
    data = temp_workdir / "data"
    for name in ["b.xlsx", "a.XLS", "notes.txt"]:
        (data / name).write_bytes(b"")
    (data / "sub").mkdir()
    assert [p.name for p in scan_spreadsheets(data)] == ["a.XLS", "b.xlsx"]


def test_scan_spreadsheets_missing_directory(temp_workdir: Path):
    with pytest.raises(ProcessingError):
        scan_spreadsheets(temp_workdir / "missing")


def test_import_file_success(temp_workdir: Path, make_workbook, standard_rows):
    path = make_workbook("clientes.xlsx", standard_rows)
    store = InMemoryStore()
    result = import_file(path, store, _config(temp_workdir), ErrorLogBuffer())
    assert result.status == FileStatus.SUCCESS
    assert result.decoded_rows == 2
    assert result.written_rows == 2

    maria = store.rows["12345678901"]
    assert maria["valor_beneficio"] == "1234.56"
    assert maria["data_nascimento"] == "01/01/1990"
    assert maria["margem_rmc"] == "50.00"
    joao = store.rows["00987654321"]
    assert joao["valor_beneficio"] == "2500.50"
    assert joao["data_nascimento"] == "15/03/1960"


def test_import_file_incomplete_mapping_writes_nothing(temp_workdir: Path, make_workbook):
    path = make_workbook("parcial.xlsx", [["CPF", "Nome"], ["1", "Ana"]])
    store = InMemoryStore()
    log = ErrorLogBuffer()
    result = import_file(path, store, _config(temp_workdir), log)
    assert result.status == FileStatus.FAILED
    assert "Benefício" in result.missing_fields
    assert len(store) == 0
    assert [r.error_type for r in log.records] == ["MAPPING_INCOMPLETE"]
    assert log.records[0].row == -1


def test_import_file_cli_overrides_win(temp_workdir: Path, make_workbook, standard_rows):
    rows = [list(r) for r in standard_rows]
    rows[0][0] = "Documento"
    path = make_workbook("doc.xlsx", rows)
    cfg = _config(temp_workdir, column_overrides={"Documento": None})
    store = InMemoryStore()
    result = import_file(path, store, cfg, ErrorLogBuffer(), column_overrides={"Documento": "cpf"})
    assert result.status == FileStatus.SUCCESS
    assert "12345678901" in store.rows


def test_import_file_decode_error(temp_workdir: Path):
    bad = temp_workdir / "data" / "broken.xlsx"
    bad.write_bytes(b"garbage")
    log = ErrorLogBuffer()
    result = import_file(bad, InMemoryStore(), _config(temp_workdir), log)
    assert result.status == FileStatus.FAILED
    assert log.records[0].error_type == "DECODE_ERROR"


def test_import_file_store_error_rolls_back(temp_workdir: Path, make_workbook, standard_rows):
    path = make_workbook("clientes.xlsx", standard_rows)
    store = InMemoryStore(fail_on_upsert=True)
    log = ErrorLogBuffer()
    with patch.object(InMemoryStore, "rollback") as rollback:
        result = import_file(path, store, _config(temp_workdir), log)
    assert result.status == FileStatus.FAILED
    assert log.records[0].error_type == "STORE_ERROR"
    rollback.assert_called_once()


def test_import_file_blank_cpf_rows_are_skipped(temp_workdir: Path, make_workbook, standard_rows):
    rows = [list(r) for r in standard_rows]
    rows[2][0] = None
    path = make_workbook("semcpf.xlsx", rows)
    store = InMemoryStore()
    log = ErrorLogBuffer()
    result = import_file(path, store, _config(temp_workdir), log)
    assert result.status == FileStatus.SUCCESS
    assert result.written_rows == 1
    assert result.skipped_rows == 1
    assert [r.error_type for r in log.records] == ["MISSING_IDENTIFIER"]


def test_process_all_partial_failure(temp_workdir: Path, make_workbook, standard_rows):
    make_workbook("a_ok.xlsx", standard_rows)
    make_workbook("b_parcial.xlsx", [["CPF"], ["1"]])
    store = InMemoryStore()
    result = process_all(_config(temp_workdir, upsert_chunk_size=1), store)
    assert result.success_files == 1
    assert result.failed_files == 1
    assert result.total_written_rows == 2
    assert [s.status for s in result.file_stats] == ["success", "failed"]
    assert result.file_stats[0].total_batches == 2

    # エラーログは 1 回だけ書き出される
    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    entries = [json.loads(line) for line in logs[0].read_text(encoding="utf-8").splitlines()]
    assert entries[0]["file"] == "b_parcial.xlsx"


def test_process_all_unexpected_exception_continues(temp_workdir: Path, make_workbook, standard_rows):
    make_workbook("a.xlsx", standard_rows)
    make_workbook("b.xlsx", standard_rows)

    def boom(table, mapping):
        raise RuntimeError("unexpected")

    with patch("beneficio_import.services.orchestrator.materialize_table", side_effect=boom):
        result = process_all(_config(temp_workdir), InMemoryStore())
    assert result.failed_files == 2
    assert result.success_files == 0


def test_process_all_explicit_files(temp_workdir: Path, make_workbook, standard_rows):
    path = make_workbook("a.xlsx", standard_rows)
    make_workbook("ignored.xlsx", [["CPF"], ["1"]])
    result = process_all(_config(temp_workdir), InMemoryStore(), files=[path])
    assert (result.success_files, result.failed_files) == (1, 0)


class PhoneValidator:
    """Rejects empty phone numbers."""

    def validate(self, record):
        return [
            FieldValidation(key, key != "telefone" or bool(record[key]), "Telefone obrigatório")
            for key in field_keys()
        ]


def test_import_file_validator_flags_rows_and_still_saves(temp_workdir: Path, make_workbook, standard_rows):
    path = make_workbook("clientes.xlsx", standard_rows)
    store = InMemoryStore()
    log = ErrorLogBuffer()
    result = import_file(path, store, _config(temp_workdir), log, validator=PhoneValidator())
    assert result.status == FileStatus.SUCCESS
    assert len(store) == 2
    # 2 行目 (João) は電話番号なし
    assert [(r.row, r.error_type) for r in log.records] == [(2, "INVALID_FIELD")]
    assert log.records[0].message == "Telefone: Telefone obrigatório"


def test_import_file_malformed_validator_answer_fails_file(temp_workdir: Path, make_workbook, standard_rows):
    class CpfOnly:
        def validate(self, record):
            return [FieldValidation("cpf", True)]

    path = make_workbook("clientes.xlsx", standard_rows)
    store = InMemoryStore()
    log = ErrorLogBuffer()
    result = import_file(path, store, _config(temp_workdir), log, validator=CpfOnly())
    assert result.status == FileStatus.FAILED
    assert len(store) == 0
    assert [r.error_type for r in log.records] == ["VALIDATION_ERROR"]


def test_process_all_imports_legacy_xls(temp_workdir: Path, standard_rows):
    xlwt = pytest.importorskip("xlwt")
    book = xlwt.Workbook()
    sheet = book.add_sheet("Planilha1")
    for r, row in enumerate(standard_rows):
        for c, value in enumerate(row):
            sheet.write(r, c, value)
    book.save(str(temp_workdir / "data" / "legado.xls"))

    store = InMemoryStore()
    result = process_all(_config(temp_workdir), store)
    assert (result.success_files, result.failed_files) == (1, 0)
    assert store.rows["12345678901"]["data_nascimento"] == "01/01/1990"
    assert store.rows["00987654321"]["valor_beneficio"] == "2500.50"
