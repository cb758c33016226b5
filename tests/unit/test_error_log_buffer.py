from __future__ import annotations

import json
from pathlib import Path

from beneficio_import.logging.error_log import ErrorLogBuffer, ErrorRecord
from beneficio_import.models.error_record import FILE_LEVEL_ROW


def test_error_record_creation_and_json_line():
    rec = ErrorRecord.create(file="a.xlsx", row=3, error_type="MAPPING_INCOMPLETE", message="unmapped fields: Nome")
    data = json.loads(rec.to_json_line())
    assert data["file"] == "a.xlsx"
    assert data["row"] == 3
    assert data["timestamp"].endswith("Z")
    assert set(data.keys()) == {"timestamp", "file", "row", "error_type", "message"}


def test_error_record_keeps_non_ascii():
    rec = ErrorRecord.create("a.xlsx", FILE_LEVEL_ROW, "MAPPING_INCOMPLETE", "Benefício")
    assert "Benefício" in rec.to_json_line()


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("f1.xlsx", FILE_LEVEL_ROW, "DECODE_ERROR", "bad file"))
    buf.append(ErrorRecord.create("f2.xlsx", FILE_LEVEL_ROW, "STORE_ERROR", "rejected"))
    path = buf.flush()
    assert path is not None and path.exists()
    assert path.parent.name == "logs"
    assert path.name.startswith("errors-")
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    # flush 後バッファクリア
    assert buf.records == []


def test_error_log_buffer_empty_flush_writes_nothing(temp_workdir: Path):
    buf = ErrorLogBuffer(logs_dir=temp_workdir / "other")
    assert buf.flush() is None
    assert not (temp_workdir / "other").exists()


def test_error_log_buffer_multiple_flushes_append(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("f.xlsx", 1, "STORE_ERROR", "dup"))
    path = buf.flush()
    size1 = path.stat().st_size
    buf.append(ErrorRecord.create("f.xlsx", 2, "STORE_ERROR", "dup2"))
    path2 = buf.flush()
    assert path == path2
    assert path2.stat().st_size > size1


def test_error_log_buffer_counts_by_type(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("a.xlsx", 1, "INVALID_FIELD", "Telefone"))
    buf.append(ErrorRecord.create("a.xlsx", 3, "INVALID_FIELD", "CPF"))
    buf.append(ErrorRecord.create("b.xlsx", FILE_LEVEL_ROW, "DECODE_ERROR", "bad file"))
    assert buf.counts_by_type() == {"INVALID_FIELD": 2, "DECODE_ERROR": 1}
    assert len(buf) == 3
    buf.flush()
    assert buf.counts_by_type() == {}
