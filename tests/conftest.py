# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable
from pathlib import Path

import pandas as pd
import pytest

from beneficio_import.logging.init import reset_logging

STANDARD_HEADERS = [
    "CPF",
    "Benefício",
    "Nome",
    "Valor Benefício",
    "Data Nascimento",
    "Idade",
    "Código Espécie",
    "Margem Disponível",
    "Margem RMC",
    "Telefone",
]


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _clean_logging():
    # setup_logging は sys.stdout を掴むので capsys ごとに作り直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_directory: ./data
table: beneficiarios
page_size: 2
upsert_chunk_size: 2
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def write_workbook(path: Path, rows: list[list[object]], sheet_name: str = "Planilha1") -> Path:
    """Write ``rows`` (first row = header) to a real .xlsx file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return path


@pytest.fixture()
def make_workbook(temp_workdir: Path) -> Callable[..., Path]:
    def _make(name: str, rows: list[list[object]], sheet_name: str = "Planilha1") -> Path:
        return write_workbook(temp_workdir / "data" / name, rows, sheet_name)
    return _make


@pytest.fixture()
def standard_rows() -> list[list[object]]:
    return [
        STANDARD_HEADERS,
        ["123.456.789-01", "111", "Maria Silva", "R$ 1.234,56", 32874, "36", "41", "R$ 300,00", "R$ 50,00", "11999990000"],
        ["987654321", "222", "João Souza", 2500.5, "15/03/1960", "64", "32", "0", "0", ""],
    ]
