from __future__ import annotations

import pytest

from beneficio_import.db.batch_upsert import BatchUpsertError
from beneficio_import.db.postgres import PostgresStore
from beneficio_import.db.store import StoreError
from beneficio_import.models.config_models import ImportConfig
from beneficio_import.models.schema import field_keys
from beneficio_import.services.orchestrator import process_all


class FakeCursor:
    """Records executed SQL; answers count/select from canned rows."""

    def __init__(self, rows: list[tuple] | None = None, columns: list[str] | None = None) -> None:
        self.executed: list[tuple[str, object]] = []
        self._rows = rows or []
        self.description = [(c,) for c in (columns or [])]
        self._last = None
        self.rowcount = -1
        self.fail_on: str | None = None

    def execute(self, sql, params=None):
        if self.fail_on and self.fail_on in sql:
            raise RuntimeError(f"boom: {self.fail_on}")
        self.executed.append((sql, params))
        if sql.startswith("SELECT count"):
            self._last = [(len(self._rows),)]
        elif sql.startswith("SELECT *"):
            limit, offset = params
            self._last = self._rows[offset:offset + limit]
        elif sql.startswith("DELETE"):
            self.rowcount = len(self._rows)

    def fetchone(self):
        return self._last[0]

    def fetchall(self):
        return self._last


@pytest.fixture()
def captured_upserts(monkeypatch):
    import beneficio_import.db.batch_upsert as bu
    calls = []

    def fake_execute_values(cursor, sql, rows, page_size=1000, template=None):
        calls.append((sql, list(rows), page_size))
    monkeypatch.setattr(bu, "execute_values", fake_execute_values)
    return calls


def test_upsert_sends_schema_columns_in_order(captured_upserts):
    store = PostgresStore(FakeCursor(), "beneficiarios", page_size=50)
    store.upsert([{"cpf": "00000000001", "nome": "Ana", "id": 9}], "cpf")
    sql, rows, page_size = captured_upserts[0]
    assert 'ON CONFLICT ("cpf")' in sql
    assert len(rows[0]) == len(field_keys())
    assert rows[0][:3] == ["00000000001", "", "Ana"]
    assert page_size == 50


def test_upsert_failure_becomes_store_error(monkeypatch):
    import beneficio_import.db.batch_upsert as bu

    def failing(*args, **kwargs):
        raise RuntimeError("connection lost")
    monkeypatch.setattr(bu, "execute_values", failing)
    store = PostgresStore(FakeCursor(), "beneficiarios")
    with pytest.raises(StoreError):
        store.upsert([{"cpf": "1"}], "cpf")


def test_select_range_builds_dict_rows():
    cur = FakeCursor(rows=[(1, "00000000001", "Ana"), (2, "00000000002", "Bia")], columns=["id", "cpf", "nome"])
    store = PostgresStore(cur, "beneficiarios")
    page = store.select_range(1, 10)
    assert page.total_count == 2
    assert page.rows == [{"id": 2, "cpf": "00000000002", "nome": "Bia"}]
    assert 'ORDER BY "cpf"' in cur.executed[1][0]


def test_select_range_failure_becomes_store_error():
    cur = FakeCursor()
    cur.fail_on = "count"
    with pytest.raises(StoreError):
        PostgresStore(cur, "beneficiarios").select_range(0, 10)


def test_delete_all_requires_sentinel_and_reports_count():
    cur = FakeCursor(rows=[(1,), (2,), (3,)], columns=["cpf"])
    store = PostgresStore(cur, "beneficiarios")
    with pytest.raises(StoreError):
        store.delete_all("")
    assert store.delete_all("__none__") == 3
    assert cur.executed[-1][1] == ("__none__",)


def test_transaction_statements():
    cur = FakeCursor()
    store = PostgresStore(cur, "beneficiarios")
    store.begin()
    store.commit()
    store.begin()
    store.rollback()
    assert [sql for sql, _ in cur.executed] == ["BEGIN", "COMMIT", "BEGIN", "ROLLBACK"]


def test_begin_failure_becomes_store_error():
    cur = FakeCursor()
    cur.fail_on = "BEGIN"
    with pytest.raises(StoreError):
        PostgresStore(cur, "beneficiarios").begin()


def test_each_file_is_its_own_transaction(monkeypatch, temp_workdir, make_workbook, standard_rows):
    import beneficio_import.db.batch_upsert as bu
    calls = []

    def fake_execute_values(cursor, sql, rows, page_size=1000):
        calls.append(len(rows))
        if len(calls) == 4:
            raise RuntimeError("deadlock detected")
        cursor.execute("UPSERT")
    monkeypatch.setattr(bu, "execute_values", fake_execute_values)

    make_workbook("a.xlsx", standard_rows)
    make_workbook("b.xlsx", standard_rows)
    cur = FakeCursor()
    store = PostgresStore(cur, "beneficiarios")
    config = ImportConfig(source_directory=str(temp_workdir / "data"), upsert_chunk_size=1)
    result = process_all(config, store)

    assert (result.success_files, result.failed_files) == (1, 1)
    # 2 ファイル目は 2 チャンク目で失敗し、1 チャンク目ごとロールバック
    assert [sql for sql, _ in cur.executed] == [
        "BEGIN", "UPSERT", "UPSERT", "COMMIT",
        "BEGIN", "UPSERT", "ROLLBACK",
    ]


def test_invalid_table_name_rejected():
    with pytest.raises(BatchUpsertError):
        PostgresStore(FakeCursor(), "bad-name;")
