"""Smoke tests for the JSON table layer."""

import pytest

from code_tutor.storage.tables import Database, JsonTable, StorageError


class TestJsonTable:
    def test_select_returns_empty_when_no_file(self, tmp_path):
        table = JsonTable(tmp_path, "things")
        assert table.select() == []

    def test_insert_creates_file(self, tmp_path):
        table = JsonTable(tmp_path, "things")
        table.insert({"id": "a", "value": 1})
        assert (tmp_path / "things.json").exists()

    def test_select_with_predicate(self, tmp_path):
        table = JsonTable(tmp_path, "things")
        for i in range(3):
            table.insert({"id": str(i), "value": i})
        rows = table.select(lambda r: r["value"] >= 1)
        assert [r["id"] for r in rows] == ["1", "2"]

    def test_modify_persists_and_returns(self, tmp_path):
        table = JsonTable(tmp_path, "things")
        table.insert({"id": "a", "value": 1})

        def _bump(rows):
            rows[0]["value"] += 1
            return rows[0]["value"]

        assert table.modify(_bump) == 2
        assert table.select()[0]["value"] == 2

    def test_modify_error_leaves_file_untouched(self, tmp_path):
        table = JsonTable(tmp_path, "things")
        table.insert({"id": "a", "value": 1})

        def _fail(rows):
            rows.clear()
            raise LookupError("missing")

        with pytest.raises(LookupError):
            table.modify(_fail)
        assert len(table.select()) == 1

    def test_corrupted_file_raises_storage_error(self, tmp_path):
        (tmp_path / "things.json").write_text("{not json")
        table = JsonTable(tmp_path, "things")
        with pytest.raises(StorageError):
            table.select()

    def test_missing_directory_raises_storage_error(self, tmp_path):
        table = JsonTable(tmp_path / "gone", "things")
        with pytest.raises(StorageError):
            table.insert({"id": "a"})


class TestDatabase:
    def test_creates_directory(self, tmp_path):
        db = Database(tmp_path / "db")
        assert db.directory.is_dir()

    def test_tables_are_separate_files(self, tmp_path):
        db = Database(tmp_path)
        db.problem_history.insert({"id": "p1"})
        assert db.code_reveals.select() == []
        assert db.problem_history.path != db.code_reveals.path
