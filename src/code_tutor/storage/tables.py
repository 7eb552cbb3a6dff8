"""JSON table persistence (fcntl.flock + atomic write).

Each table is one JSON file holding ``{"rows": [...]}``. Reads take a shared
lock and read-modify-write cycles take an exclusive lock on a sidecar
``.lock`` file; the table file itself is replaced atomically so a reader never
sees a partial write.
"""

import contextlib
import fcntl
import functools
import json
import os
import tempfile
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any, TypeVar

from code_tutor.config import get_settings

Row = dict[str, Any]
T = TypeVar("T")


class StorageError(Exception):
    """A table file could not be read or written."""


class JsonTable:
    """One table stored as a JSON file.

    Args:
        directory: Directory holding the table files.
        name: Table name, used as the file stem.
    """

    def __init__(self, directory: Path, name: str):
        self.name = name
        self.path = directory / f"{name}.json"
        self._lock_path = directory / f"{name}.json.lock"

    @contextlib.contextmanager
    def _locked(self, operation: int) -> Iterator[None]:
        try:
            lock_file = open(self._lock_path, "a")
        except OSError as e:
            raise StorageError(f"cannot lock table {self.name}: {e}") from e
        with lock_file:
            fcntl.flock(lock_file, operation)
            yield

    def _read(self) -> list[Row]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"cannot read table {self.name}: {e}") from e
        return data.get("rows", [])

    def _write(self, rows: list[Row]) -> None:
        try:
            with tempfile.NamedTemporaryFile(
                "w", dir=self.path.parent, delete=False, suffix=".json", encoding="utf-8"
            ) as tmp:
                json.dump({"rows": rows}, tmp, indent=2, default=str)
            os.replace(tmp.name, self.path)
        except OSError as e:
            raise StorageError(f"cannot write table {self.name}: {e}") from e

    def select(self, where: Callable[[Row], bool] | None = None) -> list[Row]:
        """Return rows matching ``where`` (all rows when omitted)."""
        with self._locked(fcntl.LOCK_SH):
            rows = self._read()
        if where is None:
            return rows
        return [row for row in rows if where(row)]

    def modify(self, fn: Callable[[list[Row]], T]) -> T:
        """Run ``fn`` on the row list under an exclusive lock, then persist it.

        ``fn`` mutates the list in place; its return value is passed through.
        """
        with self._locked(fcntl.LOCK_EX):
            rows = self._read()
            result = fn(rows)
            self._write(rows)
        return result

    def insert(self, row: Row) -> Row:
        def _append(rows: list[Row]) -> Row:
            rows.append(row)
            return row

        return self.modify(_append)


class Database:
    """The set of tables backing one data directory."""

    def __init__(self, directory: Path):
        directory.mkdir(parents=True, exist_ok=True)
        self.directory = directory
        self.user_profiles = JsonTable(directory, "user_profiles")
        self.problem_history = JsonTable(directory, "problem_history")
        self.user_explanations = JsonTable(directory, "user_explanations")
        self.hint_usage = JsonTable(directory, "hint_usage")
        self.code_reveals = JsonTable(directory, "code_reveals")
        self.learning_progress = JsonTable(directory, "learning_progress")


@functools.lru_cache
def get_database() -> Database:
    """Get the database for the configured data directory."""
    return Database(get_settings().database_dir)
