"""In-memory session cache with subscribe/notify."""

import contextlib
from collections.abc import Callable, Iterator
from typing import Any

from pydantic import BaseModel, ConfigDict

PROBLEM_STATEMENT = "problem_statement"
SOLUTION = "solution"
DEBUG_SOLUTION = "new_solution"
SCREENSHOTS = "screenshots"

SESSION_KEYS = (PROBLEM_STATEMENT, SOLUTION, DEBUG_SOLUTION, SCREENSHOTS)

_MISSING = object()


class StoreEvent(BaseModel):
    """Keys that changed; subscribers read the new values from the store."""

    model_config = ConfigDict(frozen=True)

    keys: frozenset[str]


Subscriber = Callable[[StoreEvent], None]


class SessionStore:
    """Key/value cache for the current session's artifacts.

    Every ``set``/``remove`` notifies subscribers synchronously. Inside
    ``batch()`` notifications are held back and delivered once, as a single
    event covering every key touched, when the outermost batch exits.
    """

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._subscribers: list[Subscriber] = []
        self._batch_depth = 0
        self._pending: set[str] = set()

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._changed(frozenset({key}))

    def remove(self, *keys: str) -> None:
        removed = frozenset(
            key for key in keys if self._data.pop(key, _MISSING) is not _MISSING
        )
        if removed:
            self._changed(removed)

    @contextlib.contextmanager
    def batch(self) -> Iterator[None]:
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._pending:
                keys, self._pending = self._pending, set()
                self._emit(StoreEvent(keys=keys))

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _changed(self, keys: frozenset[str]) -> None:
        if self._batch_depth:
            self._pending |= keys
        else:
            self._emit(StoreEvent(keys=keys))

    def _emit(self, event: StoreEvent) -> None:
        for callback in list(self._subscribers):
            callback(event)
