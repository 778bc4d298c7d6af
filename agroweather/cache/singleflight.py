"""Collapse concurrent calls for the same key into one execution."""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Hashable, Optional, TypeVar

T = TypeVar("T")


class _Call:
    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: Any = None
        self.error: Optional[BaseException] = None


class SingleFlight:
    """The first caller for a key runs `fn`; callers arriving meanwhile wait for it.

    Waiters get the same return value, or the same exception re-raised. Once the
    call finishes the key is released, so later callers start a fresh call.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: Dict[Hashable, _Call] = {}

    def do(self, key: Hashable, fn: Callable[[], T]) -> T:
        with self._lock:
            call = self._calls.get(key)
            leader = call is None
            if leader:
                call = self._calls[key] = _Call()

        if not leader:
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result

        try:
            call.result = fn()
        except BaseException as exc:
            call.error = exc
            raise
        finally:
            with self._lock:
                self._calls.pop(key, None)
            call.done.set()
        return call.result

    def in_flight(self) -> int:
        """Number of keys with a call in progress."""
        with self._lock:
            return len(self._calls)
