"""Per-key mutual exclusion for concurrently dispatched work."""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Set


class SingleFlight:
    """Registry of keys with an operation in progress.

    `try_acquire` never blocks: a second caller for a key that is already in
    flight gets False and is expected to drop its work.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: Set[str] = set()

    def try_acquire(self, key: str) -> bool:
        with self._lock:
            if key in self._active:
                return False
            self._active.add(key)
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._active.discard(key)

    def in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._active


class KeyedLock:
    """Blocking lock per key; entries are dropped once nobody holds or waits."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._refs: Dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._lock:
            lock = self._locks.setdefault(key, threading.Lock())
            self._refs[key] = self._refs.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._lock:
                self._refs[key] -= 1
                if not self._refs[key]:
                    del self._refs[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._locks)
