from __future__ import annotations

import os
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from aws_lambda_powertools import Logger

from .errors import ResourceBusy

logger = Logger()

_LOCK_TIMEOUT_SECONDS = float(os.environ.get("LOCK_TIMEOUT_SECONDS", "5"))


class KeyedLocks:
    """One mutex per key, created on first use.

    ``hold`` takes several keys at once in sorted order so that two callers
    asking for overlapping key sets can never deadlock. Waiting is bounded by
    ``timeout``; past it the caller gets ``ResourceBusy`` instead of queuing.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._timeout = _LOCK_TIMEOUT_SECONDS if timeout is None else timeout
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, keys: Iterable[str]) -> Iterator[None]:
        acquired: list[threading.Lock] = []
        try:
            for key in sorted(set(keys)):
                lock = self._lock_for(key)
                if not lock.acquire(timeout=self._timeout):
                    logger.warning("Lock wait exceeded", extra={"lock_key": key, "timeout": self._timeout})
                    raise ResourceBusy(key)
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
