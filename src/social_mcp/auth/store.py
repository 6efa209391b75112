"""Expiring key-value storage for codes, pending authorizations and sessions."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Generic, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExpiringStore(Protocol[T]):
    """Storage contract shared by the in-memory and any persistent backend.

    Records whose TTL has elapsed are absent for every read operation,
    whether or not they have been evicted yet.
    """

    def put(self, key: str, record: T, ttl: float) -> None: ...

    def get(self, key: str) -> T | None: ...

    def take(self, key: str) -> T | None:
        """Atomically remove and return a live record."""
        ...

    def delete(self, key: str) -> bool: ...


class InMemoryStore(Generic[T]):
    """Process-lifetime store guarded by a single lock.

    ``take`` is the only way codes are redeemed, so two racing exchanges
    on the same key see exactly one winner.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._records: dict[str, tuple[T, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def put(self, key: str, record: T, ttl: float) -> None:
        with self._lock:
            self._records[key] = (record, self._clock() + ttl)

    def get(self, key: str) -> T | None:
        with self._lock:
            entry = self._records.get(key)
            if entry is None:
                return None
            record, expires_at = entry
            if self._clock() >= expires_at:
                del self._records[key]
                return None
            return record

    def take(self, key: str) -> T | None:
        with self._lock:
            entry = self._records.pop(key, None)
        if entry is None:
            return None
        record, expires_at = entry
        if self._clock() >= expires_at:
            return None
        return record

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._records.pop(key, None) is not None

    def sweep(self) -> int:
        """Evict expired records. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, exp) in self._records.items() if now >= exp]
            for key in expired:
                del self._records[key]
        if expired:
            logger.debug("Swept %d expired records", len(expired))
        return len(expired)
