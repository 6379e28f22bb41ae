"""In-memory order cache keyed by order_uid.

Holds canonical JSON bytes. No TTL and no eviction: every entry is derived
from the database and the whole map is rebuilt by warm-load on restart.

Usage:
    from orderhub.utils.cache import OrderCache

    cache = OrderCache()
    cache.set("b563feb7b2b84b6test", payload)
    data = cache.get("b563feb7b2b84b6test")  # None on miss
"""
import threading
from typing import Dict, Iterator, Mapping, Optional
from contextlib import contextmanager


class ReadWriteLock:
    """Many readers or one writer. Waiting writers hold back new readers."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class OrderCache:
    """Thread-safe order_uid -> canonical bytes map."""

    def __init__(self):
        self._store: Dict[str, bytes] = {}
        self._lock = ReadWriteLock()

    def get(self, order_uid: str) -> Optional[bytes]:
        with self._lock.read():
            return self._store.get(order_uid)

    def set(self, order_uid: str, value: bytes) -> None:
        with self._lock.write():
            self._store[order_uid] = value

    def set_if_absent(self, order_uid: str, value: bytes) -> bytes:
        """Fill a miss without overwriting a concurrent write; returns the cached value."""
        with self._lock.write():
            return self._store.setdefault(order_uid, value)

    def load_all(self, entries: Mapping[str, bytes]) -> int:
        """Bulk insert/overwrite. Each key is written atomically; the batch is not."""
        count = 0
        for order_uid, value in entries.items():
            self.set(order_uid, value)
            count += 1
        return count

    def __contains__(self, order_uid: object) -> bool:
        with self._lock.read():
            return order_uid in self._store

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._store)
