"""
Order Service

Business logic between the stream, the database and the in-memory cache.

Write path: normalize -> save (raw payload) -> cache canonical bytes.
The cache is only updated after the database commit, so it never holds an
order the database doesn't have.

Read path: cache hit, or database lookup that repopulates the cache.
"""
import threading
from dataclasses import dataclass, asdict
from typing import Dict, Optional

from orderhub.errors import InvalidFormatError, MissingIdentifierError, StorageError
from orderhub.services.normalizer import decode, normalize
from orderhub.services.order_store import OrderStore
from orderhub.utils.cache import OrderCache
from orderhub.utils.logger import log


@dataclass
class ServiceStats:
    """Counters reported on /status."""
    processed: int = 0
    rejected_invalid: int = 0
    rejected_storage: int = 0
    cache_hits: int = 0
    cache_misses: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class OrderService:
    """Coordinates normalization, persistence and caching of orders."""

    def __init__(self, store: OrderStore, cache: OrderCache):
        self.store = store
        self.cache = cache
        self._stats = ServiceStats()
        self._stats_lock = threading.Lock()

    def _count(self, field: str) -> None:
        with self._stats_lock:
            setattr(self._stats, field, getattr(self._stats, field) + 1)

    def stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return self._stats.to_dict()

    def warm_cache(self) -> int:
        """
        Load every stored order into the cache.

        Records that no longer normalize are skipped with a warning so one
        corrupt row can't block startup.

        Returns:
            Number of orders loaded
        """
        snapshot = self.store.get_all_orders()

        normalized = {}
        for order_uid, raw in snapshot.items():
            try:
                normalized[order_uid] = normalize(raw)
            except (InvalidFormatError, MissingIdentifierError) as e:
                log.warning(f"Skipping stored order {order_uid} during warm-up: {e}")

        loaded = self.cache.load_all(normalized)
        log.info(f"Cache warmed: {loaded}/{len(snapshot)} orders")
        return loaded

    def process_incoming(self, payload: bytes) -> str:
        """
        Handle one stream message.

        Returns:
            The saved order_uid

        Raises:
            InvalidFormatError, MissingIdentifierError: payload rejected, nothing written
            StorageError: save failed, cache left untouched
        """
        try:
            order, canonical = decode(payload)
        except (InvalidFormatError, MissingIdentifierError):
            self._count("rejected_invalid")
            raise

        try:
            self.store.save_order(order, payload)
        except StorageError:
            self._count("rejected_storage")
            raise

        self.cache.set(order.order_uid, canonical)
        self._count("processed")
        return order.order_uid

    def get_by_id(self, order_uid: str) -> Optional[bytes]:
        """
        Canonical bytes for an order, or None if it doesn't exist.

        A database hit repopulates the cache, so the next lookup for the same
        order_uid is served from memory.

        Raises:
            MissingIdentifierError: empty order_uid
            StorageError: database lookup failed
            InvalidFormatError: stored payload no longer decodes
        """
        if not order_uid:
            raise MissingIdentifierError()

        cached = self.cache.get(order_uid)
        if cached is not None:
            self._count("cache_hits")
            return cached

        self._count("cache_misses")
        raw = self.store.get_order(order_uid)
        if raw is None:
            return None

        # A write committed while we were reading wins over this older row
        return self.cache.set_if_absent(order_uid, normalize(raw))
