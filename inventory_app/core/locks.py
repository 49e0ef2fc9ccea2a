"""
Keyed Resource Locks
In-process serialization of read-modify-write on purchase orders,
products and suppliers.

Row locks (``SELECT ... FOR UPDATE``) serialize writers across processes on
PostgreSQL; SQLite ignores them, so every service also holds the matching
in-process lock. Acquisition order is always: purchase order, products in
ascending id, supplier.
"""
import threading
import weakref
from contextlib import contextmanager
from typing import Hashable, Iterable


class KeyedLocks:
    """Registry of re-entrant locks addressed by key"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = weakref.WeakValueDictionary()

    def get(self, key: Hashable) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, keys: Iterable[Hashable]):
        """Acquire every lock in the given order, release in reverse"""
        acquired = []
        try:
            for key in keys:
                lock = self.get(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


resource_locks = KeyedLocks()


def purchase_key(purchase_id: int):
    return ("purchase", purchase_id)


def product_keys(product_ids: Iterable[int]):
    return [("product", pid) for pid in sorted(set(product_ids))]


def supplier_key(supplier_id: int):
    return ("supplier", supplier_id)
