"""Thread-safe memoization of query result batches.

A QueryResultCache is owned by a MediaWikiClient and shared by every query
built from that client. Entries live until the cache is cleared or, when
max_entries is set, until they are evicted in least-recently-used order.
"""
from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import urlencode

from ..model import QueryResultBatch

logger = logging.getLogger(__name__)


def build_signature(endpoint: str, params: Mapping[str, Any]) -> str:
    """Build the normalized cache key for a request.

    Parameters are sorted by name so that insertion order does not matter.
    """
    items = sorted((str(k), str(v)) for k, v in params.items() if v is not None)
    return f"{endpoint}?{urlencode(items)}"


class QueryResultCache:
    """Signature-keyed map of QueryResultBatch values.

    get_or_load() holds a per-signature lock while loading, so concurrent
    misses for the same signature trigger a single load.
    """

    def __init__(self, max_entries: Optional[int] = None):
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, QueryResultBatch]" = OrderedDict()
        self._key_locks: Dict[str, threading.Lock] = {}
        self.max_entries = max_entries if max_entries and max_entries > 0 else None
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, signature: object) -> bool:
        with self._lock:
            return signature in self._entries

    def get(self, signature: str) -> Optional[QueryResultBatch]:
        """Return the cached batch for a signature, or None."""
        with self._lock:
            batch = self._entries.get(signature)
            if batch is not None:
                self._entries.move_to_end(signature)
            return batch

    def set(self, signature: str, batch: QueryResultBatch) -> None:
        """Store a batch, evicting the oldest entries beyond max_entries."""
        with self._lock:
            self._entries[signature] = batch
            self._entries.move_to_end(signature)
            while self.max_entries is not None and len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted cached result for %s", evicted)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def _key_lock(self, signature: str) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(signature)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[signature] = lock
            return lock

    def _drop_key_lock(self, signature: str) -> None:
        with self._lock:
            self._key_locks.pop(signature, None)

    def get_or_load(self, signature: str, loader: Callable[[], QueryResultBatch]) -> QueryResultBatch:
        """Return the cached batch or call loader once and cache its result.

        Exceptions raised by loader propagate and nothing is cached.
        """
        batch = self.get(signature)
        if batch is not None:
            with self._lock:
                self.hits += 1
            logger.debug("Query result cache hit for %s", signature)
            return batch

        with self._key_lock(signature):
            # Another thread may have loaded it while we waited
            batch = self.get(signature)
            if batch is not None:
                with self._lock:
                    self.hits += 1
                return batch

            with self._lock:
                self.misses += 1
            try:
                batch = loader()
            except Exception:
                self._drop_key_lock(signature)
                raise
            self.set(signature, batch)
            return batch
