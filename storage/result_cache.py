# Folder: autoops/storage/result_cache.py
#
# In-process, time-boxed key → value store for reasoning results.
# The summary and decision stages check here before calling the LLM,
# so identical metrics within the TTL never pay for a second call.
#
# Eviction is insertion-order (oldest inserted goes first), not LRU.

import hashlib
import json
import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from pydantic import BaseModel
import config

logger = logging.getLogger(__name__)


def _canonical(payload: Any) -> Any:
    """Turn models into plain data so json.dumps(sort_keys=True) is canonical"""
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    if isinstance(payload, dict):
        return {str(k): _canonical(v) for k, v in payload.items()}
    if isinstance(payload, (list, tuple)):
        return [_canonical(v) for v in payload]
    return payload


class _CacheEntry:
    __slots__ = ("value", "expires_at")

    def __init__(self, value: Any, expires_at: float):
        self.value = value
        self.expires_at = expires_at


class ResultCache:
    """
    Thread-safe TTL cache with a hard entry limit.

    Also hands out per-key "in-flight" locks so concurrent misses on the
    same key collapse into one provider call (see inflight()).
    """

    def __init__(self, ttl_sec: float = config.CACHE_TTL_SEC,
                 max_size: int = config.CACHE_MAX_SIZE,
                 clock: Callable[[], float] = time.monotonic):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.ttl_sec = ttl_sec
        self.max_size = max_size
        self._clock = clock
        # dicts keep insertion order - first key is always the oldest
        self._store: Dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()
        # key -> [lock, waiter count]
        self._inflight: Dict[str, List[Any]] = {}

    @staticmethod
    def generate_key(prefix: str, payload: Any) -> str:
        """
        Same (prefix, payload) → same key, whatever order the payload's
        fields arrived in. Keys are sorted recursively before hashing.
        """
        encoded = json.dumps(
            _canonical(payload),
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        digest = hashlib.sha256(encoded.encode("utf-8")).hexdigest()
        return f"{prefix}_{digest}"

    def get(self, key: str) -> Optional[Any]:
        """Stored value while now < expires_at, otherwise None (and drop it)"""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._store[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl_sec: Optional[float] = None):
        ttl = self.ttl_sec if ttl_sec is None else ttl_sec
        with self._lock:
            self._store[key] = _CacheEntry(value, self._clock() + ttl)

            if len(self._store) > self.max_size:
                oldest = next(iter(self._store))
                del self._store[oldest]
                logger.debug(f"Cache full - evicted {oldest[:24]}...")

    def clear(self):
        """Drop everything. Safe to call any number of times."""
        with self._lock:
            count = len(self._store)
            self._store.clear()
        logger.info(f"🧹 Cache cleared ({count} entries)")

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    @contextmanager
    def inflight(self, key: str) -> Iterator[None]:
        """
        Per-key lock held around an expensive computation.

        Callers re-check get() after entering, so whoever waited behind
        the first caller picks up its cached result instead of calling
        the provider again. The lock is dropped once nobody holds it.
        """
        with self._lock:
            slot = self._inflight.get(key)
            if slot is None:
                slot = [threading.Lock(), 0]
                self._inflight[key] = slot
            slot[1] += 1

        try:
            with slot[0]:
                yield
        finally:
            with self._lock:
                slot[1] -= 1
                if slot[1] == 0:
                    self._inflight.pop(key, None)
