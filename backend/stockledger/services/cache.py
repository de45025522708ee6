"""
In-process result cache with tag invalidation.

Entries expire after their ttl and are dropped early when any of their tags
is invalidated. ``compute`` runs outside the lock: two requests missing the
same key may both compute and the last one to finish wins, which is fine for
the pure reads cached here.
"""
import hashlib
import logging
import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional, Union

from stockledger.core.config import settings

logger = logging.getLogger(__name__)


class CacheTag(str, Enum):
    PRODUCTS = "products"
    CATEGORIES = "categories"
    SUPPLIERS = "suppliers"
    CUSTOMERS = "customers"
    SALES = "sales"
    ANALYTICS = "analytics"
    LOCATIONS = "locations"
    BATCHES = "batches"
    PURCHASE_ORDERS = "purchase-orders"
    TAGS = "tags"
    ACTIVITY_LOG = "activity-log"


TagLike = Union[CacheTag, str]


def tag_name(tag: TagLike) -> str:
    return tag.value if isinstance(tag, CacheTag) else str(tag)


def default_ttl(tag: TagLike) -> int:
    """Default ttl (seconds) for reads tagged primarily with ``tag``."""
    ttls = {
        CacheTag.PRODUCTS.value: settings.cache_ttl_products,
        CacheTag.CATEGORIES.value: settings.cache_ttl_categories,
        CacheTag.SUPPLIERS.value: settings.cache_ttl_suppliers,
        CacheTag.CUSTOMERS.value: settings.cache_ttl_customers,
        CacheTag.ANALYTICS.value: settings.cache_ttl_analytics,
        CacheTag.LOCATIONS.value: settings.cache_ttl_locations,
        CacheTag.TAGS.value: settings.cache_ttl_tags,
        CacheTag.PURCHASE_ORDERS.value: settings.cache_ttl_purchase_orders,
        CacheTag.ACTIVITY_LOG.value: settings.cache_ttl_activity_log,
    }
    return ttls.get(tag_name(tag), settings.cache_ttl_analytics)


def make_cache_key(prefix: str, *args, **kwargs) -> str:
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


@dataclass
class CacheEntry:
    value: Any
    tags: FrozenSet[str]
    created_at: float
    ttl: float
    # generation of each tag when the value started computing
    generations: Dict[str, int]


class ResultCache:
    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}
        self._generations: Dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def _is_live(self, entry: CacheEntry, now: float) -> bool:
        if now - entry.created_at >= entry.ttl:
            return False
        return all(self._generations[t] == g for t, g in entry.generations.items())

    def get_or_compute(
        self,
        key: str,
        tags: Iterable[TagLike],
        ttl: float,
        compute: Callable[[], Any],
    ) -> Any:
        names = frozenset(tag_name(t) for t in tags)

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_live(entry, self._clock()):
                self.hits += 1
                logger.debug(f"Cache HIT: {key}")
                return entry.value
            self.misses += 1
            generations = {t: self._generations[t] for t in names}

        logger.debug(f"Cache MISS: {key}")
        value = compute()

        with self._lock:
            entry = CacheEntry(
                value=value,
                tags=names,
                created_at=self._clock(),
                ttl=ttl,
                generations=generations,
            )
            # a tag invalidated while we were computing makes this value stale already
            if ttl > 0 and self._is_live(entry, entry.created_at):
                self._entries[key] = entry

        return value

    def invalidate(self, tag: TagLike) -> int:
        name = tag_name(tag)
        with self._lock:
            self._generations[name] += 1
            stale = [k for k, e in self._entries.items() if name in e.tags]
            for k in stale:
                del self._entries[k]
        logger.info(f"Cache invalidation for tag: {name} - Dropped {len(stale)} entries")
        return len(stale)

    def invalidate_many(self, tags: Iterable[TagLike]) -> int:
        return sum(self.invalidate(t) for t in tags)

    def clear(self) -> None:
        with self._lock:
            for name in list(self._generations):
                self._generations[name] += 1
            self._entries.clear()
        logger.info("Cache cleared")

    def stats(self) -> dict:
        with self._lock:
            now = self._clock()
            live = sum(1 for e in self._entries.values() if self._is_live(e, now))
            return {
                "total_entries": len(self._entries),
                "active_entries": live,
                "hits": self.hits,
                "misses": self.misses,
            }
