"""Keyed cache of rendered surfaces.

An entry is reused while the caller's growth level stays within a
tolerance of the level it was rendered at. Capacity is bounded; by
default the oldest insertion is evicted first (FIFO). With
eviction='lru' a hit also refreshes the entry's position.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10
DEFAULT_TOLERANCE = 0.1


@dataclass
class CacheEntry:
    image: object
    growth_level: float
    timestamp: float


class TextureCache:
    """Bounded growth-tolerant store of rendered images."""

    def __init__(self, capacity=DEFAULT_CAPACITY, tolerance=DEFAULT_TOLERANCE,
                 eviction='fifo'):
        if eviction not in ('fifo', 'lru'):
            raise ValueError(f"eviction must be 'fifo' or 'lru', not {eviction!r}")
        self.capacity = max(1, int(capacity))
        self.tolerance = float(tolerance)
        self.eviction = eviction
        self._entries = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key, growth_level=0.0):
        """Cached image for key, or None on a miss or growth drift."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if abs(entry.growth_level - growth_level) >= self.tolerance:
                logger.debug("Cache stale for %r (growth %.3f -> %.3f)",
                             key, entry.growth_level, growth_level)
                return None
            if self.eviction == 'lru':
                self._entries.move_to_end(key)
            return entry.image

    def put(self, key, growth_level, image):
        with self._lock:
            # A regenerated key counts as the newest insertion
            self._entries.pop(key, None)
            while len(self._entries) >= self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Cache full, evicting %r", evicted)
            self._entries[key] = CacheEntry(image=image,
                                            growth_level=float(growth_level),
                                            timestamp=time.time())

    def get_or_create(self, key, growth_level, factory):
        """Return the cached image or build, store and return a new one.

        factory is called with no arguments on a miss.
        """
        image = self.get(key, growth_level)
        if image is not None:
            logger.debug("Cache hit for %r", key)
            return image
        logger.debug("Cache miss for %r", key)
        image = factory()
        self.put(key, growth_level, image)
        return image

    def invalidate(self, key):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def entry(self, key):
        with self._lock:
            return self._entries.get(key)

    def keys(self):
        with self._lock:
            return list(self._entries)

    def __contains__(self, key):
        with self._lock:
            return key in self._entries

    def __len__(self):
        with self._lock:
            return len(self._entries)
