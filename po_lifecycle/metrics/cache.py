"""
In-memory TTL cache for metrics snapshots.

Entries expire after a fixed TTL and are swept by a single background thread.
Reads and writes go through one lock, so a reader never sees a half-written
entry.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from po_lifecycle.utils.logging import setup_logging


logger = setup_logging(__name__)


@dataclass
class CacheEntry:
    """A cached value with its expiry, in clock seconds."""
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class TTLCache:
    """
    Expiring key/value map.

    Args:
        default_ttl: seconds an entry lives unless `set` overrides it
        cleanup_interval: seconds between background sweeps
        clock: monotonic time source, injectable for tests
    """

    def __init__(
        self,
        default_ttl: float = 60.0,
        cleanup_interval: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for key, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
        logger.debug(f"Cache hit: {key}")
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        entry = CacheEntry(value=value, expires_at=self._clock() + ttl)
        with self._lock:
            self._entries[key] = entry
        logger.debug(f"Cache set: {key} (ttl={ttl}s)")

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
        logger.debug(f"Cache delete: {key}")

    def cleanup(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug(f"Cache cleanup: removed {len(expired)} expired entries")
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            size = len(self._entries)
            self._entries.clear()
        logger.debug(f"Cache cleared: {size} entries removed")

    def stats(self) -> Dict[str, int]:
        now = self._clock()
        with self._lock:
            expired = sum(1 for entry in self._entries.values() if entry.is_expired(now))
            total = len(self._entries)
        return {"total": total, "active": total - expired, "expired": expired}

    # Background sweep

    def start(self) -> None:
        """Start the sweep thread. Calling start twice is a no-op."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop_event.clear()
        self._sweeper = threading.Thread(target=self._sweep, name="metrics-cache-sweeper", daemon=True)
        self._sweeper.start()
        logger.info(f"Cache sweeper started (interval={self.cleanup_interval}s)")

    def stop(self) -> None:
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=self.cleanup_interval)
            self._sweeper = None
        logger.info("Cache sweeper stopped")

    @property
    def running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def _sweep(self) -> None:
        while not self._stop_event.wait(self.cleanup_interval):
            self.cleanup()
