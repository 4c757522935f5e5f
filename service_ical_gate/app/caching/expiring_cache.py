"""
In-memory expiring cache for validated tokens.
"""

import asyncio
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from shared.logging import get_logger


DEFAULT_CLEANUP_INTERVAL = 8 * 60 * 60
SWEEP_BATCH_SIZE = 512


class TokenCache(ABC):
    """Key/validity store consulted by the authorization gate.

    Implementations own whatever background work they need; the gate only
    calls ``start``/``stop`` around its own lifetime.
    """

    @abstractmethod
    def set(self, key: str, value: Any = True, ttl: float = 0) -> None:
        """Insert or overwrite ``key``. ``ttl == 0`` selects the default TTL."""

    @abstractmethod
    def has(self, key: str) -> bool:
        """Return True while ``key`` holds an unexpired entry."""

    async def start(self) -> None:
        """Start background maintenance, if any."""

    async def stop(self) -> None:
        """Stop background maintenance, if any."""


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and the monotonic instant it stops being readable."""
    key: str
    valid_until: float
    value: Any = True

    def is_fresh(self, now: float) -> bool:
        return now < self.valid_until


class ExpiringCache(TokenCache):
    """Thread-safe TTL cache with a periodic eviction task.

    Freshness is checked on every read, so an expired entry is invisible even
    when the sweeper has not yet removed it. The sweeper only bounds memory.
    Entries are immutable and replaced whole under the lock.
    """

    def __init__(
        self,
        default_ttl: float,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        if default_ttl < 0:
            raise ValueError("default_ttl must not be negative")
        if cleanup_interval <= 0:
            raise ValueError("cleanup_interval must be positive")

        self._default_ttl = float(default_ttl)
        self._cleanup_interval = float(cleanup_interval)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self.logger = get_logger("gate.cache")

        self._sweep_task: Optional[asyncio.Task] = None
        self.running = False

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    @property
    def cleanup_interval(self) -> float:
        return self._cleanup_interval

    def set(self, key: str, value: Any = True, ttl: float = 0) -> None:
        if ttl < 0:
            raise ValueError("ttl must not be negative")
        effective_ttl = ttl or self._default_ttl
        entry = CacheEntry(key=key, valid_until=self._clock() + effective_ttl, value=value)
        with self._lock:
            self._entries[key] = entry

    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when missing or expired."""
        entry = self._fresh_entry(key)
        return entry.value if entry is not None else None

    def has(self, key: str) -> bool:
        return self._fresh_entry(key) is not None

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _fresh_entry(self, key: str) -> Optional[CacheEntry]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_fresh(now):
                return entry
            # Lazy removal; a concurrent set may already have replaced it.
            if self._entries.get(key) is entry:
                del self._entries[key]
            return None

    def purge_expired(self) -> int:
        """Remove every expired entry and return how many were dropped.

        The scan runs on a snapshot; deletions happen in short batches that
        re-check each entry so a fresh overwrite is never lost.
        """
        now = self._clock()
        with self._lock:
            snapshot = list(self._entries.items())

        expired: List[tuple] = [
            (key, entry) for key, entry in snapshot if not entry.is_fresh(now)
        ]

        removed = 0
        for offset in range(0, len(expired), SWEEP_BATCH_SIZE):
            batch = expired[offset:offset + SWEEP_BATCH_SIZE]
            with self._lock:
                for key, entry in batch:
                    if self._entries.get(key) is entry:
                        del self._entries[key]
                        removed += 1
        return removed

    async def start(self) -> None:
        """Start the background eviction task."""
        if self.running:
            return
        self.running = True
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        self.logger.info(
            "Token cache sweeper started",
            cleanup_interval_seconds=self._cleanup_interval,
            default_ttl_seconds=self._default_ttl,
        )

    async def stop(self) -> None:
        """Stop the background eviction task."""
        if not self.running:
            return
        self.running = False
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        self.logger.info("Token cache sweeper stopped")

    async def _sweep_loop(self) -> None:
        while self.running:
            await asyncio.sleep(self._cleanup_interval)
            try:
                removed = self.purge_expired()
                self.logger.debug("Token cache swept", removed=removed, remaining=len(self))
            except Exception as e:
                self.logger.error("Token cache sweep failed", error=str(e))
