"""LRU cache of decoded audio shared by the pipeline and playback.

A recording is needed by several consumers (channel VAD, mono
transcription, the player) within a short window; decoding it once per
consumer is the single most expensive step of opening a call. Entries
are bounded by count, aggregate size and age.

All bookkeeping happens under one lock. The decode itself runs outside
the lock, so two callers racing on the same cold key may both decode it;
the later result replaces the earlier one.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass

import numpy as np

from call_timeline.utils.errors import CacheError, DecodeError

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 300.0
DEFAULT_MAX_ENTRIES = 3
DEFAULT_MAX_MEMORY_BYTES = 500 * 1024 * 1024


@dataclass(frozen=True)
class DecodedAudio:
    """Output of the decode collaborator for one source."""

    mono_samples: np.ndarray
    stereo_channels: tuple[np.ndarray, np.ndarray] | None
    sample_rate: int
    is_stereo: bool


AudioDecoder = Callable[[Hashable], DecodedAudio]


def _readonly(samples: np.ndarray) -> np.ndarray:
    array = np.array(samples, dtype=np.float32, copy=True)
    array.flags.writeable = False
    return array


@dataclass(frozen=True)
class CachedAudio:
    """Decoded audio owned by the cache. Arrays are read-only."""

    mono_samples: np.ndarray
    stereo_channels: tuple[np.ndarray, np.ndarray] | None
    sample_rate: int
    loaded_at: float
    size_in_bytes: int
    is_stereo: bool

    @property
    def duration(self) -> float:
        return len(self.mono_samples) / self.sample_rate

    @classmethod
    def from_decoded(cls, decoded: DecodedAudio, loaded_at: float) -> CachedAudio:
        """Copy decoded buffers into read-only arrays and record their size."""
        mono = _readonly(decoded.mono_samples)
        stereo = None
        if decoded.stereo_channels is not None:
            left, right = decoded.stereo_channels
            stereo = (_readonly(left), _readonly(right))

        size = mono.nbytes
        if stereo is not None:
            size += stereo[0].nbytes + stereo[1].nbytes

        return cls(
            mono_samples=mono,
            stereo_channels=stereo,
            sample_rate=decoded.sample_rate,
            loaded_at=loaded_at,
            size_in_bytes=size,
            is_stereo=decoded.is_stereo,
        )


@dataclass(frozen=True)
class CacheStatistics:
    """Snapshot of cache counters and current occupancy."""

    hits: int
    misses: int
    evictions: int
    current_entry_count: int
    current_memory_bytes: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class AudioSampleCache:
    """Thread- and task-safe LRU cache of decoded audio.

    Args:
        decoder: Synchronous callable returning DecodedAudio for a key.
            Its failures propagate to the caller of get() as DecodeError.
        max_age_seconds: Entries older than this are stale and re-decoded.
        max_entries: Maximum number of cached sources.
        max_memory_bytes: Maximum aggregate size of cached buffers.
        clock: Monotonic time source, injectable for tests.

    Raises:
        CacheError: If any limit is not positive.
    """

    def __init__(
        self,
        decoder: AudioDecoder,
        max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        max_memory_bytes: int = DEFAULT_MAX_MEMORY_BYTES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_age_seconds <= 0:
            raise CacheError(f"max_age_seconds must be > 0, got {max_age_seconds}")
        if max_entries < 1:
            raise CacheError(f"max_entries must be >= 1, got {max_entries}")
        if max_memory_bytes < 1:
            raise CacheError(f"max_memory_bytes must be >= 1, got {max_memory_bytes}")

        self._decoder = decoder
        self.max_age_seconds = max_age_seconds
        self.max_entries = max_entries
        self.max_memory_bytes = max_memory_bytes
        self._clock = clock

        self._lock = threading.Lock()
        self._entries: OrderedDict[Hashable, CachedAudio] = OrderedDict()
        self._memory_bytes = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    async def get(self, key: Hashable) -> CachedAudio:
        """Return cached audio for a key, decoding it in a worker thread on miss.

        Raises:
            DecodeError: If the decode collaborator fails. Nothing is cached.
        """
        cached = self._lookup(key)
        if cached is not None:
            return cached
        decoded = await asyncio.to_thread(self._decode, key)
        return self._store(key, decoded)

    def get_blocking(self, key: Hashable) -> CachedAudio:
        """Synchronous variant of get() for consumers outside an event loop."""
        cached = self._lookup(key)
        if cached is not None:
            return cached
        return self._store(key, self._decode(key))

    def is_cached(self, key: Hashable) -> bool:
        """True if a fresh entry exists. Does not touch recency or counters."""
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._is_fresh(entry)

    def invalidate(self, key: Hashable) -> bool:
        """Drop one entry. Returns True if something was removed."""
        with self._lock:
            if key not in self._entries:
                return False
            self._remove(key)
            logger.debug("Invalidated cached audio", extra={"source": str(key)})
            return True

    def clear(self) -> None:
        """Drop every entry; each removal counts as an eviction."""
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            self._memory_bytes = 0
            self._evictions += removed
        logger.debug("Cleared audio cache (%d entries)", removed)

    def statistics(self) -> CacheStatistics:
        with self._lock:
            return CacheStatistics(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                current_entry_count=len(self._entries),
                current_memory_bytes=self._memory_bytes,
            )

    def reset_statistics(self) -> None:
        """Zero the hit/miss/eviction counters. Cached entries are kept."""
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.is_cached(key)

    def _is_fresh(self, entry: CachedAudio) -> bool:
        return self._clock() - entry.loaded_at < self.max_age_seconds

    def _lookup(self, key: Hashable) -> CachedAudio | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if self._is_fresh(entry):
                    self._hits += 1
                    self._entries.move_to_end(key)
                    return entry
                self._remove(key)
                logger.debug("Cached audio expired", extra={"source": str(key)})
            self._misses += 1
            return None

    def _decode(self, key: Hashable) -> DecodedAudio:
        try:
            return self._decoder(key)
        except DecodeError:
            raise
        except Exception as exc:
            raise DecodeError(
                "Failed to decode audio source", source=str(key), detail=str(exc)
            ) from exc

    def _store(self, key: Hashable, decoded: DecodedAudio) -> CachedAudio:
        entry = CachedAudio.from_decoded(decoded, loaded_at=self._clock())
        with self._lock:
            previous = self._entries.pop(key, None)
            if previous is not None:
                self._memory_bytes -= previous.size_in_bytes
            self._entries[key] = entry
            self._memory_bytes += entry.size_in_bytes
            self._evict_if_needed()
        logger.debug(
            "Cached decoded audio (%d bytes)",
            entry.size_in_bytes,
            extra={"source": str(key)},
        )
        return entry

    def _evict_if_needed(self) -> None:
        while self._entries and (
            len(self._entries) > self.max_entries
            or self._memory_bytes > self.max_memory_bytes
        ):
            oldest = next(iter(self._entries))
            self._remove(oldest)
            logger.debug("Evicted least recently used audio", extra={"source": str(oldest)})

    def _remove(self, key: Hashable) -> None:
        entry = self._entries.pop(key)
        self._memory_bytes -= entry.size_in_bytes
        self._evictions += 1
