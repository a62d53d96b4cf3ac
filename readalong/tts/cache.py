"""Process-wide audio cache for synthesized chunks.

Responsibilities:
- Build stable cache keys from chunk text plus model/voice/speed/format identity.
- Guarantee at most one generation per key across concurrent callers.
- Track basic cache telemetry (hits/misses) for diagnostics.
"""

from __future__ import annotations

from collections import OrderedDict
from hashlib import sha256
import json
import threading
from typing import Any, Callable

from ..models.datatypes import AudioBuffer


def stable_key(namespace: str, identity: dict[str, Any]) -> str:
    """Build a deterministic key from a namespace and a JSON-serializable identity."""

    canonical_identity = json.dumps(
        identity,
        sort_keys=True,
        ensure_ascii=True,
        separators=(",", ":"),
    )
    identity_hash = sha256(canonical_identity.encode("utf-8")).hexdigest()
    return f"{namespace}:{identity_hash}"


class AudioCache:
    """Thread-safe keyed store of synthesized audio with single-flight generation.

    Entries are never mutated in place. When `max_entries` is set, the least
    recently used entry is evicted once the bound is exceeded; otherwise the
    cache grows without bound for the life of the process.
    """

    def __init__(self, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries <= 0:
            raise ValueError("`max_entries` must be a positive integer or None.")
        self.max_entries = max_entries
        self.hits = 0
        self.misses = 0
        self._entries: OrderedDict[str, AudioBuffer] = OrderedDict()
        self._lock = threading.Lock()
        self._key_locks: dict[str, threading.Lock] = {}

    @staticmethod
    def make_key(*, text: str, model: str, voice: str, speed: float, response_format: str = "wav") -> str:
        """Build the cache key for one chunk under one synthesis setting and audio format."""

        audio_format = response_format.strip().lower()
        return stable_key(
            f"audio:{audio_format}:{model.strip()}:{voice.strip().lower()}:{float(speed):.4f}",
            {
                "text": text,
                "model": model.strip(),
                "voice": voice.strip().lower(),
                "speed": float(speed),
                "format": audio_format,
            },
        )

    def get(self, cache_key: str) -> AudioBuffer | None:
        """Return cached audio for key and update hit/miss counters."""

        with self._lock:
            buffer = self._entries.get(cache_key)
            if buffer is None:
                self.misses += 1
                return None
            self.hits += 1
            self._entries.move_to_end(cache_key)
            return buffer

    def contains(self, cache_key: str) -> bool:
        """Return whether a key is cached without touching telemetry."""

        with self._lock:
            return cache_key in self._entries

    def set(self, cache_key: str, buffer: AudioBuffer) -> None:
        """Store audio under a key, replacing any previous entry wholesale."""

        with self._lock:
            self._entries[cache_key] = buffer
            self._entries.move_to_end(cache_key)
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    self._entries.popitem(last=False)

    def get_or_create(self, cache_key: str, factory: Callable[[], AudioBuffer]) -> AudioBuffer:
        """Return cached audio or run `factory` exactly once per key.

        Concurrent callers for the same key wait for the first caller's
        generation. A failing factory leaves the key uncached so a later call
        may try again.
        """

        cached = self.get(cache_key)
        if cached is not None:
            return cached

        with self._lock:
            key_lock = self._key_locks.setdefault(cache_key, threading.Lock())

        with key_lock:
            with self._lock:
                existing = self._entries.get(cache_key)
            if existing is not None:
                return existing
            buffer = factory()
            self.set(cache_key, buffer)

        with self._lock:
            if self._key_locks.get(cache_key) is key_lock and not key_lock.locked():
                del self._key_locks[cache_key]
        return buffer

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def hit_rate(self) -> float:
        """Return cache hit rate for current cache lifecycle."""

        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / float(total)


_shared_cache = AudioCache()


def shared_audio_cache() -> AudioCache:
    """Return the process-wide audio cache shared by reading sessions."""

    return _shared_cache
