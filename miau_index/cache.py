"""TTL caches for provider and indexer results.

Two interchangeable implementations share the get/set/get_or_set contract:
an in-process dictionary and a disk cache of JSON files under
~/.cache/miau-index. Callers pass value_type so that the disk cache can
rebuild dataclasses from their JSON form.
"""

import hashlib
import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

logger = logging.getLogger(__name__)

# Cache location following XDG conventions
DEFAULT_CACHE_DIR = Path.home() / ".cache" / "miau-index"

DEFAULT_TTL = 3600.0


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total * 100 if total else 0.0


class Cache(ABC):
    """Key/value store whose entries expire after a time-to-live in seconds."""

    def __init__(self, default_ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.time):
        self.default_ttl = default_ttl
        self._clock = clock
        self._hits = 0
        self._misses = 0

    @abstractmethod
    def _load(self, key: str) -> tuple[float, Any] | None:
        """Return (expires_at, value) for a stored key."""

    @abstractmethod
    def _store(self, key: str, expires_at: float, value: Any) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> bool: ...

    @abstractmethod
    def clear(self) -> None: ...

    @abstractmethod
    def __len__(self) -> int: ...

    def _decode(self, key: str, value: Any, value_type: Any) -> Any:
        """Turn a stored value back into value_type; None discards the entry."""
        return value

    def get(self, key: str, value_type: Any = None) -> Any | None:
        """Return the cached value, or None when missing or expired."""
        entry = self._load(key)
        if entry is not None:
            expires_at, value = entry
            if self._clock() < expires_at:
                value = self._decode(key, value, value_type)
                if value is not None:
                    self._hits += 1
                    logger.debug(f"Cache hit for {key}")
                    return value
            self.delete(key)
        self._misses += 1
        logger.debug(f"Cache miss for {key}")
        return None

    def has(self, key: str) -> bool:
        entry = self._load(key)
        return entry is not None and self._clock() < entry[0]

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        self._store(key, self._clock() + ttl, value)

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: float | None = None,
        value_type: Any = None,
    ) -> Any:
        """Return the cached value or compute, store and return it.

        None results are not cached.
        """
        value = self.get(key, value_type)
        if value is not None:
            return value
        value = await factory()
        if value is not None:
            self.set(key, value, ttl)
        return value

    def stats(self) -> CacheStats:
        return CacheStats(hits=self._hits, misses=self._misses, size=len(self))


class MemoryCache(Cache):
    """In-process cache backed by a dictionary."""

    def __init__(self, default_ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.time):
        super().__init__(default_ttl, clock)
        self._entries: dict[str, tuple[float, Any]] = {}

    def _load(self, key: str) -> tuple[float, Any] | None:
        return self._entries.get(key)

    def _store(self, key: str, expires_at: float, value: Any) -> None:
        self._entries[key] = (expires_at, value)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class NullCache(Cache):
    """Cache that never stores anything; used when caching is disabled."""

    def _load(self, key: str) -> tuple[float, Any] | None:
        return None

    def _store(self, key: str, expires_at: float, value: Any) -> None:
        pass

    def delete(self, key: str) -> bool:
        return False

    def clear(self) -> None:
        pass

    def __len__(self) -> int:
        return 0


@lru_cache(maxsize=None)
def _type_adapter(value_type: Any) -> TypeAdapter:
    return TypeAdapter(value_type)


def _hash_key(key: str) -> str:
    """Generate a SHA-256 hash of a key for use as a filename."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class DiskCache(Cache):
    """Cache persisted as one JSON file per key.

    Values are stored in their JSON form. Read, write and decoding failures
    are logged and treated as cache misses.

    Usage:
        cache = DiskCache(Path("/tmp/miau"), default_ttl=600)
        cache.set("anilist:anime:1", anime)
    """

    def __init__(
        self,
        cache_dir: Path = DEFAULT_CACHE_DIR,
        default_ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(default_ttl, clock)
        self.cache_dir = Path(cache_dir)

    def _get_cache_path(self, key: str) -> Path:
        return self.cache_dir / f"{_hash_key(key)}.cache"

    def _load(self, key: str) -> tuple[float, Any] | None:
        cache_path = self._get_cache_path(key)
        try:
            if cache_path.exists():
                entry = json.loads(cache_path.read_text(encoding="utf-8"))
                return entry["expires_at"], entry["value"]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Failed to read cache for {key}: {e}")
        return None

    def _store(self, key: str, expires_at: float, value: Any) -> None:
        """Write an entry atomically."""
        cache_path = self._get_cache_path(key)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            # Write to temp file first, then rename for atomicity
            temp_path = cache_path.with_suffix(".tmp")
            entry = {"key": key, "expires_at": expires_at, "value": to_jsonable_python(value)}
            temp_path.write_text(json.dumps(entry), encoding="utf-8")
            temp_path.replace(cache_path)
        except (OSError, PydanticSerializationError) as e:
            logger.warning(f"Failed to write cache for {key}: {e}")

    def _decode(self, key: str, value: Any, value_type: Any) -> Any:
        if value_type is None:
            return value
        try:
            return _type_adapter(value_type).validate_python(value)
        except SchemaValidationError as e:
            logger.warning(f"Discarding unreadable cache entry for {key}: {e}")
            return None

    def delete(self, key: str) -> bool:
        cache_path = self._get_cache_path(key)
        try:
            cache_path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to delete cache for {key}: {e}")
            return False

    def clear(self) -> None:
        """Remove all cached files."""
        try:
            if self.cache_dir.exists():
                for cache_file in self.cache_dir.glob("*.cache"):
                    cache_file.unlink()
        except OSError as e:
            logger.warning(f"Failed to clear cache: {e}")

    def __len__(self) -> int:
        if not self.cache_dir.exists():
            return 0
        return sum(1 for _ in self.cache_dir.glob("*.cache"))


def create_cache(cache_dir: Path | None = None, default_ttl: float = DEFAULT_TTL) -> Cache:
    """Disk cache when a directory is given, otherwise in-memory."""
    if cache_dir is not None:
        return DiskCache(cache_dir, default_ttl)
    return MemoryCache(default_ttl)
