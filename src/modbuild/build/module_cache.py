"""Two-tier caches for module dependency data.

- MemCache: process-lifetime values (toolchain adapters, parsed graphs)
- LocalCache: JSON file on disk that survives between invocations

Both are plain objects owned by the caller and passed in where needed; there
is no global instance.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .build_context import BuildScope

logger = logging.getLogger(__name__)

CACHE_FILE_ENV = "MODBUILD_CACHE_FILE"


class MemCache:
    """In-memory cache for one process lifetime. Thread-safe."""

    def __init__(self, name: str):
        self.name = name
        self._values: dict[str, Any] = {}
        self._namespaces: dict[str, dict[str, Any]] = {}
        self.lock = threading.Lock()

    def get(self, key: str) -> Any:
        with self.lock:
            return self._values.get(key)

    def set(self, key: str, value: Any) -> None:
        with self.lock:
            self._values[key] = value

    def get2(self, namespace: str, key: str) -> Any:
        """Get a value scoped under a namespace."""
        with self.lock:
            return self._namespaces.get(namespace, {}).get(key)

    def set2(self, namespace: str, key: str, value: Any) -> None:
        """Set a value scoped under a namespace."""
        with self.lock:
            self._namespaces.setdefault(namespace, {})[key] = value

    def clear(self) -> None:
        with self.lock:
            self._values.clear()
            self._namespaces.clear()


class LocalCache:
    """Persisted key/value cache stored as a JSON file.

    Values must be JSON-serializable. Entries are replaced whole by set();
    nothing reaches disk until save().
    """

    def __init__(self, cache_file: Path):
        """Initialize local cache.

        Args:
            cache_file: Path to cache file (JSON format)
        """
        self.cache_file = cache_file
        self.cache: dict[str, Any] = {}
        self.lock = threading.Lock()
        self._load_cache()

    def _load_cache(self) -> None:
        """Load cache from disk."""
        if not self.cache_file.exists():
            logger.debug(f"Cache file not found: {self.cache_file}")
            return

        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("cache root is not an object")
            self.cache = data
            logger.info(f"Loaded cache with {len(self.cache)} entries from {self.cache_file}")
        except (json.JSONDecodeError, ValueError, OSError) as e:
            logger.warning(f"Failed to load cache from {self.cache_file}: {e}")
            self.cache = {}

    def get(self, key: str) -> Any:
        with self.lock:
            return self.cache.get(key)

    def set(self, key: str, value: Any) -> None:
        with self.lock:
            self.cache[key] = value

    def save(self) -> None:
        """Save cache to disk atomically.

        Uses atomic write pattern (temp file + rename) so a later invocation
        never reads a half-written cache.

        Raises:
            OSError: If the cache file cannot be written
        """
        with self.lock:
            try:
                self.cache_file.parent.mkdir(parents=True, exist_ok=True)

                temp_file = self.cache_file.with_suffix(".tmp")
                with open(temp_file, "w", encoding="utf-8") as f:
                    json.dump(self.cache, f, indent=2)

                temp_file.replace(self.cache_file)
                logger.debug(f"Saved cache with {len(self.cache)} entries to {self.cache_file}")
            except OSError as e:
                logger.error(f"Failed to save cache to {self.cache_file}: {e}")
                raise

    def clear(self) -> None:
        """Clear entire cache (in memory; call save() to persist)."""
        with self.lock:
            self.cache.clear()
        logger.info("Cache cleared")


@dataclass
class ModuleCaches:
    """The ephemeral and persisted cache tiers used by the module rules.

    Attributes:
        memcache: Process-lifetime tier
        localcache: Persisted tier
    """

    localcache: LocalCache
    memcache: MemCache = field(default_factory=lambda: MemCache("cxxmodules"))

    @classmethod
    def for_build_dir(cls, build_dir: Path, cache_file: Optional[Path] = None) -> "ModuleCaches":
        """Create caches persisted under a build directory.

        The cache location can be overridden with the MODBUILD_CACHE_FILE
        environment variable.
        """
        if cache_file is None:
            env_file = os.environ.get(CACHE_FILE_ENV)
            cache_file = Path(env_file) if env_file else build_dir / ".cache" / "cxxmodules.json"
        return cls(localcache=LocalCache(cache_file))

    @classmethod
    def for_scope(cls, scope: "BuildScope") -> "ModuleCaches":
        return cls.for_build_dir(scope.build_dir)
