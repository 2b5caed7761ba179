"""Settings and process-wide default collaborators."""

import threading
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from memotag.adapters.base import CacheStore, NamespacePurgeable, TagRegistry
from memotag.adapters.memory import MemoryStore, MemoryTagRegistry
from memotag.adapters.redis import RedisStore, RedisTagRegistry


class CacheSettings(BaseSettings):
    """Defaults loaded from MEMOTAG_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="MEMOTAG_", extra="ignore")

    default_validity: int = Field(
        default=3600,
        gt=0,
        description="Validity in seconds used when a cache is configured with 0",
    )
    default_partition: str = Field(
        default="cache",
        min_length=1,
        description="Storage partition used when none is configured",
    )
    default_namespace: str = Field(
        default="/",
        min_length=1,
        description="Namespace used when a cache is configured with a blank one",
    )
    backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Backend for the default store and tag registry",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis URL for the redis backend",
    )
    key_prefix: str = Field(
        default="memotag",
        description="Prefix of every Redis key written by the redis backend",
    )
    max_items: int | None = Field(
        default=None,
        gt=0,
        description="LRU bound of the memory backend",
    )


_lock = threading.Lock()
_settings: CacheSettings | None = None
_store: CacheStore | None = None
_registry: TagRegistry | None = None


def get_settings() -> CacheSettings:
    """Get or load the process-wide settings."""
    global _settings
    with _lock:
        if _settings is None:
            _settings = CacheSettings()
        return _settings


def _build_store(settings: CacheSettings) -> CacheStore:
    if settings.backend == "redis":
        return RedisStore.from_url(settings.redis_url, prefix=settings.key_prefix)
    return MemoryStore(max_items=settings.max_items)


def _build_registry(store: CacheStore) -> TagRegistry:
    if isinstance(store, RedisStore):
        return RedisTagRegistry(store)
    if not isinstance(store, NamespacePurgeable):
        raise TypeError(
            f"Cannot build a default tag registry for {type(store).__name__}; "
            "configure one explicitly"
        )
    return MemoryTagRegistry(store)


def _ensure_backends() -> tuple[CacheStore, TagRegistry]:
    global _store, _registry
    settings = get_settings()
    with _lock:
        if _store is None:
            _store = _build_store(settings)
        if _registry is None:
            _registry = _build_registry(_store)
        return _store, _registry


def get_store() -> CacheStore:
    """Get the process-wide default store, creating it on first use."""
    return _ensure_backends()[0]


def get_tag_registry() -> TagRegistry:
    """Get the process-wide default tag registry, creating it on first use."""
    return _ensure_backends()[1]


def configure(
    *,
    store: CacheStore | None = None,
    registry: TagRegistry | None = None,
    settings: CacheSettings | None = None,
) -> None:
    """Replace the process-wide defaults. Omitted arguments are kept.

    A new store without a registry drops the default registry, which is
    rebuilt for the new store on next use.
    """
    global _settings, _store, _registry
    with _lock:
        if settings is not None:
            _settings = settings
        if store is not None:
            _store = store
            if registry is None:
                _registry = None
        if registry is not None:
            _registry = registry


def reset() -> None:
    """Forget all process-wide defaults (useful for testing)."""
    global _settings, _store, _registry
    with _lock:
        _settings = None
        _store = None
        _registry = None
