"""Store and tag registry adapters for memotag."""

from memotag.adapters.base import CacheStore, NamespacePurgeable, TagRegistry
from memotag.adapters.memory import MemoryStore, MemoryTagRegistry
from memotag.adapters.redis import RedisStore, RedisTagRegistry

__all__ = [
    "CacheStore",
    "MemoryStore",
    "MemoryTagRegistry",
    "NamespacePurgeable",
    "RedisStore",
    "RedisTagRegistry",
    "TagRegistry",
]
