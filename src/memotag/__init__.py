"""memotag - memoize expensive results with tag-based invalidation."""

# Adapters
from memotag.adapters import (
    CacheStore,
    MemoryStore,
    MemoryTagRegistry,
    NamespacePurgeable,
    RedisStore,
    RedisTagRegistry,
    TagRegistry,
)

# Core API
from memotag.cache import ResultCache
from memotag.config import (
    CacheSettings,
    configure,
    get_settings,
    get_store,
    get_tag_registry,
    reset,
)
from memotag.decorator import cached

# Duration parsing
from memotag.duration import parse_duration
from memotag.errors import KeyResolutionError, MemotagError, TransactionStateError
from memotag.keys import resolve_default_key
from memotag.tags import entity_tag, join_tag
from memotag.transaction import CacheTransaction

# Core types
from memotag.types import CachedResult, Duration, EntryAddress, Producer

__version__ = "0.1.0"

__all__ = [
    "CacheSettings",
    "CacheStore",
    "CacheTransaction",
    "CachedResult",
    "Duration",
    "EntryAddress",
    "KeyResolutionError",
    "MemoryStore",
    "MemoryTagRegistry",
    "MemotagError",
    "NamespacePurgeable",
    "Producer",
    "RedisStore",
    "RedisTagRegistry",
    "ResultCache",
    "TagRegistry",
    "TransactionStateError",
    "cached",
    "configure",
    "entity_tag",
    "get_settings",
    "get_store",
    "get_tag_registry",
    "join_tag",
    "parse_duration",
    "reset",
    "resolve_default_key",
]
