"""Core types for memotag."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

# Mapping handed back by ResultCache.result_of and persisted by stores
CachedResult = dict[str, Any]

Producer = Callable[[], Any]

# Duration type alias
Duration = str | int  # "30s", "5m", "2h", "1d" or seconds


@dataclass(frozen=True, slots=True)
class EntryAddress:
    """Physical coordinates of a cache entry in a store."""

    key: str
    namespace: str
    partition: str


@dataclass(frozen=True, slots=True)
class StoredEntry:
    """A committed payload with its expiry."""

    value: CachedResult
    created_at: float  # time.monotonic() / unix seconds, adapter specific
    expires_at: float
