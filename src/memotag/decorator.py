"""Function decorator built on ResultCache."""

from collections.abc import Callable, Iterable
from functools import wraps
from typing import Any

from memotag.adapters.base import CacheStore, TagRegistry
from memotag.cache import ResultCache
from memotag.keys import hash_arguments, resolve_default_key
from memotag.types import CachedResult, Duration

TagsSpec = Iterable[str] | Callable[..., Iterable[str]]


def cached(
    *,
    key: str | None = None,
    namespace: str = "",
    partition: str = "",
    validity: Duration = 0,
    tags: TagsSpec = (),
    store: CacheStore | None = None,
    registry: TagRegistry | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., CachedResult]]:
    """Decorator that memoizes a function through a ResultCache.

    Each distinct set of call arguments gets its own entry: the key is the
    explicit ``key`` (or the function's definition site) plus a hash of
    the arguments. ``tags`` may be a callable receiving the call's
    arguments and returning the tags for that call.

    Usage:
        @cached(namespace="/users/", validity="10m",
                tags=lambda user_id: [f"user_{user_id}"])
        def load_user(user_id: int) -> dict:
            ...

        load_user(5)["name"]
        load_user(5, force_refresh=True)  # purge and recompute

    The wrapper returns the full cached mapping, see ResultCache.result_of.
    """

    def decorator(fn: Callable[..., Any]) -> Callable[..., CachedResult]:
        def cache_key(*args: Any, **kwargs: Any) -> str:
            base = key.strip() if key and key.strip() else resolve_default_key(fn)
            if args or kwargs:
                return f"{base}:{hash_arguments(args, kwargs)}"
            return base

        @wraps(fn)
        def wrapper(*args: Any, force_refresh: bool = False, **kwargs: Any) -> CachedResult:
            call_tags = tags(*args, **kwargs) if callable(tags) else tags
            cache = (
                ResultCache(store, registry)
                .with_key(cache_key(*args, **kwargs))
                .with_namespace(namespace)
                .with_partition(partition)
                .with_validity(validity)
                .with_tags(call_tags)
                .with_force_refresh(force_refresh)
            )
            return cache.result_of(lambda: fn(*args, **kwargs))

        wrapper.cache_key = cache_key  # type: ignore[attr-defined]
        return wrapper

    return decorator
