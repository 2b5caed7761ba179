"""ResultCache - memoize a producer's result with tag-based invalidation."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import structlog

from memotag import config
from memotag.adapters.base import CacheStore, TagRegistry
from memotag.duration import parse_duration
from memotag.keys import resolve_default_key
from memotag.tags import entity_tag, normalize_tag, normalize_tags
from memotag.transaction import CacheTransaction
from memotag.types import CachedResult, Duration, Producer

logger = structlog.get_logger()


class ResultCache:
    """Caches the result of a zero-argument producer.

    Configure with chained ``with_*`` calls, then call ``result_of``:

        result = (
            ResultCache()
            .with_validity("1h")
            .with_namespace("/catalog/")
            .with_tag("catalog_12")
            .result_of(lambda: load_catalog(12))
        )
        result["result"]

    The producer runs at most once per (key, namespace, partition) within
    the validity window. Returning None from it skips caching: the call
    yields ``{"result": None}`` and the next call runs the producer again.
    A mapping result is cached and returned as is; any other value is
    wrapped as ``{"result": value}``.

    Without an explicit key, the key is derived from where the producer is
    defined (file and line span), not from what it captures. A resolved
    key stays configured, so a reused instance keeps addressing the same
    entry.

    Without explicit collaborators, the process-wide defaults from
    ``memotag.config`` are used on first use.
    """

    def __init__(
        self,
        store: CacheStore | None = None,
        registry: TagRegistry | None = None,
        *,
        settings: config.CacheSettings | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._settings = settings
        self._validity = 0
        self._key = ""
        self._namespace = ""
        self._partition = ""
        self._tags: list[str] = []
        self._force_refresh = False

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    @property
    def key(self) -> str:
        return self._key

    def with_key(self, key: str) -> ResultCache:
        self._key = key.strip()
        return self

    @property
    def namespace(self) -> str:
        return self._namespace

    def with_namespace(self, namespace: str) -> ResultCache:
        self._namespace = namespace.strip()
        return self

    @property
    def partition(self) -> str:
        return self._partition or self.settings.default_partition

    def with_partition(self, partition: str) -> ResultCache:
        self._partition = partition.strip()
        return self

    @property
    def validity(self) -> int:
        """Validity in seconds. 0 means "use the default" on the next call."""
        return self._validity

    def with_validity(self, validity: Duration) -> ResultCache:
        seconds = parse_duration(validity)
        if seconds < 0:
            raise ValueError(f"validity must be non-negative, got {validity!r}")
        self._validity = seconds
        return self

    @property
    def force_refresh(self) -> bool:
        return self._force_refresh

    def with_force_refresh(self, force_refresh: bool = True) -> ResultCache:
        """Purge and recompute the entry on the next call."""
        self._force_refresh = bool(force_refresh)
        return self

    @property
    def tags(self) -> list[str]:
        return list(self._tags)

    @property
    def has_tags(self) -> bool:
        return len(self._tags) > 0

    def with_tag(self, tag: str) -> ResultCache:
        """Add a tag. Blank tags are ignored."""
        normalized = normalize_tag(tag)
        if normalized is not None:
            self._tags.append(normalized)
        return self

    def with_tags(self, tags: Iterable[str]) -> ResultCache:
        self._tags.extend(normalize_tags(tags))
        return self

    def with_entity_tag(self, kind: str, entity_id: int) -> ResultCache:
        """Add the ``{kind}_id_{entity_id}`` tag when entity_id is positive."""
        tag = entity_tag(kind, entity_id)
        if tag is not None:
            self._tags.append(tag)
        return self

    def clear_tags(self) -> ResultCache:
        self._tags = []
        return self

    # -------------------------------------------------------------------------
    # Collaborators
    # -------------------------------------------------------------------------

    @property
    def settings(self) -> config.CacheSettings:
        if self._settings is None:
            self._settings = config.get_settings()
        return self._settings

    @property
    def store(self) -> CacheStore:
        if self._store is None:
            self._store = config.get_store()
        return self._store

    @property
    def registry(self) -> TagRegistry:
        if self._registry is None:
            self._registry = config.get_tag_registry()
        return self._registry

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def result_of(self, producer: Producer) -> CachedResult:
        """Return the cached result of producer, computing it when needed.

        Raises whatever the producer raises, after aborting the store
        transaction and tag scope. Nothing is cached in that case.
        """
        self._resolve_defaults(producer)
        key, namespace, partition = self._key, self._namespace, self.partition

        if self._force_refresh:
            self.store.purge(key, namespace, partition)
            logger.debug("Cache purged", key=key, namespace=namespace, partition=partition)

        fresh = self.store.begin_transaction(self._validity, key, namespace, partition)
        if not (fresh or self._force_refresh):
            logger.debug("Cache hit", key=key, namespace=namespace, partition=partition)
            return self.store.current_variables()

        registry = self.registry if self.has_tags else None
        with CacheTransaction(self.store, registry, namespace, self._tags) as txn:
            try:
                result = producer()
            except Exception as e:
                logger.warning(
                    "Cache aborted - producer raised",
                    key=key,
                    namespace=namespace,
                    error=repr(e),
                )
                raise

            if result is None:
                txn.abort()
                logger.debug(
                    "Cache skipped - producer returned None",
                    key=key,
                    namespace=namespace,
                )
                return {"result": None}

            value = _to_cached_result(result)
            txn.commit(value)

        logger.debug(
            "Cache miss - stored",
            key=key,
            namespace=namespace,
            partition=partition,
            validity=self._validity,
            tags=len(self._tags),
        )
        return value

    def _resolve_defaults(self, producer: Producer) -> None:
        if self._validity == 0:
            self._validity = self.settings.default_validity

        if self._key.strip() == "":
            self._key = resolve_default_key(producer)

        if self._namespace.strip() == "":
            self._namespace = self.settings.default_namespace

    def __repr__(self) -> str:
        return (
            f"ResultCache(key={self._key!r}, namespace={self._namespace!r}, "
            f"partition={self._partition!r}, validity={self._validity}, "
            f"tags={self._tags!r}, force_refresh={self._force_refresh})"
        )


def _to_cached_result(result: object) -> CachedResult:
    if isinstance(result, dict):
        return result
    if isinstance(result, Mapping):
        return dict(result)
    return {"result": result}
