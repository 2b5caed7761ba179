"""Paired store transaction and tag registration scope."""

from __future__ import annotations

from collections.abc import Sequence
from types import TracebackType

import structlog

from memotag.adapters.base import CacheStore, TagRegistry
from memotag.types import CachedResult

logger = structlog.get_logger()


class CacheTransaction:
    """An open store transaction and, when tags are given, its tag scope.

    Enter it right after the store's begin_transaction returned True. The
    tag scope is opened on enter and registers every tag in order. Leaving
    the block without commit() aborts whatever is still open: the store
    transaction first, then the tag scope.

    Usage:
        if store.begin_transaction(validity, key, namespace, partition):
            with CacheTransaction(store, registry, namespace, tags) as txn:
                txn.commit(compute())
    """

    def __init__(
        self,
        store: CacheStore,
        registry: TagRegistry | None,
        namespace: str,
        tags: Sequence[str] = (),
    ) -> None:
        self._store = store
        self._registry = registry
        self._namespace = namespace
        self._tags = list(tags)
        self._store_open = True
        self._scope_open = False

    @property
    def is_open(self) -> bool:
        """Whether the store transaction or the tag scope is still open."""
        return self._store_open or self._scope_open

    def __enter__(self) -> CacheTransaction:
        if self._tags and self._registry is not None:
            try:
                self._registry.open_scope(self._namespace)
                self._scope_open = True
                for tag in self._tags:
                    self._registry.register_tag(tag)
            except BaseException:
                self._abort_quietly()
                raise
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self.is_open:
            return
        if exc is None:
            self.abort()
        else:
            self._abort_quietly()

    def commit(self, value: CachedResult) -> None:
        """Commit value to the store, then finalize the tag scope."""
        self._store.commit(value)
        self._store_open = False
        if self._scope_open:
            assert self._registry is not None
            self._registry.commit_scope()
            self._scope_open = False

    def abort(self) -> None:
        """Abort the store transaction and the tag scope, whichever are open."""
        try:
            if self._store_open:
                self._store_open = False
                self._store.abort()
        finally:
            if self._scope_open:
                assert self._registry is not None
                self._scope_open = False
                self._registry.abort_scope()

    def _abort_quietly(self) -> None:
        """Abort while another error is propagating; never mask that error."""
        if self._store_open:
            self._store_open = False
            try:
                self._store.abort()
            except Exception as e:
                logger.error("Store abort failed", error=repr(e))
        if self._scope_open:
            assert self._registry is not None
            self._scope_open = False
            try:
                self._registry.abort_scope()
            except Exception as e:
                logger.error("Tag scope abort failed", error=repr(e))
