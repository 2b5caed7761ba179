"""In-memory store and tag registry."""

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import NamedTuple

import structlog

from memotag.adapters.base import NamespacePurgeable
from memotag.errors import TransactionStateError
from memotag.types import CachedResult, EntryAddress, StoredEntry

logger = structlog.get_logger()


class _Pending(NamedTuple):
    address: EntryAddress
    validity: int
    loaded: CachedResult | None


class MemoryStore:
    """In-process store with expiry and optional LRU eviction.

    Transactions are kept on a per-thread stack, entries are shared. A
    producer may therefore use the same store for nested cached calls.
    """

    def __init__(
        self,
        max_items: int | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: OrderedDict[EntryAddress, StoredEntry] = OrderedDict()
        self._max_items = max_items
        self._clock = clock
        self._lock = threading.Lock()
        self._local = threading.local()

    def begin_transaction(
        self, validity: int, key: str, namespace: str, partition: str
    ) -> bool:
        """Load a fresh entry or open a write transaction for it.

        A hit still opens a transaction, so a caller that recomputes anyway
        can commit over the loaded value. current_variables() closes it.
        """
        address = EntryAddress(key=key, namespace=namespace, partition=partition)
        now = self._clock()
        loaded = None
        with self._lock:
            entry = self._entries.get(address)
            if entry is not None and entry.expires_at > now:
                self._entries.move_to_end(address)  # LRU touch
                loaded = dict(entry.value)
            elif entry is not None:
                del self._entries[address]

        self._stack().append(_Pending(address, validity, loaded))
        return loaded is None

    def commit(self, value: CachedResult) -> None:
        """Store value under the innermost open transaction's address."""
        pending = self._pop()
        now = self._clock()
        entry = StoredEntry(
            value=dict(value), created_at=now, expires_at=now + pending.validity
        )
        with self._lock:
            self._entries[pending.address] = entry
            self._entries.move_to_end(pending.address)
            if self._max_items and len(self._entries) > self._max_items:
                self._entries.popitem(last=False)

    def abort(self) -> None:
        """Drop the innermost open transaction."""
        self._pop()

    def purge(self, key: str, namespace: str, partition: str) -> None:
        """Remove one entry."""
        address = EntryAddress(key=key, namespace=namespace, partition=partition)
        with self._lock:
            self._entries.pop(address, None)

    def purge_namespace(self, namespace: str) -> None:
        """Remove every entry under namespace, in all partitions."""
        with self._lock:
            doomed = [a for a in self._entries if a.namespace == namespace]
            for address in doomed:
                del self._entries[address]

    def current_variables(self) -> CachedResult:
        """Return the value loaded by the innermost hit and close its transaction."""
        stack = self._stack()
        if not stack or stack[-1].loaded is None:
            raise TransactionStateError("No cached value has been loaded")
        return stack.pop().loaded

    def clear(self) -> None:
        """Clear all cached entries."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _stack(self) -> list[_Pending]:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = self._local.stack = []
        return stack

    def _pop(self) -> _Pending:
        stack = self._stack()
        if not stack:
            raise TransactionStateError("No store transaction is open")
        return stack.pop()


class MemoryTagRegistry:
    """In-process tag registry purging namespaces of a store.

    Scopes nest per thread: tags go to the innermost open scope.
    """

    def __init__(self, store: NamespacePurgeable) -> None:
        self._store = store
        self._namespaces: dict[str, set[str]] = {}
        self._lock = threading.Lock()
        self._local = threading.local()

    def open_scope(self, namespace: str) -> None:
        """Start collecting tags for namespace."""
        self._scopes().append((namespace, []))

    def register_tag(self, tag: str) -> None:
        """Add tag to the innermost open scope."""
        scopes = self._scopes()
        if not scopes:
            raise TransactionStateError("No tag scope is open")
        scopes[-1][1].append(tag)

    def commit_scope(self) -> None:
        """Associate the collected tags with the scope's namespace."""
        namespace, tags = self._pop_scope()
        with self._lock:
            for tag in tags:
                self._namespaces.setdefault(tag, set()).add(namespace)

    def abort_scope(self) -> None:
        """Drop the innermost open scope."""
        self._pop_scope()

    def invalidate(self, tag: str) -> None:
        """Purge every namespace tagged with tag and forget the tag."""
        with self._lock:
            namespaces = self._namespaces.pop(tag, set())
        for namespace in sorted(namespaces):
            self._store.purge_namespace(namespace)
        logger.info("Tag invalidated", tag=tag, namespaces=len(namespaces))

    def namespaces_for(self, tag: str) -> set[str]:
        """Namespaces currently associated with tag."""
        with self._lock:
            return set(self._namespaces.get(tag, ()))

    def clear(self) -> None:
        """Forget every tag association."""
        with self._lock:
            self._namespaces.clear()

    def _scopes(self) -> list[tuple[str, list[str]]]:
        scopes = getattr(self._local, "scopes", None)
        if scopes is None:
            scopes = self._local.scopes = []
        return scopes

    def _pop_scope(self) -> tuple[str, list[str]]:
        scopes = self._scopes()
        if not scopes:
            raise TransactionStateError("No tag scope is open")
        return scopes.pop()
