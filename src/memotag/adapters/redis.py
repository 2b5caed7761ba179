"""Redis store and tag registry."""

from __future__ import annotations

import json
import threading
import time
from typing import Any, NamedTuple

import structlog

from memotag.errors import TransactionStateError
from memotag.tags import join_tag
from memotag.types import CachedResult

logger = structlog.get_logger()


def _decode(data: bytes | str) -> str:
    if isinstance(data, bytes):
        return data.decode("utf-8")
    return data


def _serialize_value(value: CachedResult) -> str:
    """Serialize a committed value to JSON."""
    return json.dumps({"value": value, "created_at": time.time()})


def _deserialize_value(data: bytes | str) -> CachedResult:
    """Deserialize JSON to a committed value."""
    obj = json.loads(_decode(data))
    return dict(obj["value"])


class _Pending(NamedTuple):
    key: str
    namespace: str
    partition: str
    validity: int
    loaded: CachedResult | None


class RedisStore:
    """Redis-backed store.

    Values are stored as JSON with a native Redis expiry, so they must be
    JSON serializable and come back with JSON types (tuples become lists,
    non-string mapping keys become strings).

    Each namespace has an index set of its entry keys. The set expires with
    the longest-lived entry it indexes (EXPIRE NX/GT, Redis 7 or newer).
    Transactions are kept on a per-thread stack.
    """

    def __init__(
        self,
        client: Any,  # redis.Redis
        *,
        prefix: str = "memotag",
    ) -> None:
        self._client = client
        self._prefix = prefix
        self._local = threading.local()

    @classmethod
    def from_url(cls, url: str, *, prefix: str = "memotag") -> RedisStore:
        """Create a store with its own client for url."""
        import redis

        return cls(redis.Redis.from_url(url), prefix=prefix)

    @property
    def client(self) -> Any:
        return self._client

    @property
    def prefix(self) -> str:
        return self._prefix

    def entry_key(self, key: str, namespace: str, partition: str) -> str:
        """Full Redis key for a cache entry."""
        return f"{self._prefix}:cache:{join_tag(partition, namespace, key)}"

    def namespace_key(self, namespace: str) -> str:
        """Full Redis key of the set indexing a namespace's entries."""
        return f"{self._prefix}:ns:{join_tag(namespace)}"

    def begin_transaction(
        self, validity: int, key: str, namespace: str, partition: str
    ) -> bool:
        """Load a fresh entry or open a write transaction for it.

        A hit still opens a transaction, so a caller that recomputes anyway
        can commit over the loaded value. current_variables() closes it.
        """
        data = self._client.get(self.entry_key(key, namespace, partition))
        loaded = _deserialize_value(data) if data is not None else None
        self._stack().append(_Pending(key, namespace, partition, validity, loaded))
        return loaded is None

    def commit(self, value: CachedResult) -> None:
        """Store value with a Redis expiry of the transaction's validity."""
        payload = _serialize_value(value)
        pending = self._pop()
        entry_key = self.entry_key(pending.key, pending.namespace, pending.partition)
        ns_key = self.namespace_key(pending.namespace)
        pipe = self._client.pipeline()
        pipe.set(entry_key, payload, ex=pending.validity)
        pipe.sadd(ns_key, entry_key)
        pipe.expire(ns_key, pending.validity, nx=True)
        pipe.expire(ns_key, pending.validity, gt=True)
        pipe.execute()

    def abort(self) -> None:
        """Drop the innermost open transaction."""
        self._pop()

    def purge(self, key: str, namespace: str, partition: str) -> None:
        """Remove one entry."""
        entry_key = self.entry_key(key, namespace, partition)
        pipe = self._client.pipeline()
        pipe.delete(entry_key)
        pipe.srem(self.namespace_key(namespace), entry_key)
        pipe.execute()

    def purge_namespace(self, namespace: str) -> None:
        """Remove every entry under namespace, in all partitions."""
        ns_key = self.namespace_key(namespace)
        members = self._client.smembers(ns_key)
        self._client.delete(ns_key, *members)

    def namespace_ttl(self, namespace: str) -> int | None:
        """Seconds until the namespace index expires, None when it has no expiry."""
        ttl = self._client.ttl(self.namespace_key(namespace))
        return ttl if ttl > 0 else None

    def current_variables(self) -> CachedResult:
        """Return the value loaded by the innermost hit and close its transaction."""
        stack = self._stack()
        if not stack or stack[-1].loaded is None:
            raise TransactionStateError("No cached value has been loaded")
        return stack.pop().loaded

    def clear(self) -> None:
        """Clear all cached entries and namespace indexes."""
        # Use SCAN to find and delete all store keys
        for pattern in (f"{self._prefix}:cache:*", f"{self._prefix}:ns:*"):
            cursor = 0
            while True:
                cursor, keys = self._client.scan(cursor, match=pattern, count=100)
                if keys:
                    self._client.delete(*keys)
                if cursor == 0:
                    break

    def disconnect(self) -> None:
        """Close the Redis connection."""
        self._client.close()

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


class RedisTagRegistry:
    """Tag registry keeping tag -> namespaces sets next to a RedisStore.

    A tag set expires with the longest-lived namespace index it points to.
    Scopes nest per thread: tags go to the innermost open scope.
    """

    def __init__(self, store: RedisStore) -> None:
        self._store = store
        self._client = store.client
        self._prefix = store.prefix
        self._local = threading.local()

    def tag_key(self, tag: str) -> str:
        """Full Redis key of the set of namespaces for tag."""
        return f"{self._prefix}:tag:{join_tag(tag)}"

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
        if not tags:
            return
        ttl = self._store.namespace_ttl(namespace)
        pipe = self._client.pipeline()
        for tag in tags:
            tag_key = self.tag_key(tag)
            pipe.sadd(tag_key, namespace)
            if ttl is not None:
                pipe.expire(tag_key, ttl, nx=True)
                pipe.expire(tag_key, ttl, gt=True)
        pipe.execute()

    def abort_scope(self) -> None:
        """Drop the innermost open scope."""
        self._pop_scope()

    def invalidate(self, tag: str) -> None:
        """Purge every namespace tagged with tag and forget the tag."""
        tag_key = self.tag_key(tag)
        namespaces = sorted(_decode(ns) for ns in self._client.smembers(tag_key))
        for namespace in namespaces:
            self._store.purge_namespace(namespace)
        self._client.delete(tag_key)
        logger.info("Tag invalidated", tag=tag, namespaces=len(namespaces))

    def namespaces_for(self, tag: str) -> set[str]:
        """Namespaces currently associated with tag."""
        return {_decode(ns) for ns in self._client.smembers(self.tag_key(tag))}

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
