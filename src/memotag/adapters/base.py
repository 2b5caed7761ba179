"""Base protocols for cache stores and tag registries."""

from typing import Protocol, runtime_checkable

from memotag.types import CachedResult


@runtime_checkable
class CacheStore(Protocol):
    """Two-phase cache store interface.

    begin_transaction opens a transaction. It is finished by exactly one
    of commit, abort, or current_variables after a hit. Transactions nest:
    a producer may open and finish its own before the outer one finishes,
    and commit and abort always target the innermost open transaction.
    """

    def begin_transaction(
        self, validity: int, key: str, namespace: str, partition: str
    ) -> bool:
        """Start a read-or-write transaction.

        Returns True when the caller must compute and commit a value, False
        when a valid value was loaded and is available from
        current_variables().
        """
        ...

    def commit(self, value: CachedResult) -> None:
        """Persist value under the open transaction's coordinates."""
        ...

    def abort(self) -> None:
        """Discard the open transaction. Nothing is persisted."""
        ...

    def purge(self, key: str, namespace: str, partition: str) -> None:
        """Remove any existing entry, fresh or not."""
        ...

    def current_variables(self) -> CachedResult:
        """Return the value loaded by the innermost hit and finish its transaction."""
        ...


@runtime_checkable
class TagRegistry(Protocol):
    """Associates tags with namespaces and invalidates by tag.

    Scopes nest like store transactions. register_tag, commit_scope and
    abort_scope act on the innermost open scope.
    """

    def open_scope(self, namespace: str) -> None:
        """Start collecting tags for entries under namespace."""
        ...

    def register_tag(self, tag: str) -> None:
        """Add a tag to the open scope."""
        ...

    def commit_scope(self) -> None:
        """Durably associate the collected tags with the scope's namespace."""
        ...

    def abort_scope(self) -> None:
        """Drop the open scope without associating anything."""
        ...

    def invalidate(self, tag: str) -> None:
        """Purge every namespace associated with tag."""
        ...


@runtime_checkable
class NamespacePurgeable(Protocol):
    """Optional store capability used by tag registries."""

    def purge_namespace(self, namespace: str) -> None:
        """Remove every entry under namespace, in all partitions."""
        ...
