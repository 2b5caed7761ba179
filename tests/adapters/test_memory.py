"""Tests for memory adapters."""

import threading

import pytest

from memotag import MemoryStore, MemoryTagRegistry, TransactionStateError


def put(store: MemoryStore, key: str, value: dict, namespace: str = "/", partition: str = "cache") -> None:
    assert store.begin_transaction(60, key, namespace, partition) is True
    store.commit(value)


class TestMemoryStore:
    """Tests for MemoryStore."""

    def test_begin_on_missing_entry(self, store: MemoryStore) -> None:
        """Test that a missing entry asks the caller to compute."""
        assert store.begin_transaction(60, "k", "/", "cache") is True
        store.abort()

    def test_commit_then_hit(self, store: MemoryStore) -> None:
        put(store, "k", {"result": 1})
        assert store.begin_transaction(60, "k", "/", "cache") is False
        assert store.current_variables() == {"result": 1}

    def test_abort_persists_nothing(self, store: MemoryStore) -> None:
        store.begin_transaction(60, "k", "/", "cache")
        store.abort()
        assert store.begin_transaction(60, "k", "/", "cache") is True
        assert len(store) == 0

    def test_commit_without_transaction(self, store: MemoryStore) -> None:
        with pytest.raises(TransactionStateError):
            store.commit({"result": 1})

    def test_abort_without_transaction(self, store: MemoryStore) -> None:
        with pytest.raises(TransactionStateError):
            store.abort()

    def test_current_variables_without_hit(self, store: MemoryStore) -> None:
        store.begin_transaction(60, "k", "/", "cache")
        with pytest.raises(TransactionStateError):
            store.current_variables()

    def test_current_variables_closes_hit(self, store: MemoryStore) -> None:
        """Test that reading a hit finishes its transaction."""
        put(store, "k", {"result": 1})
        store.begin_transaction(60, "k", "/", "cache")
        store.current_variables()
        with pytest.raises(TransactionStateError):
            store.abort()

    def test_nested_transactions(self, store: MemoryStore) -> None:
        """Test that commit and abort target the innermost transaction."""
        assert store.begin_transaction(60, "outer", "/", "cache") is True
        assert store.begin_transaction(60, "inner", "/", "cache") is True
        store.commit({"result": "inner"})
        assert store.begin_transaction(60, "skipped", "/", "cache") is True
        store.abort()
        store.commit({"result": "outer"})

        store.begin_transaction(60, "outer", "/", "cache")
        assert store.current_variables() == {"result": "outer"}
        store.begin_transaction(60, "inner", "/", "cache")
        assert store.current_variables() == {"result": "inner"}
        assert len(store) == 2

    def test_hit_inside_open_transaction(self, store: MemoryStore) -> None:
        """Test that an inner hit does not change where the outer commit goes."""
        put(store, "inner", {"result": "inner"})
        store.begin_transaction(60, "outer", "/", "cache")
        assert store.begin_transaction(60, "inner", "/", "cache") is False
        assert store.current_variables() == {"result": "inner"}
        store.commit({"result": "outer"})

        store.begin_transaction(60, "inner", "/", "cache")
        assert store.current_variables() == {"result": "inner"}

    def test_commit_after_hit_overwrites(self, store: MemoryStore) -> None:
        """Test that a caller may recompute over a loaded value."""
        put(store, "k", {"result": "old"})
        assert store.begin_transaction(60, "k", "/", "cache") is False
        store.commit({"result": "new"})
        store.begin_transaction(60, "k", "/", "cache")
        assert store.current_variables() == {"result": "new"}

    def test_values_are_copied(self, store: MemoryStore) -> None:
        """Test that mutating committed or loaded values does not leak into the store."""
        value = {"result": 1}
        put(store, "k", value)
        value["result"] = 2
        store.begin_transaction(60, "k", "/", "cache")
        loaded = store.current_variables()
        loaded["result"] = 3
        store.begin_transaction(60, "k", "/", "cache")
        assert store.current_variables() == {"result": 1}

    def test_expiry(self) -> None:
        now = [0.0]
        store = MemoryStore(clock=lambda: now[0])
        put(store, "k", {"result": 1})
        now[0] = 59.9
        assert store.begin_transaction(60, "k", "/", "cache") is False
        now[0] = 60.0
        assert store.begin_transaction(60, "k", "/", "cache") is True
        assert len(store) == 0

    def test_purge(self, store: MemoryStore) -> None:
        put(store, "k", {"result": 1})
        put(store, "other", {"result": 2})
        store.purge("k", "/", "cache")
        store.purge("missing", "/", "cache")
        assert store.begin_transaction(60, "k", "/", "cache") is True
        assert store.begin_transaction(60, "other", "/", "cache") is False

    def test_purge_namespace_spans_partitions(self, store: MemoryStore) -> None:
        put(store, "a", {"result": 1}, namespace="/n/", partition="one")
        put(store, "b", {"result": 2}, namespace="/n/", partition="two")
        put(store, "c", {"result": 3}, namespace="/other/")
        store.purge_namespace("/n/")
        assert len(store) == 1

    def test_clear(self, store: MemoryStore) -> None:
        put(store, "a", {"result": 1})
        put(store, "b", {"result": 2})
        store.clear()
        assert len(store) == 0

    def test_lru_eviction(self) -> None:
        """Test LRU eviction when max_items is set."""
        store = MemoryStore(max_items=2)
        put(store, "key1", {"result": 1})
        put(store, "key2", {"result": 2})
        store.begin_transaction(60, "key1", "/", "cache")  # LRU touch
        put(store, "key3", {"result": 3})  # Should evict key2

        assert store.begin_transaction(60, "key2", "/", "cache") is True
        assert store.begin_transaction(60, "key1", "/", "cache") is False
        assert store.begin_transaction(60, "key3", "/", "cache") is False

    def test_transactions_are_per_thread(self, store: MemoryStore) -> None:
        """Test that another thread cannot commit this thread's transaction."""
        store.begin_transaction(60, "k", "/", "cache")
        errors: list[BaseException] = []

        def commit() -> None:
            try:
                store.commit({"result": 1})
            except TransactionStateError as e:
                errors.append(e)

        thread = threading.Thread(target=commit)
        thread.start()
        thread.join()
        assert len(errors) == 1
        store.commit({"result": 1})
        assert len(store) == 1


class TestMemoryTagRegistry:
    """Tests for MemoryTagRegistry."""

    def test_commit_scope_associates_tags(self, registry: MemoryTagRegistry) -> None:
        registry.open_scope("/n/")
        registry.register_tag("a")
        registry.register_tag("b")
        registry.commit_scope()
        assert registry.namespaces_for("a") == {"/n/"}
        assert registry.namespaces_for("b") == {"/n/"}

    def test_abort_scope_associates_nothing(self, registry: MemoryTagRegistry) -> None:
        registry.open_scope("/n/")
        registry.register_tag("a")
        registry.abort_scope()
        assert registry.namespaces_for("a") == set()

    def test_register_outside_scope(self, registry: MemoryTagRegistry) -> None:
        with pytest.raises(TransactionStateError):
            registry.register_tag("a")

    def test_nested_scopes(self, registry: MemoryTagRegistry) -> None:
        """Test that tags go to the innermost scope and outer scopes resume."""
        registry.open_scope("/outer/")
        registry.register_tag("a")
        registry.open_scope("/inner/")
        registry.register_tag("b")
        registry.commit_scope()
        registry.register_tag("c")
        registry.commit_scope()
        assert registry.namespaces_for("a") == {"/outer/"}
        assert registry.namespaces_for("b") == {"/inner/"}
        assert registry.namespaces_for("c") == {"/outer/"}

    def test_aborted_inner_scope(self, registry: MemoryTagRegistry) -> None:
        registry.open_scope("/outer/")
        registry.open_scope("/inner/")
        registry.register_tag("b")
        registry.abort_scope()
        registry.register_tag("a")
        registry.commit_scope()
        assert registry.namespaces_for("a") == {"/outer/"}
        assert registry.namespaces_for("b") == set()

    def test_close_without_scope(self, registry: MemoryTagRegistry) -> None:
        with pytest.raises(TransactionStateError):
            registry.commit_scope()
        with pytest.raises(TransactionStateError):
            registry.abort_scope()

    def test_invalidate_purges_tagged_namespaces(
        self, store: MemoryStore, registry: MemoryTagRegistry
    ) -> None:
        put(store, "a", {"result": 1}, namespace="/n/")
        put(store, "b", {"result": 2}, namespace="/m/")
        put(store, "c", {"result": 3}, namespace="/other/")
        for namespace in ("/n/", "/m/"):
            registry.open_scope(namespace)
            registry.register_tag("shared")
            registry.commit_scope()

        registry.invalidate("shared")
        assert len(store) == 1
        assert registry.namespaces_for("shared") == set()

    def test_invalidate_unknown_tag(
        self, store: MemoryStore, registry: MemoryTagRegistry
    ) -> None:
        put(store, "a", {"result": 1})
        registry.invalidate("unknown")
        assert len(store) == 1

    def test_clear(self, registry: MemoryTagRegistry) -> None:
        registry.open_scope("/n/")
        registry.register_tag("a")
        registry.commit_scope()
        registry.clear()
        assert registry.namespaces_for("a") == set()
