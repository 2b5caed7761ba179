"""Shared pytest fixtures."""

from collections.abc import Iterator
from typing import Any

import pytest

from memotag import CachedResult, MemoryStore, MemoryTagRegistry, reset


class RecordingStore(MemoryStore):
    """MemoryStore that records protocol calls into a shared list."""

    def __init__(self, calls: list[tuple[Any, ...]]) -> None:
        super().__init__()
        self.calls = calls

    def begin_transaction(
        self, validity: int, key: str, namespace: str, partition: str
    ) -> bool:
        fresh = super().begin_transaction(validity, key, namespace, partition)
        self.calls.append(("begin", validity, key, namespace, partition, fresh))
        return fresh

    def commit(self, value: CachedResult) -> None:
        self.calls.append(("commit", value))
        super().commit(value)

    def abort(self) -> None:
        self.calls.append(("abort",))
        super().abort()

    def purge(self, key: str, namespace: str, partition: str) -> None:
        self.calls.append(("purge", key, namespace, partition))
        super().purge(key, namespace, partition)


class RecordingTagRegistry(MemoryTagRegistry):
    """MemoryTagRegistry that records protocol calls into a shared list."""

    def __init__(self, store: MemoryStore, calls: list[tuple[Any, ...]]) -> None:
        super().__init__(store)
        self.calls = calls

    def open_scope(self, namespace: str) -> None:
        self.calls.append(("open_scope", namespace))
        super().open_scope(namespace)

    def register_tag(self, tag: str) -> None:
        self.calls.append(("register_tag", tag))
        super().register_tag(tag)

    def commit_scope(self) -> None:
        self.calls.append(("commit_scope",))
        super().commit_scope()

    def abort_scope(self) -> None:
        self.calls.append(("abort_scope",))
        super().abort_scope()


@pytest.fixture(autouse=True)
def reset_defaults() -> Iterator[None]:
    """Forget process-wide defaults around each test."""
    reset()
    yield
    reset()


@pytest.fixture
def store() -> MemoryStore:
    """Create a fresh MemoryStore for each test."""
    return MemoryStore()


@pytest.fixture
def registry(store: MemoryStore) -> MemoryTagRegistry:
    """Create a MemoryTagRegistry bound to the store fixture."""
    return MemoryTagRegistry(store)


@pytest.fixture
def calls() -> list[tuple[Any, ...]]:
    return []


@pytest.fixture
def recording_store(calls: list[tuple[Any, ...]]) -> RecordingStore:
    return RecordingStore(calls)


@pytest.fixture
def recording_registry(
    recording_store: RecordingStore, calls: list[tuple[Any, ...]]
) -> RecordingTagRegistry:
    return RecordingTagRegistry(recording_store, calls)
