"""Default cache key derivation.

A producer's default key identifies the place it was *defined*, not the
values it closes over: two lambdas written on the same lines of the same
file resolve to the same key even when they capture different data.
Callers that build producers in a loop must pass an explicit key.
"""

import functools
import hashlib
import inspect
import json
from types import CodeType
from typing import Any

from memotag.errors import KeyResolutionError


def _unwrap(producer: Any) -> Any:
    """Follow wrappers down to the callable that owns the source code."""
    seen: set[int] = set()
    target = producer
    while id(target) not in seen:
        seen.add(id(target))
        if isinstance(target, functools.partial):
            target = target.func
        elif inspect.ismethod(target):
            target = target.__func__
        elif hasattr(target, "__wrapped__"):
            target = target.__wrapped__
        else:
            break
    return target


def _code_of(producer: Any) -> CodeType:
    target = _unwrap(producer)
    code = getattr(target, "__code__", None)
    if code is None and not inspect.isroutine(target) and callable(target):
        # Callable instance: identity is the class's __call__
        code = getattr(type(target).__call__, "__code__", None)
    if not isinstance(code, CodeType):
        raise KeyResolutionError(
            f"Cannot derive a cache key for {producer!r}: no source location; "
            "pass an explicit key"
        )
    return code


def source_location(producer: Any) -> tuple[str, int, int]:
    """Return (filename, first line, last line) of a producer's definition."""
    code = _code_of(producer)
    lines = [line for _, _, line in code.co_lines() if line is not None]
    last_line = max(lines, default=code.co_firstlineno)
    return code.co_filename, code.co_firstlineno, last_line


def resolve_default_key(producer: Any) -> str:
    """Derive a stable md5 hex key from where the producer is defined."""
    filename, first_line, last_line = source_location(producer)
    return hashlib.md5(f"{filename}{first_line}{last_line}".encode()).hexdigest()


def hash_arguments(args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
    """Short hash of call arguments for per-argument cache keys."""
    return hashlib.sha256(
        json.dumps([args, kwargs], sort_keys=True, default=str).encode()
    ).hexdigest()[:16]
