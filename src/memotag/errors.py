"""Exceptions raised by memotag."""


class MemotagError(Exception):
    """Base class for memotag errors."""


class KeyResolutionError(MemotagError):
    """No default cache key can be derived for a producer."""


class TransactionStateError(MemotagError):
    """A store or tag registry call was made in the wrong protocol state."""
