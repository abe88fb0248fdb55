from __future__ import annotations

"""Error taxonomy for the emoji cache engine."""

from pathlib import Path
from typing import Optional


class EmojiCacheError(Exception):
    """Base class for every error raised by this package."""


class DataQualityWarning(EmojiCacheError, UserWarning):
    """
    A malformed record met during an index build.

    Never raised by the builder: instances are logged and collected on the
    resulting ``Indices`` so callers can inspect what was skipped.
    """

    def __init__(self, record_id: int, reason: str):
        super().__init__(f"record {record_id}: {reason}")
        self.record_id = record_id
        self.reason = reason


class CollectionLoadError(EmojiCacheError):
    """A collection file could not be read or parsed."""

    def __init__(self, path: Optional[Path], reason: str):
        super().__init__(f"cannot load collection file {path}: {reason}")
        self.path = Path(path) if path is not None else None
        self.reason = reason


class UnknownCollectionError(EmojiCacheError, LookupError):
    """The requested collection is not defined in the collection file."""

    def __init__(self, name: str, path: Optional[Path] = None):
        where = f" in {path}" if path is not None else ""
        super().__init__(f"unknown collection {name!r}{where}")
        self.name = name
        self.path = path


class WarmupFailure(EmojiCacheError):
    """A warmup query failed. Logged and reported, never raised to callers."""

    def __init__(self, query: str, cause: BaseException):
        super().__init__(f"warmup query {query!r} failed: {cause}")
        self.query = query
        self.cause = cause
