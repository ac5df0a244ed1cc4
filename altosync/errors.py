# altosync/errors.py
"""Error taxonomy for the sync run.

Only ``AuthError`` (and database connection failures raised by SQLAlchemy)
may abort a whole run. Every other error is scoped to one entity: the
orchestrator catches it, logs it and moves on to the next record.
"""
from typing import Optional


class AltoSyncError(Exception):
    """Base class for all errors raised by this package."""


class AuthError(AltoSyncError):
    """A feed credential could not be acquired or refreshed."""


class TransportError(AltoSyncError):
    """A single HTTP call failed (network error or non-success status)."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class ParseError(AltoSyncError):
    """Upstream XML for one entity could not be parsed."""


class MappingError(AltoSyncError):
    """One entity could not be mapped into destination rows."""


class MissingKey(MappingError):
    """The upstream natural key is absent on both primary and fallback fields."""


class AssetError(AltoSyncError):
    """An image could not be downloaded or resized."""


class LockHeldError(RuntimeError):
    """Another process already holds the maintenance lock."""
