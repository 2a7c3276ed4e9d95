from __future__ import annotations


class DocshareError(Exception):
    """Base error for docshare."""


class StoreError(DocshareError):
    """Document, identity or directory store failure."""


class StoreUnavailableError(StoreError):
    """Transient store failure or timeout; safe for the caller to retry with backoff."""


class StoreConflictError(StoreError):
    """Store rejected an update because of a concurrent modification."""

