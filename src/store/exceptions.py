"""Exception hierarchy for the persistence layer."""

from __future__ import annotations


class StoreError(Exception):
    """Base exception for repository errors."""


class StoreUnavailableError(StoreError):
    """Backing store could not be reached: the caller should retry."""

    retryable = True


class RecordNotFoundError(StoreError):
    """Requested record does not exist."""
