from __future__ import annotations

from typing import Optional


class ProgressError(Exception):
    """Base class for progress subsystem failures."""


class ValidationFailure(ProgressError, ValueError):
    """A reading event or goal was malformed and never reached the store."""


class TransportFailure(ProgressError):
    """
    The remote store could not be reached or answered with a non-success
    status. The router recovers from this locally.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StorageFailure(ProgressError):
    """The durable backend failed; the write was rolled back."""
