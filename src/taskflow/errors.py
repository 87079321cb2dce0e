from __future__ import annotations

from typing import Any, Optional


class TaskflowError(Exception):
    """Base class for errors raised by taskflow operations."""

    def __init__(self, message: str, detail: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class TaskValidationError(TaskflowError):
    """A task failed local validation; nothing was sent to the record store."""


class RecordStoreError(TaskflowError):
    """The record store call failed or returned an unsuccessful response."""


class TaskNotFoundError(TaskflowError):
    """No cached task has the requested identifier."""


class SubmissionInProgressError(TaskflowError):
    """A create or update is already in flight."""


class AuthenticationError(TaskflowError):
    """Missing, invalid or revoked credentials."""
