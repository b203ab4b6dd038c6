"""
Custom exceptions for MDB operations.

This module provides custom exception classes for different types of errors
that can occur while processing studio pipeline operations.
"""

from __future__ import annotations


class MdbError(Exception):
    """Base exception for all MDB errors."""

    pass


class NotFoundError(MdbError):
    """Raised when a required entity is absent."""

    pass


class FileNotFound(NotFoundError):
    """Raised when a file lookup by SHA1 finds nothing."""

    def __init__(self, sha1: str, role: str = "file"):
        super().__init__(f"{role} not found: sha1={sha1}")
        self.sha1 = sha1
        self.role = role


class ContentUnitNotFound(NotFoundError):
    """Raised when a content unit UID does not resolve."""

    pass


class PublisherNotFound(NotFoundError):
    """Raised when a publisher UID does not resolve."""

    pass


class UpChainOperationNotFound(NotFoundError):
    """Raised when no operation of the requested type exists up a file's lineage."""

    def __init__(self, file_id: int, op_type: str):
        super().__init__(f"No {op_type} operation up the chain of file [{file_id}]")
        self.file_id = file_id
        self.op_type = op_type


class ValidationError(MdbError):
    """Raised when validation fails."""

    pass


class IntegrityError(MdbError):
    """Raised when the store fails or an archive invariant would break."""

    pass


class OperationError(MdbError):
    """Raised when handling an operation fails as a whole."""

    def __init__(self, event_type: str, cause: BaseException):
        super().__init__(f"Handle operation {event_type}: {cause}")
        self.event_type = event_type
        self.cause = cause
