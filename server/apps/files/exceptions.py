"""Exceptions for files app."""

from typing import ClassVar


class FilesError(Exception):
    """Base class for errors raised by folder and file operations.

    ``kind`` is a stable identifier the boundary layer can map to
    a response status without inspecting exception types.
    """

    kind: ClassVar[str] = 'error'


class NotFoundError(FilesError):
    """Raised when a folder or file does not exist for the owner."""

    kind: ClassVar[str] = 'not_found'


class ConflictError(FilesError):
    """Raised when a sibling folder or file already uses the name."""

    kind: ClassVar[str] = 'conflict'


class InvalidOperationError(FilesError):
    """Raised for operations that would break the folder tree."""

    kind: ClassVar[str] = 'invalid_operation'


class InvalidNameError(InvalidOperationError):
    """Raised when a folder name fails validation."""

    def __init__(self, name: str, reason: str) -> None:
        """Initialize InvalidNameError.

        Args:
            name: Rejected name.
            reason: Human readable explanation.
        """
        self.name = name
        self.reason = reason
        super().__init__(f'Invalid folder name {name!r}: {reason}')


class StorageFailureError(FilesError):
    """Raised when blob I/O on the storage root fails."""

    kind: ClassVar[str] = 'storage_failure'


class TransientStoreError(FilesError):
    """Raised when the metadata store fails inside a transaction.

    The transaction has been rolled back; retrying may succeed.
    """

    kind: ClassVar[str] = 'transient_store_failure'
