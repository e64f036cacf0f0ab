"""Metadata helpers: name validation and content type detection."""

import mimetypes
from pathlib import Path
from typing import Final

from server.apps.files.exceptions import InvalidNameError
from server.apps.files.models import NAME_MAX_LENGTH

_FORBIDDEN_NAME_CHARS: Final = ('/', '\\', ':', '*', '?', '"', '<', '>', '|')
_DEFAULT_MIME_TYPE: Final = 'application/octet-stream'


def validate_folder_name(name: str) -> None:
    """Validate a folder name before it reaches the database.

    Args:
        name: Proposed folder name.

    Raises:
        InvalidNameError: If the name is blank, too long, or contains
            a path separator or a character reserved on common filesystems.
    """
    if not name or not name.strip():
        raise InvalidNameError(name, 'name cannot be empty')

    if len(name) > NAME_MAX_LENGTH:
        raise InvalidNameError(
            name,
            f'name cannot exceed {NAME_MAX_LENGTH} characters',
        )

    for char in _FORBIDDEN_NAME_CHARS:
        if char in name:
            raise InvalidNameError(name, f'contains invalid character {char}')


def detect_mime_type(filename: str) -> str:
    """Guess MIME type from the filename extension.

    Args:
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return _DEFAULT_MIME_TYPE
    return mime_type


def get_file_extension(filename: str) -> str:
    """Get the extension of a filename, dot included.

    Args:
        filename: Filename (e.g., 'document.pdf').

    Returns:
        Extension as written (e.g., '.pdf'), or empty string.
    """
    return Path(filename).suffix
