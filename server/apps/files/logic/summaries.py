"""Plain-dict projections of folders and files.

These are what the cache stores and what listing operations return.
"""

from typing import Any, Final

from server.apps.files.models import File, Folder

FOLDER_TYPE: Final = 'folder'
FILE_TYPE: Final = 'file'


def folder_summary(folder: Folder) -> dict[str, Any]:
    """Project a folder row for listings."""
    return {
        'type': FOLDER_TYPE,
        'id': folder.id,
        'name': folder.name,
        'parent_folder_id': folder.parent_id,
        'created_at': folder.created_at,
        'updated_at': folder.updated_at,
    }


def file_summary(file_instance: File) -> dict[str, Any]:
    """Project a file row for listings."""
    return {
        'type': FILE_TYPE,
        'id': file_instance.id,
        'name': file_instance.name,
        'size': file_instance.size_bytes,
        'mime_type': file_instance.mime_type,
        'folder_id': file_instance.folder_id,
        'created_at': file_instance.created_at,
        'updated_at': file_instance.updated_at,
    }
