"""Database models for files app."""

from pathlib import Path
from typing import Final, final

from typing_extensions import override

from django.contrib.auth import get_user_model
from django.db import models

User = get_user_model()

# Constants for field max lengths
NAME_MAX_LENGTH: Final = 255
_MIME_TYPE_MAX_LENGTH: Final = 255
_FILE_PATH_MAX_LENGTH: Final = 512


@final
class Folder(models.Model):
    """Folder in a user's hierarchy.

    Folders form a forest per user: ``parent`` is null for root-level
    folders. Deleting a subtree is done by the logic layer, which also
    removes the files and blobs below it, so the parent relation does
    not cascade on the Django side.
    """

    id = models.BigAutoField(primary_key=True, db_column='folder_id')

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='folders',
        db_index=True,
    )

    parent = models.ForeignKey(
        'self',
        on_delete=models.DO_NOTHING,
        related_name='children',
        null=True,
        blank=True,
        db_column='parent_folder_id',
    )

    name = models.CharField(max_length=NAME_MAX_LENGTH)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        db_table = 'folders'
        verbose_name = 'Folder'  # type: ignore[mutable-override]
        verbose_name_plural = 'Folders'  # type: ignore[mutable-override]
        ordering = ['name']

        indexes = [
            # Optimize subfolder listing queries
            models.Index(
                fields=['user', 'parent'],
                name='folders_user_parent_idx',
            ),
        ]

        constraints = [
            # Sibling folders never share a name
            models.UniqueConstraint(
                fields=['user', 'parent', 'name'],
                name='folders_user_parent_name_unique',
            ),
            # NULL parents are distinct in SQL, so root level needs its own
            models.UniqueConstraint(
                fields=['user', 'name'],
                condition=models.Q(parent__isnull=True),
                name='folders_user_root_name_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}:{self.name}'


@final
class File(models.Model):
    """File metadata; the content lives in blob storage.

    ``blob`` holds the path relative to the storage root:
    ``user_{user_id}/abc/def/{blob_id}.ext``. Each blob is owned by
    exactly one row.
    """

    id = models.BigAutoField(primary_key=True, db_column='file_id')

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='files',
        db_index=True,
    )

    folder = models.ForeignKey(
        Folder,
        on_delete=models.DO_NOTHING,
        related_name='files',
        null=True,
        blank=True,
        db_column='folder_id',
    )

    name = models.CharField(max_length=NAME_MAX_LENGTH)

    blob = models.FileField(
        upload_to='',
        max_length=_FILE_PATH_MAX_LENGTH,
        db_column='file_path',
        help_text='Path in storage: user_{user_id}/abc/def/{blob_id}.ext',
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        help_text='Content type declared at upload',
    )

    size_bytes = models.BigIntegerField(
        db_column='size',
        help_text='File size in bytes',
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        db_table = 'files'
        verbose_name = 'File'  # type: ignore[mutable-override]
        verbose_name_plural = 'Files'  # type: ignore[mutable-override]
        ordering = ['name']

        indexes = [
            # Optimize folder listing queries
            models.Index(
                fields=['user', 'folder'],
                name='files_user_folder_idx',
            ),
        ]

        constraints = [
            models.UniqueConstraint(
                fields=['user', 'folder', 'name'],
                name='files_user_folder_name_unique',
            ),
            models.UniqueConstraint(
                fields=['user', 'name'],
                condition=models.Q(folder__isnull=True),
                name='files_user_root_name_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}:{self.name}'

    def get_extension(self) -> str:
        """Extract file extension.

        Example: 'report.PDF' -> 'pdf'

        Returns:
            Extension without dot (lowercase).
        """
        extension = Path(self.name).suffix
        return extension.lstrip('.').lower()
