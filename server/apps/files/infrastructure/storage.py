"""Sharded filesystem storage backend for file blobs."""

import logging
import os
import uuid
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import IO, Final, final

from django.core.files.base import ContentFile
from django.core.files.base import File as DjangoFile
from django.core.files.storage import FileSystemStorage, default_storage

from server.apps.files.exceptions import StorageFailureError
from server.apps.files.infrastructure.metadata import get_file_extension

# Characters of the blob id used for each shard directory level
_SHARD_WIDTH: Final = 3

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StoredBlob:
    """Result of writing a blob."""

    path: str
    blob_id: str


@dataclass(frozen=True, slots=True)
class BlobMetadata:
    """Filesystem facts about a stored blob."""

    size: int
    modified_at: datetime


def owner_directory(owner_id: int) -> str:
    """Top-level directory holding all blobs of one owner."""
    return f'user_{owner_id}'


def shard_path(owner_id: int, blob_id: str, original_name: str) -> str:
    """Build the storage path for a blob.

    The first six characters of the blob id become two directory
    levels, so no directory grows past 4096 entries per level
    regardless of how many files an owner has.

    Example: (7, 'abcdef12-...', 'scan.pdf')
        -> 'user_7/abc/def/abcdef12-....pdf'

    Args:
        owner_id: Owner of the blob.
        blob_id: Unique blob identifier.
        original_name: Uploaded filename, used for its extension.

    Returns:
        Path relative to the storage root.
    """
    first = blob_id[:_SHARD_WIDTH]
    second = blob_id[_SHARD_WIDTH:_SHARD_WIDTH * 2]
    filename = f'{blob_id}{get_file_extension(original_name)}'
    return '/'.join((owner_directory(owner_id), first, second, filename))


@final
class BlobStorage(FileSystemStorage):
    """Filesystem storage for user file blobs.

    Extends Django's FileSystemStorage with:
    - Content-addressed, sharded per-owner layout
    - Pruning of empty shard directories on delete
    - Per-owner usage reporting
    - Error logging and translation to StorageFailureError

    All paths handed out are relative to ``location`` so the storage
    root can move without rewriting metadata.
    """

    def ensure_root(self) -> None:
        """Create the storage root if it does not exist yet."""
        os.makedirs(self.location, exist_ok=True)
        logger.info('Storage initialized at %s', self.location)

    def save_blob(
        self,
        owner_id: int,
        content: bytes | IO[bytes] | DjangoFile,
        original_name: str,
    ) -> StoredBlob:
        """Write blob content under a freshly generated id.

        Args:
            owner_id: Owner of the blob.
            content: Raw bytes or a file-like object.
            original_name: Uploaded filename, used for its extension.

        Returns:
            StoredBlob with the relative path and the blob id.

        Raises:
            StorageFailureError: If writing to disk fails.
        """
        blob_id = str(uuid.uuid4())
        name = shard_path(owner_id, blob_id, original_name)
        if isinstance(content, bytes):
            content = ContentFile(content)

        try:
            logger.info('Writing blob to storage: %s', name)
            saved_name = self.save(name, content)
        except OSError as error:
            logger.exception('Failed to write blob: %s', name)
            raise StorageFailureError(f'Failed to write blob {name}') from error

        return StoredBlob(path=saved_name, blob_id=blob_id)

    def read_blob(self, name: str) -> bytes:
        """Read the full content of a blob.

        Args:
            name: Path relative to the storage root.

        Returns:
            Blob bytes.

        Raises:
            StorageFailureError: If the blob is missing or unreadable.
        """
        try:
            with self.open(name, 'rb') as blob_file:
                return blob_file.read()
        except OSError as error:
            logger.exception('Failed to read blob: %s', name)
            raise StorageFailureError(f'Failed to read blob {name}') from error

    def delete_blob(self, name: str) -> bool:
        """Delete a blob and prune directories it leaves empty.

        Directory pruning is best-effort and never fails the delete.

        Args:
            name: Path relative to the storage root.

        Returns:
            True if the blob is gone, False if removing it failed.
        """
        try:
            logger.info('Deleting blob from storage: %s', name)
            self.delete(name)
        except OSError:
            logger.exception('Failed to delete blob: %s', name)
            return False

        self._prune_empty_directories(Path(self.path(name)).parent)
        return True

    def usage(self, owner_id: int) -> int:
        """Sum the sizes of all blobs stored for an owner.

        Args:
            owner_id: Owner to report on.

        Returns:
            Total bytes on disk, 0 if the owner has no directory yet.

        Raises:
            StorageFailureError: If the directory cannot be walked.
        """
        owner_root = Path(self.path(owner_directory(owner_id)))
        if not owner_root.is_dir():
            return 0

        try:
            return sum(
                blob_path.stat().st_size
                for blob_path in owner_root.rglob('*')
                if blob_path.is_file()
            )
        except OSError as error:
            logger.exception('Failed to compute usage for owner %d', owner_id)
            raise StorageFailureError(
                f'Failed to compute usage for owner {owner_id}',
            ) from error

    def iter_owner_blobs(self, owner_id: int) -> Iterator[str]:
        """Yield relative paths of every blob stored for an owner.

        Args:
            owner_id: Owner whose directory is scanned.

        Yields:
            Paths relative to the storage root, using forward slashes.
        """
        root = Path(self.location)
        owner_root = root / owner_directory(owner_id)
        if not owner_root.is_dir():
            return

        for blob_path in sorted(owner_root.rglob('*')):
            if blob_path.is_file():
                yield blob_path.relative_to(root).as_posix()

    def blob_metadata(self, name: str) -> BlobMetadata | None:
        """Read size and modification time of a blob.

        Args:
            name: Path relative to the storage root.

        Returns:
            BlobMetadata, or None if the blob cannot be inspected.
        """
        try:
            return BlobMetadata(
                size=self.size(name),
                modified_at=self.get_modified_time(name),
            )
        except OSError:
            logger.warning('Cannot read blob metadata: %s', name)
            return None

    def _prune_empty_directories(self, directory: Path) -> None:
        root = Path(self.location)
        try:
            while directory != root and root in directory.parents:
                if any(directory.iterdir()):
                    break
                directory.rmdir()
                directory = directory.parent
        except OSError:
            # Leftover empty directories are harmless
            logger.warning(
                'Directory cleanup failed at %s',
                directory,
                exc_info=True,
            )


def get_blob_storage() -> BlobStorage:
    """Get the configured default storage backend.

    Returns:
        BlobStorage instance rooted at FILE_STORAGE_ROOT.
    """
    return default_storage  # type: ignore[return-value]
