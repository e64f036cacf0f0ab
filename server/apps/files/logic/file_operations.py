"""Business logic for file operations."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from django.core.files.uploadedfile import UploadedFile
from django.db import transaction
from django.db.models import Sum

from server.apps.files.exceptions import ConflictError, FilesError
from server.apps.files.infrastructure.cache import (
    cache_layer,
    contents_key,
    file_key,
    files_key,
    folder_list_key,
)
from server.apps.files.infrastructure.metadata import detect_mime_type
from server.apps.files.infrastructure.storage import get_blob_storage
from server.apps.files.logic.lookups import get_owned_file, get_owned_folder
from server.apps.files.logic.summaries import file_summary
from server.apps.files.logic.transactions import store_transaction
from server.apps.files.models import File

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FailedUpload:
    """One file of a batch that could not be uploaded."""

    name: str
    error: str


@dataclass(slots=True)
class BatchUploadResult:
    """Outcome of upload_multiple."""

    uploaded: list[File] = field(default_factory=list)
    failed: list[FailedUpload] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class DownloadedFile:
    """File content with the metadata needed to serve it."""

    content: bytes
    name: str
    content_type: str
    size: int


@dataclass(frozen=True, slots=True)
class StorageUsage:
    """Advisory storage report for one owner."""

    disk_bytes: int
    recorded_bytes: int


def _listing_invalidation_keys(
    owner_id: int,
    folder_id: int | None,
) -> tuple[str, ...]:
    return (
        contents_key(owner_id, folder_id),
        files_key(owner_id, folder_id),
        folder_list_key(owner_id),
    )


def upload_file(
    owner_id: int,
    uploaded_file: UploadedFile,
    folder_id: int | None = None,
) -> File:
    """Store file content and create its database record.

    Ordering: the blob is written first, then the row is inserted in
    the same transaction. If the insert fails the transaction rolls
    back and the blob stays on disk as an orphan; metadata never points
    at a blob that was not written.

    Args:
        owner_id: Owner of the file.
        uploaded_file: Content with ``name``, ``size`` and
            ``content_type``.
        folder_id: Target folder, None for the owner's root.

    Returns:
        Created File instance.

    Raises:
        NotFoundError: If folder_id does not belong to the owner.
        ConflictError: If the folder already has a file with this name.
        StorageFailureError: If the blob cannot be written.
    """
    name = uploaded_file.name
    mime_type = uploaded_file.content_type or detect_mime_type(name)
    storage = get_blob_storage()
    saved_path = None

    try:
        with store_transaction():
            if folder_id is not None:
                get_owned_folder(owner_id, folder_id)

            name_taken = File.objects.filter(
                user_id=owner_id,
                folder_id=folder_id,
                name=name,
            ).exists()
            if name_taken:
                raise ConflictError(f'File {name!r} already exists here')

            # Step 1: Write blob to storage first
            stored = storage.save_blob(owner_id, uploaded_file, name)
            saved_path = stored.path

            # Step 2: Create database record
            file_instance = File.objects.create(
                user_id=owner_id,
                folder_id=folder_id,
                name=name,
                blob=stored.path,
                mime_type=mime_type,
                size_bytes=uploaded_file.size,
            )
            cache_layer.invalidate_on_commit(
                keys=_listing_invalidation_keys(owner_id, folder_id),
            )
    except FilesError:
        if saved_path is not None:
            logger.warning(
                'Metadata insert failed, blob left orphaned: %s',
                saved_path,
            )
        raise

    logger.info(
        'File uploaded: %s (ID: %d, blob: %s)',
        name,
        file_instance.id,
        saved_path,
    )
    return file_instance


def upload_multiple(
    owner_id: int,
    uploaded_files: Iterable[UploadedFile],
    folder_id: int | None = None,
) -> BatchUploadResult:
    """Upload files one by one; a failure does not stop the batch.

    Args:
        owner_id: Owner of the files.
        uploaded_files: Files to upload, in order.
        folder_id: Target folder, None for the owner's root.

    Returns:
        BatchUploadResult with created records and per-file failures.
    """
    result = BatchUploadResult()
    for uploaded_file in uploaded_files:
        try:
            result.uploaded.append(
                upload_file(owner_id, uploaded_file, folder_id),
            )
        except FilesError as error:
            logger.warning(
                'Upload of %s failed: %s',
                uploaded_file.name,
                error,
            )
            result.failed.append(
                FailedUpload(name=uploaded_file.name, error=str(error)),
            )
    return result


def download_file(owner_id: int, file_id: int) -> DownloadedFile:
    """Read a file's content from storage.

    Raises:
        NotFoundError: If the file does not exist for the owner.
        StorageFailureError: If the blob cannot be read.
    """
    file_instance = get_owned_file(owner_id, file_id)
    content = get_blob_storage().read_blob(file_instance.blob.name)
    return DownloadedFile(
        content=content,
        name=file_instance.name,
        content_type=file_instance.mime_type,
        size=file_instance.size_bytes,
    )


def _delete_blob_best_effort(blob_path: str) -> None:
    if not get_blob_storage().delete_blob(blob_path):
        logger.warning('Blob could not be deleted (orphaned): %s', blob_path)


def delete_file(owner_id: int, file_id: int) -> None:
    """Delete a file record and its blob.

    The row delete is authoritative. Blob removal is scheduled for after
    commit and is best-effort, so a rolled back delete (for example as
    part of a failed folder delete) never leaves a row pointing at a
    missing blob; the worst case is an orphaned blob.

    Args:
        owner_id: Owner of the file.
        file_id: ID of file to delete.

    Raises:
        NotFoundError: If the file does not exist for the owner.
    """
    with store_transaction():
        file_instance = get_owned_file(owner_id, file_id, for_update=True)
        blob_path = file_instance.blob.name
        folder_id = file_instance.folder_id

        logger.info('Deleting file: ID=%d, blob=%s', file_id, blob_path)
        file_instance.delete()

        transaction.on_commit(
            partial(_delete_blob_best_effort, blob_path),
            robust=True,
        )
        cache_layer.invalidate_on_commit(
            keys=(
                file_key(owner_id, file_id),
                *_listing_invalidation_keys(owner_id, folder_id),
            ),
        )


def get_file_details(owner_id: int, file_id: int) -> dict[str, Any]:
    """Get one file's metadata, cached.

    ``last_modified`` comes from the blob on disk when readable.

    Raises:
        NotFoundError: If the file does not exist for the owner.
    """
    cache_key = file_key(owner_id, file_id)
    cached = cache_layer.get(cache_key)
    if cached is not None:
        return cached

    file_instance = get_owned_file(owner_id, file_id)
    blob_metadata = get_blob_storage().blob_metadata(file_instance.blob.name)

    details = file_summary(file_instance)
    details['last_modified'] = (
        blob_metadata.modified_at if blob_metadata else file_instance.updated_at
    )
    cache_layer.set(cache_key, details)
    return details


def get_files_in_folder(
    owner_id: int,
    folder_id: int | None = None,
) -> list[dict[str, Any]]:
    """List files directly inside a folder (or the root), by name.

    Raises:
        NotFoundError: If folder_id does not belong to the owner.
    """
    cache_key = files_key(owner_id, folder_id)
    cached = cache_layer.get(cache_key)
    if cached is not None:
        return cached

    if folder_id is not None:
        get_owned_folder(owner_id, folder_id)

    files = [
        file_summary(file_instance)
        for file_instance in File.objects.filter(
            user_id=owner_id,
            folder_id=folder_id,
        ).order_by('name')
    ]
    cache_layer.set(cache_key, files)
    return files


def search_files(owner_id: int, term: str) -> list[dict[str, Any]]:
    """Case-insensitive substring search on file names, uncached."""
    return [
        file_summary(file_instance)
        for file_instance in File.objects.filter(
            user_id=owner_id,
            name__icontains=term,
        ).order_by('name')
    ]


def get_storage_usage(owner_id: int) -> StorageUsage:
    """Report bytes on disk and bytes recorded in metadata.

    Advisory only: the two differ while orphaned blobs exist.
    """
    recorded = File.objects.filter(user_id=owner_id).aggregate(
        total=Sum('size_bytes'),
    )['total'] or 0
    return StorageUsage(
        disk_bytes=get_blob_storage().usage(owner_id),
        recorded_bytes=recorded,
    )
