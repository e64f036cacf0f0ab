"""Owner-scoped row lookups shared by folder and file operations."""

from server.apps.files.exceptions import NotFoundError
from server.apps.files.models import File, Folder


def get_owned_folder(
    owner_id: int,
    folder_id: int,
    *,
    for_update: bool = False,
) -> Folder:
    """Fetch a folder that belongs to owner_id.

    Args:
        owner_id: Expected owner.
        folder_id: Folder to fetch.
        for_update: Lock the row until the transaction ends.

    Returns:
        Folder instance.

    Raises:
        NotFoundError: If no such folder exists for the owner.
    """
    queryset = Folder.objects.filter(user_id=owner_id)
    if for_update:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(id=folder_id)
    except Folder.DoesNotExist as error:
        raise NotFoundError(f'Folder {folder_id} not found') from error


def get_owned_file(
    owner_id: int,
    file_id: int,
    *,
    for_update: bool = False,
) -> File:
    """Fetch a file that belongs to owner_id.

    Raises:
        NotFoundError: If no such file exists for the owner.
    """
    queryset = File.objects.filter(user_id=owner_id)
    if for_update:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(id=file_id)
    except File.DoesNotExist as error:
        raise NotFoundError(f'File {file_id} not found') from error
