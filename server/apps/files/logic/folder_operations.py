"""Business logic for folder operations.

Every mutation runs in one transaction and registers cache
invalidation for after commit. Tree projections are invalidated by
owner-wide pattern: any structural change makes the whole
materialized tree stale.
"""

import logging
from typing import Any

from server.apps.files.exceptions import ConflictError, InvalidOperationError
from server.apps.files.infrastructure.cache import (
    cache_layer,
    contents_key,
    folder_key,
    folder_list_key,
    folder_tree_key,
    folder_tree_pattern,
    listing_keys,
    subfolders_key,
)
from server.apps.files.infrastructure.metadata import validate_folder_name
from server.apps.files.logic.file_operations import (
    delete_file,
    get_files_in_folder,
)
from server.apps.files.logic.lookups import get_owned_folder
from server.apps.files.logic.summaries import folder_summary
from server.apps.files.logic.transactions import store_transaction
from server.apps.files.logic.tree import (
    FolderRecord,
    build_forest,
    collect_descendant_ids,
    is_in_subtree,
)
from server.apps.files.models import File, Folder

logger = logging.getLogger(__name__)


def _sibling_name_taken(
    owner_id: int,
    parent_folder_id: int | None,
    name: str,
    exclude_id: int | None = None,
) -> bool:
    siblings = Folder.objects.filter(
        user_id=owner_id,
        parent_id=parent_folder_id,
        name=name,
    )
    if exclude_id is not None:
        siblings = siblings.exclude(id=exclude_id)
    return siblings.exists()


def _invalidate_structure(
    owner_id: int,
    parent_ids: tuple[int | None, ...],
    folder_ids: tuple[int, ...] = (),
) -> None:
    """Schedule invalidation of everything a structural change touches.

    Args:
        owner_id: Owner of the hierarchy.
        parent_ids: Parents whose listings changed, and deleted folders
            whose listings must go.
        folder_ids: Folders whose own detail record changed.
    """
    keys = [folder_list_key(owner_id)]
    for parent_id in parent_ids:
        keys.extend(listing_keys(owner_id, parent_id))
    keys.extend(folder_key(owner_id, folder_id) for folder_id in folder_ids)

    cache_layer.invalidate_on_commit(
        keys=keys,
        patterns=(folder_tree_pattern(owner_id),),
    )


def create_folder(
    owner_id: int,
    name: str,
    parent_folder_id: int | None = None,
) -> Folder:
    """Create a folder at the root or under a parent.

    Args:
        owner_id: Owner of the folder.
        name: Folder name.
        parent_folder_id: Parent folder, None for root level.

    Returns:
        Created Folder instance.

    Raises:
        InvalidNameError: If the name fails validation.
        NotFoundError: If the parent does not belong to the owner.
        ConflictError: If a sibling already has this name.
    """
    validate_folder_name(name)

    with store_transaction():
        if parent_folder_id is not None:
            get_owned_folder(owner_id, parent_folder_id)

        if _sibling_name_taken(owner_id, parent_folder_id, name):
            raise ConflictError(f'Folder {name!r} already exists')

        folder = Folder.objects.create(
            user_id=owner_id,
            parent_id=parent_folder_id,
            name=name,
        )
        _invalidate_structure(owner_id, parent_ids=(parent_folder_id,))

    logger.info(
        'Folder created: %s (ID: %d, parent: %s)',
        name,
        folder.id,
        parent_folder_id,
    )
    return folder


def rename_folder(owner_id: int, folder_id: int, new_name: str) -> Folder:
    """Rename a folder, keeping sibling names unique.

    Args:
        owner_id: Owner of the folder.
        folder_id: Folder to rename.
        new_name: New folder name.

    Returns:
        Updated Folder instance.

    Raises:
        NotFoundError: If the folder does not belong to the owner.
        InvalidNameError: If the name fails validation.
        ConflictError: If a sibling already has this name.
    """
    with store_transaction():
        folder = get_owned_folder(owner_id, folder_id, for_update=True)
        validate_folder_name(new_name)

        if _sibling_name_taken(
            owner_id,
            folder.parent_id,
            new_name,
            exclude_id=folder.id,
        ):
            raise ConflictError(
                f'A folder named {new_name!r} already exists at this level',
            )

        old_name = folder.name
        folder.name = new_name
        folder.save(update_fields=['name', 'updated_at'])

        # Child detail records embed the parent's name
        child_ids = tuple(
            Folder.objects.filter(
                user_id=owner_id,
                parent_id=folder.id,
            ).values_list('id', flat=True),
        )
        _invalidate_structure(
            owner_id,
            parent_ids=(folder.parent_id,),
            folder_ids=(folder.id, *child_ids),
        )

    logger.info('Folder renamed: %s -> %s (ID: %d)', old_name, new_name, folder_id)
    return folder


def move_folder(
    owner_id: int,
    folder_id: int,
    new_parent_folder_id: int | None = None,
) -> Folder:
    """Move a folder under another parent or to the root.

    Args:
        owner_id: Owner of both folders.
        folder_id: Folder to move.
        new_parent_folder_id: Destination parent, None for root level.

    Returns:
        Updated Folder instance.

    Raises:
        NotFoundError: If either folder does not belong to the owner.
        InvalidOperationError: If the destination is the folder itself
            or lies inside its subtree.
        ConflictError: If the destination already has a folder with
            this name.
    """
    with store_transaction():
        folder = get_owned_folder(owner_id, folder_id, for_update=True)

        if folder_id == new_parent_folder_id:
            raise InvalidOperationError('Cannot move a folder into itself')

        if new_parent_folder_id is not None:
            get_owned_folder(owner_id, new_parent_folder_id)
            if is_in_subtree(owner_id, folder.id, new_parent_folder_id):
                raise InvalidOperationError(
                    'Cannot move a folder into its own subtree',
                )

        if _sibling_name_taken(
            owner_id,
            new_parent_folder_id,
            folder.name,
            exclude_id=folder.id,
        ):
            raise ConflictError(
                f'A folder named {folder.name!r} already exists '
                'in the destination',
            )

        old_parent_id = folder.parent_id
        folder.parent_id = new_parent_folder_id
        folder.save(update_fields=['parent', 'updated_at'])
        _invalidate_structure(
            owner_id,
            parent_ids=(old_parent_id, new_parent_folder_id),
            folder_ids=(folder.id,),
        )

    logger.info(
        'Folder moved: ID=%d, parent %s -> %s',
        folder_id,
        old_parent_id,
        new_parent_folder_id,
    )
    return folder


def delete_folder(owner_id: int, folder_id: int) -> None:
    """Delete a folder, all its descendants and every file inside them.

    Files go through delete_file so their blobs are removed the same
    way as for a single delete. Descendant rows are removed before the
    folder itself. All of it is one transaction: on any failure
    nothing is deleted.

    Args:
        owner_id: Owner of the folder.
        folder_id: Root of the subtree to delete.

    Raises:
        NotFoundError: If the folder does not belong to the owner.
    """
    with store_transaction():
        folder = get_owned_folder(owner_id, folder_id, for_update=True)
        descendant_ids = collect_descendant_ids(owner_id, folder.id)
        subtree_ids = (folder.id, *descendant_ids)

        file_ids = list(
            File.objects.filter(
                user_id=owner_id,
                folder_id__in=subtree_ids,
            ).values_list('id', flat=True),
        )
        for file_id in file_ids:
            delete_file(owner_id, file_id)

        if descendant_ids:
            Folder.objects.filter(
                user_id=owner_id,
                id__in=descendant_ids,
            ).delete()
        folder.delete()

        _invalidate_structure(
            owner_id,
            parent_ids=(folder.parent_id, *subtree_ids),
            folder_ids=subtree_ids,
        )

    logger.info(
        'Folder deleted: ID=%d with %d subfolders and %d files',
        folder_id,
        len(descendant_ids),
        len(file_ids),
    )


def get_folder_details(owner_id: int, folder_id: int) -> dict[str, Any]:
    """Get one folder's record with its parent's name, cached.

    Raises:
        NotFoundError: If the folder does not belong to the owner.
    """
    cache_key = folder_key(owner_id, folder_id)
    cached = cache_layer.get(cache_key)
    if cached is not None:
        return cached

    folder = get_owned_folder(owner_id, folder_id)
    details = folder_summary(folder)
    details['parent_folder_name'] = folder.parent.name if folder.parent else None
    cache_layer.set(cache_key, details)
    return details


def get_subfolders(
    owner_id: int,
    folder_id: int | None = None,
) -> list[dict[str, Any]]:
    """List direct subfolders of a folder (or the root), by name.

    Raises:
        NotFoundError: If folder_id does not belong to the owner.
    """
    cache_key = subfolders_key(owner_id, folder_id)
    cached = cache_layer.get(cache_key)
    if cached is not None:
        return cached

    if folder_id is not None:
        get_owned_folder(owner_id, folder_id)

    subfolders = [
        folder_summary(subfolder)
        for subfolder in Folder.objects.filter(
            user_id=owner_id,
            parent_id=folder_id,
        ).order_by('name')
    ]
    cache_layer.set(cache_key, subfolders)
    return subfolders


def get_folder_contents(
    owner_id: int,
    folder_id: int | None = None,
) -> list[dict[str, Any]]:
    """List a folder's subfolders then its files, each group by name.

    The result is a point-in-time snapshot cached under the folder
    (or the owner's root).

    Raises:
        NotFoundError: If folder_id does not belong to the owner.
    """
    cache_key = contents_key(owner_id, folder_id)
    cached = cache_layer.get(cache_key)
    if cached is not None:
        return cached

    contents = [
        *get_subfolders(owner_id, folder_id),
        *get_files_in_folder(owner_id, folder_id),
    ]
    cache_layer.set(cache_key, contents)
    return contents


def list_folders(owner_id: int) -> list[dict[str, Any]]:
    """List every folder of the owner, flat and by name, cached."""
    cache_key = folder_list_key(owner_id)
    cached = cache_layer.get(cache_key)
    if cached is not None:
        return cached

    folders = [
        folder_summary(folder)
        for folder in Folder.objects.filter(user_id=owner_id).order_by('name')
    ]
    cache_layer.set(cache_key, folders)
    return folders


def get_folder_tree(owner_id: int) -> list[dict[str, Any]]:
    """Materialize the owner's folder forest, cached.

    All folders are loaded with one query; the forest is assembled in
    memory from an id-indexed arena.

    Returns:
        Root-level nodes ``{'id', 'name', 'children'}``.
    """
    cache_key = folder_tree_key(owner_id)
    cached = cache_layer.get(cache_key)
    if cached is not None:
        return cached

    records = [
        FolderRecord(id=folder_id, name=name, parent_id=parent_id)
        for folder_id, name, parent_id in Folder.objects.filter(
            user_id=owner_id,
        ).values_list('id', 'name', 'parent_id')
    ]
    tree = build_forest(records)
    cache_layer.set(cache_key, tree)
    return tree


def search_folders(owner_id: int, term: str) -> list[dict[str, Any]]:
    """Case-insensitive substring search on folder names, uncached."""
    return [
        folder_summary(folder)
        for folder in Folder.objects.filter(
            user_id=owner_id,
            name__icontains=term,
        ).order_by('name')
    ]
