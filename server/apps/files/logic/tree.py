"""Folder tree traversal over an arena of folder records.

The forest is acyclic because moves are checked at mutation time.
Traversals here still track visited ids, so corrupt data ends a walk
instead of looping forever. Depth is never capped: a walk either
covers the whole subtree or does not return.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from server.apps.files.models import Folder

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FolderRecord:
    """Minimal folder row used to build trees."""

    id: int
    name: str
    parent_id: int | None


def build_children_index(
    records: Iterable[FolderRecord],
) -> dict[int | None, list[FolderRecord]]:
    """Group records by parent id, each group ordered by name then id.

    Args:
        records: Folder records of one owner.

    Returns:
        Mapping of parent id (None for root level) to ordered children.
    """
    children: dict[int | None, list[FolderRecord]] = defaultdict(list)
    for record in records:
        children[record.parent_id].append(record)
    for siblings in children.values():
        siblings.sort(key=lambda sibling: (sibling.name, sibling.id))
    return children


def build_forest(records: Iterable[FolderRecord]) -> list[dict[str, Any]]:
    """Materialize a folder forest from flat records.

    Uses an explicit stack, so arbitrarily deep trees are built in full.

    Args:
        records: All folder records of one owner.

    Returns:
        Root-level nodes; each node is ``{'id', 'name', 'children'}``
        with children ordered by name.
    """
    children = build_children_index(records)

    forest: list[dict[str, Any]] = []
    visited: set[int] = set()
    # Explicit stack of (record, list to append the node to)
    stack = [(record, forest) for record in reversed(children[None])]

    while stack:
        record, siblings = stack.pop()
        if record.id in visited:
            logger.error('Folder %d reached twice while building tree', record.id)
            continue
        visited.add(record.id)

        node: dict[str, Any] = {
            'id': record.id,
            'name': record.name,
            'children': [],
        }
        siblings.append(node)
        stack.extend(
            (child, node['children'])
            for child in reversed(children[record.id])
        )

    return forest


def iter_descendant_levels(owner_id: int, folder_id: int) -> Iterator[list[int]]:
    """Walk the subtree below folder_id one level at a time.

    Each level costs one query, so a walk is proportional to the
    subtree, not to the owner's whole hierarchy.

    Args:
        owner_id: Owner of the folders.
        folder_id: Root of the subtree (not yielded).

    Yields:
        Ids of the folders on each level, nearest level first.
    """
    visited = {folder_id}
    frontier = [folder_id]

    while frontier:
        child_ids = list(
            Folder.objects.filter(
                user_id=owner_id,
                parent_id__in=frontier,
            ).values_list('id', flat=True),
        )

        frontier = []
        for child_id in child_ids:
            # Already yielded, its children are queued already
            if child_id in visited:
                logger.error('Folder %d reached twice in subtree walk', child_id)
                continue
            visited.add(child_id)
            frontier.append(child_id)

        if frontier:
            yield frontier


def collect_descendant_ids(owner_id: int, folder_id: int) -> list[int]:
    """Collect ids of every folder below folder_id, parents first."""
    return [
        descendant_id
        for level in iter_descendant_levels(owner_id, folder_id)
        for descendant_id in level
    ]


def is_in_subtree(owner_id: int, folder_id: int, candidate_id: int) -> bool:
    """Tell whether candidate_id is folder_id or one of its descendants.

    Stops descending as soon as the candidate is found.
    """
    if candidate_id == folder_id:
        return True
    return any(
        candidate_id in level
        for level in iter_descendant_levels(owner_id, folder_id)
    )
