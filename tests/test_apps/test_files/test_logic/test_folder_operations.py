"""Tests for folder operations business logic."""

import pytest
import redis
from django.db import OperationalError

from server.apps.files.exceptions import (
    ConflictError,
    InvalidNameError,
    InvalidOperationError,
    NotFoundError,
    TransientStoreError,
)
from server.apps.files.infrastructure.cache import (
    contents_key,
    folder_key,
    folder_tree_key,
)
from server.apps.files.logic import folder_operations
from server.apps.files.logic.file_operations import (
    get_file_details,
    upload_file,
)
from server.apps.files.logic.folder_operations import (
    create_folder,
    delete_folder,
    get_folder_contents,
    get_folder_details,
    get_folder_tree,
    get_subfolders,
    list_folders,
    move_folder,
    rename_folder,
    search_folders,
)
from server.apps.files.models import File, Folder

# Cache invalidation and blob removal run on commit
pytestmark = pytest.mark.django_db(transaction=True)


def _flatten(nodes, parent_id=None):
    for node in nodes:
        yield node['id'], parent_id
        yield from _flatten(node['children'], node['id'])


def _create_chain(owner_id, depth):
    parent_id = None
    chain = []
    for level in range(depth):
        folder = create_folder(owner_id, f'level-{level}', parent_id)
        chain.append(folder)
        parent_id = folder.id
    return chain


class TestCreateFolder:
    """Tests for create_folder."""

    def test_create_at_root(self, user):
        """Test a root-level folder has no parent."""
        folder = create_folder(user.id, 'Docs')

        assert folder.id is not None
        assert folder.parent_id is None
        assert Folder.objects.get(id=folder.id).name == 'Docs'

    def test_create_under_parent(self, user):
        """Test nested creation records the parent."""
        docs = create_folder(user.id, 'Docs')

        work = create_folder(user.id, 'Work', docs.id)

        assert work.parent_id == docs.id

    def test_duplicate_at_root(self, user):
        """Test root-level siblings cannot share a name."""
        create_folder(user.id, 'Docs')

        with pytest.raises(ConflictError):
            create_folder(user.id, 'Docs')

        assert Folder.objects.filter(user=user, name='Docs').count() == 1

    def test_duplicate_under_parent(self, user):
        """Test nested siblings cannot share a name."""
        docs = create_folder(user.id, 'Docs')
        create_folder(user.id, 'Work', docs.id)

        with pytest.raises(ConflictError):
            create_folder(user.id, 'Work', docs.id)

    def test_same_name_in_different_parents(self, user):
        """Test uniqueness is per parent."""
        docs = create_folder(user.id, 'Docs')
        create_folder(user.id, 'Work')

        nested = create_folder(user.id, 'Work', docs.id)

        assert nested.parent_id == docs.id

    def test_same_name_for_different_owners(self, user, other_user):
        """Test owners have independent namespaces."""
        create_folder(user.id, 'Docs')

        folder = create_folder(other_user.id, 'Docs')

        assert folder.user_id == other_user.id

    def test_missing_parent(self, user):
        """Test a nonexistent parent is reported as not found."""
        with pytest.raises(NotFoundError):
            create_folder(user.id, 'Work', 99999)

    def test_parent_of_other_owner(self, user, other_user):
        """Test another owner's folder cannot be used as parent."""
        foreign = create_folder(other_user.id, 'Foreign')

        with pytest.raises(NotFoundError):
            create_folder(user.id, 'Work', foreign.id)

        assert not Folder.objects.filter(user=user).exists()

    @pytest.mark.parametrize('name', ['', '   ', 'a/b', 'x' * 256])
    def test_invalid_name(self, user, name):
        """Test invalid names are rejected before any write."""
        with pytest.raises(InvalidNameError):
            create_folder(user.id, name)

        assert not Folder.objects.exists()

    def test_lost_race_becomes_conflict(self, user, monkeypatch):
        """Test the unique constraint backs up the sibling check."""
        create_folder(user.id, 'Docs')
        monkeypatch.setattr(
            folder_operations,
            '_sibling_name_taken',
            lambda *args, **kwargs: False,
        )

        with pytest.raises(ConflictError):
            create_folder(user.id, 'Docs')

        assert Folder.objects.filter(user=user, name='Docs').count() == 1


class TestRenameFolder:
    """Tests for rename_folder."""

    def test_rename(self, user):
        """Test renaming updates the stored name."""
        folder = create_folder(user.id, 'Docs')

        rename_folder(user.id, folder.id, 'Documents')

        folder.refresh_from_db()
        assert folder.name == 'Documents'

    def test_rename_to_same_name(self, user):
        """Test a folder does not conflict with itself."""
        folder = create_folder(user.id, 'Docs')

        renamed = rename_folder(user.id, folder.id, 'Docs')

        assert renamed.name == 'Docs'

    def test_rename_conflict_keeps_name(self, user):
        """Test a conflicting rename leaves the folder untouched."""
        create_folder(user.id, 'X')
        folder = create_folder(user.id, 'Y')

        with pytest.raises(ConflictError):
            rename_folder(user.id, folder.id, 'X')

        folder.refresh_from_db()
        assert folder.name == 'Y'

    def test_rename_lost_race_keeps_name(self, user, monkeypatch):
        """Test the unique constraint rejects a rename past the check."""
        create_folder(user.id, 'X')
        folder = create_folder(user.id, 'Y')
        monkeypatch.setattr(
            folder_operations,
            '_sibling_name_taken',
            lambda *args, **kwargs: False,
        )

        with pytest.raises(ConflictError):
            rename_folder(user.id, folder.id, 'X')

        folder.refresh_from_db()
        assert folder.name == 'Y'
        assert Folder.objects.filter(user=user, name='X').count() == 1

    def test_rename_invalid_name(self, user):
        """Test invalid names are rejected."""
        folder = create_folder(user.id, 'Docs')

        with pytest.raises(InvalidNameError):
            rename_folder(user.id, folder.id, 'a:b')

    def test_rename_other_owner(self, user, other_user):
        """Test renaming another owner's folder is not found."""
        foreign = create_folder(other_user.id, 'Foreign')

        with pytest.raises(NotFoundError):
            rename_folder(user.id, foreign.id, 'Mine')

    def test_rename_refreshes_child_details(self, user):
        """Test cached child details show the new parent name."""
        parent = create_folder(user.id, 'Docs')
        child = create_folder(user.id, 'Work', parent.id)
        details = get_folder_details(user.id, child.id)
        assert details['parent_folder_name'] == 'Docs'

        rename_folder(user.id, parent.id, 'Documents')

        details = get_folder_details(user.id, child.id)
        assert details['parent_folder_name'] == 'Documents'


class TestMoveFolder:
    """Tests for move_folder."""

    def test_move_under_other_folder(self, user):
        """Test moving changes the parent."""
        docs = create_folder(user.id, 'Docs')
        work = create_folder(user.id, 'Work')

        move_folder(user.id, work.id, docs.id)

        work.refresh_from_db()
        assert work.parent_id == docs.id
        subfolders = get_subfolders(user.id, docs.id)
        assert [sub['id'] for sub in subfolders] == [work.id]

    def test_move_to_root(self, user):
        """Test a None destination moves to the root level."""
        docs = create_folder(user.id, 'Docs')
        work = create_folder(user.id, 'Work', docs.id)

        move_folder(user.id, work.id, None)

        work.refresh_from_db()
        assert work.parent_id is None

    def test_move_into_itself(self, user):
        """Test a folder cannot become its own parent."""
        docs = create_folder(user.id, 'Docs')

        with pytest.raises(InvalidOperationError):
            move_folder(user.id, docs.id, docs.id)

    def test_move_into_descendant(self, user):
        """Test a folder cannot move below its own subtree."""
        a = create_folder(user.id, 'A')
        b = create_folder(user.id, 'B', a.id)
        c = create_folder(user.id, 'C', b.id)

        for destination in (b, c):
            with pytest.raises(InvalidOperationError):
                move_folder(user.id, a.id, destination.id)

        a.refresh_from_db()
        assert a.parent_id is None

    def test_move_into_deep_descendant(self, user):
        """Test the subtree check reaches descendants at any depth."""
        chain = _create_chain(user.id, 40)

        with pytest.raises(InvalidOperationError):
            move_folder(user.id, chain[0].id, chain[-1].id)

        chain[0].refresh_from_db()
        assert chain[0].parent_id is None
        assert len(list(_flatten(get_folder_tree(user.id)))) == 40

    def test_move_conflict(self, user):
        """Test the destination cannot already hold the name."""
        docs = create_folder(user.id, 'Docs')
        create_folder(user.id, 'Work', docs.id)
        work = create_folder(user.id, 'Work')

        with pytest.raises(ConflictError):
            move_folder(user.id, work.id, docs.id)

        work.refresh_from_db()
        assert work.parent_id is None

    def test_move_missing_destination(self, user):
        """Test a nonexistent destination is not found."""
        docs = create_folder(user.id, 'Docs')

        with pytest.raises(NotFoundError):
            move_folder(user.id, docs.id, 99999)

    def test_move_into_other_owner(self, user, other_user):
        """Test folders never cross owners."""
        docs = create_folder(user.id, 'Docs')
        foreign = create_folder(other_user.id, 'Foreign')

        with pytest.raises(NotFoundError):
            move_folder(user.id, docs.id, foreign.id)

    def test_move_refreshes_tree(self, user):
        """Test the cached tree follows a move."""
        docs = create_folder(user.id, 'Docs')
        work = create_folder(user.id, 'Work')
        get_folder_tree(user.id)

        move_folder(user.id, work.id, docs.id)

        assert sorted(_flatten(get_folder_tree(user.id))) == [
            (docs.id, None),
            (work.id, docs.id),
        ]


class TestDeleteFolder:
    """Tests for delete_folder."""

    def test_delete_cascades(self, user, make_upload, storage_root):
        """Test subfolders, files and blobs below the folder are removed."""
        docs = create_folder(user.id, 'Docs')
        work = create_folder(user.id, 'Work', docs.id)
        archive = create_folder(user.id, 'Archive', work.id)
        top_file = upload_file(user.id, make_upload('a.txt'), docs.id)
        deep_file = upload_file(user.id, make_upload('b.txt'), archive.id)
        blob_paths = [top_file.blob.name, deep_file.blob.name]
        kept = create_folder(user.id, 'Photos')

        delete_folder(user.id, docs.id)

        assert list(Folder.objects.filter(user=user)) == [kept]
        assert not File.objects.filter(user=user).exists()
        for blob_path in blob_paths:
            assert not (storage_root / blob_path).exists()
        remaining = get_folder_contents(user.id)
        assert [item['name'] for item in remaining] == ['Photos']
        with pytest.raises(NotFoundError):
            get_file_details(user.id, top_file.id)
        with pytest.raises(NotFoundError):
            get_folder_details(user.id, work.id)

    def test_delete_deep_chain(self, user, make_upload, storage_root):
        """Test a deep subtree is deleted in full."""
        chain = _create_chain(user.id, 40)
        deepest_file = upload_file(user.id, make_upload(), chain[-1].id)

        delete_folder(user.id, chain[0].id)

        assert not Folder.objects.filter(user=user).exists()
        assert not File.objects.filter(user=user).exists()
        assert not (storage_root / deepest_file.blob.name).exists()

    def test_delete_drops_subtree_caches(self, user, make_upload, fake_redis):
        """Test cached projections of deleted folders are invalidated."""
        docs = create_folder(user.id, 'Docs')
        work = create_folder(user.id, 'Work', docs.id)
        upload_file(user.id, make_upload(), work.id)
        for folder_id in (docs.id, work.id):
            get_folder_details(user.id, folder_id)
            get_folder_contents(user.id, folder_id)
        get_folder_contents(user.id)
        get_folder_tree(user.id)

        delete_folder(user.id, docs.id)

        assert fake_redis.keys(f'user:{user.id}:*') == []

    def test_delete_missing(self, user):
        """Test deleting a nonexistent folder is not found."""
        with pytest.raises(NotFoundError):
            delete_folder(user.id, 99999)

    def test_delete_other_owner(self, user, other_user):
        """Test another owner's folder cannot be deleted."""
        foreign = create_folder(other_user.id, 'Foreign')

        with pytest.raises(NotFoundError):
            delete_folder(user.id, foreign.id)

        assert Folder.objects.filter(id=foreign.id).exists()

    def test_failed_delete_rolls_back(
        self,
        user,
        make_upload,
        storage_root,
        monkeypatch,
    ):
        """Test a store failure mid-delete leaves the subtree intact."""
        docs = create_folder(user.id, 'Docs')
        work = create_folder(user.id, 'Work', docs.id)
        file_instance = upload_file(user.id, make_upload(), work.id)

        def broken_delete(*args, **kwargs):
            raise OperationalError('database is locked')

        monkeypatch.setattr(Folder, 'delete', broken_delete)

        with pytest.raises(TransientStoreError):
            delete_folder(user.id, docs.id)

        assert Folder.objects.filter(id__in=[docs.id, work.id]).count() == 2
        assert File.objects.filter(id=file_instance.id).exists()
        assert (storage_root / file_instance.blob.name).exists()


class TestReadOperations:
    """Tests for folder listings, details and search."""

    def test_contents_lists_folders_then_files(self, user, make_upload):
        """Test subfolders come first, each group ordered by name."""
        docs = create_folder(user.id, 'Docs')
        upload_file(user.id, make_upload('zeta.txt'), docs.id)
        upload_file(user.id, make_upload('alpha.txt'), docs.id)
        create_folder(user.id, 'Work', docs.id)
        create_folder(user.id, 'Archive', docs.id)

        contents = get_folder_contents(user.id, docs.id)

        assert [(item['type'], item['name']) for item in contents] == [
            ('folder', 'Archive'),
            ('folder', 'Work'),
            ('file', 'alpha.txt'),
            ('file', 'zeta.txt'),
        ]

    def test_contents_missing_folder(self, user):
        """Test listing a nonexistent folder is not found."""
        with pytest.raises(NotFoundError):
            get_folder_contents(user.id, 99999)

    def test_contents_cached_and_invalidated(self, user, fake_redis):
        """Test listings are cached and refreshed after a mutation."""
        assert get_folder_contents(user.id) == []
        assert fake_redis.exists(contents_key(user.id, None))

        create_folder(user.id, 'Docs')

        assert not fake_redis.exists(contents_key(user.id, None))
        assert [item['name'] for item in get_folder_contents(user.id)] == ['Docs']

    def test_cache_outage_falls_back_to_store(
        self,
        user,
        fake_redis,
        monkeypatch,
    ):
        """Test reads keep working when the cache is down."""
        create_folder(user.id, 'Docs')

        def broken(*args, **kwargs):
            raise redis.ConnectionError('cache down')

        monkeypatch.setattr(fake_redis, 'get', broken)
        monkeypatch.setattr(fake_redis, 'setex', broken)

        assert [item['name'] for item in get_folder_contents(user.id)] == ['Docs']

    def test_folder_details(self, user):
        """Test details include the parent name."""
        docs = create_folder(user.id, 'Docs')
        work = create_folder(user.id, 'Work', docs.id)

        details = get_folder_details(user.id, work.id)

        assert details['name'] == 'Work'
        assert details['parent_folder_id'] == docs.id
        assert details['parent_folder_name'] == 'Docs'
        assert get_folder_details(user.id, docs.id)['parent_folder_name'] is None

    def test_folder_details_cached(self, user, fake_redis):
        """Test details are stored under the folder key."""
        docs = create_folder(user.id, 'Docs')

        get_folder_details(user.id, docs.id)

        assert fake_redis.exists(folder_key(user.id, docs.id))

    def test_owner_isolation(self, user, other_user):
        """Test one owner never sees another owner's folders."""
        docs = create_folder(user.id, 'Docs')
        create_folder(other_user.id, 'Foreign')

        assert [item['name'] for item in list_folders(user.id)] == ['Docs']
        assert get_folder_contents(other_user.id)[0]['name'] == 'Foreign'
        with pytest.raises(NotFoundError):
            get_folder_details(other_user.id, docs.id)
        assert search_folders(other_user.id, 'docs') == []

    def test_tree_matches_folders(self, user):
        """Test every folder appears once under its true parent."""
        docs = create_folder(user.id, 'Docs')
        work = create_folder(user.id, 'Work', docs.id)
        archive = create_folder(user.id, 'Archive', work.id)
        photos = create_folder(user.id, 'Photos')

        tree = get_folder_tree(user.id)

        assert [node['name'] for node in tree] == ['Docs', 'Photos']
        assert sorted(_flatten(tree)) == sorted([
            (docs.id, None),
            (work.id, docs.id),
            (archive.id, work.id),
            (photos.id, None),
        ])

    def test_tree_invalidated_on_create(self, user, fake_redis):
        """Test structural changes drop the cached tree."""
        assert get_folder_tree(user.id) == []
        assert fake_redis.exists(folder_tree_key(user.id))

        create_folder(user.id, 'Docs')

        assert not fake_redis.exists(folder_tree_key(user.id))
        assert [node['name'] for node in get_folder_tree(user.id)] == ['Docs']

    def test_search_is_case_insensitive(self, user):
        """Test search matches substrings regardless of case."""
        create_folder(user.id, 'Project Docs')
        create_folder(user.id, 'Docs')
        create_folder(user.id, 'Archive DOCS')
        create_folder(user.id, 'Photos')

        names = [item['name'] for item in search_folders(user.id, 'docs')]

        assert names == ['Archive DOCS', 'Docs', 'Project Docs']
