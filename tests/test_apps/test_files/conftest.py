"""Shared fixtures for files app tests."""

import fakeredis
import pytest
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile

from server.apps.files.infrastructure.cache import cache_layer
from server.apps.files.infrastructure.storage import get_blob_storage

User = get_user_model()


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    """Back the cache layer with an isolated in-memory Redis.

    Yields:
        FakeRedis client used by the cache layer.
    """
    client = fakeredis.FakeRedis(server=fakeredis.FakeServer())
    monkeypatch.setattr(cache_layer, '_client', client)
    yield client
    client.flushall()


@pytest.fixture(autouse=True)
def storage_root(settings, tmp_path):
    """Point blob storage at a temporary directory.

    Returns:
        Path of the storage root.
    """
    root = tmp_path / 'storage'
    settings.STORAGES = {
        **settings.STORAGES,
        'default': {
            'BACKEND': 'server.apps.files.infrastructure.storage.BlobStorage',
            'OPTIONS': {'location': str(root)},
        },
    }
    return root


@pytest.fixture
def blob_storage(storage_root):
    """Storage backend rooted at the temporary directory.

    Returns:
        BlobStorage instance.
    """
    return get_blob_storage()


@pytest.fixture
def make_upload():
    """Build uploaded files the way request parsing hands them over.

    Returns:
        Factory taking name, content and content type.
    """
    def factory(
        name='a.txt',
        content=b'0123456789',
        content_type='text/plain',
    ):
        return SimpleUploadedFile(name, content, content_type=content_type)
    return factory
