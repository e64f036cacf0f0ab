"""Django storage configuration for file blobs.

User files are kept on the local filesystem under ``FILE_STORAGE_ROOT``,
one ``user_{id}`` directory per owner with two levels of shard
directories below it.
"""

from typing import Any, Final

from server.settings.components import BASE_DIR, config

FILE_STORAGE_ROOT = config(
    'FILE_STORAGE_ROOT',
    default=str(BASE_DIR.joinpath('uploads')),
)

STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'server.apps.files.infrastructure.storage.BlobStorage',
        'OPTIONS': {
            'location': FILE_STORAGE_ROOT,
        },
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
