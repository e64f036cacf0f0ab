"""Django app configuration for files app."""

from typing_extensions import override

from django.apps import AppConfig


class FilesConfig(AppConfig):
    """Configuration for files app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.files'
    verbose_name = 'Files'

    @override
    def ready(self) -> None:
        """Create the blob storage root when the app is ready."""
        from server.apps.files.infrastructure.storage import (  # noqa: WPS433
            get_blob_storage,
        )

        get_blob_storage().ensure_root()
