"""Management command to delete blobs no file record references."""

import logging
from typing import Any

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from server.apps.files.infrastructure.storage import get_blob_storage
from server.apps.files.models import File

User = get_user_model()
logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Remove orphaned blobs left by failed uploads or deletes."""

    help = 'Delete blobs on disk that no File record points to'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting',
        )
        parser.add_argument(
            '--user-id',
            type=int,
            default=None,
            help='Only scan this user',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the cleanup command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        storage = get_blob_storage()

        owner_ids = User.objects.order_by('pk').values_list('pk', flat=True)
        if options['user_id'] is not None:
            owner_ids = owner_ids.filter(pk=options['user_id'])

        count = 0
        failed = 0

        for owner_id in owner_ids:
            referenced = set(
                File.objects.filter(user_id=owner_id).values_list(
                    'blob',
                    flat=True,
                ),
            )
            for blob_path in storage.iter_owner_blobs(owner_id):
                if blob_path in referenced:
                    continue

                if dry_run:
                    self.stdout.write(f'Would delete: {blob_path}')
                    count += 1
                    continue

                if storage.delete_blob(blob_path):
                    logger.info('Deleted orphaned blob: %s', blob_path)
                    count += 1
                else:
                    self.stderr.write(f'Failed to delete {blob_path}')
                    failed += 1

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would delete {count} orphaned blobs'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Deleted {count} orphaned blobs, {failed} failed',
                ),
            )
