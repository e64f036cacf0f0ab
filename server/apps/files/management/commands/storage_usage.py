"""Management command to report storage usage per owner."""

from typing import Any

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from server.apps.files.logic.file_operations import get_storage_usage

User = get_user_model()


class Command(BaseCommand):
    """Print bytes on disk and bytes recorded in metadata per owner."""

    help = 'Report storage usage per user (advisory, no quota enforced)'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--user-id',
            type=int,
            default=None,
            help='Only report on this user',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the report.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        owner_ids = User.objects.order_by('pk').values_list('pk', flat=True)
        if options['user_id'] is not None:
            owner_ids = owner_ids.filter(pk=options['user_id'])

        for owner_id in owner_ids:
            usage = get_storage_usage(owner_id)
            line = (
                f'user {owner_id}: {usage.disk_bytes} bytes on disk, '
                f'{usage.recorded_bytes} bytes recorded'
            )
            if usage.disk_bytes > usage.recorded_bytes:
                self.stdout.write(self.style.WARNING(line))
            else:
                self.stdout.write(line)
