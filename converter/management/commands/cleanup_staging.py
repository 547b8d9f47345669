"""
Management command to clean up abandoned staged files.

Jobs remove their own staged files when they finish; files are only left
behind when a worker was killed mid-job.
"""
from django.core.management.base import BaseCommand

from converter.service.artifacts import get_artifact_store


class Command(BaseCommand):
    help = 'Remove staged uploads and downloads left behind by interrupted jobs'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without actually deleting'
        )
        parser.add_argument(
            '--max-age',
            type=int,
            default=60,
            help='Maximum age in minutes before considering a staged file abandoned (default: 60)'
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        max_age_minutes = options['max_age']

        store = get_artifact_store()
        stale = store.stale_staged_files(max_age_minutes * 60)

        if not stale:
            self.stdout.write(self.style.SUCCESS(
                f"No staged files older than {max_age_minutes} minutes"
            ))
            return

        total_size = sum(path.stat().st_size for path in stale)
        self.stdout.write(f"\nFound {len(stale)} abandoned staged file{'s' if len(stale) != 1 else ''}:")
        for path in stale:
            self.stdout.write(f"  {path.name}")
        self.stdout.write(f"Total size: {total_size / (1024 * 1024):.1f} MB\n")

        if dry_run:
            self.stdout.write(self.style.WARNING(
                f"DRY RUN: Would delete {len(stale)} file{'s' if len(stale) != 1 else ''}"
            ))
            self.stdout.write("Run without --dry-run to actually delete")
            return

        deleted_count = 0
        for path in stale:
            if store.discard(path):
                self.stdout.write(self.style.SUCCESS(f"✓ Deleted: {path.name}"))
                deleted_count += 1
            else:
                self.stdout.write(self.style.ERROR(f"✗ Failed to delete {path.name}"))

        self.stdout.write(self.style.SUCCESS(
            f"\n✓ Deleted {deleted_count} of {len(stale)} staged file{'s' if len(stale) != 1 else ''}"
        ))
