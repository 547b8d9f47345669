"""
Django management command for running a conversion job.

This is a thin CLI wrapper around the conversion pipeline: a local file is
staged the same way an upload is, a URL becomes a remote fetch job.
"""
import json
import shutil
import sys
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from converter.service.artifacts import get_artifact_store
from converter.service.constants import (
    BITRATE_MODES,
    DEFAULT_FORMAT,
    METADATA_FIELDS,
    SUPPORTED_FORMATS,
)
from converter.service.errors import MissingPayload
from converter.service.pipeline import process_request
from converter.service.request import (
    build_conversion_job,
    build_metadata_job,
    build_remote_job,
)


def is_remote(value):
    return value.startswith(('http://', 'https://'))


class Command(BaseCommand):
    help = 'Convert a local audio file, extract audio from a URL, or rewrite tags'

    def add_arguments(self, parser):
        parser.add_argument(
            'input',
            type=str,
            help='Audio file path, or http(s) URL to fetch'
        )
        parser.add_argument(
            '--format',
            type=str,
            default=DEFAULT_FORMAT,
            choices=SUPPORTED_FORMATS,
            help='Output format (default: mp3)'
        )
        parser.add_argument(
            '--quality',
            type=str,
            help='Bitrate in kbps'
        )
        parser.add_argument(
            '--bitrate-mode',
            type=str,
            choices=BITRATE_MODES,
            help='constant (explicit bitrate) or variable (mp3 quality scale)'
        )
        parser.add_argument('--sample-rate', type=str, help='Sample rate in Hz (default: 44100)')
        parser.add_argument('--channels', type=str, help='Channel count (default: 2)')
        parser.add_argument('--fade-in', action='store_true', help='Fade in over the first 3 seconds')
        parser.add_argument('--fade-out', action='store_true', help='Fade out over the last 3 seconds')
        parser.add_argument('--reverse', action='store_true', help='Reverse the audio')
        parser.add_argument(
            '--metadata-only',
            action='store_true',
            help='Rewrite tags with stream copy instead of converting'
        )
        for name in METADATA_FIELDS:
            parser.add_argument(f'--{name}', type=str, help=f'{name.capitalize()} tag (with --metadata-only)')
        parser.add_argument(
            '--verbose',
            action='store_true',
            help='Enable verbose output'
        )
        parser.add_argument(
            '--json',
            action='store_true',
            help='Output result as JSON'
        )

    def handle(self, *args, **options):
        input_value = options['input']
        output_json = options['json']

        store = get_artifact_store()
        store.ensure_directories()
        job_id = store.new_job_id()

        logger = None
        if options['verbose'] and not output_json:
            logger = self.stdout.write

        if is_remote(input_value):
            if options['metadata_only']:
                raise CommandError('--metadata-only needs a local file')
            body = {'url': input_value, 'format': options['format']}
            if options['quality']:
                body['quality'] = options['quality']

            def build():
                return build_remote_job(job_id, body)
        else:
            source = Path(input_value)
            if not source.is_file():
                raise CommandError(f'File not found: {input_value}')

            def build():
                staged_path = self._stage(store, job_id, source, logger)
                if options['metadata_only']:
                    return build_metadata_job(job_id, self._metadata_fields(options), staged_path)
                return build_conversion_job(job_id, self._conversion_fields(options), staged_path)

        result = process_request(job_id, store, build, logger=logger)

        output_path = store.output_dir / result.file_id if result.success else None

        if output_json:
            output = result.as_response()
            if output_path:
                output['output_path'] = str(output_path)
            self.stdout.write(json.dumps(output, indent=2))
            if not result.success:
                sys.exit(1)
            return

        if not result.success:
            raise CommandError(result.message)

        self.stdout.write(self.style.SUCCESS(f'✓ {result.message}'))
        self.stdout.write(f'  File ID: {result.file_id}')
        self.stdout.write(f'  Output: {output_path}')
        self.stdout.write(f'  Size: {output_path.stat().st_size:,} bytes')

    def _stage(self, store, job_id, source, logger=None):
        """Copy a local file into staging the way an upload would land there"""
        staged_path = store.staging_path(job_id, source.name)
        if logger:
            logger(f'Staging {source} as {staged_path.name}')
        try:
            shutil.copy2(source, staged_path)
        except OSError as e:
            raise MissingPayload(f'Could not stage {source}: {e}')
        return staged_path

    def _conversion_fields(self, options):
        fields = {'format': options['format']}
        for option, name in [
            ('quality', 'quality'),
            ('bitrate_mode', 'bitrate_mode'),
            ('sample_rate', 'sample_rate'),
            ('channels', 'channels'),
        ]:
            if options[option] is not None:
                fields[name] = options[option]
        for flag in ['fade_in', 'fade_out', 'reverse']:
            if options[flag]:
                fields[flag] = 'true'
        return fields

    def _metadata_fields(self, options):
        return {
            name: options[name]
            for name in METADATA_FIELDS
            if options[name] is not None
        }
