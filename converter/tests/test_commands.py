"""
Tests for the convert and cleanup_staging management commands.
"""

from io import StringIO
from pathlib import Path
from unittest.mock import patch
import json
import os
import tempfile
import time

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, override_settings

from converter.service.artifacts import get_artifact_store
from converter.test_service.test_pipeline import FakeTools


class CommandTestCase(SimpleTestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)

        settings_override = override_settings(
            ANYTRACK_UPLOAD_DIR=str(self.root / 'uploads'),
            ANYTRACK_OUTPUT_DIR=str(self.root / 'outputs'),
            ANYTRACK_FFMPEG_BINARY='ffmpeg',
            ANYTRACK_FFPROBE_BINARY='ffprobe',
            ANYTRACK_YTDLP_BINARY='yt-dlp',
            ANYTRACK_PROCESS_TIMEOUT=None,
        )
        settings_override.enable()
        self.addCleanup(settings_override.disable)

        self.store = get_artifact_store()
        self.store.ensure_directories()

        self.source = self.root / 'song.wav'
        self.source.write_bytes(b'RIFF0000WAVE')


class ConvertCommandTest(CommandTestCase):
    """Test the convert management command"""

    def test_local_file(self):
        fake = FakeTools()
        stdout = StringIO()
        with patch('converter.service.process.subprocess.run', side_effect=fake):
            call_command('convert', str(self.source), '--format', 'ogg', '--quality', '128', stdout=stdout)

        output = stdout.getvalue()
        self.assertIn('✓ Conversion successful', output)
        command = fake.commands[0]
        self.assertEqual(command[command.index('-b:a') + 1], '128k')
        self.assertTrue(command[-1].endswith('.ogg'))
        self.assertTrue(self.source.exists())
        self.assertEqual(list(self.store.staging_dir.iterdir()), [])

    def test_effects_flags(self):
        fake = FakeTools(duration=20)
        with patch('converter.service.process.subprocess.run', side_effect=fake):
            call_command('convert', str(self.source), '--reverse', '--fade-out', stdout=StringIO())

        args = fake.tool_commands('ffmpeg')[0]
        self.assertEqual(args[args.index('-af') + 1], 'areverse,afade=t=out:st=17:d=3')

    def test_json_output(self):
        stdout = StringIO()
        with patch('converter.service.process.subprocess.run', side_effect=FakeTools()):
            call_command('convert', str(self.source), '--json', stdout=stdout)

        data = json.loads(stdout.getvalue())
        self.assertTrue(data['success'])
        self.assertTrue(data['fileId'].endswith('.mp3'))
        self.assertTrue(Path(data['output_path']).exists())

    def test_remote_url(self):
        fake = FakeTools()
        stdout = StringIO()
        with patch('converter.service.process.subprocess.run', side_effect=fake):
            call_command('convert', 'https://example/video', '--format', 'm4a', stdout=stdout)

        self.assertIn('Remote conversion successful', stdout.getvalue())
        self.assertEqual([Path(command[0]).name for command in fake.commands], ['yt-dlp', 'ffmpeg'])

    def test_metadata_only(self):
        fake = FakeTools()
        stdout = StringIO()
        with patch('converter.service.process.subprocess.run', side_effect=fake):
            call_command('convert', str(self.source), '--metadata-only', '--title', 'Song', stdout=stdout)

        self.assertIn('Metadata updated successfully', stdout.getvalue())
        command = fake.commands[0]
        self.assertIn('title=Song', command)
        self.assertTrue(command[-1].endswith('.wav'))

    def test_tool_failure(self):
        fake = FakeTools(fail_on='ffmpeg', stderr='Invalid data found when processing input')
        with patch('converter.service.process.subprocess.run', side_effect=fake):
            with self.assertRaises(CommandError) as ctx:
                call_command('convert', str(self.source), stdout=StringIO())

        self.assertIn('Conversion failed', str(ctx.exception))
        self.assertEqual(list(self.store.output_dir.iterdir()), [])
        self.assertEqual(list(self.store.staging_dir.iterdir()), [])

    def test_missing_file(self):
        with self.assertRaises(CommandError):
            call_command('convert', str(self.root / 'nope.wav'), stdout=StringIO())

    def test_metadata_only_rejects_url(self):
        with self.assertRaises(CommandError):
            call_command('convert', 'https://example/video', '--metadata-only', stdout=StringIO())


class CleanupStagingCommandTest(CommandTestCase):
    """Test the cleanup_staging management command"""

    def setUp(self):
        super().setUp()
        self.old = self.store.staging_path('jobA', 'old.wav')
        self.new = self.store.staging_path('jobB', 'new.wav')
        self.old.write_bytes(b'old')
        self.new.write_bytes(b'new')
        two_hours_ago = time.time() - 7200
        os.utime(self.old, (two_hours_ago, two_hours_ago))

    def test_deletes_stale_files(self):
        stdout = StringIO()
        call_command('cleanup_staging', stdout=stdout)

        self.assertFalse(self.old.exists())
        self.assertTrue(self.new.exists())
        self.assertIn('Deleted 1 of 1 staged file', stdout.getvalue())

    def test_dry_run(self):
        stdout = StringIO()
        call_command('cleanup_staging', '--dry-run', stdout=stdout)

        self.assertTrue(self.old.exists())
        self.assertIn('DRY RUN: Would delete 1 file', stdout.getvalue())

    def test_nothing_stale(self):
        stdout = StringIO()
        call_command('cleanup_staging', '--max-age', '240', stdout=stdout)

        self.assertTrue(self.old.exists())
        self.assertIn('No staged files older than 240 minutes', stdout.getvalue())
