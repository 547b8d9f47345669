"""
Tests for the staging upload handler.
"""

from pathlib import Path
import tempfile

from django.http.multipartparser import MultiPartParserError
from django.test import SimpleTestCase

from converter.service.artifacts import ArtifactStore
from converter.service.errors import MalformedRequest
from converter.uploads import StagingUploadHandler
from converter.views import _read_form


class BrokenMultipartRequest:
    """Request whose body fails to parse after a file part was opened"""

    def __init__(self, handler):
        self.upload_handlers = [handler]

    @property
    def POST(self):
        raise MultiPartParserError('Premature end of body')


class StagingUploadHandlerTest(SimpleTestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        root = Path(self._tmp.name)
        self.store = ArtifactStore(root / 'uploads', root / 'outputs')
        self.store.ensure_directories()
        self.handler = StagingUploadHandler(self.store, 'job1')

    def start_file(self, field_name='file', file_name='song.wav'):
        self.handler.new_file(field_name, file_name, 'audio/wav', None)

    def test_streams_file_to_staging(self):
        self.start_file()
        self.assertIsNone(self.handler.receive_data_chunk(b'RIFF', 0))
        self.assertIsNone(self.handler.receive_data_chunk(b'WAVE', 4))
        upload = self.handler.file_complete(8)

        staged = self.store.staging_path('job1', 'song.wav')
        self.assertEqual(upload.staged_path, staged)
        self.assertEqual(upload.size, 8)
        self.assertEqual(staged.read_bytes(), b'RIFFWAVE')

    def test_other_file_fields_are_dropped(self):
        self.start_file(field_name='cover', file_name='cover.jpg')
        self.handler.receive_data_chunk(b'\xff\xd8', 0)

        self.assertIsNone(self.handler.file_complete(2))
        self.assertEqual(list(self.store.staging_dir.iterdir()), [])

    def test_interrupted_upload_removes_partial_file(self):
        self.start_file()
        self.handler.receive_data_chunk(b'RIFF', 0)
        destination = self.handler._destination
        staged = self.store.staging_path('job1', 'song.wav')
        self.assertTrue(staged.exists())

        self.handler.upload_interrupted()

        self.assertTrue(destination.closed)
        self.assertFalse(staged.exists())

    def test_close_is_idempotent(self):
        self.start_file()
        destination = self.handler._destination
        self.handler.close()
        self.handler.close()
        self.assertTrue(destination.closed)

    def test_parser_error_closes_staging_file(self):
        """Test that a body failing mid-file leaves no open staging handle"""
        self.start_file()
        self.handler.receive_data_chunk(b'RIFF', 0)
        destination = self.handler._destination

        with self.assertRaises(MalformedRequest):
            _read_form(BrokenMultipartRequest(self.handler))

        self.assertTrue(destination.closed)
        self.assertIsNone(self.handler._destination)
