"""
Upload handler that streams the payload straight into staging.

Django calls the handler chunk by chunk while it parses the multipart body,
so the uploaded file is never held in memory or copied out of a temporary
file. Only the `file` field is staged; other file fields are drained and
dropped.
"""
from django.core.files.uploadedfile import UploadedFile
from django.core.files.uploadhandler import FileUploadHandler

from converter.service.constants import FIELD_FILE


class StagedUpload(UploadedFile):
    """An upload that already lives at its staging path"""

    def __init__(self, staged_path, name, content_type, size, charset,
                 content_type_extra=None):
        super().__init__(None, name, content_type, size, charset, content_type_extra)
        self.staged_path = staged_path


class StagingUploadHandler(FileUploadHandler):
    """Write the `file` field to {staging}/{job_id}_{filename}"""

    def __init__(self, store, job_id, request=None):
        super().__init__(request)
        self.store = store
        self.job_id = job_id
        self._destination = None
        self._path = None

    def new_file(self, field_name, file_name, *args, **kwargs):
        super().new_file(field_name, file_name, *args, **kwargs)
        self._destination = None
        self._path = None
        if field_name != FIELD_FILE:
            return
        self._path = self.store.staging_path(self.job_id, file_name)
        self._destination = open(self._path, 'wb')

    def receive_data_chunk(self, raw_data, start):
        if self._destination is not None:
            self._destination.write(raw_data)
        # Swallow every chunk; no other handler needs the data
        return None

    def file_complete(self, file_size):
        if self._destination is None:
            return None
        self._destination.close()
        self._destination = None
        return StagedUpload(
            self._path,
            self.file_name,
            self.content_type,
            file_size,
            self.charset,
            self.content_type_extra,
        )

    def upload_interrupted(self):
        if self._destination is not None:
            self.close()
            self.store.discard(self._path)

    def close(self):
        """Close the staging file of a part that never completed"""
        if self._destination is not None:
            self._destination.close()
            self._destination = None
