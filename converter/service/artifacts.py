"""
Staging and output file lifecycle.

An ArtifactStore owns two directories for the lifetime of the process:
the staging directory, where uploads and intermediate downloads wait to be
processed, and the output directory, where finished artifacts wait to be
downloaded. Every filename starts with the job id, so concurrent jobs never
write to the same path and need no locking.
"""
import logging
import time
from pathlib import Path

from nanoid import generate

from converter.service.config import get_output_dir, get_upload_dir
from converter.service.constants import FETCH_CONTAINER_EXTENSION

log = logging.getLogger(__name__)

JOB_ID_ALPHABET = 'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789'
JOB_ID_SIZE = 21


def generate_job_id():
    """Generate NanoID with A-Z a-z 0-9 alphabet"""
    return generate(JOB_ID_ALPHABET, size=JOB_ID_SIZE)


class ArtifactStore:
    """Staging and output directories, shared by every job in the process"""

    def __init__(self, staging_dir, output_dir):
        self.staging_dir = Path(staging_dir)
        self.output_dir = Path(output_dir)

    def __repr__(self):
        return f'ArtifactStore(staging_dir={self.staging_dir!r}, output_dir={self.output_dir!r})'

    def ensure_directories(self):
        """Create both directories if they do not exist yet"""
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def new_job_id(self):
        return generate_job_id()

    def staging_path(self, job_id, filename):
        """
        Path an uploaded file is staged at.

        The original filename is kept as given; uniqueness comes from the
        job id prefix alone.
        """
        return self.staging_dir / f'{job_id}_{filename}'

    def fetch_path(self, job_id):
        """Path the remote downloader writes its container file to"""
        return self.staging_dir / f'{job_id}.{FETCH_CONTAINER_EXTENSION}'

    def output_name(self, job_id, target_format):
        return f'{job_id}.{target_format}'

    def output_path(self, job_id, target_format):
        return self.output_dir / self.output_name(job_id, target_format)

    def staged_files(self, job_id):
        """List every staged file belonging to a job"""
        if not self.staging_dir.exists():
            return []
        return sorted(
            path for path in self.staging_dir.iterdir()
            if path.name.startswith((f'{job_id}_', f'{job_id}.'))
        )

    def discard_staged(self, job_id, logger=None):
        """
        Remove every staged file of a job.

        Removal is best-effort: a failure is logged as a warning and never
        raised, because the job's outcome has already been decided.

        Returns:
            list: Paths that were removed
        """
        removed = []
        for path in self.staged_files(job_id):
            if self.discard(path, logger=logger):
                removed.append(path)
        return removed

    def discard(self, path, logger=None):
        """
        Remove a single file, logging instead of raising on failure.

        Returns:
            bool: True if the file no longer exists
        """
        path = Path(path)
        try:
            path.unlink()
        except FileNotFoundError:
            return True
        except OSError as e:
            message = f'Warning: Failed to clean up {path}: {e}'
            log.warning(message)
            if logger:
                logger(message)
            return False
        return True

    def discard_output(self, job_id, target_format, logger=None):
        """Remove a partially written output artifact"""
        path = self.output_path(job_id, target_format)
        if path.exists():
            if logger:
                logger(f'Removing partial output: {path.name}')
            self.discard(path, logger=logger)

    def resolve_output(self, filename):
        """
        Find a finished artifact by the name handed out in a response.

        Returns:
            Path or None: None for unknown names and names that point outside
            the output directory
        """
        if not filename or Path(filename).name != filename:
            return None
        path = self.output_dir / filename
        if not path.is_file():
            return None
        return path

    def stale_staged_files(self, max_age_seconds, now=None):
        """
        List staged files older than max_age_seconds.

        These are left behind only when a worker died mid-job.
        """
        if not self.staging_dir.exists():
            return []
        now = now if now is not None else time.time()
        return sorted(
            path for path in self.staging_dir.iterdir()
            if path.is_file() and now - path.stat().st_mtime > max_age_seconds
        )


_default_store = None


def get_artifact_store():
    """Get the process-wide store built from settings"""
    global _default_store
    staging_dir = get_upload_dir()
    output_dir = get_output_dir()
    if (
        _default_store is None
        or _default_store.staging_dir != staging_dir
        or _default_store.output_dir != output_dir
    ):
        _default_store = ArtifactStore(staging_dir, output_dir)
    return _default_store
