"""
Conversion pipeline entrypoint.

Runs a job descriptor through planning and execution and always leaves
the staging directory clean. Used by both the web views and the
`convert` management command.

A job moves through these states:

    received -> staged -> planned -> executing -> finalizing -> succeeded

Remote fetch jobs skip `staged` (nothing is uploaded). Any state before
`succeeded` can move to `failed`; a tool failure goes there directly and
no later invocation runs.
"""
from dataclasses import dataclass, field
from typing import List, Optional
import logging

from converter.service.errors import ConversionError, ExternalToolFailure
from converter.service.plan import plan_job
from converter.service.process import probe_duration, run_plan
from converter.service.request import (
    KIND_CONVERT,
    KIND_FETCH,
    KIND_METADATA,
    ConversionJob,
)

log = logging.getLogger(__name__)

STATE_RECEIVED = 'received'
STATE_STAGED = 'staged'
STATE_PLANNED = 'planned'
STATE_EXECUTING = 'executing'
STATE_FINALIZING = 'finalizing'
STATE_SUCCEEDED = 'succeeded'
STATE_FAILED = 'failed'

TRANSITIONS = {
    STATE_RECEIVED: [STATE_STAGED, STATE_PLANNED, STATE_FAILED],
    STATE_STAGED: [STATE_PLANNED, STATE_FAILED],
    STATE_PLANNED: [STATE_EXECUTING, STATE_FAILED],
    STATE_EXECUTING: [STATE_FINALIZING, STATE_FAILED],
    STATE_FINALIZING: [STATE_SUCCEEDED, STATE_FAILED],
    STATE_SUCCEEDED: [],
    STATE_FAILED: [],
}

SUCCESS_MESSAGES = {
    KIND_CONVERT: 'Conversion successful',
    KIND_FETCH: 'Remote conversion successful',
    KIND_METADATA: 'Metadata updated successfully',
}

# Message prefix for a failure, per job kind and invocation index
FAILURE_MESSAGES = {
    KIND_CONVERT: ['Conversion failed'],
    KIND_FETCH: ['Download failed', 'Audio extraction failed'],
    KIND_METADATA: ['Metadata update failed'],
}


@dataclass
class JobResult:
    """Terminal outcome of a job, shaped for the API response"""
    success: bool
    message: str
    file_id: Optional[str] = None
    state: str = STATE_SUCCEEDED
    status_code: int = 200

    def as_response(self):
        return {
            'success': self.success,
            'message': self.message,
            'fileId': self.file_id,
        }


@dataclass
class JobTracker:
    """Records the state transitions of one job"""
    job_id: str
    state: str = STATE_RECEIVED
    history: List[str] = field(default_factory=lambda: [STATE_RECEIVED])

    def advance(self, new_state):
        if new_state not in TRANSITIONS[self.state]:
            raise ValueError(f'Invalid transition {self.state} -> {new_state}')
        log.debug('Job %s: %s -> %s', self.job_id, self.state, new_state)
        self.state = new_state
        self.history.append(new_state)

    @property
    def is_terminal(self):
        return not TRANSITIONS[self.state]


def failure_result(error, state=STATE_FAILED):
    """Build the response for a job that ended with a ConversionError"""
    return JobResult(
        success=False,
        message=str(error),
        file_id=None,
        state=state,
        status_code=error.status_code,
    )


def run_job(job, store, logger=None, tools=None, timeout=None, tracker=None):
    """
    Plan and run a job, then clean up its staged files.

    Args:
        job: ConversionJob, RemoteFetchJob or MetadataJob
        store: ArtifactStore owning the staging and output directories
        logger: Optional callable(str) for logging
        tools: Optional dict of executables passed to the planner
        timeout: Optional per-invocation timeout in seconds
        tracker: Optional JobTracker to record state transitions in

    Returns:
        JobResult; tool failures are reported in the result, not raised

    Raises:
        Exception: Unexpected internal errors, after staged files and any
            partial output were removed
    """
    def emit(message):
        log.info('[%s] %s', job.job_id, message)
        if logger:
            logger(message)

    tracker = tracker or JobTracker(job.job_id)
    if job.kind != KIND_FETCH:
        tracker.advance(STATE_STAGED)

    current_step = [0]

    def on_start(index, invocation):
        current_step[0] = index

    try:
        duration = None
        if isinstance(job, ConversionJob) and job.fade_out:
            duration = probe_duration(job.staged_path, timeout=timeout)
            if duration is None:
                emit('Could not read source duration; fade-out starts at 0')
            else:
                emit(f'Source duration: {duration}s')

        plan = plan_job(job, store, duration=duration, tools=tools)
        tracker.advance(STATE_PLANNED)

        tracker.advance(STATE_EXECUTING)
        run_plan(plan, timeout=timeout, logger=emit, on_start=on_start)
        tracker.advance(STATE_FINALIZING)
    except ExternalToolFailure as e:
        tracker.advance(STATE_FAILED)
        store.discard_output(job.job_id, job.target_format, logger=emit)
        prefix = FAILURE_MESSAGES[job.kind][current_step[0]]
        emit(f'{prefix} ({e.tool_name}, exit {e.exit_status})')
        return JobResult(
            success=False,
            message=f'{prefix}: {e.diagnostic_text}',
            file_id=None,
            state=STATE_FAILED,
            status_code=e.status_code,
        )
    except Exception:
        if not tracker.is_terminal:
            tracker.advance(STATE_FAILED)
        store.discard_output(job.job_id, job.target_format, logger=emit)
        raise
    finally:
        removed = store.discard_staged(job.job_id, logger=emit)
        if removed:
            emit(f'Removed {len(removed)} staged file(s)')

    tracker.advance(STATE_SUCCEEDED)
    file_id = store.output_name(job.job_id, job.target_format)
    emit(f'Complete! Output: {file_id}')
    return JobResult(
        success=True,
        message=SUCCESS_MESSAGES[job.kind],
        file_id=file_id,
        state=STATE_SUCCEEDED,
        status_code=200,
    )


def process_request(job_id, store, build, logger=None, **kwargs):
    """
    Build a job descriptor and run it.

    Staged files are removed on every path, including a request that fails
    validation after its payload was already written to staging.

    Args:
        job_id: Job identifier the staged files were named with
        store: ArtifactStore
        build: Callable returning the job descriptor; may raise
            ConversionError for bad requests
        logger: Optional callable(str) for logging
        **kwargs: Passed through to run_job

    Returns:
        JobResult
    """
    try:
        job = build()
    except ConversionError as e:
        store.discard_staged(job_id, logger=logger)
        log.info('[%s] Rejected request: %s', job_id, e)
        return failure_result(e)
    except Exception:
        store.discard_staged(job_id, logger=logger)
        raise

    return run_job(job, store, logger=logger, **kwargs)
