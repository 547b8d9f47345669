"""
External tool execution.

Runs planned invocations as child processes, one at a time, and turns
non-zero exits into ExternalToolFailure carrying the tool's stderr.
"""
from dataclasses import dataclass
from typing import Optional
import json
import logging
import subprocess

from converter.service.config import get_ffprobe_binary, get_process_timeout
from converter.service.errors import ExternalToolFailure

log = logging.getLogger(__name__)


@dataclass
class ProcessOutcome:
    """Result of one external tool run"""
    success: bool
    exit_status: Optional[int]
    diagnostic_text: str = ''
    output_text: str = ''


def execute(command, timeout=None):
    """
    Run a command and capture its output.

    Never raises for a non-zero exit; spawn failures and timeouts come back
    as unsuccessful outcomes with no exit status.

    Returns:
        ProcessOutcome
    """
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            encoding='utf-8',
            errors='replace',
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        return ProcessOutcome(
            success=False,
            exit_status=None,
            diagnostic_text=f'Timed out after {timeout} seconds',
        )
    except OSError as e:
        return ProcessOutcome(
            success=False,
            exit_status=None,
            diagnostic_text=f'Could not start {command[0]}: {e}',
        )

    return ProcessOutcome(
        success=result.returncode == 0,
        exit_status=result.returncode,
        diagnostic_text=result.stderr or '',
        output_text=result.stdout or '',
    )


def run_invocation(invocation, timeout=None, logger=None):
    """
    Run one planned invocation.

    Args:
        invocation: Invocation to run
        timeout: Optional seconds before the child is killed; defaults to
            the configured process timeout
        logger: Optional callable(str) for logging

    Returns:
        ProcessOutcome of the successful run

    Raises:
        ExternalToolFailure: If the tool exits non-zero, cannot be started or
            times out
    """
    def emit(message):
        if logger:
            logger(message)

    if timeout is None:
        timeout = get_process_timeout()

    command = invocation.command
    log.info('Running: %s', ' '.join(command))
    emit(f"Running: {' '.join(command)}")

    outcome = execute(command, timeout=timeout)

    if not outcome.success:
        log.error('%s failed (exit %s): %s', invocation.tool_name,
                  outcome.exit_status, outcome.diagnostic_text)
        emit(f'{invocation.tool_name} stderr: {outcome.diagnostic_text}')
        raise ExternalToolFailure(
            invocation.tool_name,
            outcome.diagnostic_text,
            exit_status=outcome.exit_status,
        )

    return outcome


def run_plan(plan, timeout=None, logger=None, on_start=None):
    """
    Run every invocation of a plan in order.

    Stops at the first failure; later invocations never start.

    Args:
        plan: InvocationPlan
        timeout: Optional per-invocation timeout in seconds
        logger: Optional callable(str) for logging
        on_start: Optional callable(index, invocation) called before each run

    Returns:
        list: ProcessOutcome for every invocation

    Raises:
        ExternalToolFailure: From the invocation that failed
    """
    outcomes = []
    for index, invocation in enumerate(plan):
        if on_start:
            on_start(index, invocation)
        outcomes.append(run_invocation(invocation, timeout=timeout, logger=logger))
    return outcomes


def probe_duration(file_path, timeout=None):
    """
    Read a media file's duration with ffprobe.

    Returns:
        float: Duration in seconds, or None if it cannot be determined
    """
    if timeout is None:
        timeout = get_process_timeout()

    outcome = execute([
        get_ffprobe_binary(),
        '-v', 'quiet',
        '-print_format', 'json',
        '-show_format',
        str(file_path)
    ], timeout=timeout)

    if not outcome.success:
        return None

    try:
        metadata = json.loads(outcome.output_text)
        return float(metadata['format']['duration'])
    except (ValueError, KeyError, TypeError):
        return None
