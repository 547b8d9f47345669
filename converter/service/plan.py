"""
Invocation planning.

Turns a job descriptor into the exact external-tool command lines that
will run for it. Planning does no I/O: the same job, store and tool
configuration always produce an equal plan.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from converter.service.config import get_tool_binaries
from converter.service.constants import (
    BEST_QUALITY_INDEX,
    BITRATE_VARIABLE,
    DEFAULT_FORMAT,
    FADE_SECONDS,
    FETCH_FORMAT_SELECTOR,
    VBR_BREAKPOINTS,
    VBR_FALLBACK_BITRATE,
    VBR_WORST_INDEX,
)
from converter.service.request import ConversionJob, MetadataJob, RemoteFetchJob

INT32_MIN = -2 ** 31
INT32_MAX = 2 ** 31 - 1


@dataclass(frozen=True)
class Invocation:
    """One external tool run: an executable and its ordered arguments"""

    executable: str
    args: Tuple[str, ...]

    @property
    def command(self):
        return [self.executable, *self.args]

    @property
    def tool_name(self):
        return Path(self.executable).name


@dataclass(frozen=True)
class InvocationPlan:
    """
    Ordered invocations for one job.

    Each invocation may read what the previous one wrote; intermediate
    files live in staging and are listed in intermediate_paths.
    """

    invocations: Tuple[Invocation, ...]
    output_path: Path
    intermediate_paths: Tuple[Path, ...] = ()

    def __iter__(self):
        return iter(self.invocations)

    def __len__(self):
        return len(self.invocations)


def _parse_int32(value):
    if not isinstance(value, str):
        return None
    digits = value[1:] if value[:1] in ('+', '-') else value
    if not (digits.isascii() and digits.isdigit()):
        return None
    number = int(value)
    if not INT32_MIN <= number <= INT32_MAX:
        return None
    return number


def vbr_quality_index(quality):
    """
    Map a bitrate in kbps to the LAME VBR quality index (0 best, 9 worst).

    Only a plain signed decimal 32-bit integer parses; anything else
    (whitespace, underscores, non-ASCII digits, overflow) is treated as
    192 kbps.
    """
    bitrate = _parse_int32(quality)
    if bitrate is None:
        bitrate = VBR_FALLBACK_BITRATE

    for threshold, index in VBR_BREAKPOINTS:
        if bitrate >= threshold:
            return index
    return VBR_WORST_INDEX


def _format_seconds(value):
    return f'{value:.3f}'.rstrip('0').rstrip('.')


def fade_out_start(duration):
    """Start time of a fade-out covering the last seconds of the source"""
    if duration is None:
        return 0
    return max(duration - FADE_SECONDS, 0)


def build_filter_chain(job, duration=None):
    """
    Build the audio filter expressions for a conversion.

    Effects always apply in the order reverse, fade-in, fade-out, whatever
    order the request listed them in.

    Args:
        job: ConversionJob
        duration: Source duration in seconds, needed to place a fade-out

    Returns:
        list: Filter expressions; empty when no effect was requested
    """
    filters = []
    if job.reverse:
        filters.append('areverse')
    if job.fade_in:
        filters.append(f'afade=t=in:ss=0:d={FADE_SECONDS}')
    if job.fade_out:
        start = _format_seconds(fade_out_start(duration))
        filters.append(f'afade=t=out:st={start}:d={FADE_SECONDS}')
    return filters


def quality_args(job):
    """
    Build the bitrate/quality arguments for a conversion.

    Variable-bitrate mp3 uses the quality scale; everything else takes the
    quality as an explicit bitrate in kbps. No quality, no arguments.
    """
    if job.quality is None:
        return []
    if job.target_format == DEFAULT_FORMAT and job.bitrate_mode == BITRATE_VARIABLE:
        return ['-q:a', str(vbr_quality_index(job.quality))]
    return ['-b:a', f'{job.quality}k']


def plan_conversion(job: ConversionJob, store, duration: Optional[float] = None,
                    tools=None) -> InvocationPlan:
    tools = tools or get_tool_binaries()
    output_path = store.output_path(job.job_id, job.target_format)

    args = ['-i', str(job.staged_path), '-y']

    filters = build_filter_chain(job, duration)
    if filters:
        args.extend(['-af', ','.join(filters)])

    # Always explicit so the output does not depend on ffmpeg defaults
    args.extend(['-ar', job.sample_rate])
    args.extend(['-ac', job.channels])

    args.extend(quality_args(job))
    args.append(str(output_path))

    return InvocationPlan(
        invocations=(Invocation(tools['ffmpeg'], tuple(args)),),
        output_path=output_path,
    )


def plan_remote_fetch(job: RemoteFetchJob, store, tools=None) -> InvocationPlan:
    """
    Plan a download followed by audio extraction.

    The downloaded container is written to staging; the extraction step
    reads it from there and drops any video stream.
    """
    tools = tools or get_tool_binaries()
    fetched_path = store.fetch_path(job.job_id)
    output_path = store.output_path(job.job_id, job.target_format)

    fetch = Invocation(
        tools['ytdlp'],
        ('-f', FETCH_FORMAT_SELECTOR, '-o', str(fetched_path), job.url),
    )

    extract_args = ['-i', str(fetched_path), '-y', '-vn']
    if job.quality is not None:
        extract_args.extend(['-b:a', f'{job.quality}k'])
    else:
        extract_args.extend(['-q:a', BEST_QUALITY_INDEX])
    extract_args.append(str(output_path))

    return InvocationPlan(
        invocations=(fetch, Invocation(tools['ffmpeg'], tuple(extract_args))),
        output_path=output_path,
        intermediate_paths=(fetched_path,),
    )


def plan_metadata_rewrite(job: MetadataJob, store, tools=None) -> InvocationPlan:
    """Plan a stream copy that attaches one -metadata pair per supplied tag"""
    tools = tools or get_tool_binaries()
    output_path = store.output_path(job.job_id, job.target_format)

    args = ['-i', str(job.staged_path), '-y', '-codec', 'copy']
    for key, value in job.tags:
        args.extend(['-metadata', f'{key}={value}'])
    args.append(str(output_path))

    return InvocationPlan(
        invocations=(Invocation(tools['ffmpeg'], tuple(args)),),
        output_path=output_path,
    )


def plan_job(job, store, duration=None, tools=None):
    """
    Plan any job descriptor.

    Args:
        job: ConversionJob, RemoteFetchJob or MetadataJob
        store: ArtifactStore naming the staged and output files
        duration: Source duration in seconds (conversions with fade-out only)
        tools: Optional dict with 'ffmpeg' and 'ytdlp' executables;
            defaults to the configured binaries

    Returns:
        InvocationPlan
    """
    if isinstance(job, ConversionJob):
        return plan_conversion(job, store, duration=duration, tools=tools)
    elif isinstance(job, RemoteFetchJob):
        return plan_remote_fetch(job, store, tools=tools)
    elif isinstance(job, MetadataJob):
        return plan_metadata_rewrite(job, store, tools=tools)
    else:
        raise TypeError(f'Unknown job type: {type(job).__name__}')
