"""
Job descriptors and the builders that produce them from request data.

A request becomes exactly one of three immutable job descriptors. Builders
validate everything up front so that no external tool runs for a request
that was never going to succeed.
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union
from urllib.parse import urlparse

from converter.service.constants import (
    BITRATE_MODES,
    DEFAULT_FORMAT,
    FIELD_DEFAULTS,
    METADATA_FIELDS,
    SUPPORTED_FORMATS,
)
from converter.service.errors import MalformedRequest, MissingPayload

# Django decodes form fields with errors='replace'; this marks a failed decode
REPLACEMENT_CHARACTER = '\ufffd'

KIND_CONVERT = 'convert'
KIND_FETCH = 'fetch'
KIND_METADATA = 'metadata'


@dataclass(frozen=True)
class ConversionJob:
    """Transcode an uploaded file, optionally applying audio effects"""

    job_id: str
    staged_path: Path
    target_format: str = DEFAULT_FORMAT
    quality: Optional[str] = None
    bitrate_mode: str = 'constant'
    sample_rate: str = '44100'
    channels: str = '2'
    fade_in: bool = False
    fade_out: bool = False
    reverse: bool = False

    kind = KIND_CONVERT

    @property
    def has_effects(self):
        return self.reverse or self.fade_in or self.fade_out


@dataclass(frozen=True)
class RemoteFetchJob:
    """Download a remote video and extract its audio"""

    job_id: str
    url: str
    target_format: str
    quality: Optional[str] = None

    kind = KIND_FETCH


@dataclass(frozen=True)
class MetadataJob:
    """Rewrite tags on an uploaded file without re-encoding it"""

    job_id: str
    staged_path: Path
    target_format: str = DEFAULT_FORMAT
    tags: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    kind = KIND_METADATA


JobDescriptor = Union[ConversionJob, RemoteFetchJob, MetadataJob]


def decode_field(fields, name, default=None):
    """
    Read one text field, falling back to a default.

    Args:
        fields: Mapping of field name to decoded value (e.g. request.POST)
        name: Field name
        default: Value for absent fields and fields that failed to decode

    Returns:
        str or None
    """
    if name not in fields:
        return default
    value = fields.get(name)
    if isinstance(value, bytes):
        try:
            value = value.decode('utf-8')
        except UnicodeDecodeError:
            return default
    if value is None or REPLACEMENT_CHARACTER in value:
        return default
    return value


def parse_flag(value):
    """Flags are set only by the exact literal 'true'"""
    return value == 'true'


def _require_choice(name, value, choices):
    if value not in choices:
        raise MalformedRequest(
            f"Invalid {name} '{value}'. Must be one of: {', '.join(choices)}"
        )
    return value


def _require_positive_int(name, value):
    if not (value.isascii() and value.isdigit()) or int(value) <= 0:
        raise MalformedRequest(f"Invalid {name} '{value}'. Must be a positive integer")
    return value


def build_conversion_job(job_id, fields, staged_path):
    """
    Build a ConversionJob from multipart text fields and the staged upload.

    Args:
        job_id: Job identifier allocated by the artifact store
        fields: Mapping of text fields; unknown names are ignored
        staged_path: Path of the staged payload, or None if none was sent

    Returns:
        ConversionJob

    Raises:
        MissingPayload: If no file was uploaded
        MalformedRequest: If a field holds an unsupported value
    """
    if staged_path is None:
        raise MissingPayload()

    target_format = decode_field(fields, 'format', FIELD_DEFAULTS['format'])
    quality = decode_field(fields, 'quality', None)
    if quality is None and 'quality' in fields:
        quality = FIELD_DEFAULTS['quality']
    if quality is not None and not quality.strip():
        # Empty field: leave the choice to the encoder
        quality = None
    bitrate_mode = decode_field(fields, 'bitrate_mode', FIELD_DEFAULTS['bitrate_mode'])
    sample_rate = decode_field(fields, 'sample_rate', FIELD_DEFAULTS['sample_rate'])
    channels = decode_field(fields, 'channels', FIELD_DEFAULTS['channels'])

    return ConversionJob(
        job_id=job_id,
        staged_path=Path(staged_path),
        target_format=_require_choice('format', target_format, SUPPORTED_FORMATS),
        quality=quality,
        bitrate_mode=_require_choice('bitrate_mode', bitrate_mode, BITRATE_MODES),
        sample_rate=_require_positive_int('sample_rate', sample_rate),
        channels=_require_positive_int('channels', channels),
        fade_in=parse_flag(decode_field(fields, 'fade_in', FIELD_DEFAULTS['fade_in'])),
        fade_out=parse_flag(decode_field(fields, 'fade_out', FIELD_DEFAULTS['fade_out'])),
        reverse=parse_flag(decode_field(fields, 'reverse', FIELD_DEFAULTS['reverse'])),
    )


def build_metadata_job(job_id, fields, staged_path):
    """
    Build a MetadataJob from multipart text fields and the staged upload.

    The output keeps the upload's extension (mp3 when it has none). Tags are
    collected in artist, title, album, genre order; a tag that fails to
    decode is written as an empty value.
    """
    if staged_path is None:
        raise MissingPayload()

    staged_path = Path(staged_path)
    target_format = staged_path.suffix[1:] or DEFAULT_FORMAT

    tags = tuple(
        (name, decode_field(fields, name, ''))
        for name in METADATA_FIELDS
        if name in fields
    )

    return MetadataJob(
        job_id=job_id,
        staged_path=staged_path,
        target_format=target_format,
        tags=tags,
    )


def build_remote_job(job_id, body):
    """
    Build a RemoteFetchJob from a JSON request body.

    Args:
        job_id: Job identifier allocated by the artifact store
        body: Raw request body (bytes or str) or an already parsed dict

    Raises:
        MalformedRequest: If the body is not a JSON object with a valid
            'url' and 'format'
    """
    if isinstance(body, (bytes, str)):
        try:
            body = json.loads(body or b'{}')
        except (ValueError, UnicodeDecodeError) as e:
            raise MalformedRequest(f'Invalid JSON body: {e}')

    if not isinstance(body, dict):
        raise MalformedRequest('Request body must be a JSON object')

    url = body.get('url')
    if not isinstance(url, str) or not url.strip():
        raise MalformedRequest('Missing required parameter: url')
    url = url.strip()
    if urlparse(url).scheme not in ('http', 'https'):
        raise MalformedRequest(f"Invalid url '{url}'. Must be an http or https URL")

    target_format = body.get('format')
    if not isinstance(target_format, str) or not target_format:
        raise MalformedRequest('Missing required parameter: format')
    _require_choice('format', target_format, SUPPORTED_FORMATS)

    quality = body.get('quality')
    if quality is not None:
        if isinstance(quality, bool) or not isinstance(quality, (str, int)):
            raise MalformedRequest('Invalid quality. Must be a string')
        quality = str(quality).strip() or None

    return RemoteFetchJob(
        job_id=job_id,
        url=url,
        target_format=target_format,
        quality=quality,
    )
