from django.http import FileResponse, Http404, JsonResponse
from django.http.multipartparser import MultiPartParserError
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from converter.service.artifacts import get_artifact_store
from converter.service.constants import FIELD_FILE
from converter.service.errors import MalformedRequest
from converter.service.pipeline import process_request
from converter.service.request import (
    build_conversion_job,
    build_metadata_job,
    build_remote_job,
)
from converter.uploads import StagingUploadHandler

API_VERSION = '0.1.0'


def _read_form(request):
    """
    Parse a multipart request.

    Returns:
        tuple: (text fields, staged path of the last `file` upload or None)
    """
    try:
        fields = request.POST
        uploads = request.FILES.getlist(FIELD_FILE)
    except MultiPartParserError as e:
        for handler in request.upload_handlers:
            if isinstance(handler, StagingUploadHandler):
                handler.close()
        raise MalformedRequest(f'Invalid multipart body: {e}')
    staged_path = uploads[-1].staged_path if uploads else None
    return fields, staged_path


def _job_response(result):
    return JsonResponse(result.as_response(), status=result.status_code)


@require_GET
def health_view(request):
    return JsonResponse({'status': 'healthy', 'version': API_VERSION})


@csrf_exempt
@require_POST
def convert_view(request):
    """
    Convert an uploaded audio file.

    Multipart fields:
        file (required): Audio payload
        format: mp3|m4a|aac|ogg|opus|flac|wav (default mp3)
        quality: Bitrate in kbps
        bitrate_mode: constant|variable (default constant)
        sample_rate: Hz (default 44100)
        channels: Channel count (default 2)
        fade_in, fade_out, reverse: 'true' to enable

    Returns:
        JSON {success, message, fileId}
    """
    store = get_artifact_store()
    job_id = store.new_job_id()
    # Must be set before request.POST is touched
    request.upload_handlers = [StagingUploadHandler(store, job_id, request)]

    def build():
        fields, staged_path = _read_form(request)
        return build_conversion_job(job_id, fields, staged_path)

    return _job_response(process_request(job_id, store, build))


@csrf_exempt
@require_POST
def remote_view(request):
    """
    Download a remote video and extract its audio.

    JSON body:
        url (required): Page or media URL understood by yt-dlp
        format (required): Output audio format
        quality (optional): Bitrate in kbps

    Returns:
        JSON {success, message, fileId}
    """
    store = get_artifact_store()
    job_id = store.new_job_id()

    def build():
        return build_remote_job(job_id, request.body)

    return _job_response(process_request(job_id, store, build))


@csrf_exempt
@require_POST
def metadata_view(request):
    """
    Rewrite the tags of an uploaded file without re-encoding.

    Multipart fields:
        file (required): Audio payload
        artist, title, album, genre (optional): Tag values

    Returns:
        JSON {success, message, fileId}
    """
    store = get_artifact_store()
    job_id = store.new_job_id()
    request.upload_handlers = [StagingUploadHandler(store, job_id, request)]

    def build():
        fields, staged_path = _read_form(request)
        return build_metadata_job(job_id, fields, staged_path)

    return _job_response(process_request(job_id, store, build))


@require_GET
def download_view(request, filename):
    """Serve a finished artifact by the fileId a job returned"""
    path = get_artifact_store().resolve_output(filename)
    if path is None:
        raise Http404('File not found')
    return FileResponse(path.open('rb'), filename=path.name)
