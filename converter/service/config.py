"""
Configuration adapter for conversion settings.

Centralizes access to Django settings and environment variables,
ensuring consistent configuration across the CLI and the web app.
"""

from pathlib import Path

from django.conf import settings


def get_upload_dir():
    """Get the staging directory for incoming payloads"""
    return Path(settings.ANYTRACK_UPLOAD_DIR)


def get_output_dir():
    """Get the directory holding finished artifacts"""
    return Path(settings.ANYTRACK_OUTPUT_DIR)


def get_ffmpeg_binary():
    """Get the ffmpeg executable name or path"""
    return settings.ANYTRACK_FFMPEG_BINARY


def get_ffprobe_binary():
    """Get the ffprobe executable name or path"""
    return settings.ANYTRACK_FFPROBE_BINARY


def get_ytdlp_binary():
    """Get the yt-dlp executable name or path"""
    return settings.ANYTRACK_YTDLP_BINARY


def get_process_timeout():
    """
    Get the per-invocation timeout in seconds.

    Returns:
        float or None: None means external tools may run for as long as they need
    """
    timeout = settings.ANYTRACK_PROCESS_TIMEOUT
    if timeout in (None, ''):
        return None
    return float(timeout)


def get_tool_binaries():
    """
    Get the executables the planner writes into invocation plans.

    Returns:
        dict: Keys 'ffmpeg' and 'ytdlp'
    """
    return {
        'ffmpeg': get_ffmpeg_binary(),
        'ytdlp': get_ytdlp_binary(),
    }
