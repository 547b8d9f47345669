"""
Errors raised by the conversion pipeline.

Every error carries the HTTP status the web layer answers with, so views and
management commands can report a failure without knowing where it came from.
"""


class ConversionError(Exception):
    """Base class for failures that end a job"""

    status_code = 500


class MalformedRequest(ConversionError):
    """Raised when a required field is missing or a value is not acceptable"""

    status_code = 400


class MissingPayload(ConversionError):
    """Raised when a job that needs an uploaded file did not receive one"""

    status_code = 400

    def __init__(self, message='No file uploaded'):
        super().__init__(message)


class ExternalToolFailure(ConversionError):
    """
    Raised when an external tool exits non-zero or cannot be started.

    The tool's diagnostic output is kept verbatim so callers can see the
    codec or format problem ffmpeg/yt-dlp reported.
    """

    status_code = 500

    def __init__(self, tool_name, diagnostic_text, exit_status=None):
        self.tool_name = tool_name
        self.diagnostic_text = diagnostic_text
        self.exit_status = exit_status
        super().__init__(f'{tool_name} failed: {diagnostic_text}')
