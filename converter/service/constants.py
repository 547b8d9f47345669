"""
Format and field constants.

Centralized definitions of supported output formats and request field names.
"""

# Default lossy format; the only one with a VBR quality scale
DEFAULT_FORMAT = 'mp3'

LOSSY_FORMATS = ['mp3', 'm4a', 'aac', 'ogg', 'opus']

LOSSLESS_FORMATS = ['flac', 'wav']

SUPPORTED_FORMATS = LOSSY_FORMATS + LOSSLESS_FORMATS

BITRATE_CONSTANT = 'constant'
BITRATE_VARIABLE = 'variable'
BITRATE_MODES = [BITRATE_CONSTANT, BITRATE_VARIABLE]

# Multipart field carrying the binary payload
FIELD_FILE = 'file'

# Text fields and the value used when a field is absent or cannot be decoded
FIELD_DEFAULTS = {
    'format': DEFAULT_FORMAT,
    'quality': '192',
    'bitrate_mode': BITRATE_CONSTANT,
    'sample_rate': '44100',
    'channels': '2',
    'fade_in': 'false',
    'fade_out': 'false',
    'reverse': 'false',
}

# Metadata overrides, in the order they are written
METADATA_FIELDS = ['artist', 'title', 'album', 'genre']

# Seconds covered by fade-in and fade-out
FADE_SECONDS = 3

# yt-dlp format selector: mp4 video+m4a audio pair, then best mp4, then anything
FETCH_FORMAT_SELECTOR = 'bestvideo[ext=mp4]+bestaudio[ext=m4a]/best[ext=mp4]/best'

# Container extension used for the intermediate remote download
FETCH_CONTAINER_EXTENSION = 'mp4'

# Bitrate (kbps) breakpoints mapped to the LAME VBR quality index, best first
VBR_BREAKPOINTS = [
    (320, 0),
    (256, 1),
    (224, 2),
    (192, 3),
    (160, 4),
    (128, 5),
    (96, 6),
    (80, 7),
    (64, 8),
]

VBR_WORST_INDEX = 9

# Bitrate assumed when a VBR quality value cannot be parsed
VBR_FALLBACK_BITRATE = 192

# ffmpeg -q:a value used when a remote job asks for no specific quality
BEST_QUALITY_INDEX = '0'
