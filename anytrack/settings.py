"""
Django settings for the anytrack project.

Every value that differs between deployments is read from the environment.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    return os.environ.get(name, str(default)).lower() in ['true', '1', 'yes']


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-anytrack-dev-key')

DEBUG = env_bool('DJANGO_DEBUG', False)

ALLOWED_HOSTS = [
    host.strip()
    for host in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')
    if host.strip()
]

INSTALLED_APPS = [
    'converter',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
]

ROOT_URLCONF = 'anytrack.urls'

WSGI_APPLICATION = 'anytrack.wsgi.application'

# No models; jobs live only for the duration of a request
DATABASES = {}

USE_TZ = True
TIME_ZONE = 'UTC'

# Uploads are streamed to staging by converter.uploads.StagingUploadHandler;
# these limits only bound the text fields and JSON bodies held in memory.
DATA_UPLOAD_MAX_MEMORY_SIZE = int(os.environ.get('ANYTRACK_MAX_BODY_SIZE', 2621440))
DATA_UPLOAD_MAX_NUMBER_FIELDS = 100

# Conversion settings
ANYTRACK_UPLOAD_DIR = os.environ.get('ANYTRACK_UPLOAD_DIR', str(BASE_DIR / 'uploads'))
ANYTRACK_OUTPUT_DIR = os.environ.get('ANYTRACK_OUTPUT_DIR', str(BASE_DIR / 'outputs'))

ANYTRACK_FFMPEG_BINARY = os.environ.get('ANYTRACK_FFMPEG_BINARY', 'ffmpeg')
ANYTRACK_FFPROBE_BINARY = os.environ.get('ANYTRACK_FFPROBE_BINARY', 'ffprobe')
ANYTRACK_YTDLP_BINARY = os.environ.get('ANYTRACK_YTDLP_BINARY', 'yt-dlp')

# Seconds before an external tool is killed; empty means no limit
ANYTRACK_PROCESS_TIMEOUT = os.environ.get('ANYTRACK_PROCESS_TIMEOUT') or None

ANYTRACK_LOG_LEVEL = os.environ.get('ANYTRACK_LOG_LEVEL', 'INFO').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '[{asctime}] {levelname} {name}: {message}',
            'style': '{',
            'datefmt': '%Y-%m-%d %H:%M:%S',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'converter': {
            'handlers': ['console'],
            'level': ANYTRACK_LOG_LEVEL,
            'propagate': False,
        },
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
        },
    },
}
