"""
WSGI entrypoint for the anytrack Django application.

Serve with any WSGI server, e.g.:

    gunicorn anytrack.wsgi --workers 4

Each worker handles jobs independently; the staging and output directories
are the only state they share.
"""

import os

from django.core.wsgi import get_wsgi_application

# Set the Django settings module
# This must be done before importing Django
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'anytrack.settings')

application = get_wsgi_application()
