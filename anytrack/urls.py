"""
URL configuration for the anytrack project.

API routes for the conversion service; completed artifacts are served
read-only from /api/download/<fileId>.
"""

from django.urls import path

from converter.views import (
    convert_view,
    download_view,
    health_view,
    metadata_view,
    remote_view,
)

urlpatterns = [
    path('health', health_view, name='health'),
    path('api/convert', convert_view, name='convert'),
    path('api/youtube', remote_view, name='remote'),
    path('api/metadata', metadata_view, name='metadata'),
    path('api/download/<str:filename>', download_view, name='download'),
]
