"""
Service layer for media conversion.

This module contains the conversion pipeline, independent of HTTP and the
request objects. These functions are used by:
- The web API (converter/views.py)
- The CLI management command (management/commands/convert.py)
"""
