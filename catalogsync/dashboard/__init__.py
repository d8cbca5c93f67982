"""Web dashboard for catalogsync.

Provides list and detail views over the cached catalog using FastAPI and
Jinja2 templates.
"""

from .app import create_app

__all__ = ["create_app"]
