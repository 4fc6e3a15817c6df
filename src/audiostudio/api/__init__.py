"""
API layer for Audio Studio.

Provides the REST API for generation and the gallery.
"""

from .app import create_app

__all__ = ["create_app"]
