"""Health endpoint for nodeterm.

Exposes:
    create_app -- FastAPI application factory.
"""

from nodeterm.api.app import create_app

__all__ = ["create_app"]
