"""
HTTP API for Medibot.
"""

from .app import create_app

__all__ = ["create_app"]
