"""HTTP API for bookmerge."""

from bookmerge.api.app import create_app

__all__ = ["create_app"]
