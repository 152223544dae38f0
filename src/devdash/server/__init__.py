"""HTTP server for devdash."""

from devdash.server.app import create_app, create_default_app

__all__ = ["create_app", "create_default_app"]
