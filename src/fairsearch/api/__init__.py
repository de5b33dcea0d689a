"""FastAPI application and routes."""

from fairsearch.api.app import app, create_app

__all__ = [
    "app",
    "create_app",
]
