"""API route modules."""

from fairsearch.api.routes.admin import router as admin_router
from fairsearch.api.routes.health import router as health_router
from fairsearch.api.routes.search import router as search_router

__all__ = [
    "admin_router",
    "health_router",
    "search_router",
]
