"""Request schemas for API endpoints."""

from __future__ import annotations

from typing import Annotated

from pydantic import Field

from fairsearch.api.schemas.base import APIBaseSchema


class ReconcileRequest(APIBaseSchema):
    """Request to reconcile the index against the store."""

    bbox: Annotated[
        str | None,
        Field(
            default=None,
            max_length=200,
            description="Limit the pass to entries in 'minLat,minLon,maxLat,maxLon'.",
        ),
    ]

    rebuild: Annotated[
        bool,
        Field(
            default=False,
            description="Clear the index first and re-index every entry.",
        ),
    ]
