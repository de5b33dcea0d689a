"""Entry database model."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Enum, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fairsearch.core.types import Category
from fairsearch.db.base import Base, JSONType, StringPrimaryKeyMixin, TimestampMixin


def _next_version(current: int | None) -> int:
    return 0 if current is None else current + 1


class EntryModel(Base, StringPrimaryKeyMixin, TimestampMixin):
    """
    A directory entry: an organization or place with sustainability tags.

    ``version`` is maintained by SQLAlchemy as the mapper's version counter.
    It starts at 0, grows by one with every UPDATE, and a concurrent update of
    a stale row fails instead of silently overwriting.
    """

    __tablename__ = "entries"

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tags: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    category: Mapped[Category] = mapped_column(
        Enum(
            Category,
            name="entry_category",
            create_constraint=True,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        index=True,
    )

    # Location
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)

    # Recomputed from ratings outside this service
    avg_rating: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default="0",
    )

    # Address
    street: Mapped[str | None] = mapped_column(String(500), nullable=True)
    zip: Mapped[str | None] = mapped_column(String(20), nullable=True)
    city: Mapped[str | None] = mapped_column(String(200), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __mapper_args__ = {
        "version_id_col": version,
        "version_id_generator": _next_version,
    }

    __table_args__ = (
        CheckConstraint("lat >= -90 AND lat <= 90", name="valid_lat"),
        CheckConstraint("lon >= -180 AND lon <= 180", name="valid_lon"),
        CheckConstraint("avg_rating >= -1 AND avg_rating <= 2", name="valid_avg_rating"),
        CheckConstraint("version >= 0", name="valid_version"),
        Index("ix_entries_lat_lon", "lat", "lon"),
    )

    def __repr__(self) -> str:
        return f"<EntryModel(id={self.id}, version={self.version}, title='{self.title[:50]}')>"
