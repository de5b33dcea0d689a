"""Initial schema for fairsearch.

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CATEGORIES = (
    "energy",
    "food",
    "mobility",
    "housing",
    "consumer_goods",
    "finance",
    "education",
    "community",
    "recycling",
    "other",
)


def upgrade() -> None:
    op.create_table(
        "entries",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column(
            "tags",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column(
            "category",
            sa.Enum(*CATEGORIES, name="entry_category", create_constraint=True),
            nullable=False,
        ),
        sa.Column("lat", sa.Float, nullable=False),
        sa.Column("lon", sa.Float, nullable=False),
        sa.Column("avg_rating", sa.Float, nullable=False, server_default="0"),
        sa.Column("street", sa.String(500), nullable=True),
        sa.Column("zip", sa.String(20), nullable=True),
        sa.Column("city", sa.String(200), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint("lat >= -90 AND lat <= 90", name="ck_entries_valid_lat"),
        sa.CheckConstraint("lon >= -180 AND lon <= 180", name="ck_entries_valid_lon"),
        sa.CheckConstraint(
            "avg_rating >= -1 AND avg_rating <= 2", name="ck_entries_valid_avg_rating"
        ),
        sa.CheckConstraint("version >= 0", name="ck_entries_valid_version"),
    )
    op.create_index("ix_entries_category", "entries", ["category"])
    op.create_index("ix_entries_lat_lon", "entries", ["lat", "lon"])


def downgrade() -> None:
    op.drop_index("ix_entries_lat_lon", table_name="entries")
    op.drop_index("ix_entries_category", table_name="entries")
    op.drop_table("entries")
    sa.Enum(name="entry_category").drop(op.get_bind(), checkfirst=True)
