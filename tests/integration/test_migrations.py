"""Tests that the schema migration matches the ORM models."""

from __future__ import annotations

import importlib.util
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations

from fairsearch.core.types import Category
from fairsearch.db.models.entry import EntryModel

pytestmark = [pytest.mark.integration, pytest.mark.requires_db]

MIGRATION = Path(__file__).parents[2] / "migrations" / "versions" / "001_initial_schema.py"


def load_migration():
    spec = importlib.util.spec_from_file_location("initial_schema", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def connection():
    engine = sa.create_engine("sqlite://")
    with engine.begin() as conn:
        yield conn
    engine.dispose()


class TestInitialSchema:
    """Tests for the initial migration."""

    def test_upgrade_creates_model_columns(self, connection):
        migration = load_migration()
        with Operations.context(MigrationContext.configure(connection)):
            migration.upgrade()

        columns = {c["name"] for c in sa.inspect(connection).get_columns("entries")}
        assert columns == {c.name for c in EntryModel.__table__.columns}

    def test_categories_match_enum(self):
        assert set(load_migration().CATEGORIES) == {c.value for c in Category}

    def test_downgrade(self, connection):
        migration = load_migration()
        with Operations.context(MigrationContext.configure(connection)):
            migration.upgrade()
            migration.downgrade()

        assert "entries" not in sa.inspect(connection).get_table_names()
