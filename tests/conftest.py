"""Pytest configuration and fixtures for safe_tables tests."""

from __future__ import annotations

import pytest

from safe_tables import Column, Database, Schema, Settings, Table, TypeDef


@pytest.fixture
def settings() -> Settings:
    """Provide settings that skip fsync to keep tests fast."""
    return Settings(fsync_on_save=False, verify_on_read=False)


@pytest.fixture
def users_schema() -> Schema:
    """Provide the [id: int64, name: string, age: int64] schema."""
    return Schema(
        [
            Column("id", TypeDef.INT64),
            Column("name", TypeDef.STRING),
            Column("age", TypeDef.INT64),
        ]
    )


@pytest.fixture
def db(settings: Settings) -> Database:
    """Provide an empty named database."""
    database = Database(settings=settings)
    database.set_name("test")
    return database


@pytest.fixture
def users(db: Database, users_schema: Schema) -> Table:
    """Provide a users table holding Ann (25), Bo (19) and Cy (31)."""
    table = db.create_table("users", users_schema)
    table.insert([1, "Ann", 25])
    table.insert([2, "Bo", 19])
    table.insert([3, "Cy", 31])
    return table
