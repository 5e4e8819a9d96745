"""
E2E Test Infrastructure

Fixtures for running pgbeam against a real PostgreSQL database.

Requirements:
- PGBEAM_TEST_DATABASE_URL pointing at a database the tests may create and
  drop tables in. Every test in this directory is skipped without it.
"""

import os
import uuid

import psycopg
import pytest
import pytest_asyncio

from pgbeam.connection_pool import ConnectionPool

DATABASE_URL = os.environ.get("PGBEAM_TEST_DATABASE_URL", "")


def pytest_collection_modifyitems(config, items):
    if DATABASE_URL:
        return
    skip = pytest.mark.skip(reason="PGBEAM_TEST_DATABASE_URL not set")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def database_url() -> str:
    return DATABASE_URL


@pytest_asyncio.fixture
async def pool():
    pool = ConnectionPool(DATABASE_URL, min_size=1, max_size=4, acquire_timeout=5.0)
    await pool.open(wait=True, timeout=10.0)
    yield pool
    await pool.close()


@pytest_asyncio.fixture
async def source_table():
    """
    Create a populated source table and an empty copy of it.

    Yields:
        (source, destination) table names
    """
    suffix = uuid.uuid4().hex[:8]
    source = f"pgbeam_src_{suffix}"
    destination = f"pgbeam_dst_{suffix}"

    async with await psycopg.AsyncConnection.connect(DATABASE_URL, autocommit=True) as conn:
        await conn.execute(f'CREATE TABLE "{source}" (id integer, name text, age integer)')
        await conn.execute(f'CREATE TABLE "{destination}" (id integer, name text, age integer)')
        await conn.execute(
            f'INSERT INTO "{source}" VALUES '
            "(1, 'Alice', 31), (2, 'Bob', 45), (3, 'O''Hara', 38), (4, NULL, 29)"
        )

    yield source, destination

    async with await psycopg.AsyncConnection.connect(DATABASE_URL, autocommit=True) as conn:
        await conn.execute(f'DROP TABLE IF EXISTS "{source}"')
        await conn.execute(f'DROP TABLE IF EXISTS "{destination}"')


@pytest.fixture
def fetch_rows():
    """Read a table back as (id, name, age) tuples ordered by id."""

    async def fetch(table: str):
        async with await psycopg.AsyncConnection.connect(DATABASE_URL, autocommit=True) as conn:
            cursor = await conn.execute(f'SELECT id, name, age FROM "{table}" ORDER BY id')
            return await cursor.fetchall()

    return fetch
