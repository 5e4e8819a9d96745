"""
Pytest configuration for pgbeam tests

Unit, contract and integration tests run against the in-memory fakes in
tests/fakes.py. E2E tests need a real PostgreSQL and are skipped unless
PGBEAM_TEST_DATABASE_URL is set.
"""

import pytest

from tests.fakes import FakeConnection, FakePool


@pytest.fixture
def fake_connection() -> FakeConnection:
    return FakeConnection(
        export_chunks=[b"1\tAlice\n", b"2\tBob\n"],
        export_rows=2,
    )


@pytest.fixture
def fake_pool(fake_connection) -> FakePool:
    return FakePool(fake_connection)
