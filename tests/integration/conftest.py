"""
Integration test fixtures — PostgreSQL testcontainer and schema setup.

Provides a real PostgreSQL instance for each test session via testcontainers.
Creates the certificates and precertificates tables keyed by serial.
Each test gets a fresh, clean database via truncation.
"""

from __future__ import annotations

from collections.abc import Iterator

import psycopg
import pytest
from testcontainers.postgres import PostgresContainer

DDL = """
CREATE TABLE certificates (
    serial           TEXT PRIMARY KEY,
    registration_id  BIGINT NOT NULL,
    der              BYTEA NOT NULL,
    ocsp_response    BYTEA NOT NULL,
    issued           TIMESTAMP WITH TIME ZONE NOT NULL
);

CREATE TABLE precertificates (
    serial           TEXT PRIMARY KEY,
    registration_id  BIGINT NOT NULL,
    der              BYTEA NOT NULL,
    ocsp_response    BYTEA NOT NULL,
    issued_nanos     BIGINT NOT NULL
);
"""

TRUNCATE_ALL = """
TRUNCATE certificates, precertificates;
"""


def psycopg_dsn(container: PostgresContainer) -> str:
    return container.get_connection_url().replace("postgresql+psycopg2", "postgresql")


def count_rows(dsn: str, table: str) -> int:
    with psycopg.connect(dsn) as conn:
        row = conn.execute(f"SELECT count(*) FROM {table}").fetchone()  # noqa: S608
        return row[0] if row else 0


@pytest.fixture(scope="session")
def postgres_container() -> Iterator[PostgresContainer]:
    """Start a PostgreSQL container for the entire test session."""
    with PostgresContainer("postgres:16-alpine") as pg:
        with psycopg.connect(psycopg_dsn(pg)) as conn:
            conn.execute(DDL)
            conn.commit()
        yield pg


@pytest.fixture()
def dsn(postgres_container: PostgresContainer) -> str:
    """Return a psycopg-compatible DSN and truncate all tables before each test."""
    connection_url = psycopg_dsn(postgres_container)
    with psycopg.connect(connection_url) as conn:
        conn.execute(TRUNCATE_ALL)
        conn.commit()
    return connection_url
