"""
PostgreSQL storage adapter — certificate and precertificate records.

Adapter layer — implements the CertificateStore port using psycopg (v3)
with parameterized queries. One connection per call, so a single store
can be shared by several recovery workers.

Table mapping:
  certificates     serial PK, registration_id, der, ocsp_response, issued (timestamptz)
  precertificates  serial PK, registration_id, der, ocsp_response, issued_nanos (bigint)

The serial primary key is what makes concurrent recovery runs safe: an
insert that loses the race raises UniqueViolation, which is reported as
Failure(ALREADY_EXISTS) rather than as a database error.

No ORM — raw parameterized SQL.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import psycopg
import structlog
from psycopg import errors as pg_errors
from railway import ErrorCode, FailureDescription, ResultFailures
from railway.result import Result

from orphan_finder.domain.models import OrphanType, StoredOrphan
from orphan_finder.domain.serials import serial_from_der

log = structlog.get_logger()

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

_SELECT_CERT = """
SELECT serial, registration_id, der, issued
FROM certificates WHERE serial = %s
"""

_SELECT_PRECERT = """
SELECT serial, registration_id, der, issued_nanos
FROM precertificates WHERE serial = %s
"""

_INSERT_CERT = """
INSERT INTO certificates (serial, registration_id, der, ocsp_response, issued)
VALUES (%s, %s, %s, %s, %s)
"""

_INSERT_PRECERT = """
INSERT INTO precertificates (serial, registration_id, der, ocsp_response, issued_nanos)
VALUES (%s, %s, %s, %s, %s)
"""


def _nanos_to_datetime(nanos: int) -> datetime:
    return _EPOCH + timedelta(microseconds=nanos // 1000)


def _as_already_exists(err: FailureDescription, kind: str, serial: str) -> FailureDescription:
    """Report a primary-key collision as ALREADY_EXISTS; leave other failures alone."""
    if isinstance(err.exception, pg_errors.UniqueViolation):
        return FailureDescription(
            ErrorCode.ALREADY_EXISTS,
            f"{kind} already exists with identifier: {serial}",
            err.exception,
        )
    return err


class PsycopgCertificateStore:
    """
    Look up and insert orphan records in PostgreSQL.

    Implements the CertificateStore port.
    All exceptions are caught at this adapter boundary via Result.from_computation().
    """

    def __init__(self, dsn: str, connect_timeout: int = 10) -> None:
        self._dsn = dsn
        self._connect_timeout = connect_timeout

    def get_certificate(self, serial: str) -> Result[StoredOrphan]:
        return self._lookup(_SELECT_CERT, OrphanType.CERTIFICATE, serial, lambda issued: issued)

    def get_precertificate(self, serial: str) -> Result[StoredOrphan]:
        return self._lookup(_SELECT_PRECERT, OrphanType.PRECERTIFICATE, serial, _nanos_to_datetime)

    def add_certificate(
        self,
        der: bytes,
        registration_id: int,
        ocsp_response: bytes,
        issued: datetime,
    ) -> Result[str]:
        return self._insert(_INSERT_CERT, OrphanType.CERTIFICATE, der, (registration_id, der, ocsp_response, issued))

    def add_precertificate(
        self,
        der: bytes,
        registration_id: int,
        ocsp_response: bytes,
        issued_nanos: int,
    ) -> Result[str]:
        return self._insert(
            _INSERT_PRECERT,
            OrphanType.PRECERTIFICATE,
            der,
            (registration_id, der, ocsp_response, issued_nanos),
        )

    # ─────────────────────── Internals ───────────────────────

    def _connect(self) -> psycopg.Connection[Any]:
        return psycopg.connect(self._dsn, connect_timeout=self._connect_timeout)

    def _lookup(
        self,
        query: str,
        orphan_type: OrphanType,
        serial: str,
        to_datetime: Callable[[Any], datetime],
    ) -> Result[StoredOrphan]:
        """SELECT by serial. An empty result set is Failure(NOT_FOUND)."""
        kind = str(orphan_type)
        return Result.from_computation(
            lambda: self._fetch_rows(query, serial),
            ErrorCode.DATABASE_ERROR,
            f"{kind} lookup failed",
        ).flat_map(
            lambda rows: (
                Result.success(
                    StoredOrphan(
                        serial=rows[0][0],
                        registration_id=rows[0][1],
                        der=bytes(rows[0][2]),
                        issued=to_datetime(rows[0][3]),
                    )
                )
                if rows
                else ResultFailures.not_found(kind, serial)
            )
        )

    def _fetch_rows(self, query: str, serial: str) -> list[tuple[Any, ...]]:
        with self._connect() as conn, conn.cursor() as cur:
            cur.execute(query, (serial,))
            return cur.fetchall()

    def _insert(
        self,
        statement: str,
        orphan_type: OrphanType,
        der: bytes,
        params: tuple[Any, ...],
    ) -> Result[str]:
        """Derive the serial from the DER, then INSERT in its own transaction."""
        kind = str(orphan_type)
        return Result.from_computation(
            lambda: serial_from_der(der),
            ErrorCode.PARSE_ERROR,
            f"{kind} DER is not a certificate",
        ).flat_map(
            lambda serial: Result.from_computation(
                lambda: self._execute_insert(statement, serial, params),
                ErrorCode.DATABASE_ERROR,
                f"Failed to insert {kind}",
            ).map_failure(lambda err: _as_already_exists(err, kind, serial))
        )

    def _execute_insert(self, statement: str, serial: str, params: tuple[Any, ...]) -> str:
        with self._connect() as conn, conn.transaction(), conn.cursor() as cur:
            cur.execute(statement, (serial, *params))
        log.info("repository.stored", serial=serial)
        return serial
