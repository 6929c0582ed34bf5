"""
In-memory adapters — deterministic stand-ins for storage and the CA.

Adapter layer — implements the CertificateStore and OcspGenerator ports
without any I/O. Used by the test suite. Both adapters:

  - record every call so tests can assert on what reached "the network"
  - expose knobs to force not-found / found / error responses
  - guard their state with a lock, so a worker pool can share them
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from railway import ErrorCode, FailureDescription, ResultFailures
from railway.result import Result

from orphan_finder.domain.models import OrphanType, StoredOrphan
from orphan_finder.domain.serials import serial_from_der

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class RecordedInsert:
    """One insert call as received. `issued` is a datetime or int nanoseconds."""

    orphan_type: OrphanType
    der: bytes = field(repr=False)
    registration_id: int
    ocsp_response: bytes = field(repr=False)
    issued: datetime | int


@dataclass(frozen=True, slots=True)
class OcspRequest:
    der: bytes = field(repr=False)
    status: str
    reason: int
    revoked_at: int


class InMemoryCertificateStore:
    """
    Dict-backed CertificateStore.

    Knobs:
      lookup_failure  → every lookup returns this failure
      insert_failure  → every insert returns this failure
      stale_lookups   → lookups always miss, so a seeded record is only
                        discovered by the insert (a concurrent-insert race)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[OrphanType, dict[str, StoredOrphan]] = {
            OrphanType.CERTIFICATE: {},
            OrphanType.PRECERTIFICATE: {},
        }
        self.lookups: list[tuple[OrphanType, str]] = []
        self.inserts: list[RecordedInsert] = []
        self.lookup_failure: FailureDescription | None = None
        self.insert_failure: FailureDescription | None = None
        self.stale_lookups = False

    # ─────────────────────── Seeding / inspection ───────────────────────

    def seed(self, orphan_type: OrphanType, der: bytes, registration_id: int = 1) -> str:
        """Pre-populate a record as if it had been stored by the CA."""
        serial = serial_from_der(der)
        with self._lock:
            self._records[orphan_type][serial] = StoredOrphan(
                serial=serial,
                registration_id=registration_id,
                der=der,
            )
        return serial

    def count(self, orphan_type: OrphanType) -> int:
        with self._lock:
            return len(self._records[orphan_type])

    def record(self, orphan_type: OrphanType, serial: str) -> StoredOrphan | None:
        with self._lock:
            return self._records[orphan_type].get(serial)

    # ─────────────────────── CertificateStore port ───────────────────────

    def get_certificate(self, serial: str) -> Result[StoredOrphan]:
        return self._lookup(OrphanType.CERTIFICATE, serial)

    def get_precertificate(self, serial: str) -> Result[StoredOrphan]:
        return self._lookup(OrphanType.PRECERTIFICATE, serial)

    def add_certificate(
        self,
        der: bytes,
        registration_id: int,
        ocsp_response: bytes,
        issued: datetime,
    ) -> Result[str]:
        call = RecordedInsert(OrphanType.CERTIFICATE, der, registration_id, ocsp_response, issued)
        return self._insert(call, issued)

    def add_precertificate(
        self,
        der: bytes,
        registration_id: int,
        ocsp_response: bytes,
        issued_nanos: int,
    ) -> Result[str]:
        call = RecordedInsert(OrphanType.PRECERTIFICATE, der, registration_id, ocsp_response, issued_nanos)
        return self._insert(call, _EPOCH + timedelta(microseconds=issued_nanos // 1000))

    # ─────────────────────── Internals ───────────────────────

    def _lookup(self, orphan_type: OrphanType, serial: str) -> Result[StoredOrphan]:
        with self._lock:
            self.lookups.append((orphan_type, serial))
            if self.lookup_failure is not None:
                return Result.failure_from(self.lookup_failure)
            record = None if self.stale_lookups else self._records[orphan_type].get(serial)
        if record is None:
            return ResultFailures.not_found(str(orphan_type), serial)
        return Result.success(record)

    def _insert(self, call: RecordedInsert, issued: datetime) -> Result[str]:
        parsed = Result.from_computation(
            lambda: serial_from_der(call.der),
            ErrorCode.PARSE_ERROR,
            "Stored DER is not a certificate",
        )
        if parsed.is_failure():
            return parsed
        serial = parsed.value()

        with self._lock:
            self.inserts.append(call)
            if self.insert_failure is not None:
                return Result.failure_from(self.insert_failure)
            records = self._records[call.orphan_type]
            if serial in records:
                return ResultFailures.already_exists(str(call.orphan_type), serial)
            records[serial] = StoredOrphan(
                serial=serial,
                registration_id=call.registration_id,
                der=call.der,
                issued=issued,
            )
        return Result.success(serial)


class StaticOcspGenerator:
    """OcspGenerator that answers every request with the same bytes, or the same failure."""

    def __init__(self, response: bytes = b"ocsp-good", failure: FailureDescription | None = None) -> None:
        self._lock = threading.Lock()
        self._response = response
        self.failure = failure
        self.requests: list[OcspRequest] = []

    def generate_ocsp(
        self,
        der: bytes,
        status: str,
        reason: int,
        revoked_at: int,
    ) -> Result[bytes]:
        with self._lock:
            self.requests.append(OcspRequest(der=der, status=status, reason=reason, revoked_at=revoked_at))
            if self.failure is not None:
                return Result.failure_from(self.failure)
        return Result.success(self._response)
