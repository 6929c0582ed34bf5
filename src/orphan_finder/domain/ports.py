"""
Ports — Protocol-based interfaces for infrastructure adapters.

They define WHAT the recovery pipeline needs without saying HOW:

  Domain ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing), so an adapter satisfies it
by implementing the methods — no inheritance. Every port has a live
adapter and an in-memory adapter (adapters.in_memory) for tests.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from railway.result import Result

from orphan_finder.domain.models import ClassifiedOrphan, StoredOrphan


@runtime_checkable
class OrphanClassifier(Protocol):
    """
    Port: parse DER and decide certificate vs precertificate.

    Returns Failure(PARSE_ERROR) when the bytes are not an X.509 certificate.
    """

    def classify(self, der: bytes) -> Result[ClassifiedOrphan]: ...


@runtime_checkable
class CertificateStore(Protocol):
    """
    Port: the storage system of record for issued certificates.

    Lookups return Failure(NOT_FOUND) when the serial is unknown; any other
    failure code means the lookup itself failed.

    Inserts return the stored serial. A uniqueness violation (the serial
    was inserted by someone else since it was looked up) is reported as
    Failure(ALREADY_EXISTS).

    Precertificate storage takes issuance as integer nanoseconds since the
    Unix epoch; certificate storage takes a datetime.
    """

    def add_certificate(
        self,
        der: bytes,
        registration_id: int,
        ocsp_response: bytes,
        issued: datetime,
    ) -> Result[str]: ...

    def add_precertificate(
        self,
        der: bytes,
        registration_id: int,
        ocsp_response: bytes,
        issued_nanos: int,
    ) -> Result[str]: ...

    def get_certificate(self, serial: str) -> Result[StoredOrphan]: ...

    def get_precertificate(self, serial: str) -> Result[StoredOrphan]: ...


@runtime_checkable
class OcspGenerator(Protocol):
    """
    Port: ask the issuing CA to sign a fresh OCSP response for a certificate.

    Returns the DER-encoded OCSP response bytes.
    """

    def generate_ocsp(
        self,
        der: bytes,
        status: str,
        reason: int,
        revoked_at: int,
    ) -> Result[bytes]: ...
