"""
Shared test fixtures and helpers for the orphan-finder test suite.

Certificates are minted at runtime with cryptography's CertificateBuilder:
final certificates carry no CT poison, precertificates carry the critical
PrecertPoison extension. Helpers also render CA orphaning log lines in the
format the recovery scanner expects.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from functools import lru_cache

import pytest
import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID

from orphan_finder.adapters.in_memory import InMemoryCertificateStore, StaticOcspGenerator
from orphan_finder.adapters.x509_classifier import X509OrphanClassifier
from orphan_finder.pipeline import RecoveryContext

DEFAULT_NOT_BEFORE = datetime(2020, 1, 1, 0, 0, 0, tzinfo=UTC)


@lru_cache(maxsize=1)
def _issuer_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


def make_der(
    serial: int,
    precert: bool = False,
    not_before: datetime = DEFAULT_NOT_BEFORE,
) -> bytes:
    """Build and sign a DER certificate (or precertificate) with the given serial."""
    key = _issuer_key()
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, f"orphan-{serial:x}.example.com")])
    issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "Test Intermediate")])
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(serial)
        .not_valid_before(not_before)
        .not_valid_after(not_before + timedelta(days=90))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
    )
    if precert:
        builder = builder.add_extension(x509.PrecertPoison(), critical=True)
    return builder.sign(key, hashes.SHA256()).public_bytes(Encoding.DER)


def orphan_line(
    der: bytes,
    registration_id: int | str = 1001,
    label: str = "certificate",
) -> str:
    """Render a CA log line that orphans the given DER."""
    return (
        f"2020-01-01T00:00:05.123456+00:00 ca-host boulder-ca[1234]: 3 boulder-ca "
        f"[AUDIT] Failed RPC to store at SA, orphaning {label}: serial=[{der[:4].hex()}] "
        f"cert=[{der.hex()}] err=[context deadline exceeded], regID=[{registration_id}], orderID=[42]"
    )


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Undo any structlog configuration a test applied."""
    yield
    structlog.reset_defaults()


@pytest.fixture()
def store() -> InMemoryCertificateStore:
    return InMemoryCertificateStore()


@pytest.fixture()
def ocsp_generator() -> StaticOcspGenerator:
    return StaticOcspGenerator(response=b"\x30\x03\x0a\x01\x00")


@pytest.fixture()
def context(store: InMemoryCertificateStore, ocsp_generator: StaticOcspGenerator) -> RecoveryContext:
    """A RecoveryContext over in-memory adapters with a one-hour backdate."""
    return RecoveryContext(
        classifier=X509OrphanClassifier(),
        store=store,
        ocsp_generator=ocsp_generator,
        backdate=timedelta(hours=1),
    )
