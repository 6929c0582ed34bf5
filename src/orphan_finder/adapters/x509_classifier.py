"""
X.509 classifier adapter — DER → ClassifiedOrphan.

Adapter layer — implements the OrphanClassifier port using cryptography
(PyCA). A precertificate is recognised solely by the RFC 6962 CT poison
extension (OID 1.3.6.1.4.1.11129.2.4.3); the parsed certificate object
never leaves this module.
"""

from __future__ import annotations

import structlog
from cryptography import x509
from cryptography.x509.oid import ExtensionOID
from railway import ErrorCode
from railway.result import Result

from orphan_finder.domain.models import ClassifiedOrphan, OrphanType
from orphan_finder.domain.serials import serial_to_string

log = structlog.get_logger()

# RFC 6962 section 3.1
CT_POISON_OID = ExtensionOID.PRECERT_POISON


def orphan_type_for_certificate(cert: x509.Certificate | None) -> OrphanType:
    """PRECERTIFICATE if the CT poison extension is present, CERTIFICATE if not, UNKNOWN for None."""
    if cert is None:
        return OrphanType.UNKNOWN
    for ext in cert.extensions:
        if ext.oid == CT_POISON_OID:
            return OrphanType.PRECERTIFICATE
    return OrphanType.CERTIFICATE


class X509OrphanClassifier:
    """
    Parse DER-encoded certificates and classify them.

    Implements the OrphanClassifier port.
    All exceptions are caught at this adapter boundary via Result.from_computation().
    """

    def classify(self, der: bytes) -> Result[ClassifiedOrphan]:
        """
        Parse the DER and return its canonical serial, NotBefore and type.

        Returns Result.failure(PARSE_ERROR, ...) for anything that does not
        decode as an X.509 certificate, including malformed extensions.
        """
        return Result.from_computation(
            lambda: self._do_classify(der),
            ErrorCode.PARSE_ERROR,
            "Failed to parse orphan DER",
        )

    def _do_classify(self, der: bytes) -> ClassifiedOrphan:
        cert = x509.load_der_x509_certificate(der)
        orphan = ClassifiedOrphan(
            der=der,
            serial=serial_to_string(cert.serial_number),
            not_before=cert.not_valid_before_utc,
            orphan_type=orphan_type_for_certificate(cert),
        )
        log.debug("classifier.classified", serial=orphan.serial, orphan_type=str(orphan.orphan_type))
        return orphan
