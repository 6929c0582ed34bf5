"""Canonical serial number form used as the storage lookup key."""

from __future__ import annotations

from cryptography import x509


def serial_to_string(serial: int) -> str:
    """
    Lowercase hex, zero-padded to 36 digits.

    This is the form the CA writes when it stores a certificate, so a
    recovered serial compares equal to an originally stored one.
    """
    return f"{serial:036x}"


def serial_from_der(der: bytes) -> str:
    """Parse DER and return its canonical serial. Raises ValueError on bad DER."""
    return serial_to_string(x509.load_der_x509_certificate(der).serial_number)
