"""
HTTP adapter — ask the issuing CA to sign a fresh OCSP response.

Adapter layer — implements the OcspGenerator port using httpx for sync
HTTP calls.

Wire format (JSON over HTTPS, optionally mutual TLS):

  POST {url}
    {"certDER": "<base64 DER>", "status": "good", "reason": 0, "revokedAt": 0}
  200
    {"response": "<base64 OCSP response>"}

No retry: a failed request aborts that orphan, and the operator re-runs
the recovery. Orphans recorded by an earlier run are skipped before any
OCSP request is made.
"""

from __future__ import annotations

import base64
import ssl

import httpx
import structlog
from railway import ErrorCode
from railway.result import Result

log = structlog.get_logger()


def build_ssl_context(
    ca_cert: str | None = None,
    cert_file: str | None = None,
    key_file: str | None = None,
) -> ssl.SSLContext:
    """Client TLS context trusting `ca_cert` (or system roots) and presenting an optional client certificate."""
    context = ssl.create_default_context(cafile=ca_cert)
    if cert_file is not None:
        context.load_cert_chain(certfile=cert_file, keyfile=key_file)
    return context


class HttpOcspGenerator:
    """
    Request signed OCSP responses from the CA's OCSP generation endpoint.

    Implements the OcspGenerator port.
    """

    def __init__(
        self,
        url: str,
        timeout: int = 30,
        verify: ssl.SSLContext | bool = True,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._verify = verify

    def generate_ocsp(
        self,
        der: bytes,
        status: str,
        reason: int,
        revoked_at: int,
    ) -> Result[bytes]:
        """
        Returns Result[bytes] with the DER OCSP response on success,
        or Result.failure(EXTERNAL_SERVICE_ERROR, ...) on any HTTP, network
        or decoding failure.
        """
        return Result.from_computation(
            lambda: self._do_generate(der, status, reason, revoked_at),
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            "OCSP generation request failed",
        )

    def _do_generate(self, der: bytes, status: str, reason: int, revoked_at: int) -> bytes:
        """HTTP call — exceptions caught by from_computation."""
        with httpx.Client(timeout=self._timeout, verify=self._verify) as client:
            response = client.post(
                self._url,
                json={
                    "certDER": base64.b64encode(der).decode("ascii"),
                    "status": status,
                    "reason": reason,
                    "revokedAt": revoked_at,
                },
            )
            response.raise_for_status()
            ocsp = base64.b64decode(response.json()["response"], validate=True)
            if not ocsp:
                raise ValueError("CA returned an empty OCSP response")
            log.debug("ocsp.generated", size_bytes=len(ocsp))
            return ocsp
