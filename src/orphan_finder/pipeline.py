"""
Pipeline — the recovery railway for one classified orphan.

Domain layer — pure business logic. All I/O is injected via ports
(Protocol interfaces) carried in a frozen RecoveryContext.

  check_not_recorded(orphan)        existence check, NOT_FOUND is the only way on
    → regenerate_ocsp(orphan)       fresh "good" OCSP response from the CA
      → issued_at(not_before)       NotBefore + backdate
        → persist_orphan(...)       type-specific insert

Each stage returns Result[T]. A failure short-circuits the rest, so an
orphan that already exists never triggers an OCSP request or an insert.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from railway import ErrorCode
from railway.result import Result

from orphan_finder.domain.models import ClassifiedOrphan, OrphanType
from orphan_finder.domain.ports import CertificateStore, OcspGenerator, OrphanClassifier

OCSP_STATUS_GOOD = "good"

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MICROSECOND = timedelta(microseconds=1)


@dataclass(frozen=True, slots=True)
class RecoveryContext:
    """
    Everything a recovery run needs, wired once by the composition root.

    `backdate` is the CA's configured backdate duration. It is fixed for the
    lifetime of the run and applied identically to every orphan.
    """

    classifier: OrphanClassifier
    store: CertificateStore
    ocsp_generator: OcspGenerator
    backdate: timedelta


# ─────────────────────── Backdating ───────────────────────


def issued_at(not_before: datetime, backdate: timedelta) -> datetime:
    """True issuance time: the certificate's NotBefore shifted by the backdate offset."""
    return not_before + backdate


def to_unix_nanos(moment: datetime) -> int:
    """Exact integer nanoseconds since the Unix epoch for an aware datetime."""
    return ((moment - _EPOCH) // _ONE_MICROSECOND) * 1000


# ─────────────────────── Stages ───────────────────────


def check_not_recorded(orphan: ClassifiedOrphan, store: CertificateStore) -> Result[ClassifiedOrphan]:
    """
    Succeed only if storage has no record of this orphan's serial.

    A record that is already there comes back as Failure(ALREADY_EXISTS);
    any lookup failure other than NOT_FOUND keeps its code and is fatal
    for this orphan.
    """
    match orphan.orphan_type:
        case OrphanType.CERTIFICATE:
            lookup = store.get_certificate(orphan.serial)
        case OrphanType.PRECERTIFICATE:
            lookup = store.get_precertificate(orphan.serial)
        case _:
            return Result.failure(ErrorCode.TECHNICAL_ERROR, "unknown orphan type")

    return lookup.either(
        on_success=lambda _: Result.failure(
            ErrorCode.ALREADY_EXISTS,
            f"{orphan.orphan_type} already exists in DB",
        ),
        on_failure=lambda err: (
            Result.success(orphan)
            if err.code is ErrorCode.NOT_FOUND
            else Result.failure(
                err.code,
                f"Existing {orphan.orphan_type} lookup failed: {err.message}",
                err.exception,
            )
        ),
    )


def regenerate_ocsp(orphan: ClassifiedOrphan, generator: OcspGenerator) -> Result[bytes]:
    """Request a freshly signed "good" OCSP response. Never retried here."""
    return generator.generate_ocsp(
        orphan.der,
        status=OCSP_STATUS_GOOD,
        reason=0,
        revoked_at=0,
    ).map_failure(lambda err: err.with_message(f"Couldn't generate OCSP: {err.message}"))


def persist_orphan(
    orphan: ClassifiedOrphan,
    registration_id: int,
    ocsp_response: bytes,
    backdate: timedelta,
    store: CertificateStore,
) -> Result[str]:
    """
    Write the orphan through the insert matching its type.

    Certificates are stored with a datetime issuance; precertificates with
    integer nanoseconds, converted here and nowhere earlier.
    """
    issued = issued_at(orphan.not_before, backdate)
    match orphan.orphan_type:
        case OrphanType.CERTIFICATE:
            stored = store.add_certificate(orphan.der, registration_id, ocsp_response, issued)
        case OrphanType.PRECERTIFICATE:
            stored = store.add_precertificate(
                orphan.der,
                registration_id,
                ocsp_response,
                to_unix_nanos(issued),
            )
        case _:
            return Result.failure(ErrorCode.TECHNICAL_ERROR, "unknown orphan type")

    return stored.map_failure(
        lambda err: (
            err
            if err.code is ErrorCode.ALREADY_EXISTS
            else err.with_message(f"Failed to store {orphan.orphan_type}: {err.message}")
        )
    )


def recover_orphan(
    orphan: ClassifiedOrphan,
    registration_id: int,
    context: RecoveryContext,
) -> Result[str]:
    """
    Run the full recovery railway for one classified orphan.

    Returns Result[str] with the stored serial, Failure(ALREADY_EXISTS) when
    storage already has it, or the failure of the first failing stage.
    """
    return (
        check_not_recorded(orphan, context.store)
        .flat_map(lambda ready: regenerate_ocsp(ready, context.ocsp_generator))
        .flat_map(
            lambda ocsp_response: persist_orphan(
                orphan,
                registration_id,
                ocsp_response,
                context.backdate,
                context.store,
            )
        )
    )
