"""
Reconciliation driver — push candidates through the recovery pipeline.

Two modes share the same per-candidate flow
(classify → existence check → OCSP → backdate → persist):

  Batch-log    every non-empty line of a CA log is scanned and, if it is an
               orphan, recovered independently. A failing line is logged
               and skipped; the run always completes with a tally.
  Single-file  one DER file with a registration id supplied by the
               operator. Any failure other than "already exists" is
               returned as a Failure and stops the process.

Diagnostics:
  info         stored, already exists
  error        parse failure, unknown type
  error+audit  malformed line, lookup / OCSP / insert failure,
               unexpected exception while processing a line
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from itertools import islice
from pathlib import Path
from typing import TextIO

import structlog
from railway import ErrorCode, FailureDescription
from railway.result import Result

from orphan_finder.domain.models import (
    OrphanCandidate,
    OrphanTally,
    OrphanType,
    ReconciliationOutcome,
)
from orphan_finder.pipeline import RecoveryContext, recover_orphan
from orphan_finder.scanner import ScanStatus, scan_line

log = structlog.get_logger()

CHUNK_PER_WORKER = 4


@dataclass(frozen=True, slots=True)
class CandidateReport:
    """Outcome of one candidate plus the failure that stopped it, if any."""

    outcome: ReconciliationOutcome
    failure: FailureDescription | None = None

    def as_result(self) -> Result[ReconciliationOutcome]:
        if self.failure is None:
            return Result.success(self.outcome)
        return Result.failure_from(self.failure)


# ─────────────────────── Per-candidate flow ───────────────────────


def reconcile_candidate(candidate: OrphanCandidate, context: RecoveryContext) -> CandidateReport:
    """Classify one candidate and run the recovery railway for it."""
    classified = context.classifier.classify(candidate.der)
    if classified.is_failure():
        failure = classified.error()
        log.error("orphan.parse_failed", error=failure.detail(), source=candidate.source)
        return CandidateReport(ReconciliationOutcome.skipped(), failure)

    orphan = classified.value()
    if orphan.orphan_type is OrphanType.UNKNOWN:
        failure = FailureDescription(ErrorCode.TECHNICAL_ERROR, "unknown orphan type")
        log.error("orphan.unknown_type", serial=orphan.serial, source=candidate.source)
        return CandidateReport(ReconciliationOutcome.skipped(), failure)

    kind = str(orphan.orphan_type)
    result = recover_orphan(orphan, candidate.registration_id, context)
    if result.is_success():
        log.info(
            "orphan.stored",
            orphan_type=kind,
            serial=orphan.serial,
            registration_id=candidate.registration_id,
        )
        return CandidateReport(ReconciliationOutcome.added(orphan.orphan_type))

    failure = result.error()
    if failure.code is ErrorCode.ALREADY_EXISTS:
        log.info("orphan.already_exists", orphan_type=kind, serial=orphan.serial, source=candidate.source)
        return CandidateReport(ReconciliationOutcome.skipped(orphan.orphan_type))

    log.error(
        "orphan.recovery_failed",
        audit=True,
        orphan_type=kind,
        serial=orphan.serial,
        error_code=failure.code.value,
        error=failure.detail(),
        source=candidate.source,
    )
    return CandidateReport(ReconciliationOutcome.skipped(orphan.orphan_type), failure)


# ─────────────────────── Batch-log mode ───────────────────────


def process_log_line(line: str, context: RecoveryContext) -> ReconciliationOutcome:
    """Scan one log line and, if it holds a well-formed orphan, recover it."""
    scan = scan_line(line)
    match scan.status:
        case ScanStatus.NO_MATCH:
            return ReconciliationOutcome.no_match()
        case ScanStatus.MALFORMED:
            log.error("orphan.malformed_line", audit=True, reason=scan.reason, line=line)
            return ReconciliationOutcome.skipped()
    assert scan.candidate is not None  # guaranteed for CANDIDATE
    return reconcile_candidate(scan.candidate, context).outcome


def _process_isolated(line: str, context: RecoveryContext) -> ReconciliationOutcome:
    result = Result.from_computation(
        lambda: process_log_line(line, context),
        ErrorCode.TECHNICAL_ERROR,
        "Unexpected failure processing log line",
    )
    if result.is_success():
        return result.value()
    error = result.error()
    log.error(
        "orphan.line_failed",
        audit=True,
        error_code=error.code.value,
        error=error.detail(),
        line=line,
    )
    return ReconciliationOutcome.skipped()


def _non_empty(lines: Iterable[str]) -> Iterator[str]:
    for raw in lines:
        line = raw.rstrip("\r\n")
        if line:
            yield line


def reconcile_log(
    lines: Iterable[str],
    context: RecoveryContext,
    workers: int = 1,
) -> OrphanTally:
    """
    Recover every orphan found in `lines` and return the per-type tally.

    A line whose processing raises is audited and skipped; it never ends
    the run. With workers > 1 lines are handed to a thread pool a chunk at
    a time, so at most CHUNK_PER_WORKER * workers lines are in flight. Outcomes
    are always tallied on the calling thread, in whatever order they
    complete; the totals do not depend on that order.
    """
    tally = OrphanTally()
    process = partial(_process_isolated, context=context)
    pending = _non_empty(lines)

    if workers <= 1:
        for outcome in map(process, pending):
            tally.record(outcome)
    else:
        chunk_size = CHUNK_PER_WORKER * workers
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="orphan-finder") as pool:
            while chunk := list(islice(pending, chunk_size)):
                for outcome in pool.map(process, chunk):
                    tally.record(outcome)

    log_summary(tally)
    return tally


def log_summary(tally: OrphanTally) -> None:
    """Emit the run's found/added counts for each orphan type."""
    log.info(
        "reconcile.summary",
        orphan_type=str(OrphanType.CERTIFICATE),
        found=tally.certificates_found,
        added=tally.certificates_added,
        message=(
            f"Found {tally.certificates_found} certificate orphans "
            f"and added {tally.certificates_added} to the database"
        ),
    )
    log.info(
        "reconcile.summary",
        orphan_type=str(OrphanType.PRECERTIFICATE),
        found=tally.precertificates_found,
        added=tally.precertificates_added,
        message=(
            f"Found {tally.precertificates_found} precertificate orphans "
            f"and added {tally.precertificates_added} to the database"
        ),
    )


def reconcile_log_file(path: Path, context: RecoveryContext, workers: int = 1) -> Result[OrphanTally]:
    """Open a CA log file and run batch reconciliation over its lines."""

    def _run(handle: TextIO) -> OrphanTally:
        with handle:
            return reconcile_log(handle, context, workers=workers)

    return Result.from_computation(
        lambda: path.open(encoding="utf-8", errors="replace"),
        ErrorCode.VALIDATION_ERROR,
        f"Failed to read log file {path}",
    ).map(_run)


# ─────────────────────── Single-file mode ───────────────────────


def recover_der(
    der: bytes,
    registration_id: int,
    context: RecoveryContext,
    source: str = "<der>",
) -> Result[ReconciliationOutcome]:
    """
    Recover a single DER certificate or precertificate.

    Success carries the outcome (stored, or already present). Any other
    failure (parse, lookup, OCSP or insert) is returned as a Failure.
    """
    candidate = OrphanCandidate(source=source, der=der, registration_id=registration_id)
    return reconcile_candidate(candidate, context).as_result()


def recover_der_file(path: Path, registration_id: int, context: RecoveryContext) -> Result[ReconciliationOutcome]:
    """Read a DER file and recover it in single-file mode."""
    return Result.from_computation(
        path.read_bytes,
        ErrorCode.VALIDATION_ERROR,
        f"Failed to read DER file {path}",
    ).flat_map(lambda der: recover_der(der, registration_id, context, source=str(path)))
