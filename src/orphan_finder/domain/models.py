"""
Domain models — immutable value objects for orphan recovery.

An orphan is a certificate or precertificate the CA signed but storage
never recorded. These objects carry a candidate from the log (or a DER
file) through classification, lookup and persistence.

All value objects are frozen dataclasses. OrphanTally is the one mutable
accumulator; each worker owns its own and they are merged at the end.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, unique


@unique
class OrphanType(Enum):
    """
    Kind of orphan, decided from the DER alone.

    str() gives the label the CA uses in its orphaning log messages
    ("orphaning certificate", "orphaning precertificate").
    """

    UNKNOWN = 0
    CERTIFICATE = 1
    PRECERTIFICATE = 2

    def __str__(self) -> str:
        match self:
            case OrphanType.CERTIFICATE:
                return "certificate"
            case OrphanType.PRECERTIFICATE:
                return "precertificate"
            case OrphanType.UNKNOWN:
                return "unknown"
        raise TypeError("unreachable")  # pragma: no cover


@dataclass(frozen=True, slots=True)
class OrphanCandidate:
    """
    A DER blob plus the account that requested it.

    `source` is the raw log line in batch mode, or the DER file path in
    single-file mode. It is only used for diagnostics.
    """

    source: str = field(repr=False)
    der: bytes = field(repr=False)
    registration_id: int


@dataclass(frozen=True, slots=True)
class ClassifiedOrphan:
    """
    What survives classification of a candidate's DER.

    `serial` is in canonical storage form (see domain.serials) and
    `not_before` is timezone-aware UTC.
    """

    der: bytes = field(repr=False)
    serial: str
    not_before: datetime
    orphan_type: OrphanType


@dataclass(frozen=True, slots=True)
class StoredOrphan:
    """A record returned by a storage lookup."""

    serial: str
    registration_id: int
    der: bytes = field(repr=False)
    issued: datetime | None = None


@dataclass(frozen=True, slots=True)
class ReconciliationOutcome:
    """
    Result of driving one input through the pipeline.

    matched=False          → not an orphan record at all
    matched, not stored    → recognized but not persisted this run
    stored                 → a new record was durably written
    """

    matched: bool
    stored: bool
    orphan_type: OrphanType = OrphanType.UNKNOWN

    @staticmethod
    def no_match() -> ReconciliationOutcome:
        return ReconciliationOutcome(matched=False, stored=False)

    @staticmethod
    def skipped(orphan_type: OrphanType = OrphanType.UNKNOWN) -> ReconciliationOutcome:
        return ReconciliationOutcome(matched=True, stored=False, orphan_type=orphan_type)

    @staticmethod
    def added(orphan_type: OrphanType) -> ReconciliationOutcome:
        return ReconciliationOutcome(matched=True, stored=True, orphan_type=orphan_type)


@dataclass(slots=True)
class OrphanTally:
    """
    Found/added counters keyed by OrphanType.

    Outcomes with an UNKNOWN type and unmatched outcomes are not counted.
    """

    found: Counter[OrphanType] = field(default_factory=Counter)
    added: Counter[OrphanType] = field(default_factory=Counter)

    def record(self, outcome: ReconciliationOutcome) -> bool:
        """Count one outcome. Returns False if the outcome was not countable."""
        if not outcome.matched or outcome.orphan_type is OrphanType.UNKNOWN:
            return False
        self.found[outcome.orphan_type] += 1
        if outcome.stored:
            self.added[outcome.orphan_type] += 1
        return True

    def merge(self, other: OrphanTally) -> OrphanTally:
        """Return a new tally holding the sum of both."""
        return OrphanTally(found=self.found + other.found, added=self.added + other.added)

    @property
    def certificates_found(self) -> int:
        return self.found[OrphanType.CERTIFICATE]

    @property
    def certificates_added(self) -> int:
        return self.added[OrphanType.CERTIFICATE]

    @property
    def precertificates_found(self) -> int:
        return self.found[OrphanType.PRECERTIFICATE]

    @property
    def precertificates_added(self) -> int:
        return self.added[OrphanType.PRECERTIFICATE]
