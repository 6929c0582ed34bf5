"""
Log line scanner — pull orphan candidates out of CA log text.

Pure text filter: no I/O, never raises, never looks at certificate
content. Every line lands in exactly one of three states:

  NO_MATCH   → not an orphaning message (or no DER marker); ignore silently
  MALFORMED  → an orphaning message whose DER or regID cannot be extracted
  CANDIDATE  → DER bytes and registration id ready for classification

The orphaning label only decides whether a line is looked at. The actual
certificate/precertificate decision is made later from the DER.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, unique

from orphan_finder.domain.models import OrphanCandidate, OrphanType

_LABELS = tuple(f"orphaning {kind}" for kind in (OrphanType.CERTIFICATE, OrphanType.PRECERTIFICATE))
_DER_MARKER = "cert="
_DER_PATTERN = re.compile(r"cert=\[([0-9a-f]+)\]")
_REG_ID_PATTERN = re.compile(r"regID=\[([0-9]+)\]")
_MAX_REG_ID = 2**63 - 1
_MAX_REG_ID_DIGITS = len(str(_MAX_REG_ID))


@unique
class ScanStatus(Enum):
    NO_MATCH = "no_match"
    MALFORMED = "malformed"
    CANDIDATE = "candidate"


@dataclass(frozen=True, slots=True)
class LineScan:
    """Outcome of scanning one line. `candidate` is set only for CANDIDATE."""

    status: ScanStatus
    line: str = field(repr=False)
    candidate: OrphanCandidate | None = None
    reason: str | None = None

    @property
    def matched(self) -> bool:
        return self.status is not ScanStatus.NO_MATCH


def _malformed(line: str, reason: str) -> LineScan:
    return LineScan(status=ScanStatus.MALFORMED, line=line, reason=reason)


def is_orphan_line(line: str) -> bool:
    """True if the line carries an orphaning label and a DER marker."""
    return any(label in line for label in _LABELS) and _DER_MARKER in line


def scan_line(line: str) -> LineScan:
    """Classify one log line as no-match, malformed, or a candidate."""
    if not is_orphan_line(line):
        return LineScan(status=ScanStatus.NO_MATCH, line=line)

    der_match = _DER_PATTERN.search(line)
    if der_match is None:
        return _malformed(line, "Didn't match regex for cert")
    try:
        der = bytes.fromhex(der_match.group(1))
    except ValueError as e:
        return _malformed(line, f"Couldn't decode hex: {e}")

    reg_match = _REG_ID_PATTERN.search(line)
    if reg_match is None:
        return _malformed(line, "regID variable is empty")
    digits = reg_match.group(1).lstrip("0") or "0"
    if len(digits) > _MAX_REG_ID_DIGITS or int(digits) > _MAX_REG_ID:
        return _malformed(line, f"Couldn't parse regID: {digits[:32]} is out of range")
    registration_id = int(digits)

    return LineScan(
        status=ScanStatus.CANDIDATE,
        line=line,
        candidate=OrphanCandidate(source=line, der=der, registration_id=registration_id),
    )
