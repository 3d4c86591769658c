"""Scan result contracts shared by both detectors.

  - ThreatLevel          — ordered severity scale (NONE < LOW < MEDIUM < HIGH < CRITICAL)
  - PatternMatch         — metadata about one rule that fired
  - ScanResult           — inbound (injection) scan outcome
  - CredentialScanResult — outbound (credential/PII) scan outcome

SECURITY INVARIANT: none of these types ever stores a matched substring.
Only *what kind* of thing matched (pattern id, label, severity) is recorded.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ThreatLevel(IntEnum):
    """Totally-ordered severity scale. Comparisons drive every blocking decision."""

    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, name: str) -> "ThreatLevel":
        """Resolve a case-insensitive level name (``"high"`` → ``HIGH``).

        Raises:
            ValueError: If ``name`` is not a level name.
        """
        try:
            return cls[str(name).strip().upper()]
        except KeyError:
            valid = ", ".join(level.label for level in cls)
            raise ValueError(f"Unknown threat level {name!r}. Valid levels: {valid}") from None


@dataclass(frozen=True)
class PatternMatch:
    """A rule that fired. Never carries the matched text."""

    pattern_id: str
    label: str
    severity: ThreatLevel


@dataclass(frozen=True)
class ScanResult:
    """Outcome of an inbound injection scan.

    Fields:
        threat_level: Maximum severity across ``matches`` (NONE if empty).
        matches:      Every distinct rule that fired, in discovery order.
        should_block: ``threat_level >= threshold`` for the detector's threshold.
    """

    threat_level: ThreatLevel = ThreatLevel.NONE
    matches: tuple[PatternMatch, ...] = ()
    should_block: bool = False

    @classmethod
    def clean(cls) -> "ScanResult":
        return cls()

    @property
    def pattern_ids(self) -> list[str]:
        return [m.pattern_id for m in self.matches]


@dataclass(frozen=True)
class CredentialScanResult:
    """Outcome of an outbound credential scan.

    ``redacted_text`` is the only text field; the unredacted input and the
    matched substrings are never retained.
    """

    found: bool
    redacted_text: str
    match_count: int = 0
    distinct_labels: tuple[str, ...] = ()
