"""Outbound credential / PII detector and redactor.

Provides:
  - ``luhn_valid()``:         Luhn (mod-10) checksum over a digit string.
  - ``CredentialDetector``:   finds secrets in model output and replaces each
                              one with ``[REDACTED]``.

Matching runs on the raw response (no normalization). Overlapping or
adjacent spans from different rules are merged before substitution, so one
secret always becomes exactly one token.

FAIL-CLOSED: if matching raises, the whole response is replaced by a single
``[REDACTED]`` token. Leaking a secret is worse than losing a reply.

IMPORT RULES:
  - ``import re2`` ONLY (via definitions) — ``import re`` is PROHIBITED here.
"""

from __future__ import annotations

from typing import Optional, Sequence

from emberguard.constants import CARD_MAX_DIGITS, CARD_MIN_DIGITS, REDACTION_TOKEN
from emberguard.models.scan import CredentialScanResult
from emberguard.scanner.definitions import CREDENTIAL_PATTERNS, PatternEntry
from emberguard.scanner.normalizer import replace_lone_surrogates
from emberguard.utils.logger import get_logger

logger = get_logger(__name__)


def luhn_valid(candidate: str) -> bool:
    """Return True if the digits in ``candidate`` pass the Luhn checksum.

    Separators (spaces, dashes) are ignored. Digit counts outside the card
    PAN range (13–19) are rejected outright.
    """
    digits = [int(ch) for ch in candidate if ch.isdigit() and ch.isascii()]
    if not CARD_MIN_DIGITS <= len(digits) <= CARD_MAX_DIGITS:
        return False
    total = 0
    for position, digit in enumerate(reversed(digits)):
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def _luhn_window(candidate: str) -> Optional[tuple[int, int]]:
    """Locate the card number inside a Luhn-rule match.

    The card pattern is greedy, so a trailing expiry or reference group
    ("4111 1111 1111 1111 05") lands in the same match. Digit groups are the
    runs between separators; the longest run of whole groups holding 13–19
    digits that passes the checksum wins, earliest first on a tie.

    Returns:
        ``(start, end)`` offsets within ``candidate``, or None.
    """
    groups: list[tuple[int, int]] = []
    run_start = -1
    for index, ch in enumerate(candidate):
        if ch.isdigit() and ch.isascii():
            if run_start < 0:
                run_start = index
        elif run_start >= 0:
            groups.append((run_start, index))
            run_start = -1
    if run_start >= 0:
        groups.append((run_start, len(candidate)))

    best: Optional[tuple[int, int]] = None
    best_digits = 0
    for first in range(len(groups)):
        digits = 0
        for last in range(first, len(groups)):
            digits += groups[last][1] - groups[last][0]
            if digits > CARD_MAX_DIGITS:
                break
            if digits < CARD_MIN_DIGITS or digits <= best_digits:
                continue
            start, end = groups[first][0], groups[last][1]
            if luhn_valid(candidate[start:end]):
                best, best_digits = (start, end), digits
    return best


def _merge_spans(spans: list[tuple[int, int]]) -> list[tuple[int, int]]:
    """Merge overlapping or touching ``[start, end)`` spans. Input order is irrelevant."""
    merged: list[tuple[int, int]] = []
    for start, end in sorted(spans):
        if merged and start <= merged[-1][1]:
            prev_start, prev_end = merged[-1]
            merged[-1] = (prev_start, max(prev_end, end))
        else:
            merged.append((start, end))
    return merged


class CredentialDetector:
    """Finds and redacts credentials and PII in outbound model responses.

    Args:
        patterns: Compiled credential registry. Defaults to ``CREDENTIAL_PATTERNS``.
    """

    def __init__(self, patterns: Sequence[PatternEntry] = CREDENTIAL_PATTERNS) -> None:
        self.patterns = tuple(patterns)

    def scan_output(self, response: str) -> CredentialScanResult:
        """Redact every credential found in ``response``. NEVER raises.

        Returns:
            CredentialScanResult. ``found`` is False only when no rule matched,
            in which case ``redacted_text`` is ``response`` unchanged.
        """
        if not response:
            return CredentialScanResult(found=False, redacted_text=response or "")
        try:
            spans, labels = self._find(response)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Credential scan failed — redacting entire response",
                error_type=type(exc).__name__,
            )
            return CredentialScanResult(
                found=True,
                redacted_text=REDACTION_TOKEN,
                match_count=1,
                distinct_labels=(),
            )

        if not spans:
            return CredentialScanResult(found=False, redacted_text=response)

        merged = _merge_spans(spans)
        redacted = response
        # Right to left, so earlier offsets stay valid.
        for start, end in reversed(merged):
            redacted = redacted[:start] + REDACTION_TOKEN + redacted[end:]

        distinct = tuple(sorted(labels))
        logger.info(
            "Credentials redacted from response",
            match_count=len(merged),
            labels=list(distinct),
        )
        return CredentialScanResult(
            found=True,
            redacted_text=redacted,
            match_count=len(merged),
            distinct_labels=distinct,
        )

    def _find(self, response: str) -> tuple[list[tuple[int, int]], set[str]]:
        text = replace_lone_surrogates(response)
        spans: list[tuple[int, int]] = []
        labels: set[str] = set()
        for entry in self.patterns:
            for match in entry.pattern.finditer(text):
                if entry.luhn:
                    window = _luhn_window(match.group(0))
                    if window is None:
                        continue
                    start, end = match.start() + window[0], match.start() + window[1]
                elif entry.redact_group is not None:
                    start, end = match.span(entry.redact_group)
                else:
                    start, end = match.span()
                if start < 0 or end <= start:
                    continue
                spans.append((start, end))
                labels.add(entry.label)
        return spans, labels
