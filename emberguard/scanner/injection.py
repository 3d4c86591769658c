"""Inbound prompt-injection detector.

Provides:
  - ``InjectionDetector``: scores an inbound message against the injection
    registry and decides whether it should be blocked.

Scan passes, in order, over the ``normalize()``d message:
  1. Direct     — every rule against the normalized text.
  2. Encoded    — Base64-looking substrings are decoded, normalized and
                  re-scanned (one level only). Ids get the ``-B64`` suffix.
  3. Homoglyph  — the normalized text with look-alikes folded to ASCII.
                  Only adds rules not already found.

FAIL-CLOSED: if rule evaluation raises for any reason, the result is
CRITICAL with a single ``SCANNER_ERROR`` match, so the message is blocked.

IMPORT RULES:
  - ``import re2`` ONLY — ``import re`` is PROHIBITED in this file.
"""

from __future__ import annotations

import base64
import binascii
from typing import Optional, Sequence, Union

import re2  # google-re2 — NOT stdlib re

from emberguard.constants import (
    BASE64_MIN_CANDIDATE_LENGTH,
    ENCODED_VARIANT_SUFFIX,
    MAX_BASE64_CANDIDATES,
    MAX_DECODED_CHARS,
    SCANNER_ERROR_ID,
)
from emberguard.models.scan import PatternMatch, ScanResult, ThreatLevel
from emberguard.scanner.definitions import INJECTION_PATTERNS, PatternEntry
from emberguard.scanner.normalizer import fold_homoglyphs, normalize, replace_lone_surrogates
from emberguard.utils.logger import get_logger

logger = get_logger(__name__)

_BASE64_CANDIDATE = re2.compile(
    rf"[A-Za-z0-9+/]{{{BASE64_MIN_CANDIDATE_LENGTH},}}={{0,2}}"
)


def _decode_base64_candidate(candidate: str) -> Optional[str]:
    """Decode one candidate as Base64 → UTF-8 text, or None if it is not one.

    Missing padding is tolerated. Non-alphabet bytes, impossible lengths and
    invalid UTF-8 all yield None.
    """
    body = candidate.rstrip("=")
    if len(body) % 4 == 1:
        return None
    padded = body + "=" * (-len(body) % 4)
    try:
        raw = base64.b64decode(padded, validate=True)
        decoded = raw.decode("utf-8")
    except (binascii.Error, ValueError):
        return None
    return decoded[:MAX_DECODED_CHARS]


class InjectionDetector:
    """Detects prompt-injection attempts in inbound messages.

    Stateless after construction; a single instance may be shared freely.

    Args:
        patterns:  Compiled injection registry. Defaults to ``INJECTION_PATTERNS``.
        threshold: Minimum ThreatLevel at which ``should_block`` is set.
    """

    def __init__(
        self,
        patterns: Sequence[PatternEntry] = INJECTION_PATTERNS,
        threshold: ThreatLevel = ThreatLevel.HIGH,
    ) -> None:
        self.patterns = tuple(patterns)
        self.threshold = threshold

    def scan(self, message: Union[str, bytes]) -> ScanResult:
        """Score ``message``. NEVER raises.

        Returns:
            ScanResult with the maximum severity across every distinct rule
            that fired (direct, encoded, or homoglyph pass).
        """
        if not message:
            return ScanResult.clean()
        try:
            matches = self._collect(message)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Injection scan failed — failing closed",
                error_type=type(exc).__name__,
            )
            return ScanResult(
                threat_level=ThreatLevel.CRITICAL,
                matches=(PatternMatch(SCANNER_ERROR_ID, "Scanner error", ThreatLevel.CRITICAL),),
                should_block=True,
            )

        if not matches:
            return ScanResult.clean()

        level = max(m.severity for m in matches)
        result = ScanResult(
            threat_level=level,
            matches=tuple(matches),
            should_block=level > ThreatLevel.NONE and level >= self.threshold,
        )
        logger.info(
            "Injection patterns matched",
            pattern_ids=result.pattern_ids,
            threat_level=level.label,
            should_block=result.should_block,
        )
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _collect(self, message: Union[str, bytes]) -> list[PatternMatch]:
        text = replace_lone_surrogates(normalize(message))
        if not text:
            return []

        matches = self._match(text)
        seen = {m.pattern_id for m in matches}

        for match in self._match_encoded(text):
            if match.pattern_id not in seen:
                seen.add(match.pattern_id)
                matches.append(match)

        folded = fold_homoglyphs(text)
        if folded != text:
            for match in self._match(folded):
                if match.pattern_id not in seen:
                    seen.add(match.pattern_id)
                    matches.append(match)

        return matches

    def _match(self, text: str, suffix: str = "") -> list[PatternMatch]:
        return [
            PatternMatch(entry.pattern_id + suffix, entry.label, entry.severity)
            for entry in self.patterns
            if entry.pattern.search(text)
        ]

    def _match_encoded(self, text: str) -> list[PatternMatch]:
        matches: list[PatternMatch] = []
        for index, candidate in enumerate(_BASE64_CANDIDATE.finditer(text)):
            if index >= MAX_BASE64_CANDIDATES:
                break
            decoded = _decode_base64_candidate(candidate.group(0))
            if not decoded:
                continue
            decoded_text = replace_lone_surrogates(normalize(decoded))
            # Decoded content is matched directly; it is never decoded again.
            matches.extend(self._match(decoded_text, ENCODED_VARIANT_SUFFIX))
        return matches
