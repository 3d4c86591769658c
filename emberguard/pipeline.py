"""Security pipeline — the single entry point for message screening.

Provides:
  - ``SecurityPipeline``:  ``process_inbound()`` / ``process_outbound()``.
  - ``normalize_sender()``: canonical form of a sender identity.
  - ``is_valid_e164()``:    phone-number shape check.

Inbound checks run in a fixed order and stop at the first decision:

  GroupCheck → AllowListCheck → InjectionCheck → Allowed

so an unauthorized sender is dropped silently before any content analysis,
and nothing in a group conversation is ever analysed at all.

Every call gets a ULID ``scan_id`` bound into the log context and is timed
against the latency budget. Neither entry point raises.
"""

from __future__ import annotations

from typing import Optional

import re2  # google-re2 — NOT stdlib re

from emberguard.config import Config, PipelineConfig
from emberguard.constants import GROUP_CONTEXT_REASON
from emberguard.models.scan import ThreatLevel
from emberguard.models.verdict import (
    Allowed,
    Blocked,
    Ignored,
    InboundVerdict,
    OutboundVerdict,
    Redacted,
)
from emberguard.scanner.credentials import CredentialDetector
from emberguard.scanner.injection import InjectionDetector
from emberguard.utils.logger import (
    PerformanceLogger,
    clear_scan_id,
    configure_logging,
    get_logger,
    set_scan_id,
)
from emberguard.utils.ulid import generate_ulid

logger = get_logger(__name__)

_E164 = re2.compile(r"^\+[1-9][0-9]{0,14}$")

# Visual separators people type inside phone numbers.
_PHONE_SEPARATORS = {ord(ch): None for ch in " -.()\t"}


def is_valid_e164(number: str) -> bool:
    """True if ``number`` is ``+`` followed by 1–15 digits, the first non-zero."""
    return bool(number) and _E164.search(number) is not None


def normalize_sender(identity: str) -> str:
    """Canonical form of a sender identity, used for allow-list comparison.

    - Email-like ids (containing ``@``) are trimmed and lower-cased.
    - Ids that reduce to a valid E.164 number once spaces, dashes, dots and
      parentheses are removed take that form:
      ``"+1 (555) 123-4567"`` → ``"+15551234567"``.
    - Bare ASCII digit strings (national format) lose the same separators.
    - Anything else is only trimmed.
    """
    value = (identity or "").strip()
    if "@" in value:
        return value.lower()
    compact = value.translate(_PHONE_SEPARATORS)
    if is_valid_e164(compact):
        return compact
    if compact.isascii() and compact.isdigit():
        return compact
    return value


class SecurityPipeline:
    """Screens inbound messages and outbound model responses.

    Holds only immutable state; one instance may serve concurrent callers.

    Args:
        config:              Security policy.
        injection_detector:  Override the inbound detector (default built from
                             ``config.inbound_block_threshold``).
        credential_detector: Override the outbound detector.
    """

    def __init__(
        self,
        config: PipelineConfig,
        injection_detector: Optional[InjectionDetector] = None,
        credential_detector: Optional[CredentialDetector] = None,
    ) -> None:
        self.config = config
        self.injection_detector = injection_detector or InjectionDetector(
            threshold=config.inbound_block_threshold
        )
        self.credential_detector = credential_detector or CredentialDetector()
        # A non-empty allow-list restricts even if every entry is blank;
        # blank ids normalise to "" and are never admitted.
        self._restricted = bool(config.allowed_senders)
        self._allowed_senders = frozenset(
            normalize_sender(sender) for sender in config.allowed_senders
        ) - {""}

    @classmethod
    def from_config(cls, config: Config) -> "SecurityPipeline":
        """Startup path: apply ``config.logging``, then build from ``config.security``."""
        configure_logging(log_level=config.logging.level, json_output=config.logging.json)
        return cls(config.security)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def process_inbound(
        self,
        message: str,
        sender_id: str,
        is_group_context: bool,
    ) -> InboundVerdict:
        """Decide whether an inbound message may reach the model.

        Returns:
            ``Blocked`` for group conversations or detected injection,
            ``Ignored`` for senders outside the allow-list,
            ``Allowed(message)`` otherwise (text unchanged).
        """
        set_scan_id(generate_ulid())
        try:
            with PerformanceLogger("process_inbound", logger):
                return self._inbound(message, sender_id, is_group_context)
        finally:
            clear_scan_id()

    def _inbound(self, message: str, sender_id: str, is_group_context: bool) -> InboundVerdict:
        if is_group_context and self.config.block_group_contexts:
            logger.info("Inbound blocked", check="group_context")
            return Blocked(GROUP_CONTEXT_REASON)

        if not self._sender_allowed(sender_id):
            logger.info("Inbound ignored", check="allow_list")
            return Ignored()

        if self.config.injection_scanning_enabled:
            result = self.injection_detector.scan(message)
            level = result.threat_level
            if level > ThreatLevel.NONE and level >= self.config.inbound_block_threshold:
                logger.warning(
                    "Inbound blocked",
                    check="injection",
                    threat_level=level.label,
                    pattern_ids=result.pattern_ids,
                )
                return Blocked(f"prompt injection detected (threat level: {level.label})")
            if result.matches:
                logger.info(
                    "Injection findings below block threshold",
                    threat_level=level.label,
                    pattern_ids=result.pattern_ids,
                )

        return Allowed(message)

    def _sender_allowed(self, sender_id: str) -> bool:
        if not self._restricted:
            return True
        return normalize_sender(sender_id) in self._allowed_senders

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def process_outbound(self, response: str) -> OutboundVerdict:
        """Redact credentials from a model response before delivery.

        Returns:
            ``Allowed(response)`` when nothing was found (or scanning is off),
            ``Redacted(text)`` otherwise.
        """
        set_scan_id(generate_ulid())
        try:
            with PerformanceLogger("process_outbound", logger):
                if not self.config.credential_scanning_enabled:
                    return Allowed(response)
                result = self.credential_detector.scan_output(response)
                if not result.found:
                    return Allowed(response)
                return Redacted(result.redacted_text)
        finally:
            clear_scan_id()
