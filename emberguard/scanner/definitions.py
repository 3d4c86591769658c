"""Pattern registry for the inbound injection scanner and outbound credential scanner.

Rules are declared as data (``PatternSpec``) and compiled ONCE at module load
into immutable ``PatternEntry`` tuples by ``build_registry()``. Adding a rule
never touches the matching engines in ``injection.py`` / ``credentials.py``.

IMPORT RULES:
  - ``import re2`` ONLY — ``import re`` is PROHIBITED in this file and any
    emberguard/scanner/ file.
  - re2 matches in linear time, so no rule can backtrack catastrophically.
    re2 has no lookaround: exclusions are written as alternations instead.

Every injection rule requires a specific multi-token combination. A rule that
fires on a single common word ("ignore", "admin", "key") in ordinary use is a
bug — the benign corpus in tests/security/test_false_positives.py is the gate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

import re2  # google-re2 — NOT stdlib re

from emberguard.models.scan import ThreatLevel
from emberguard.utils.logger import get_logger

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Rule shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PatternSpec:
    """Declarative rule record — what a registry is authored in.

    Fields:
        pattern_id:   Stable namespaced id (``"PI-001"``, ``"CRED-005"``).
        expression:   re2 expression source.
        severity:     ThreatLevel assigned when the rule fires.
        label:        Human-readable category name. Never the matched text.
        ignore_case:  Compile case-insensitively (default). Provider key
                      formats with a fixed alphabet opt out.
        luhn:         Matches must pass the Luhn checksum to count.
        redact_group: Named group to redact instead of the whole match
                      (e.g. the value of a ``password=...`` assignment).
    """

    pattern_id: str
    expression: str
    severity: ThreatLevel
    label: str
    ignore_case: bool = True
    luhn: bool = False
    redact_group: Optional[str] = None


@dataclass(frozen=True)
class PatternEntry:
    """A single compiled rule. Immutable; safe to share across threads."""

    pattern_id: str
    pattern: Any  # re2._Regexp — compiled at registry build time
    severity: ThreatLevel
    label: str
    luhn: bool = False
    redact_group: Optional[int] = None  # group index; re2 Match.span() takes ints only


def build_registry(specs: Iterable[PatternSpec]) -> tuple[PatternEntry, ...]:
    """Compile ``specs`` into an immutable registry.

    A spec whose expression fails to compile, or whose ``redact_group`` is not a
    named group of its expression, is dropped and logged here, once.
    It is never evaluated afterwards (fail-open on compilation).

    Args:
        specs: Rule records, in evaluation order.

    Returns:
        Tuple of compiled entries, in the same order, minus failed specs.
    """
    entries: list[PatternEntry] = []
    for spec in specs:
        source = f"(?i){spec.expression}" if spec.ignore_case else spec.expression
        try:
            compiled = re2.compile(source)
        except re2.error as exc:
            logger.error(
                "Pattern failed to compile — excluded from registry",
                pattern_id=spec.pattern_id,
                error=str(exc),
            )
            continue
        group_index: Optional[int] = None
        if spec.redact_group is not None:
            group_index = compiled.groupindex.get(spec.redact_group)
            if group_index is None:
                logger.error(
                    "Pattern names an unknown redact group — excluded from registry",
                    pattern_id=spec.pattern_id,
                    redact_group=spec.redact_group,
                )
                continue
        entries.append(
            PatternEntry(
                pattern_id=spec.pattern_id,
                pattern=compiled,
                severity=spec.severity,
                label=spec.label,
                luhn=spec.luhn,
                redact_group=group_index,
            )
        )
    return tuple(entries)


# ===========================================================================
# INBOUND — PROMPT INJECTION RULES
# Matched against normalize()d text: whitespace is already collapsed.
# ===========================================================================

_OVERRIDE = "Instruction override"
_ROLE = "Role reassignment"
_PERSONA = "Jailbreak persona"
_ESCALATION = "Privilege escalation"
_DELIMITER = "Fake system delimiter"
_CONTROL_TOKEN = "Model control token"
_EXFILTRATION = "Prompt exfiltration"

INJECTION_PATTERN_SPECS: tuple[PatternSpec, ...] = (
    # ─── Instruction override ─────────────────────────────────────────────
    PatternSpec(
        "PI-001",
        r"\b(?:ignore|disregard|forget|override|bypass)\s+(?:all\s+|any\s+|every\s+)?(?:of\s+)?"
        r"(?:the\s+|your\s+|these\s+|those\s+)?(?:previous|prior|above|earlier|preceding|initial|system)\s+"
        r"(?:instructions?|directives?|rules|prompts?|commands?|guidelines)\b",
        ThreatLevel.HIGH,
        _OVERRIDE,
    ),
    PatternSpec(
        "PI-002",
        r"\b(?:ignore|disregard|forget)\s+(?:all\s+|any\s+)?(?:the\s+|your\s+)?(?:instructions?|directives?|rules|prompts?)\s+"
        r"(?:above|before\s+this|you\s+(?:were|have\s+been)\s+given|given\s+(?:to\s+you\s+)?(?:before|earlier|previously))\b",
        ThreatLevel.HIGH,
        _OVERRIDE,
    ),
    PatternSpec(
        "PI-003",
        r"\bforget\s+(?:everything|all)\s+(?:that\s+)?(?:you\s+(?:were|have\s+been)\s+told|"
        r"(?:about\s+)?your\s+(?:training|rules|programming|guidelines|instructions))\b",
        ThreatLevel.HIGH,
        _OVERRIDE,
    ),
    PatternSpec(
        "PI-004",
        r"\byour\s+new\s+(?:instructions|directives?)\s+(?:is|are)\b",
        ThreatLevel.HIGH,
        _OVERRIDE,
    ),
    PatternSpec(
        "PI-005",
        r"\bfrom\s+now\s+on,?\s+you\s+(?:will|must|shall|are\s+going\s+to)\s+"
        r"(?:respond|answer|act|behave|ignore|obey|pretend|only)\b",
        ThreatLevel.MEDIUM,
        _OVERRIDE,
    ),
    PatternSpec(
        "PI-006",
        r"\b(?:do\s+not|don'?t|stop)\s+(?:follow(?:ing)?|obey(?:ing)?)\s+"
        r"(?:your\s+(?:previous\s+|original\s+|system\s+)?(?:instructions|rules|guidelines|programming|system\s+prompt)|"
        r"the\s+(?:previous|original|system)\s+(?:instructions|rules|prompt))\b",
        ThreatLevel.HIGH,
        _OVERRIDE,
    ),
    PatternSpec(
        "PI-007",
        r"\b(?:override|bypass|disable|turn\s+off|ignore)\s+(?:all\s+(?:of\s+)?)?your\s+"
        r"(?:safety|content|ethical|moderation)\s+(?:filters?|guidelines|restrictions|protocols|rules|settings)\b",
        ThreatLevel.HIGH,
        _OVERRIDE,
    ),
    # ─── Identity / role reassignment ─────────────────────────────────────
    PatternSpec(
        "PI-010",
        r"\byou\s+are\s+now\s+(?:an?\s+|my\s+)?(?:(?:unrestricted|unfiltered|uncensored|jailbroken|evil|rogue|unaligned|amoral)\b|"
        r"(?:different|new)\s+(?:ai|assistant|model|chatbot|bot|persona)\b)",
        ThreatLevel.HIGH,
        _ROLE,
    ),
    PatternSpec(
        "PI-011",
        r"\b(?:act|behave|respond|pretend)\s+(?:as\s+if|as\s+though|like|that)?\s*you\s+(?:have|had|are\s+under|were\s+under)\s+no\s+"
        r"(?:restrictions|rules|limits|limitations|filters|guidelines|boundaries|constraints|ethics)\b",
        ThreatLevel.HIGH,
        _ROLE,
    ),
    PatternSpec(
        "PI-012",
        r"\byou\s+are\s+no\s+longer\s+(?:bound|restricted|limited|constrained|governed)\s+by\b",
        ThreatLevel.HIGH,
        _ROLE,
    ),
    PatternSpec(
        "PI-013",
        r"\byou\s+(?:don'?t|do\s+not)\s+(?:have|need)\s+to\s+(?:follow|obey|abide\s+by)\s+(?:any|your)\s+"
        r"(?:rules|guidelines|restrictions|policies|instructions)\b",
        ThreatLevel.HIGH,
        _ROLE,
    ),
    PatternSpec(
        "PI-014",
        r"\b(?:act|behave|respond|roleplay)\s+as\s+(?:an?\s+)?(?:unrestricted|unfiltered|uncensored|jailbroken|evil|unaligned)\s+"
        r"(?:ai|assistant|model|chatbot|bot|llm|version)\b",
        ThreatLevel.HIGH,
        _ROLE,
    ),
    # ─── Known jailbreak personas ─────────────────────────────────────────
    PatternSpec(
        "PI-020",
        r"\b(?:you\s+are\s+(?:now\s+)?DAN|DAN\s+(?:mode|prompt|jailbreak))\b",
        ThreatLevel.CRITICAL,
        _PERSONA,
    ),
    PatternSpec(
        "PI-021",
        r"\b(?:you\s+(?:can|will|are\s+going\s+to)|stands?\s+for|pretend\s+to)\s+do\s+anything\s+now\b",
        ThreatLevel.HIGH,
        _PERSONA,
    ),
    PatternSpec(
        "PI-022",
        r"\b(?:BetterDAN|AntiGPT|EvilBOT|BasedGPT|DeltaGPT|DevGPT|STAN\s+(?:mode|prompt)|DUDE\s+(?:mode|prompt)|"
        r"AIM\s+\(Always\s+Intelligent)\b",
        ThreatLevel.HIGH,
        _PERSONA,
    ),
    PatternSpec(
        "PI-023",
        r"\b(?:jailbreak|jailbroken)\s+(?:mode|prompt|activated|enabled)\b|\bJAILBREAK\s*:",
        ThreatLevel.HIGH,
        _PERSONA,
    ),
    # ─── Privilege escalation ─────────────────────────────────────────────
    PatternSpec(
        "PI-030",
        r"\byou\s+are\s+(?:now\s+)?(?:in|operating\s+in|running\s+in)\s+"
        r"(?:developer|dev|god|admin|administrator|root|sudo|debug|jailbreak|unrestricted|DAN)\s+mode\b",
        ThreatLevel.HIGH,
        _ESCALATION,
    ),
    PatternSpec(
        "PI-031",
        r"\b(?:enable|activate|enter|unlock|switch\s+to|turn\s+on)\s+"
        r"(?:your\s+(?:developer|dev|god|admin|administrator|root|sudo|debug)|jailbreak|unrestricted|unfiltered|DAN)\s+mode\b",
        ThreatLevel.HIGH,
        _ESCALATION,
    ),
    PatternSpec(
        "PI-032",
        r"\b(?:SYSTEM\s+OVERRIDE|ADMIN\s+OVERRIDE|SUDO\s+MODE|ROOT\s+ACCESS\s+GRANTED|OVERRIDE\s+CODE)\s*:",
        ThreatLevel.HIGH,
        _ESCALATION,
    ),
    PatternSpec(
        "PI-033",
        r"\bi\s+am\s+your\s+(?:developer|creator|administrator|admin|owner|programmer)\b.{0,40}?"
        r"\b(?:override|unlock|disable|ignore|grant|bypass)\b",
        ThreatLevel.HIGH,
        _ESCALATION,
    ),
    # ─── Fake system-message delimiters ───────────────────────────────────
    PatternSpec(
        "PI-040",
        r"\[\s*(?:SYSTEM|SYS|/?INST|SYSTEM\s+(?:MESSAGE|PROMPT|NOTE|UPDATE)|NEW\s+INSTRUCTIONS|ADMIN\s+OVERRIDE)\s*\]",
        ThreatLevel.HIGH,
        _DELIMITER,
    ),
    PatternSpec(
        "PI-041",
        r"<\|\s*(?:im_start|im_end|im_sep|system|user|assistant|endoftext|begin_of_text|end_of_text|"
        r"start_header_id|end_header_id|eot_id)\s*\|>",
        ThreatLevel.CRITICAL,
        _CONTROL_TOKEN,
    ),
    PatternSpec(
        "PI-042",
        r"<<\s*/?\s*SYS\s*>>",
        ThreatLevel.CRITICAL,
        _CONTROL_TOKEN,
    ),
    PatternSpec(
        "PI-043",
        r"<\s*/?\s*(?:system|system_prompt|sys|instructions?)\s*>",
        ThreatLevel.HIGH,
        _DELIMITER,
    ),
    PatternSpec(
        "PI-044",
        r"<!--\s*(?:system|instructions?|prompt|assistant|admin|ignore|override|new\s+instructions)\b",
        ThreatLevel.HIGH,
        _DELIMITER,
    ),
    PatternSpec(
        "PI-045",
        r"(?:^|\s)#{1,6}\s*(?:system\s+(?:prompt|message|instructions|override)|new\s+instructions|admin\s+instructions)\b",
        ThreatLevel.MEDIUM,
        _DELIMITER,
    ),
    PatternSpec(
        "PI-046",
        r"(?:^|\s)(?:system|assistant)\s*:\s*(?:you\s+(?:are|must|will)\s+now|ignore|new\s+instructions|override)\b",
        ThreatLevel.HIGH,
        _DELIMITER,
    ),
    # ─── Prompt exfiltration ──────────────────────────────────────────────
    PatternSpec(
        "PI-050",
        r"\b(?:show|tell|give|reveal|print|display|output|repeat|share|dump|leak|list|send|write\s+out)\s+(?:me\s+|us\s+)?"
        r"(?:your\s+(?:full\s+|entire\s+|complete\s+|original\s+|hidden\s+|initial\s+|raw\s+|exact\s+|secret\s+)?"
        r"(?:system\s+prompt|system\s+instructions|initial\s+instructions|hidden\s+instructions|"
        r"original\s+instructions|developer\s+instructions|pre-?prompt)"
        # "the" only with nouns that never name a user's own document.
        r"|the\s+(?:full\s+|entire\s+|complete\s+|raw\s+|exact\s+|secret\s+)?"
        r"(?:system\s+prompt|hidden\s+(?:system\s+)?(?:instructions|prompt)|pre-?prompt))\b",
        ThreatLevel.HIGH,
        _EXFILTRATION,
    ),
    PatternSpec(
        "PI-051",
        r"\bwhat\s+(?:is|are|was|were)\s+your\s+(?:system\s+prompt|system\s+instructions|initial\s+instructions|"
        r"hidden\s+instructions|original\s+instructions)\b",
        ThreatLevel.HIGH,
        _EXFILTRATION,
    ),
    PatternSpec(
        "PI-052",
        r"\b(?:repeat|print|output)\s+(?:everything|all\s+(?:of\s+)?the\s+text|the\s+(?:text|words|content))\s+"
        r"(?:above|before\s+this|preceding\s+this)\b",
        ThreatLevel.HIGH,
        _EXFILTRATION,
    ),
)


# ===========================================================================
# OUTBOUND — CREDENTIAL / PII RULES
# Matched against raw model output (no normalization).
# ===========================================================================

_PEM_KIND = r"(?:RSA |EC |DSA |OPENSSH |ENCRYPTED |PGP )?PRIVATE KEY(?: BLOCK)?"

CREDENTIAL_PATTERN_SPECS: tuple[PatternSpec, ...] = (
    # ─── Provider API keys ────────────────────────────────────────────────
    PatternSpec(
        "CRED-001",
        r"\bsk-ant-(?:api|admin|sid)[0-9]{2}-[A-Za-z0-9_\-]{20,}",
        ThreatLevel.CRITICAL,
        "Anthropic API Key",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-002",
        r"\bsk-(?:proj|svcacct|admin)-[A-Za-z0-9_\-]{20,}",
        ThreatLevel.CRITICAL,
        "OpenAI API Key",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-003",
        r"\bsk-[A-Za-z0-9]{20}T3BlbkFJ[A-Za-z0-9]{20}\b",
        ThreatLevel.CRITICAL,
        "OpenAI API Key",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-004",
        r"\bsk-[A-Za-z0-9]{48}\b",
        ThreatLevel.CRITICAL,
        "OpenAI API Key",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-005",
        r"\b(?:A3T[A-Z0-9]|AKIA|AGPA|AIDA|AROA|AIPA|ANPA|ANVA|ASIA)[A-Z0-9]{16}\b",
        ThreatLevel.CRITICAL,
        "AWS Access Key ID",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-006",
        r"aws.{0,20}secret.{0,20}[=:]\s*[\"']?(?P<secret>[A-Za-z0-9/+]{40})\b",
        ThreatLevel.CRITICAL,
        "AWS Secret Access Key",
        redact_group="secret",
    ),
    PatternSpec(
        "CRED-007",
        r"\bgh[pousr]_[A-Za-z0-9]{36,255}\b",
        ThreatLevel.CRITICAL,
        "GitHub Token",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-008",
        r"\bgithub_pat_[A-Za-z0-9]{22}_[A-Za-z0-9]{59}\b",
        ThreatLevel.CRITICAL,
        "GitHub Token",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-009",
        r"\bAIza[0-9A-Za-z_\-]{35}",
        ThreatLevel.CRITICAL,
        "Google API Key",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-010",
        r"\b(?:sk|rk)_(?:live|test)_[A-Za-z0-9]{24,}",
        ThreatLevel.CRITICAL,
        "Stripe API Key",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-011",
        r"\bxox[abposr]-[A-Za-z0-9\-]{10,}",
        ThreatLevel.CRITICAL,
        "Slack Token",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-012",
        r"https://hooks\.slack\.com/services/T[A-Z0-9]{8,}/B[A-Z0-9]{8,}/[A-Za-z0-9]{24}",
        ThreatLevel.CRITICAL,
        "Slack Webhook URL",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-013",
        r"\bhf_[A-Za-z0-9]{34,}\b",
        ThreatLevel.CRITICAL,
        "HuggingFace Token",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-014",
        r"\bSG\.[A-Za-z0-9_\-]{22}\.[A-Za-z0-9_\-]{43}\b",
        ThreatLevel.CRITICAL,
        "SendGrid API Key",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-015",
        r"\bnpm_[A-Za-z0-9]{36}\b",
        ThreatLevel.CRITICAL,
        "npm Token",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-016",
        r"\bpypi-[A-Za-z0-9_\-]{50,}",
        ThreatLevel.CRITICAL,
        "PyPI Token",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-017",
        r"\bSK[0-9a-fA-F]{32}\b",
        ThreatLevel.CRITICAL,
        "Twilio API Key",
        ignore_case=False,
    ),
    # ─── OAuth / bearer tokens ────────────────────────────────────────────
    PatternSpec(
        "CRED-020",
        r"\bBearer\s+(?P<secret>[A-Za-z0-9\-._~+/]{20,}=*)",
        ThreatLevel.CRITICAL,
        "Bearer Token",
        ignore_case=False,
        redact_group="secret",
    ),
    PatternSpec(
        "CRED-021",
        r"\bya29\.[0-9A-Za-z_\-]{20,}",
        ThreatLevel.CRITICAL,
        "Google OAuth Token",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-022",
        r"\beyJ[A-Za-z0-9_\-]{10,}\.eyJ[A-Za-z0-9_\-]{10,}\.[A-Za-z0-9_\-]{10,}",
        ThreatLevel.HIGH,
        "JSON Web Token",
        ignore_case=False,
    ),
    # ─── Keys ─────────────────────────────────────────────────────────────
    PatternSpec(
        "CRED-030",
        # Header through the matching footer; without a footer, through the base64 body lines.
        r"-----BEGIN " + _PEM_KIND + r"-----"
        r"(?:[\s\S]*?-----END " + _PEM_KIND + r"-----|(?:\s*[A-Za-z0-9+/=]{16,})*)",
        ThreatLevel.CRITICAL,
        "Private Key",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-031",
        r"\b(?:ssh-(?:rsa|dss|ed25519)|ecdsa-sha2-nistp(?:256|384|521)|sk-ssh-ed25519@openssh\.com)\s+AAAA[0-9A-Za-z+/]{40,}={0,3}",
        ThreatLevel.MEDIUM,
        "SSH Public Key",
        ignore_case=False,
    ),
    # ─── Credentials embedded in URLs / assignments ──────────────────────
    PatternSpec(
        "CRED-040",
        r"\b(?:postgres(?:ql)?|mysql|mariadb|mongodb(?:\+srv)?|rediss?|amqps?|mssql|sqlserver|oracle|cockroachdb)://"
        r"[^\s:/@]{1,128}:[^\s@/]{1,256}@[^\s/?#\"'<>]{1,255}",
        ThreatLevel.CRITICAL,
        "Database Connection String",
    ),
    PatternSpec(
        "CRED-041",
        r"\b[a-z][a-z0-9+.\-]{1,20}://[^\s:/@]{1,128}:(?P<secret>[^\s@/]{1,256})@",
        ThreatLevel.HIGH,
        "Password in URL",
        redact_group="secret",
    ),
    PatternSpec(
        "CRED-042",
        r"\b[A-Za-z0-9_]{0,40}?(?:api[_\-]?key|apikey|secret[_\-]?key|access[_\-]?key|client[_\-]?secret|access[_\-]?token|"
        r"auth[_\-]?token|secret|token|password|passwd|pwd)[\"']?\s*[:=]\s*[\"']?(?P<secret>[A-Za-z0-9_\-./+=!@#$%^&*]{8,})",
        ThreatLevel.HIGH,
        "Generic Secret Assignment",
        redact_group="secret",
    ),
    # ─── PII ──────────────────────────────────────────────────────────────
    PatternSpec(
        "CRED-050",
        # Area number 000 and 999 cannot match (re2 has no negative lookahead).
        r"\b(?:00[1-9]|0[1-9][0-9]|[1-8][0-9]{2}|9[0-8][0-9]|99[0-8])-[0-9]{2}-[0-9]{4}\b",
        ThreatLevel.HIGH,
        "US Social Security Number",
        ignore_case=False,
    ),
    PatternSpec(
        "CRED-051",
        r"\b[0-9](?:[ \-]?[0-9]){12,18}\b",
        ThreatLevel.HIGH,
        "Credit Card Number",
        ignore_case=False,
        luhn=True,
    ),
)


# ===========================================================================
# Compiled registries — COMPILED AT MODULE LOAD, never per call
# ===========================================================================

INJECTION_PATTERNS: tuple[PatternEntry, ...] = build_registry(INJECTION_PATTERN_SPECS)
CREDENTIAL_PATTERNS: tuple[PatternEntry, ...] = build_registry(CREDENTIAL_PATTERN_SPECS)
