"""Shared constants for EmberGuard.

All size limits and numeric caps used across modules are defined here.
No magic numbers in other modules — import from here.
"""

# ─── Inbound encoded-payload limits ──────────────────────────────────────────

# Minimum run length (chars) for a substring to be treated as a Base64 candidate.
BASE64_MIN_CANDIDATE_LENGTH: int = 20

# Maximum number of Base64 candidates decoded and re-scanned per message.
# Candidates beyond this count are ignored — bounds cost to N × patterns.
MAX_BASE64_CANDIDATES: int = 50

# Decoded payloads are truncated to this many characters before matching.
MAX_DECODED_CHARS: int = 4_096

# Suffix appended to a pattern id when the match was found only in decoded content.
ENCODED_VARIANT_SUFFIX: str = "-B64"

# ─── Outbound redaction ──────────────────────────────────────────────────────

# Literal token that replaces every redacted span.
REDACTION_TOKEN: str = "[REDACTED]"

# Credit-card digit count bounds (ISO/IEC 7812 PAN lengths).
CARD_MIN_DIGITS: int = 13
CARD_MAX_DIGITS: int = 19

# ─── Latency ─────────────────────────────────────────────────────────────────

# Per-call latency budget (ms). Calls over budget are logged at WARNING.
SCAN_LATENCY_BUDGET_MS: float = 10.0

# ─── Pipeline reasons ────────────────────────────────────────────────────────

GROUP_CONTEXT_REASON: str = "group context not supported"

# Pattern id reported when rule evaluation itself fails (fail-closed).
SCANNER_ERROR_ID: str = "SCANNER_ERROR"
