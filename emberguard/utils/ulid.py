"""ULID generation utility for EmberGuard.

Provides a single `generate_ulid()` function that returns a 26-character ULID
used as the per-call ``scan_id`` correlating the structured log lines of one
``process_inbound`` / ``process_outbound`` call.

Uses the `python-ulid` library — do NOT hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Returns:
        str: Crockford Base32 ULID, exactly 26 chars.
    """
    return str(ULID())
