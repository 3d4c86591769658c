"""Pipeline verdicts returned to the message-orchestration caller.

Inbound:  Allowed | Blocked | Ignored
Outbound: Allowed | Redacted

``Blocked`` and ``Ignored`` are NEVER interchangeable:
  - Blocked  — the caller substitutes its own user-facing message.
  - Ignored  — silent drop; an unauthorized sender must not learn the system exists.

``Blocked.reason`` is machine-usable text, not user-facing copy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Allowed:
    """The text passed unchanged."""

    text: str


@dataclass(frozen=True)
class Blocked:
    """The inbound message must not reach the model."""

    reason: str


@dataclass(frozen=True)
class Ignored:
    """Silent drop — no response of any kind."""


@dataclass(frozen=True)
class Redacted:
    """The outbound response with every detected secret replaced."""

    text: str


InboundVerdict = Union[Allowed, Blocked, Ignored]
OutboundVerdict = Union[Allowed, Redacted]
