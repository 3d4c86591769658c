"""EmberGuard — inbound prompt-injection screening and outbound credential redaction.

Typical use::

    from emberguard import PipelineConfig, SecurityPipeline

    pipeline = SecurityPipeline(PipelineConfig(allowed_senders={"+15551234567"}))
    verdict = pipeline.process_inbound(text, sender_id, is_group_context=False)

At startup, from a YAML file::

    pipeline = SecurityPipeline.from_config(load_config())
"""

from emberguard.config import Config, PipelineConfig, load_config
from emberguard.models.scan import CredentialScanResult, PatternMatch, ScanResult, ThreatLevel
from emberguard.models.verdict import (
    Allowed,
    Blocked,
    Ignored,
    InboundVerdict,
    OutboundVerdict,
    Redacted,
)
from emberguard.pipeline import SecurityPipeline, is_valid_e164, normalize_sender
from emberguard.scanner.credentials import CredentialDetector
from emberguard.scanner.injection import InjectionDetector

__version__ = "0.1.0"

__all__ = [
    "Allowed",
    "Blocked",
    "Config",
    "CredentialDetector",
    "CredentialScanResult",
    "Ignored",
    "InboundVerdict",
    "InjectionDetector",
    "OutboundVerdict",
    "PatternMatch",
    "PipelineConfig",
    "Redacted",
    "ScanResult",
    "SecurityPipeline",
    "ThreatLevel",
    "is_valid_e164",
    "load_config",
    "normalize_sender",
]
