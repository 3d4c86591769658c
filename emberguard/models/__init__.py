"""EmberGuard models package.

Defines the shared data contracts used across the detectors and the pipeline:

  - scan.py    — ThreatLevel, PatternMatch, ScanResult, CredentialScanResult
  - verdict.py — Allowed, Blocked, Ignored, Redacted (pipeline verdicts)
"""
