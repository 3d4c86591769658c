"""EmberGuard scanner package.

Provides the two content detectors and the text canonicalization they share:
  - normalizer.py  — normalize(), fold_homoglyphs()
  - definitions.py — compiled RE2 rule registries
  - injection.py   — InjectionDetector (inbound)
  - credentials.py — CredentialDetector (outbound)
"""
