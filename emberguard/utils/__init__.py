"""EmberGuard utilities: structured logging and scan identifiers."""
