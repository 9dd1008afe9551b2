"""gate: email/password accounts with a session-gated secrets page."""
