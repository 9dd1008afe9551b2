"""
Account helpers for the web app.

Design goals:
- Passwords are only ever stored as bcrypt hashes.
- Credential lookups go through a small store interface (Postgres or in-process).
- The session payload's `user` key is the only authorization signal.
"""
