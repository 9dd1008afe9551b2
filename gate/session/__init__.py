"""Server-side sessions referenced by a signed, HttpOnly cookie."""
