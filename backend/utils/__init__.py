"""Shared helpers: config, db, auth, rate limiting, origin guard."""
