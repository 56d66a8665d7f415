"""
Metered reverse-proxy service.

Fetches third-party pages for a session-scoped user, rewrites HTML so it can be
embedded, swaps out frame-blocking headers and records per-session usage.
"""
