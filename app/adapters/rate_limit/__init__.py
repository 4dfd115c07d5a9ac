"""Rate limiting adapters.

The login endpoint starts with an in-memory limiter; the abstract base keeps
the door open for a shared store without touching the API layer.
"""
