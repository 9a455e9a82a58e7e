"""
coachsync

Synchronization and caching core for OAuth2-protected fitness APIs.
"""

__version__ = "0.1.0"
