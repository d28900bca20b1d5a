"""
Utilities for the FanForge review backend.

logger:
    Structured logging (JSONFormatter, setup_logging, add_log_context).

cache:
    Redis-backed caching helpers and the reviewer RoleCache.
"""
