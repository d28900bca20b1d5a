"""
Core infrastructure for the FanForge review backend.

- auth: Bearer token verification (Auth0 or local JWT) and user resolution
- database: Motor MongoDB client with pooled connections and indexes
- exceptions: Review workflow error taxonomy mapped to HTTP statuses
- redis_client: Async Redis client used for short-lived caches
"""
