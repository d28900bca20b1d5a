"""
FanForge API package.

Endpoints are versioned by URL prefix:
    - v1/: current stable API (/api/v1)
        - submissions.py: submission review and IP registration endpoints
"""
