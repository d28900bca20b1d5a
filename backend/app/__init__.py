"""
FanForge Review Backend Application Package

FastAPI service implementing the FanForge submission review workflow:

- Reviewer approval and rejection of fan submissions with audit trail
  and creator notifications
- Creator withdrawal and deletion of unreviewed or rejected work
- Registration of approved submissions on Story Protocol as derivative IP

Package Structure:
- api/: REST endpoints organized by version (v1)
- core/: Infrastructure (database, redis, auth, error taxonomy)
- models/: Pydantic models for documents and request bodies
- services/: Review workflow and registration logic
- utils/: Logging and caching helpers
"""

__version__ = "1.0.0"
__app_name__ = "FanForge-Review"
