"""
Business logic for the FanForge review workflow.

- submission_store: MongoDB adapter with conditional status writes
- audit_service: Append-only audit entries and creator notifications
- permission_service: Reviewer authority over a brand
- eligibility_service: Whether a submission can be registered as IP
- story_protocol_client: Registration gateway client and payload builder
- ip_registration_service: Eligibility-gated derivative registration
- review_service: Approve/reject/withdraw/delete orchestration

Services receive their collaborators through their constructors; the API
layer wires them with FastAPI dependencies.
"""
