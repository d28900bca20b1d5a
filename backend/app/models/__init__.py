"""
Models package for the FanForge review backend.

Pydantic models for the MongoDB documents the review workflow reads and
writes, plus the request/response bodies of the review API. Documents use
string ids aliased from ``_id``.

Example Usage:
    ```python
    from app.models import Submission, SubmissionStatus, ApproveRequest

    submission = Submission.model_validate(document)
    if submission.status == SubmissionStatus.PENDING.value:
        ...
    ```
"""

from app.models.asset import IP_ID_PATTERN, Asset, AssetCategory
from app.models.audit import AuditAction, AuditLogEntry, Notification, NotificationType
from app.models.campaign import Brand, Campaign, CampaignStatus
from app.models.registration import (
    Contributor,
    DerivativeRegistrationRequest,
    EligibilityResult,
    NftAttribute,
    RegistrationReceipt,
    RegistrationResult,
    RegistrationStatus,
)
from app.models.submission import (
    OWNER_MUTABLE_STATUSES,
    ApproveRequest,
    BulkReviewItemResult,
    BulkReviewRequest,
    BulkReviewResponse,
    CampaignSummary,
    CreateSubmissionRequest,
    CreatorSummary,
    RejectRequest,
    ReviewResponse,
    Submission,
    SubmissionListResponse,
    SubmissionStatus,
    SubmissionWithRelations,
    UpdateSubmissionRequest,
)
from app.models.user import REVIEWER_ROLES, RoleGrant, User, UserRole


__all__ = [
    "IP_ID_PATTERN",
    "OWNER_MUTABLE_STATUSES",
    "REVIEWER_ROLES",
    "ApproveRequest",
    "Asset",
    "AssetCategory",
    "AuditAction",
    "AuditLogEntry",
    "Brand",
    "BulkReviewItemResult",
    "BulkReviewRequest",
    "BulkReviewResponse",
    "Campaign",
    "CampaignStatus",
    "CampaignSummary",
    "CreateSubmissionRequest",
    "Contributor",
    "CreatorSummary",
    "DerivativeRegistrationRequest",
    "EligibilityResult",
    "NftAttribute",
    "Notification",
    "NotificationType",
    "RegistrationReceipt",
    "RegistrationResult",
    "RegistrationStatus",
    "RejectRequest",
    "ReviewResponse",
    "RoleGrant",
    "Submission",
    "SubmissionListResponse",
    "SubmissionStatus",
    "SubmissionWithRelations",
    "UpdateSubmissionRequest",
    "User",
    "UserRole",
]
