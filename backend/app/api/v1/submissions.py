"""
FanForge Submission Review API Router

Endpoints:
    GET    /                             - Brand review queue or own submissions, status filter
    POST   /                             - Creator submits artwork to an active campaign
    GET    /{submission_id}              - Submission with campaign and creator
    PUT    /{submission_id}              - Creator edits a pending submission
    GET    /{submission_id}/history      - Audit trail (creator or reviewer)
    POST   /{submission_id}/approve      - Approve a pending submission
    POST   /{submission_id}/reject       - Reject a pending submission with feedback
    POST   /bulk-review                  - Approve or reject up to 50 submissions
    POST   /{submission_id}/withdraw     - Creator withdraws a pending/rejected submission
    DELETE /{submission_id}              - Creator deletes a pending/rejected submission
    GET    /{submission_id}/register-ip  - IP registration eligibility
    POST   /{submission_id}/register-ip  - Register an approved submission now
    GET    /{submission_id}/ip-status    - Registration status and explorer link

Approval responds as soon as the status write and its audit/notification
records are done; IP registration runs afterwards as a FastAPI background
task and its outcome is only visible through ip-status or the logs.

Workflow errors are raised as ``ReviewWorkflowError`` subclasses and rendered
by the application exception handler.
"""

import logging

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from app.config import Settings, get_settings
from app.core.auth import get_current_user
from app.core.database import get_db_client
from app.core.exceptions import ReviewWorkflowError, WorkflowValidationError
from app.models.audit import AuditLogEntry
from app.models.registration import RegistrationStatus
from app.models.submission import (
    ApproveRequest,
    BulkReviewRequest,
    BulkReviewResponse,
    CreateSubmissionRequest,
    RejectRequest,
    ReviewResponse,
    SubmissionListResponse,
    SubmissionStatus,
    SubmissionWithRelations,
    UpdateSubmissionRequest,
)
from app.services.audit_service import AuditService
from app.services.eligibility_service import EligibilityService
from app.services.ip_registration_service import IPRegistrationService
from app.services.permission_service import PermissionService
from app.services.review_service import ReviewService
from app.services.story_protocol_client import StoryProtocolClient
from app.services.submission_store import SubmissionStore
from app.utils.cache import RoleCache


logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# DEPENDENCIES
# =============================================================================


def get_submission_store() -> SubmissionStore:
    return SubmissionStore(get_db_client())


def get_eligibility_service(
    store: SubmissionStore = Depends(get_submission_store),
) -> EligibilityService:
    return EligibilityService(store)


def get_registration_service(
    store: SubmissionStore = Depends(get_submission_store),
    eligibility: EligibilityService = Depends(get_eligibility_service),
    settings: Settings = Depends(get_settings),
) -> IPRegistrationService:
    db_client = get_db_client()
    return IPRegistrationService(
        store=store,
        eligibility=eligibility,
        registry=StoryProtocolClient(settings),
        audit=AuditService(db_client),
        settings=settings,
    )


def get_permission_service(settings: Settings = Depends(get_settings)) -> PermissionService:
    return PermissionService(get_db_client(), RoleCache(ttl_seconds=settings.role_cache_ttl_seconds))


def get_review_service(
    store: SubmissionStore = Depends(get_submission_store),
    permissions: PermissionService = Depends(get_permission_service),
    registration: IPRegistrationService = Depends(get_registration_service),
    settings: Settings = Depends(get_settings),
) -> ReviewService:
    return ReviewService(
        store=store,
        audit=AuditService(get_db_client()),
        permissions=permissions,
        registration=registration,
        settings=settings,
    )


# =============================================================================
# READS
# =============================================================================


@router.get("/", response_model=SubmissionListResponse)
async def list_submissions(
    brand_id: str | None = Query(default=None, description="Review queue of this brand"),
    campaign_id: str | None = Query(default=None, description="Restrict to one campaign"),
    submission_status: SubmissionStatus | None = Query(
        default=None,
        alias="status",
        description="Filter by status (pending, approved, rejected, withdrawn)",
    ),
    mine: bool = Query(default=False, description="List the caller's own submissions"),
    skip: int = Query(default=0, ge=0, description="Number of submissions to skip"),
    limit: int = Query(default=20, ge=1, le=100, description="Maximum submissions to return"),
    current_user: dict[str, Any] = Depends(get_current_user),
    review_service: ReviewService = Depends(get_review_service),
) -> SubmissionListResponse:
    """
    List submissions, newest first.

    Errors:
        400: No brand_id/campaign_id without ``mine``, or an unknown status
        403: Caller cannot review the brand
        404: Campaign not found
    """
    return await review_service.list_submissions(
        current_user["_id"],
        brand_id=brand_id,
        campaign_id=campaign_id,
        status=submission_status,
        mine=mine,
        skip=skip,
        limit=limit,
    )


@router.get("/{submission_id}", response_model=SubmissionWithRelations)
async def get_submission(
    submission_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    review_service: ReviewService = Depends(get_review_service),
) -> SubmissionWithRelations:
    return await review_service.get_submission(submission_id, current_user["_id"])


@router.get("/{submission_id}/history", response_model=list[AuditLogEntry])
async def get_submission_history(
    submission_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    review_service: ReviewService = Depends(get_review_service),
) -> list[AuditLogEntry]:
    return await review_service.get_history(submission_id, current_user["_id"])


# =============================================================================
# REVIEW
# =============================================================================


@router.post("/{submission_id}/approve", response_model=ReviewResponse)
async def approve_submission(
    submission_id: str,
    body: ApproveRequest,
    background_tasks: BackgroundTasks,
    current_user: dict[str, Any] = Depends(get_current_user),
    review_service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    """
    Approve a pending submission.

    Errors:
        401: Not authenticated
        403: Caller cannot review this campaign's brand
        404: Submission or campaign not found
        400: Submission is not pending
    """
    submission = await review_service.approve(
        submission_id, current_user["_id"], body, background_tasks
    )
    return ReviewResponse(submission=submission)


@router.post("/{submission_id}/reject", response_model=ReviewResponse)
async def reject_submission(
    submission_id: str,
    body: RejectRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    review_service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    """
    Reject a pending submission. Feedback is required.

    Errors: as approve, plus 400 for missing or blank feedback.
    """
    submission = await review_service.reject(submission_id, current_user["_id"], body)
    return ReviewResponse(submission=submission)


@router.post("/bulk-review", response_model=BulkReviewResponse)
async def bulk_review_submissions(
    body: BulkReviewRequest,
    background_tasks: BackgroundTasks,
    current_user: dict[str, Any] = Depends(get_current_user),
    review_service: ReviewService = Depends(get_review_service),
) -> BulkReviewResponse:
    return await review_service.bulk_review(current_user["_id"], body, background_tasks)


# =============================================================================
# CREATOR OPERATIONS
# =============================================================================


@router.post("/", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_submission(
    body: CreateSubmissionRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    review_service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    """
    Submit artwork to a campaign. The submission starts pending and private.

    Errors:
        400: Campaign is not accepting submissions
        404: Campaign not found
    """
    submission = await review_service.create_submission(current_user["_id"], body)
    return ReviewResponse(submission=submission)


@router.put("/{submission_id}", response_model=ReviewResponse)
async def update_submission(
    submission_id: str,
    body: UpdateSubmissionRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    review_service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    """
    Edit a pending submission's content. Creator only.

    Errors:
        400: Submission is not pending, or the body has no fields
        403: Caller is not the creator
        404: Submission not found
    """
    submission = await review_service.update_content(submission_id, current_user["_id"], body)
    return ReviewResponse(submission=submission)


@router.post("/{submission_id}/withdraw", response_model=ReviewResponse)
async def withdraw_submission(
    submission_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    review_service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    submission = await review_service.withdraw(submission_id, current_user["_id"])
    return ReviewResponse(submission=submission)


@router.delete("/{submission_id}", status_code=status.HTTP_200_OK)
async def delete_submission(
    submission_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    review_service: ReviewService = Depends(get_review_service),
) -> dict[str, Any]:
    await review_service.delete(submission_id, current_user["_id"])
    return {"success": True, "message": "Submission deleted successfully"}


# =============================================================================
# IP REGISTRATION
# =============================================================================


@router.get("/{submission_id}/register-ip")
async def check_registration_eligibility(
    submission_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    eligibility_service: EligibilityService = Depends(get_eligibility_service),
) -> dict[str, Any]:
    result = await eligibility_service.check_eligibility(submission_id)
    return {"eligible": result.eligible, "reason": result.reason, "submission_id": submission_id}


@router.post("/{submission_id}/register-ip")
async def register_submission_ip(
    submission_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    review_service: ReviewService = Depends(get_review_service),
    eligibility_service: EligibilityService = Depends(get_eligibility_service),
    registration_service: IPRegistrationService = Depends(get_registration_service),
) -> dict[str, Any]:
    """
    Explicitly (re)try IP registration for an approved submission.

    Only the creator or a reviewer of the brand may trigger it.

    Errors:
        400: Not eligible (reason in ``error``)
        404: Submission not found
        500: Registry call failed (retry later)
    """
    await review_service.require_creator_or_reviewer(submission_id, current_user["_id"])

    eligibility = await eligibility_service.check_eligibility(submission_id)
    if not eligibility.eligible:
        raise WorkflowValidationError(
            eligibility.reason or "Submission not eligible for registration"
        )

    result = await registration_service.register_approved_submission(submission_id)
    if not result.success:
        raise ReviewWorkflowError(result.error or "Registration failed")

    return {
        "success": True,
        "message": "Submission registered as derivative IP asset",
        "ip_id": result.ip_id,
        "tx_hash": result.tx_hash,
        "submission_id": submission_id,
    }


@router.get("/{submission_id}/ip-status", response_model=RegistrationStatus)
async def get_ip_status(
    submission_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    registration_service: IPRegistrationService = Depends(get_registration_service),
) -> RegistrationStatus:
    return await registration_service.get_registration_status(submission_id)
