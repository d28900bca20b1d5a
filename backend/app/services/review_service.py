"""
Review Orchestrator

Drives the submission lifecycle:

    (new) -> pending          create_submission(), active campaign only
    pending -> approved       approve(), reviewer authority required
    pending -> rejected       reject(), reviewer authority and feedback required
    pending | rejected -> withdrawn   withdraw(), owning creator only

While pending the creator may also edit content (update_content), through the
same conditional write filtered on status and owner.

Each transition is one conditional write (see SubmissionStore), followed by
an audit entry and a creator notification. The status document is the source
of truth: once the write commits, a failing audit or notification insert is
logged and the transition still succeeds.

Approval hands the submission to the IP Registration Connector after the
response is produced. That background step never raises into the request and
is never retried automatically; a failed registration is retried by calling
the register endpoint explicitly.
"""

import asyncio
import logging

from datetime import UTC, datetime
from typing import Any

from bson import ObjectId
from fastapi import BackgroundTasks

from app.config import Settings
from app.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ReviewTimeoutError,
    ReviewWorkflowError,
    WorkflowValidationError,
)
from app.models.audit import AuditAction, AuditLogEntry, NotificationType
from app.models.campaign import CampaignStatus
from app.models.registration import RegistrationResult
from app.models.submission import (
    OWNER_MUTABLE_STATUSES,
    ApproveRequest,
    BulkReviewItemResult,
    BulkReviewRequest,
    BulkReviewResponse,
    CreateSubmissionRequest,
    RejectRequest,
    Submission,
    SubmissionListResponse,
    SubmissionStatus,
    SubmissionWithRelations,
    UpdateSubmissionRequest,
)
from app.services.audit_service import AuditService
from app.services.ip_registration_service import IPRegistrationService
from app.services.permission_service import PermissionService
from app.services.submission_store import SubmissionStore
from app.utils.logger import add_log_context


logger = logging.getLogger(__name__)


class ReviewService:
    """
    Create, edit, list, review, withdraw and delete submissions.

    Attributes:
        store: Submission data access with conditional writes
        audit: Audit/notification recorder
        permissions: Reviewer authority checks
        registration: IP Registration Connector used after approval
        settings: Write timeout and bulk limits

    Example:
        ```python
        submission = await review_service.approve(
            "sub_01", reviewer_id, ApproveRequest(feedback="Great work", rating=5),
            background_tasks,
        )
        ```
    """

    def __init__(
        self,
        store: SubmissionStore,
        audit: AuditService,
        permissions: PermissionService,
        registration: IPRegistrationService,
        settings: Settings,
    ) -> None:
        self.store = store
        self.audit = audit
        self.permissions = permissions
        self.registration = registration
        self.settings = settings
        self._detached_registrations: set[asyncio.Task] = set()

    # =========================================================================
    # Reviewer transitions
    # =========================================================================

    async def approve(
        self,
        submission_id: str,
        reviewer_id: str,
        request: ApproveRequest,
        background_tasks: BackgroundTasks | None = None,
    ) -> SubmissionWithRelations:
        """
        Approve a pending submission and schedule its IP registration.

        Raises:
            NotFoundError: Submission or its campaign is missing.
            InvalidStateError: Submission is not pending, including losing a race.
            ForbiddenError: Reviewer has no authority over the campaign's brand.
            ReviewTimeoutError: The status write exceeded its time bound.
        """
        submission = await self._load_for_review(submission_id, reviewer_id)

        updated = await self._transition(
            submission_id,
            {
                "status": SubmissionStatus.APPROVED.value,
                "reviewed_by": reviewer_id,
                "reviewed_at": datetime.now(UTC),
                "feedback": request.feedback,
                "rating": request.rating,
                "is_public": True,
            },
        )
        logger.info("Submission %s approved by %s", submission_id, reviewer_id)

        await self._record_review(
            updated,
            reviewer_id,
            AuditAction.SUBMISSION_APPROVED,
            notification_type=NotificationType.SUBMISSION_APPROVED,
            title="Submission Approved!",
            message=(
                f'Your submission "{submission.title}" has been approved and is now '
                "featured in the community showcase!"
            ),
            data={"submission_id": submission_id, "campaign_id": submission.campaign_id},
        )

        self._schedule_registration(submission_id, reviewer_id, background_tasks)
        return updated

    async def reject(
        self,
        submission_id: str,
        reviewer_id: str,
        request: RejectRequest,
    ) -> SubmissionWithRelations:
        """
        Reject a pending submission with feedback for the creator.

        Raises:
            NotFoundError, InvalidStateError, ForbiddenError: As for approve().
            WorkflowValidationError: Feedback is missing or blank.
        """
        submission = await self._load_for_review(submission_id, reviewer_id)

        feedback = (request.feedback or "").strip()
        if not feedback:
            raise WorkflowValidationError("Feedback is required when rejecting a submission")

        updated = await self._transition(
            submission_id,
            {
                "status": SubmissionStatus.REJECTED.value,
                "reviewed_by": reviewer_id,
                "reviewed_at": datetime.now(UTC),
                "feedback": feedback,
                "rating": request.rating,
                "is_public": False,
            },
        )
        logger.info("Submission %s rejected by %s", submission_id, reviewer_id)

        await self._record_review(
            updated,
            reviewer_id,
            AuditAction.SUBMISSION_REJECTED,
            notification_type=NotificationType.SUBMISSION_REJECTED,
            title="Submission Needs Changes",
            message=(
                f'Your submission "{submission.title}" needs some changes. '
                "Please review the feedback and resubmit."
            ),
            data={
                "submission_id": submission_id,
                "campaign_id": submission.campaign_id,
                "feedback": feedback,
            },
        )
        return updated

    async def bulk_review(
        self,
        reviewer_id: str,
        request: BulkReviewRequest,
        background_tasks: BackgroundTasks | None = None,
    ) -> BulkReviewResponse:
        """
        Apply one decision to many submissions.

        Each id goes through the single-item path with its own checks, so one
        failure (not pending, no authority, lost race) never affects the rest.

        Raises:
            WorkflowValidationError: Too many ids, or a reject without feedback.
        """
        if len(request.submission_ids) > self.settings.bulk_review_max_items:
            raise WorkflowValidationError(
                f"At most {self.settings.bulk_review_max_items} submissions per bulk review"
            )
        if request.action == "reject" and not (request.feedback or "").strip():
            raise WorkflowValidationError("Feedback is required when rejecting submissions")

        results: list[BulkReviewItemResult] = []
        for submission_id in request.submission_ids:
            try:
                if request.action == "approve":
                    updated = await self.approve(
                        submission_id,
                        reviewer_id,
                        ApproveRequest(feedback=request.feedback, rating=request.rating),
                        background_tasks,
                    )
                else:
                    updated = await self.reject(
                        submission_id,
                        reviewer_id,
                        RejectRequest(feedback=request.feedback, rating=request.rating),
                    )
                results.append(
                    BulkReviewItemResult(
                        submission_id=submission_id, success=True, status=updated.status
                    )
                )
            except ReviewWorkflowError as e:
                results.append(
                    BulkReviewItemResult(submission_id=submission_id, success=False, error=e.message)
                )

        processed = sum(1 for r in results if r.success)
        logger.info(
            "Bulk %s by %s: %d processed, %d failed",
            request.action,
            reviewer_id,
            processed,
            len(results) - processed,
        )
        return BulkReviewResponse(
            processed=processed, failed=len(results) - processed, results=results
        )

    # =========================================================================
    # Creator operations
    # =========================================================================

    async def create_submission(
        self, creator_id: str, request: CreateSubmissionRequest
    ) -> SubmissionWithRelations:
        """
        Submit artwork to an active campaign. New submissions start pending
        and private.

        Raises:
            NotFoundError: Campaign missing.
            InvalidStateError: Campaign is not active.
        """
        campaign = await self.store.get_campaign(request.campaign_id)
        if campaign is None:
            raise NotFoundError("Campaign not found")
        if campaign.status != CampaignStatus.ACTIVE.value:
            raise InvalidStateError("Campaign is not accepting submissions")

        created = await self.store.insert(
            Submission(
                _id=str(ObjectId()),
                **request.model_dump(),
                creator_id=creator_id,
                status=SubmissionStatus.PENDING,
                is_public=False,
            )
        )
        logger.info(
            "Submission %s created by %s in campaign %s",
            created.id,
            creator_id,
            request.campaign_id,
        )

        await self._safe_audit(
            user_id=creator_id,
            action=AuditAction.SUBMISSION_CREATED,
            entity_id=created.id or "",
            new_values={"status": created.status, "title": created.title},
            metadata={"campaign_id": request.campaign_id},
        )
        return created

    async def update_content(
        self, submission_id: str, owner_id: str, request: UpdateSubmissionRequest
    ) -> SubmissionWithRelations:
        """
        Edit the content of a creator's own submission while it is pending.

        Raises:
            NotFoundError, ForbiddenError
            InvalidStateError: Submission is not pending, or stopped being
                pending before the write.
            WorkflowValidationError: Nothing to update.
        """
        changes = request.changes()
        if not changes:
            raise WorkflowValidationError("No fields to update")

        document = await self._load_owned(submission_id, owner_id)
        if document.get("status") != SubmissionStatus.PENDING.value:
            raise InvalidStateError("Cannot update submission that is not pending")

        updated = await self.store.transition_status(
            submission_id, SubmissionStatus.PENDING.value, changes, owner_id=owner_id
        )
        if updated is None:
            raise InvalidStateError("Submission status changed, please refresh")

        await self._safe_audit(
            user_id=owner_id,
            action=AuditAction.SUBMISSION_UPDATED,
            entity_id=submission_id,
            old_values={field: document.get(field) for field in changes},
            new_values=changes,
        )
        return updated

    async def withdraw(self, submission_id: str, owner_id: str) -> SubmissionWithRelations:
        """
        Withdraw a pending or rejected submission. Withdrawn is final.

        Raises:
            NotFoundError, ForbiddenError, InvalidStateError
        """
        document = await self._load_owned(submission_id, owner_id)
        status = document.get("status")
        if status not in OWNER_MUTABLE_STATUSES:
            raise InvalidStateError(f"Cannot withdraw a submission that is {status}")

        updated = await self.store.transition_status(
            submission_id,
            OWNER_MUTABLE_STATUSES,
            {"status": SubmissionStatus.WITHDRAWN.value, "is_public": False},
            owner_id=owner_id,
        )
        if updated is None:
            raise InvalidStateError("Submission status changed, please refresh")

        await self._safe_audit(
            user_id=owner_id,
            action=AuditAction.SUBMISSION_WITHDRAWN,
            entity_id=submission_id,
            old_values={"status": status},
            new_values={"status": SubmissionStatus.WITHDRAWN.value},
        )
        return updated

    async def delete(self, submission_id: str, owner_id: str) -> None:
        """
        Delete a creator's own submission while pending or rejected.

        Raises:
            NotFoundError, ForbiddenError, InvalidStateError
        """
        document = await self._load_owned(submission_id, owner_id)
        status = document.get("status")
        if status not in OWNER_MUTABLE_STATUSES:
            raise InvalidStateError(f"Cannot delete a submission that is {status}")

        if not await self.store.delete_if_status(submission_id, owner_id, OWNER_MUTABLE_STATUSES):
            raise InvalidStateError("Submission status changed, please refresh")

        await self._safe_audit(
            user_id=owner_id,
            action=AuditAction.SUBMISSION_DELETED,
            entity_id=submission_id,
            old_values={"status": status, "title": document.get("title")},
        )

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_submission(self, submission_id: str, viewer_id: str) -> SubmissionWithRelations:
        """
        A submission as seen by ``viewer_id``.

        Public submissions are visible to everyone; otherwise only to the
        creator and to reviewers of the campaign's brand.
        """
        submission = await self.store.get_with_relations(submission_id)
        if submission is None:
            raise NotFoundError("Submission not found")
        if submission.is_public or submission.creator_id == viewer_id:
            return submission
        await self._require_reviewer(submission, viewer_id)
        return submission

    async def list_submissions(
        self,
        viewer_id: str,
        *,
        brand_id: str | None = None,
        campaign_id: str | None = None,
        status: SubmissionStatus | None = None,
        mine: bool = False,
        skip: int = 0,
        limit: int = 20,
    ) -> SubmissionListResponse:
        """
        List submissions, newest first.

        With ``mine`` the caller's own submissions are listed. Otherwise the
        listing is a review queue scoped to one brand (given directly or via
        ``campaign_id``) and requires reviewer authority over that brand.

        Raises:
            WorkflowValidationError: Neither ``mine`` nor a brand/campaign scope,
                or a campaign outside the given brand.
            NotFoundError: Campaign missing.
            ForbiddenError: Caller cannot review the brand.
        """
        query: dict[str, Any] = {}
        if mine:
            query["creator_id"] = viewer_id
            if campaign_id:
                query["campaign_id"] = campaign_id
        else:
            if campaign_id:
                campaign = await self.store.get_campaign(campaign_id)
                if campaign is None:
                    raise NotFoundError("Campaign not found")
                if brand_id and brand_id != campaign.brand_id:
                    raise WorkflowValidationError("Campaign does not belong to this brand")
                brand_id = campaign.brand_id
                query["campaign_id"] = campaign_id
            elif not brand_id:
                raise WorkflowValidationError("brand_id or campaign_id is required")

            if not await self.permissions.can_review_brand(viewer_id, brand_id):
                raise ForbiddenError("Insufficient permissions to review this brand")
            if "campaign_id" not in query:
                campaign_ids = await self.store.get_campaign_ids_for_brand(brand_id)
                query["campaign_id"] = {"$in": campaign_ids}

        if status is not None:
            query["status"] = SubmissionStatus(status).value

        submissions, total = await self.store.list_with_relations(query, skip, limit)
        return SubmissionListResponse(submissions=submissions, total=total, skip=skip, limit=limit)

    async def get_history(self, submission_id: str, viewer_id: str) -> list[AuditLogEntry]:
        await self.require_creator_or_reviewer(submission_id, viewer_id)
        return await self.audit.history(submission_id)

    async def require_creator_or_reviewer(
        self, submission_id: str, user_id: str
    ) -> SubmissionWithRelations:
        """
        Raises:
            NotFoundError: Submission missing.
            ForbiddenError: Caller is neither the creator nor a brand reviewer.
        """
        submission = await self.store.get_with_relations(submission_id)
        if submission is None:
            raise NotFoundError("Submission not found")
        if submission.creator_id != user_id:
            await self._require_reviewer(submission, user_id)
        return submission

    # =========================================================================
    # Registration after approval
    # =========================================================================

    def _schedule_registration(
        self,
        submission_id: str,
        reviewer_id: str,
        background_tasks: BackgroundTasks | None,
    ) -> None:
        if background_tasks is not None:
            background_tasks.add_task(self.register_after_approval, submission_id, reviewer_id)
            return

        task = asyncio.create_task(self.register_after_approval(submission_id, reviewer_id))
        self._detached_registrations.add(task)
        task.add_done_callback(self._detached_registrations.discard)

    async def register_after_approval(
        self, submission_id: str, reviewer_id: str
    ) -> RegistrationResult | None:
        """
        Attempt registration once and log the outcome. Never raises.

        Returns the result for callers that await it directly (tests, scripts);
        None when the attempt crashed.
        """
        log = add_log_context(logger, submission_id=submission_id, reviewer_id=reviewer_id)
        try:
            result = await self.registration.register_approved_submission(submission_id)
        except Exception:
            log.exception("Background IP registration crashed")
            return None

        if result.success:
            log.info("Background IP registration succeeded", extra={"ip_id": result.ip_id})
        else:
            log.warning("Background IP registration failed", extra={"reason": result.error})
        return result

    async def wait_for_detached_registrations(self) -> None:
        """Await registrations started without BackgroundTasks (shutdown, tests)."""
        if self._detached_registrations:
            await asyncio.gather(*self._detached_registrations, return_exceptions=True)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _load_for_review(
        self, submission_id: str, reviewer_id: str
    ) -> SubmissionWithRelations:
        submission = await self.store.get_with_relations(submission_id)
        if submission is None:
            raise NotFoundError("Submission not found")
        if submission.campaign is None:
            raise NotFoundError("Campaign not found")
        if not submission.is_pending():
            raise InvalidStateError(f"Submission is already {submission.status}")
        await self._require_reviewer(submission, reviewer_id)
        return submission

    async def _require_reviewer(self, submission: SubmissionWithRelations, user_id: str) -> None:
        brand_id = submission.campaign.brand_id if submission.campaign else None
        if brand_id is None or not await self.permissions.can_review_brand(user_id, brand_id):
            raise ForbiddenError("Insufficient permissions to review this submission")

    async def _load_owned(self, submission_id: str, owner_id: str) -> dict[str, Any]:
        document = await self.store.get_document(submission_id)
        if document is None:
            raise NotFoundError("Submission not found")
        if document.get("creator_id") != owner_id:
            raise ForbiddenError("Only the creator can modify this submission")
        return document

    async def _transition(
        self, submission_id: str, updates: dict[str, Any]
    ) -> SubmissionWithRelations:
        """
        Conditional pending -> reviewed write, bounded by the review write timeout.

        Abandoning the await does not cancel a write the driver already sent,
        so on timeout the document is read back. If it carries this review the
        write committed and the caller proceeds as on success.
        """
        try:
            updated = await asyncio.wait_for(
                self.store.transition_status(
                    submission_id, SubmissionStatus.PENDING.value, updates
                ),
                timeout=self.settings.review_write_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            current = await self.store.get_with_relations(submission_id)
            if (
                current is not None
                and current.status == updates["status"]
                and current.reviewed_by == updates["reviewed_by"]
            ):
                logger.warning(
                    "Review write for submission %s acknowledged late but committed",
                    submission_id,
                )
                return current
            logger.error("Review write timed out for submission %s", submission_id)
            raise ReviewTimeoutError() from e

        if updated is None:
            raise InvalidStateError("Submission is no longer pending")
        return updated

    async def _record_review(
        self,
        submission: SubmissionWithRelations,
        reviewer_id: str,
        action: AuditAction,
        *,
        notification_type: NotificationType,
        title: str,
        message: str,
        data: dict[str, Any],
    ) -> None:
        await self._safe_audit(
            user_id=reviewer_id,
            action=action,
            entity_id=submission.id or "",
            old_values={"status": SubmissionStatus.PENDING.value},
            new_values=submission.submission_snapshot(),
            metadata={"creator_id": submission.creator_id, "campaign_id": submission.campaign_id},
        )
        try:
            await self.audit.notify(
                user_id=submission.creator_id,
                type=notification_type,
                title=title,
                message=message,
                data=data,
            )
        except Exception:
            logger.exception(
                "Failed to notify creator %s about submission %s",
                submission.creator_id,
                submission.id,
            )

    async def _safe_audit(self, **entry: Any) -> None:
        try:
            await self.audit.record(**entry)
        except Exception:
            logger.exception(
                "Failed to write audit entry %s for submission %s",
                entry.get("action"),
                entry.get("entity_id"),
            )
