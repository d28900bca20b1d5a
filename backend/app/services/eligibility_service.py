"""
IP registration eligibility check.

A submission may be registered as a derivative IP asset when it is approved,
not yet registered, and built from at least one brand asset that itself has a
registry anchor to link to as a parent. The check only reads.
"""

import logging

from app.core.exceptions import NotFoundError
from app.models.registration import EligibilityResult
from app.models.submission import SubmissionStatus
from app.services.submission_store import SubmissionStore


logger = logging.getLogger(__name__)

REASON_NOT_APPROVED = "Submission must be approved first"
REASON_ALREADY_REGISTERED = "Submission already registered as IP asset"
REASON_NO_ANCHORS = "No underlying registrable assets found"


class EligibilityService:
    def __init__(self, store: SubmissionStore) -> None:
        self.store = store

    async def check_eligibility(self, submission_id: str) -> EligibilityResult:
        """
        Decide whether a submission can be registered now.

        Raises:
            NotFoundError: If the submission does not exist.
        """
        document = await self.store.get_document(submission_id)
        if document is None:
            raise NotFoundError("Submission not found", submission_id=submission_id)

        if document.get("status") != SubmissionStatus.APPROVED.value:
            return EligibilityResult(eligible=False, reason=REASON_NOT_APPROVED)

        if document.get("external_ip_id"):
            return EligibilityResult(eligible=False, reason=REASON_ALREADY_REGISTERED)

        anchors = await self.store.get_asset_registry_anchors(document.get("used_asset_ids") or [])
        if not anchors:
            logger.info("Submission %s uses no registered brand assets", submission_id)
            return EligibilityResult(eligible=False, reason=REASON_NO_ANCHORS)

        return EligibilityResult(eligible=True)
