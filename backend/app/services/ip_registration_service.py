"""
IP Registration Connector

Registers approved submissions with Story Protocol as derivatives of the
brand assets they were built from. Every failure mode, including the registry
being down, is reported as an unsuccessful ``RegistrationResult``; the only
exception that escapes is ``NotFoundError`` from the eligibility check.

The submission is written exactly once, on success, through a conditional
update that requires it to still be approved and unregistered.
"""

import asyncio
import logging

from app.config import Settings
from app.core.exceptions import ExternalServiceError, NotFoundError
from app.models.audit import AuditAction
from app.models.registration import RegistrationResult, RegistrationStatus
from app.services.audit_service import AuditService
from app.services.eligibility_service import EligibilityService
from app.services.story_protocol_client import (
    StoryProtocolClient,
    build_registration_request,
    get_explorer_url,
)
from app.services.submission_store import SubmissionStore


logger = logging.getLogger(__name__)


class IPRegistrationService:
    """
    Eligibility-gated registration of approved submissions.

    Attributes:
        store: Submission data access
        eligibility: Eligibility checker consulted before every attempt
        registry: Story Protocol gateway client
        audit: Recorder for the registration audit entry
        settings: License terms, collection contracts, explorer network
    """

    def __init__(
        self,
        store: SubmissionStore,
        eligibility: EligibilityService,
        registry: StoryProtocolClient,
        audit: AuditService,
        settings: Settings,
    ) -> None:
        self.store = store
        self.eligibility = eligibility
        self.registry = registry
        self.audit = audit
        self.settings = settings

    async def register_approved_submission(self, submission_id: str) -> RegistrationResult:
        """
        Register one submission.

        Returns:
            RegistrationResult: success with ``ip_id``/``tx_hash``, or failure
            with ``error``. Ineligible submissions never reach the registry.

        Raises:
            NotFoundError: If the submission does not exist.
        """
        eligibility = await self.eligibility.check_eligibility(submission_id)
        if not eligibility.eligible:
            return RegistrationResult(success=False, error=eligibility.reason)

        submission = await self.store.get_with_relations(submission_id)
        if submission is None:
            raise NotFoundError("Submission not found", submission_id=submission_id)

        campaign = await self.store.get_campaign(submission.campaign_id)
        if campaign is None:
            return RegistrationResult(success=False, error="Campaign not found")
        brand = await self.store.get_brand(campaign.brand_id)
        if brand is None:
            return RegistrationResult(success=False, error="Brand not found")
        if submission.creator is None:
            return RegistrationResult(success=False, error="Creator not found")

        parent_ip_ids = await self.store.get_asset_registry_anchors(submission.used_asset_ids)
        request = build_registration_request(
            submission, campaign, brand, parent_ip_ids, self.settings
        )

        logger.info(
            "Registering submission %s as derivative of %d parent IP(s)",
            submission_id,
            len(parent_ip_ids),
        )
        try:
            receipt = await self.registry.register(request)
        except ExternalServiceError as e:
            logger.warning("IP registration failed for submission %s: %s", submission_id, e)
            return RegistrationResult(success=False, error=e.message)
        except asyncio.TimeoutError:
            logger.warning("IP registration timed out for submission %s", submission_id)
            return RegistrationResult(success=False, error="Registry request timed out")

        recorded = await self.store.set_external_ip_id(submission_id, receipt.ip_id)
        if not recorded:
            # A concurrent registration won, or the submission left approved meanwhile.
            logger.error(
                "Registered IP %s (tx %s) could not be recorded on submission %s",
                receipt.ip_id,
                receipt.tx_hash,
                submission_id,
            )
            return RegistrationResult(
                success=False,
                ip_id=receipt.ip_id,
                tx_hash=receipt.tx_hash,
                error="Submission changed during registration",
            )

        try:
            await self.audit.record(
                user_id=None,
                action=AuditAction.SUBMISSION_IP_REGISTERED,
                entity_id=submission_id,
                old_values={"external_ip_id": None},
                new_values={"external_ip_id": receipt.ip_id},
                metadata={"tx_hash": receipt.tx_hash, "parent_ip_ids": parent_ip_ids},
            )
        except Exception:
            logger.exception("Failed to audit IP registration of submission %s", submission_id)

        logger.info("Submission %s registered as IP %s", submission_id, receipt.ip_id)
        return RegistrationResult(success=True, ip_id=receipt.ip_id, tx_hash=receipt.tx_hash)

    async def get_registration_status(self, submission_id: str) -> RegistrationStatus:
        """
        Raises:
            NotFoundError: If the submission does not exist.
        """
        document = await self.store.get_document(submission_id)
        if document is None:
            raise NotFoundError("Submission not found", submission_id=submission_id)

        ip_id = document.get("external_ip_id")
        parent_ip_ids = await self.store.get_asset_registry_anchors(
            document.get("used_asset_ids") or []
        )
        return RegistrationStatus(
            registered=bool(ip_id),
            ip_id=ip_id,
            parent_ip_ids=parent_ip_ids,
            explorer_url=get_explorer_url(ip_id, self.settings) if ip_id else None,
        )
