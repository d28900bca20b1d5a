"""
Submission Store

MongoDB adapter for submissions and the documents joined to them (campaigns,
brands, creators, brand assets). The review workflow never touches these
collections directly; it goes through this class so that the only write paths
to a submission's status after creation are the conditional updates defined here.

Status writes are compare-and-swap: ``find_one_and_update`` filtered on the
status the caller read. Two reviewers racing on the same pending submission
therefore produce exactly one winner; the loser gets ``None`` back.
"""

import logging

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from pymongo import ReturnDocument

from app.core.database import DatabaseClient
from app.models.campaign import Brand, Campaign
from app.models.submission import (
    CampaignSummary,
    CreatorSummary,
    Submission,
    SubmissionStatus,
    SubmissionWithRelations,
)


logger = logging.getLogger(__name__)

_CREATOR_PROJECTION = {"display_name": 1, "avatar_url": 1, "wallet_address": 1}


class SubmissionStore:
    """
    Data access for the review workflow.

    Attributes:
        db: Connected DatabaseClient providing the Motor collections

    Example:
        ```python
        store = SubmissionStore(get_db_client())
        submission = await store.get_with_relations("sub_01")
        updated = await store.transition_status(
            "sub_01", "pending", {"status": "approved", "is_public": True}
        )
        ```
    """

    def __init__(self, db: DatabaseClient) -> None:
        self.db = db

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_document(self, submission_id: str) -> dict[str, Any] | None:
        return await self.db.get_submissions_collection().find_one({"_id": submission_id})

    async def get_with_relations(self, submission_id: str) -> SubmissionWithRelations | None:
        """
        Load a submission with its campaign and creator summaries.

        Returns None when the submission does not exist. A missing campaign or
        creator leaves the corresponding summary as None; callers that need
        them decide whether that is an error.
        """
        document = await self.get_document(submission_id)
        if document is None:
            return None
        return await self._with_relations(document)

    async def _with_relations(self, document: dict[str, Any]) -> SubmissionWithRelations:
        campaign = await self.db.get_campaigns_collection().find_one(
            {"_id": document.get("campaign_id")}
        )
        creator = await self.db.get_users_collection().find_one(
            {"_id": document.get("creator_id")}, _CREATOR_PROJECTION
        )

        submission = SubmissionWithRelations.model_validate(document)
        if campaign is not None:
            submission.campaign = CampaignSummary(
                id=str(campaign["_id"]),
                title=campaign.get("title", ""),
                brand_id=str(campaign.get("brand_id", "")),
                status=campaign.get("status"),
            )
        if creator is not None:
            submission.creator = CreatorSummary(
                id=str(creator["_id"]),
                display_name=creator.get("display_name"),
                avatar_url=creator.get("avatar_url"),
                wallet_address=creator.get("wallet_address"),
            )
        return submission

    async def get_campaign(self, campaign_id: str) -> Campaign | None:
        document = await self.db.get_campaigns_collection().find_one({"_id": campaign_id})
        return Campaign.model_validate(document) if document else None

    async def get_brand(self, brand_id: str) -> Brand | None:
        document = await self.db.get_brands_collection().find_one({"_id": brand_id})
        return Brand.model_validate(document) if document else None

    async def get_campaign_ids_for_brand(self, brand_id: str) -> list[str]:
        cursor = self.db.get_campaigns_collection().find({"brand_id": brand_id}, {"_id": 1})
        return [str(doc["_id"]) for doc in await cursor.to_list(length=None)]

    async def list_with_relations(
        self, query: dict[str, Any], skip: int, limit: int
    ) -> tuple[list[SubmissionWithRelations], int]:
        """
        One page of submissions matching ``query``, newest first.

        Returns:
            The page joined with campaign and creator summaries, and the total
            number of matching submissions.
        """
        collection = self.db.get_submissions_collection()
        total = await collection.count_documents(query)
        cursor = collection.find(query).sort("created_at", -1).skip(skip).limit(limit)
        documents = await cursor.to_list(length=limit)
        return [await self._with_relations(doc) for doc in documents], total

    async def get_asset_registry_anchors(self, asset_ids: Iterable[str]) -> list[str]:
        """
        Resolve brand asset ids to their distinct registry anchors.

        Assets without an ``ip_id`` are skipped. The result follows the order
        in which the assets were used and contains each anchor once.
        """
        ordered_ids = list(dict.fromkeys(asset_ids))
        if not ordered_ids:
            return []

        cursor = self.db.get_assets_collection().find(
            {"_id": {"$in": ordered_ids}, "ip_id": {"$ne": None}}, {"ip_id": 1}
        )
        documents = await cursor.to_list(length=len(ordered_ids))
        anchor_by_asset = {doc["_id"]: doc["ip_id"] for doc in documents if doc.get("ip_id")}

        anchors = (anchor_by_asset[a] for a in ordered_ids if a in anchor_by_asset)
        return list(dict.fromkeys(anchors))

    # =========================================================================
    # Writes
    # =========================================================================

    async def insert(self, submission: Submission) -> SubmissionWithRelations:
        document = submission.model_dump(by_alias=True)
        await self.db.get_submissions_collection().insert_one(document)
        return await self._with_relations(document)

    async def transition_status(
        self,
        submission_id: str,
        expected_status: str | Iterable[str],
        updates: dict[str, Any],
        owner_id: str | None = None,
    ) -> SubmissionWithRelations | None:
        """
        Atomically apply ``updates`` if the submission is still in ``expected_status``.

        Args:
            submission_id: Submission to update
            expected_status: Status (or statuses) the caller observed
            updates: Fields to $set; ``updated_at`` is added automatically
            owner_id: When given, the update also requires this creator_id

        Returns:
            The updated submission with relations, or None when the filter no
            longer matches (another request changed it first, or it is gone).
        """
        query: dict[str, Any] = {"_id": submission_id}
        if isinstance(expected_status, str):
            query["status"] = expected_status
        else:
            query["status"] = {"$in": list(expected_status)}
        if owner_id is not None:
            query["creator_id"] = owner_id

        document = await self.db.get_submissions_collection().find_one_and_update(
            query,
            {"$set": {**updates, "updated_at": datetime.now(UTC)}},
            return_document=ReturnDocument.AFTER,
        )
        if document is None:
            logger.info(
                "Conditional status update lost for submission %s (expected %s)",
                submission_id,
                expected_status,
            )
            return None
        return await self._with_relations(document)

    async def set_external_ip_id(self, submission_id: str, ip_id: str) -> bool:
        """
        Record the registry IP id on an approved, not yet registered submission.

        Returns:
            bool: False when the submission is no longer approved or already
            carries an IP id; nothing is written in that case.
        """
        result = await self.db.get_submissions_collection().update_one(
            {
                "_id": submission_id,
                "status": SubmissionStatus.APPROVED.value,
                "external_ip_id": None,
            },
            {"$set": {"external_ip_id": ip_id, "updated_at": datetime.now(UTC)}},
        )
        return result.modified_count == 1

    async def delete_if_status(
        self, submission_id: str, owner_id: str, statuses: Iterable[str]
    ) -> bool:
        """Delete a creator's own submission only while it is in one of ``statuses``."""
        result = await self.db.get_submissions_collection().delete_one(
            {"_id": submission_id, "creator_id": owner_id, "status": {"$in": list(statuses)}}
        )
        return result.deleted_count == 1
