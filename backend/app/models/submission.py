"""
Submission models for the FanForge review workflow.

Defines the stored submission document, the read model returned to API
callers (submission plus campaign and creator summaries), and the request
bodies of the review endpoints.

Status lifecycle:
    (created)  -> pending        (creator, campaign must be active)
    pending -> approved          (reviewer)
    pending -> rejected          (reviewer, feedback required)
    pending | rejected -> withdrawn   (creator)

Nothing ever returns to pending, and an approved submission never changes
status again.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENUMS AND CONSTANTS
# =============================================================================


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


# Statuses from which the owning creator may withdraw or delete a submission.
OWNER_MUTABLE_STATUSES = (SubmissionStatus.PENDING.value, SubmissionStatus.REJECTED.value)

MAX_FEEDBACK_LENGTH = 2000


# =============================================================================
# STORED DOCUMENT
# =============================================================================


class Submission(BaseModel):
    """
    Creator artwork submitted to a campaign.

    Attributes:
        id: Submission id (aliased from _id)
        title: Artwork title
        description: Optional description
        artwork_url: Full-size artwork URL
        thumbnail_url: Optional thumbnail URL
        tags: Free-form tags
        canvas_data: Editor state the artwork was produced from
        used_asset_ids: Brand assets composed into the artwork
        campaign_id: Campaign the submission belongs to
        creator_id: Submitting user
        ip_kit_id: IP kit the assets came from
        status: Review status
        is_public: Visible in the community showcase; true only when approved
        reviewed_by: Reviewer user id, set at approve/reject
        reviewed_at: Review timestamp, set at approve/reject
        feedback: Reviewer feedback, required on rejection
        rating: Reviewer rating from 1 to 5
        external_ip_id: Story Protocol IP id once registered
    """

    id: str | None = Field(default=None, alias="_id")
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    artwork_url: str
    thumbnail_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    canvas_data: dict[str, Any] | None = None
    used_asset_ids: list[str] = Field(default_factory=list)
    campaign_id: str
    creator_id: str
    ip_kit_id: str | None = None

    status: SubmissionStatus = SubmissionStatus.PENDING
    is_public: bool = False
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    feedback: str | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    external_ip_id: str | None = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        json_schema_extra={
            "example": {
                "_id": "sub_01",
                "title": "Sunset Squad",
                "artwork_url": "https://cdn.fanforge.example/art/sunset.png",
                "used_asset_ids": ["asset_hero", "asset_logo"],
                "campaign_id": "camp_summer",
                "creator_id": "user_creator",
                "status": "pending",
                "is_public": False,
            }
        },
    )

    def is_pending(self) -> bool:
        return self.status == SubmissionStatus.PENDING.value

    def is_approved(self) -> bool:
        return self.status == SubmissionStatus.APPROVED.value

    def is_registered(self) -> bool:
        return self.external_ip_id is not None


# =============================================================================
# READ MODEL
# =============================================================================


class CampaignSummary(BaseModel):
    id: str
    title: str
    brand_id: str
    status: str | None = None


class CreatorSummary(BaseModel):
    id: str
    display_name: str | None = None
    avatar_url: str | None = None
    wallet_address: str | None = None


class SubmissionWithRelations(Submission):
    """Submission joined with the summaries the review screens display."""

    campaign: CampaignSummary | None = None
    creator: CreatorSummary | None = None

    def submission_snapshot(self) -> dict[str, Any]:
        """Review-relevant fields, used as audit new_values."""
        return {
            "status": self.status,
            "reviewed_by": self.reviewed_by,
            "feedback": self.feedback,
            "rating": self.rating,
            "is_public": self.is_public,
        }


# =============================================================================
# REQUEST / RESPONSE BODIES
# =============================================================================


class CreateSubmissionRequest(BaseModel):
    """Body of POST /submissions. The creator is always the caller."""

    campaign_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    artwork_url: str = Field(..., min_length=1)
    thumbnail_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    canvas_data: dict[str, Any] | None = None
    used_asset_ids: list[str] = Field(default_factory=list)
    ip_kit_id: str | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be blank")
        return v


class UpdateSubmissionRequest(BaseModel):
    """
    Body of PUT /submissions/{id}.

    Only content fields are editable, and only the ones present in the body
    are written. Status and review fields are never accepted here.
    """

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    artwork_url: str | None = Field(default=None, min_length=1)
    thumbnail_url: str | None = None
    tags: list[str] | None = None
    canvas_data: dict[str, Any] | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("title", "artwork_url")
    @classmethod
    def required_when_present(cls, v: str | None) -> str:
        if v is None or not v.strip():
            raise ValueError("Cannot be null or blank")
        return v.strip()

    @field_validator("tags")
    @classmethod
    def null_tags_clear(cls, v: list[str] | None) -> list[str]:
        return v or []

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class SubmissionListResponse(BaseModel):
    submissions: list[SubmissionWithRelations]
    total: int
    skip: int
    limit: int


class ApproveRequest(BaseModel):
    """Body of POST /submissions/{id}/approve."""

    feedback: str | None = Field(default=None, max_length=MAX_FEEDBACK_LENGTH)
    rating: int | None = Field(default=None, ge=1, le=5)

    model_config = ConfigDict(extra="forbid")

    @field_validator("feedback")
    @classmethod
    def normalize_feedback(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class RejectRequest(BaseModel):
    """
    Body of POST /submissions/{id}/reject.

    Feedback may be omitted at the schema level; the review service rejects a
    missing or blank value with a workflow validation error so the caller
    gets the domain message rather than a schema error.
    """

    feedback: str | None = Field(default=None, max_length=MAX_FEEDBACK_LENGTH)
    rating: int | None = Field(default=None, ge=1, le=5)

    model_config = ConfigDict(extra="forbid")


class ReviewResponse(BaseModel):
    success: bool = True
    submission: SubmissionWithRelations


class BulkReviewRequest(BaseModel):
    """Body of POST /submissions/bulk-review."""

    submission_ids: list[str] = Field(..., min_length=1, max_length=50)
    action: Literal["approve", "reject"]
    feedback: str | None = Field(default=None, max_length=MAX_FEEDBACK_LENGTH)
    rating: int | None = Field(default=None, ge=1, le=5)

    model_config = ConfigDict(extra="forbid")

    @field_validator("submission_ids")
    @classmethod
    def dedupe_ids(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))


class BulkReviewItemResult(BaseModel):
    submission_id: str
    success: bool
    status: str | None = None
    error: str | None = None


class BulkReviewResponse(BaseModel):
    processed: int
    failed: int
    results: list[BulkReviewItemResult]
