"""
Brand and campaign models.

A brand owns IP kits and runs campaigns; every submission belongs to exactly
one campaign, and through it to one brand. Reviewer authority is always
resolved against that brand.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"


class Brand(BaseModel):
    id: str | None = Field(default=None, alias="_id")
    name: str = Field(..., min_length=1, max_length=200)
    owner_id: str = Field(..., description="User who created the brand; always a reviewer")
    wallet_address: str | None = Field(
        default=None, description="Brand wallet credited as co-creator on registration"
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(populate_by_name=True)


class Campaign(BaseModel):
    """
    A brand campaign collecting fan submissions.

    Attributes:
        id: Campaign id (aliased from _id)
        title: Campaign title, used in registration tags and metadata
        brand_id: Owning brand
        ip_kit_id: IP kit whose assets creators may use
        status: Campaign lifecycle status
        created_by: User who created the campaign
    """

    id: str | None = Field(default=None, alias="_id")
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    brand_id: str
    ip_kit_id: str | None = None
    status: CampaignStatus = CampaignStatus.DRAFT
    created_by: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)
