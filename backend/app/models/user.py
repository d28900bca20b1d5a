"""
User and role grant models for FanForge.

Users authenticate through Auth0 (or local JWTs in development). What a user
may do in the review workflow is decided by role grants stored separately in
``user_roles``: a platform-wide admin grant, or brand-scoped admin/reviewer
grants.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class UserRole(str, Enum):
    PLATFORM_ADMIN = "platform_admin"
    BRAND_ADMIN = "brand_admin"
    BRAND_REVIEWER = "brand_reviewer"
    CREATOR = "creator"


# Roles that carry authority to approve or reject submissions for a brand.
REVIEWER_ROLES = frozenset({UserRole.BRAND_ADMIN.value, UserRole.BRAND_REVIEWER.value})


class User(BaseModel):
    """
    FanForge account profile.

    Attributes:
        id: User id (aliased from _id)
        email: Validated email address
        auth0_id: Auth0 subject when the account is provisioned through Auth0
        display_name: Name shown on submissions and in notifications
        avatar_url: Profile picture URL
        wallet_address: Creator wallet credited on IP registration
    """

    id: str | None = Field(default=None, alias="_id")
    email: EmailStr
    auth0_id: str | None = Field(default=None, max_length=255)
    display_name: str | None = Field(default=None, max_length=100)
    avatar_url: str | None = Field(default=None, max_length=2048)
    wallet_address: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "email": "creator@example.com",
                "auth0_id": "auth0|123456789",
                "display_name": "Pixel Painter",
                "wallet_address": "0x1111111111111111111111111111111111111111",
            }
        },
    )

    @field_validator("avatar_url")
    @classmethod
    def validate_avatar_url(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("Avatar URL must start with http:// or https://")
        return v


class RoleGrant(BaseModel):
    """
    One role held by a user.

    ``brand_id`` is None for platform-wide grants and set for brand-scoped ones.
    """

    user_id: str
    role: UserRole
    brand_id: str | None = None

    model_config = ConfigDict(use_enum_values=True)

    def to_cache(self) -> dict[str, Any]:
        return {"role": self.role, "brand_id": self.brand_id}
