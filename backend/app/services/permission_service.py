"""
Reviewer authority checks.

A user may approve or reject submissions for a brand when any of these holds:
- they hold the platform_admin role;
- they hold brand_admin or brand_reviewer scoped to that brand;
- they own the brand.

Role grants are read through ``RoleCache``; a cache miss (or no Redis at
all) falls through to the ``user_roles`` collection.
"""

import logging

from typing import Any

from app.core.database import DatabaseClient
from app.models.user import REVIEWER_ROLES, UserRole
from app.utils.cache import RoleCache


logger = logging.getLogger(__name__)


class PermissionService:
    def __init__(self, db: DatabaseClient, role_cache: RoleCache) -> None:
        self.db = db
        self.role_cache = role_cache

    async def get_role_grants(self, user_id: str) -> list[dict[str, Any]]:
        """Role grants for a user as ``{"role", "brand_id"}`` dicts."""
        cached = await self.role_cache.get(user_id)
        if cached is not None:
            return cached

        cursor = self.db.get_user_roles_collection().find(
            {"user_id": user_id}, {"role": 1, "brand_id": 1}
        )
        documents = await cursor.to_list(length=200)
        grants = [{"role": doc.get("role"), "brand_id": doc.get("brand_id")} for doc in documents]

        await self.role_cache.set(user_id, grants)
        return grants

    async def can_review_brand(self, user_id: str, brand_id: str) -> bool:
        grants = await self.get_role_grants(user_id)

        for grant in grants:
            if grant.get("role") == UserRole.PLATFORM_ADMIN.value:
                return True
            if grant.get("role") in REVIEWER_ROLES and grant.get("brand_id") == brand_id:
                return True

        brand = await self.db.get_brands_collection().find_one(
            {"_id": brand_id, "owner_id": user_id}, {"_id": 1}
        )
        if brand is not None:
            return True

        logger.info("User %s has no review authority over brand %s", user_id, brand_id)
        return False

    async def invalidate(self, user_id: str) -> None:
        """
        Forget cached grants after a role change.

        Grants are written by brand/role administration outside this service,
        which must call this (or ``invalidate_user_cache``) after every grant
        or revoke. Without that call a revoked reviewer keeps access until the
        role cache TTL expires.
        """
        await self.role_cache.invalidate(user_id)
