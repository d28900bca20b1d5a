"""
Reviewer authority and role cache tests.
"""

from unittest.mock import AsyncMock

import pytest

from app.services.permission_service import PermissionService
from app.utils.cache import RoleCache, invalidate_user_cache, role_cache_key

from conftest import FakeDatabaseClient


class TestCanReviewBrand:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "user_id,brand_id,expected",
        [
            ("user_admin", "brand_nova", True),
            ("user_admin", "brand_other", True),
            ("user_reviewer", "brand_nova", True),
            ("user_reviewer", "brand_other", False),
            ("user_owner", "brand_nova", True),
            ("user_owner", "brand_other", False),
            ("user_outsider", "brand_nova", False),
            ("user_outsider", "brand_other", True),
            ("user_creator", "brand_nova", False),
            ("user_unknown", "brand_nova", False),
        ],
    )
    async def test_authority_matrix(
        self, permission_service: PermissionService, user_id: str, brand_id: str, expected: bool
    ) -> None:
        assert await permission_service.can_review_brand(user_id, brand_id) is expected

    @pytest.mark.asyncio
    async def test_brand_admin_grant(
        self, permission_service: PermissionService, fake_db: FakeDatabaseClient
    ) -> None:
        fake_db.get_user_roles_collection().documents.append(
            {"user_id": "user_other_creator", "role": "brand_admin", "brand_id": "brand_nova"}
        )
        assert await permission_service.can_review_brand("user_other_creator", "brand_nova")


class TestRoleCache:
    @pytest.mark.asyncio
    async def test_grants_are_read_from_cache_first(
        self, fake_db: FakeDatabaseClient, mock_redis: AsyncMock
    ) -> None:
        mock_redis.get_json = AsyncMock(
            return_value=[{"role": "platform_admin", "brand_id": None}]
        )
        service = PermissionService(fake_db, RoleCache(client_getter=lambda: mock_redis))

        # user_creator holds no reviewer grant in MongoDB; the cached grant wins.
        assert await service.can_review_brand("user_creator", "brand_nova") is True
        mock_redis.get_json.assert_awaited_once_with(role_cache_key("user_creator"))
        mock_redis.set_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cache_miss_populates_cache(
        self, fake_db: FakeDatabaseClient, mock_redis: AsyncMock
    ) -> None:
        service = PermissionService(fake_db, RoleCache(ttl_seconds=60, client_getter=lambda: mock_redis))

        grants = await service.get_role_grants("user_reviewer")

        assert grants == [{"role": "brand_reviewer", "brand_id": "brand_nova"}]
        mock_redis.set_json.assert_awaited_once_with("roles:user_reviewer", grants, ttl=60)

    @pytest.mark.asyncio
    async def test_invalidate_drops_cached_grants(
        self, fake_db: FakeDatabaseClient, mock_redis: AsyncMock
    ) -> None:
        service = PermissionService(fake_db, RoleCache(client_getter=lambda: mock_redis))

        await service.invalidate("user_reviewer")

        mock_redis.delete.assert_awaited_once_with("roles:user_reviewer")

    @pytest.mark.asyncio
    async def test_non_list_cache_entry_is_a_miss(self, mock_redis: AsyncMock) -> None:
        mock_redis.get_json = AsyncMock(return_value={"role": "platform_admin"})
        assert await RoleCache(client_getter=lambda: mock_redis).get("user_creator") is None

    @pytest.mark.asyncio
    async def test_without_redis_every_operation_is_a_noop(self) -> None:
        cache = RoleCache(client_getter=lambda: None)

        assert await cache.get("user_reviewer") is None
        await cache.set("user_reviewer", [])
        await cache.invalidate("user_reviewer")

    @pytest.mark.asyncio
    async def test_invalidate_user_cache(self, mock_redis: AsyncMock, monkeypatch) -> None:
        monkeypatch.setattr("app.utils.cache.get_redis_client", lambda: mock_redis)

        assert await invalidate_user_cache("user_reviewer") == 2
        deleted = [c.args[0] for c in mock_redis.delete.await_args_list]
        assert deleted == ["user:user_reviewer", "roles:user_reviewer"]

    @pytest.mark.asyncio
    async def test_invalidate_user_cache_without_id(self) -> None:
        assert await invalidate_user_cache("") == 0
