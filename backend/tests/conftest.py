"""
Pytest Configuration and Test Fixtures for the FanForge Review Backend

This module provides:
- Test settings (local JWTs, fast timeouts, a stub registry URL)
- An in-memory stand-in for the Motor collections the workflow uses, seeded
  with brands, campaigns, creators, reviewers, brand assets and submissions
  in every status
- Service fixtures wired to that database (store, audit, permissions,
  eligibility, registration, review)
- A mocked Story Protocol client so no test reaches a real registry
- FastAPI TestClient with dependency overrides and a local-JWT header factory
"""

import asyncio
import copy

from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fastapi.testclient import TestClient
from pymongo import ReturnDocument

from app.api.v1.submissions import (
    get_eligibility_service,
    get_registration_service,
    get_review_service,
)
from app.config import Settings, get_settings
from app.core.auth import create_local_jwt
from app.main import app
from app.models.registration import RegistrationReceipt
from app.services.audit_service import AuditService
from app.services.eligibility_service import EligibilityService
from app.services.ip_registration_service import IPRegistrationService
from app.services.permission_service import PermissionService
from app.services.review_service import ReviewService
from app.services.story_protocol_client import StoryProtocolClient
from app.services.submission_store import SubmissionStore
from app.utils.cache import RoleCache


# ==============================================================================
# Pytest Configuration
# ==============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """
    Markers:
    - integration: needs a running MongoDB/Redis
    - unit: isolated, no external services
    - slow: may be skipped in quick runs
    """
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "slow: mark test as slow-running")


# ==============================================================================
# Sample identifiers
# ==============================================================================

CREATOR_WALLET = "0x1111111111111111111111111111111111111111"
BRAND_WALLET = "0x2222222222222222222222222222222222222222"
HERO_IP_ID = "0xAaAaAaAaAaAaAaAaAaAaAaAaAaAaAaAaAaAaAaAa"
LOGO_IP_ID = "0xBbBbBbBbBbBbBbBbBbBbBbBbBbBbBbBbBbBbBbBb"
REGISTERED_IP_ID = "0xCcCcCcCcCcCcCcCcCcCcCcCcCcCcCcCcCcCcCcCc"
NEW_IP_ID = "0xDdDdDdDdDdDdDdDdDdDdDdDdDdDdDdDdDdDdDdDd"
NEW_TX_HASH = "0x" + "ab" * 32


# ==============================================================================
# In-memory Motor stand-in
# ==============================================================================


def _matches(document: dict[str, Any], query: dict[str, Any]) -> bool:
    for field, condition in query.items():
        value = document.get(field)
        if isinstance(condition, dict):
            if "$in" in condition and value not in condition["$in"]:
                return False
            if "$ne" in condition and value == condition["$ne"]:
                return False
        elif value != condition:
            # {"field": None} also matches a missing field, as in MongoDB
            return False
    return True


def _project(document: dict[str, Any], projection: dict[str, Any] | None) -> dict[str, Any]:
    if not projection:
        return copy.deepcopy(document)
    projected = {"_id": document.get("_id")}
    for field, include in projection.items():
        if include and field in document:
            projected[field] = copy.deepcopy(document[field])
    return projected


class FakeCursor:
    def __init__(self, documents: list[dict[str, Any]]) -> None:
        self._documents = documents

    def sort(self, key: str, direction: int = 1) -> "FakeCursor":
        self._documents.sort(key=lambda doc: doc.get(key), reverse=direction < 0)
        return self

    def skip(self, count: int) -> "FakeCursor":
        self._documents = self._documents[count:]
        return self

    def limit(self, count: int) -> "FakeCursor":
        self._documents = self._documents[:count]
        return self

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        await asyncio.sleep(0)
        return self._documents if length is None else self._documents[:length]


class FakeCollection:
    """
    Subset of AsyncIOMotorCollection used by the review backend.

    Every operation yields to the event loop once, so concurrent requests
    interleave the way they would against a real server, while each single
    operation stays atomic.
    """

    def __init__(self, documents: list[dict[str, Any]] | None = None) -> None:
        self.documents: list[dict[str, Any]] = documents or []

    def by_id(self, document_id: str) -> dict[str, Any] | None:
        return next((doc for doc in self.documents if doc.get("_id") == document_id), None)

    async def find_one(
        self, query: dict[str, Any], projection: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        for document in self.documents:
            if _matches(document, query):
                return _project(document, projection)
        return None

    async def count_documents(self, query: dict[str, Any]) -> int:
        await asyncio.sleep(0)
        return sum(1 for doc in self.documents if _matches(doc, query))

    def find(self, query: dict[str, Any], projection: dict[str, Any] | None = None) -> FakeCursor:
        return FakeCursor(
            [_project(doc, projection) for doc in self.documents if _matches(doc, query)]
        )

    async def find_one_and_update(
        self,
        query: dict[str, Any],
        update: dict[str, Any],
        return_document: bool = ReturnDocument.BEFORE,
    ) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        for document in self.documents:
            if _matches(document, query):
                before = copy.deepcopy(document)
                document.update(copy.deepcopy(update["$set"]))
                return copy.deepcopy(document) if return_document else before
        return None

    async def update_one(self, query: dict[str, Any], update: dict[str, Any]) -> MagicMock:
        await asyncio.sleep(0)
        for document in self.documents:
            if _matches(document, query):
                document.update(copy.deepcopy(update["$set"]))
                return MagicMock(matched_count=1, modified_count=1)
        return MagicMock(matched_count=0, modified_count=0)

    async def insert_one(self, document: dict[str, Any]) -> MagicMock:
        await asyncio.sleep(0)
        self.documents.append(copy.deepcopy(document))
        return MagicMock(inserted_id=document.get("_id"))

    async def delete_one(self, query: dict[str, Any]) -> MagicMock:
        await asyncio.sleep(0)
        for index, document in enumerate(self.documents):
            if _matches(document, query):
                del self.documents[index]
                return MagicMock(deleted_count=1)
        return MagicMock(deleted_count=0)


class FakeDatabaseClient:
    """Exposes the same collection accessors as app.core.database.DatabaseClient."""

    def __init__(self, seed: dict[str, list[dict[str, Any]]]) -> None:
        self.collections = {name: FakeCollection(docs) for name, docs in seed.items()}

    def collection(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection())

    def get_submissions_collection(self) -> FakeCollection:
        return self.collection("submissions")

    def get_campaigns_collection(self) -> FakeCollection:
        return self.collection("campaigns")

    def get_brands_collection(self) -> FakeCollection:
        return self.collection("brands")

    def get_users_collection(self) -> FakeCollection:
        return self.collection("users")

    def get_user_roles_collection(self) -> FakeCollection:
        return self.collection("user_roles")

    def get_assets_collection(self) -> FakeCollection:
        return self.collection("assets")

    def get_audit_logs_collection(self) -> FakeCollection:
        return self.collection("audit_logs")

    def get_notifications_collection(self) -> FakeCollection:
        return self.collection("notifications")

    async def ping(self) -> bool:
        return True


def _submission(submission_id: str, **overrides: Any) -> dict[str, Any]:
    now = datetime.now(UTC)
    document = {
        "_id": submission_id,
        "title": f"Artwork {submission_id}",
        "description": None,
        "artwork_url": f"https://cdn.fanforge.example/art/{submission_id}.png",
        "thumbnail_url": None,
        "tags": ["summer"],
        "canvas_data": None,
        "used_asset_ids": ["asset_hero"],
        "campaign_id": "camp_summer",
        "creator_id": "user_creator",
        "ip_kit_id": "kit_nova",
        "status": "pending",
        "is_public": False,
        "reviewed_by": None,
        "reviewed_at": None,
        "feedback": None,
        "rating": None,
        "external_ip_id": None,
        "created_at": now,
        "updated_at": now,
    }
    document.update(overrides)
    return document


def build_seed() -> dict[str, list[dict[str, Any]]]:
    now = datetime.now(UTC)
    return {
        "users": [
            {
                "_id": "user_creator",
                "email": "creator@example.com",
                "display_name": "Pixel Painter",
                "avatar_url": "https://cdn.fanforge.example/avatars/pixel.png",
                "wallet_address": CREATOR_WALLET,
            },
            {"_id": "user_other_creator", "email": "other@example.com", "display_name": "Ink Fox"},
            {"_id": "user_reviewer", "email": "reviewer@nova.example", "display_name": "Rae"},
            {"_id": "user_owner", "email": "owner@nova.example", "display_name": "Nova Owner"},
            {"_id": "user_admin", "email": "admin@fanforge.example", "display_name": "Admin"},
            {"_id": "user_outsider", "email": "reviewer@other.example", "display_name": "Oz"},
        ],
        "brands": [
            {
                "_id": "brand_nova",
                "name": "Nova Studios",
                "owner_id": "user_owner",
                "wallet_address": BRAND_WALLET,
                "created_at": now,
            },
            {"_id": "brand_other", "name": "Other Co", "owner_id": "user_outsider", "created_at": now},
        ],
        "campaigns": [
            {
                "_id": "camp_summer",
                "title": "Summer Heroes",
                "brand_id": "brand_nova",
                "ip_kit_id": "kit_nova",
                "status": "active",
                "created_by": "user_owner",
                "created_at": now,
                "updated_at": now,
            },
            {
                "_id": "camp_closed",
                "title": "Spring Archive",
                "brand_id": "brand_nova",
                "ip_kit_id": "kit_nova",
                "status": "closed",
                "created_by": "user_owner",
                "created_at": now,
                "updated_at": now,
            },
        ],
        "assets": [
            {"_id": "asset_hero", "name": "Hero", "ip_id": HERO_IP_ID},
            {"_id": "asset_logo", "name": "Logo", "ip_id": LOGO_IP_ID},
            {"_id": "asset_sketch", "name": "Sketch", "ip_id": None},
        ],
        "user_roles": [
            {"user_id": "user_reviewer", "role": "brand_reviewer", "brand_id": "brand_nova"},
            {"user_id": "user_admin", "role": "platform_admin", "brand_id": None},
            {"user_id": "user_outsider", "role": "brand_reviewer", "brand_id": "brand_other"},
            {"user_id": "user_creator", "role": "creator", "brand_id": None},
        ],
        "submissions": [
            _submission(
                "sub_pending",
                title="Sunset Squad",
                used_asset_ids=["asset_hero", "asset_logo", "asset_hero"],
            ),
            _submission("sub_pending_2", used_asset_ids=["asset_sketch"]),
            _submission(
                "sub_rejected",
                status="rejected",
                reviewed_by="user_reviewer",
                reviewed_at=now,
                feedback="Please crop the logo",
            ),
            _submission("sub_approved", status="approved", is_public=True, reviewed_by="user_reviewer"),
            _submission(
                "sub_registered",
                status="approved",
                is_public=True,
                external_ip_id=REGISTERED_IP_ID,
            ),
            _submission(
                "sub_no_anchor",
                status="approved",
                is_public=True,
                used_asset_ids=["asset_sketch"],
            ),
            _submission("sub_withdrawn", status="withdrawn"),
            _submission("sub_orphan", campaign_id="camp_missing"),
            _submission("sub_other", creator_id="user_other_creator"),
        ],
        "audit_logs": [],
        "notifications": [],
    }


# ==============================================================================
# Settings
# ==============================================================================


@pytest.fixture
def mock_settings() -> Settings:
    return Settings(
        app_env="testing",
        debug=False,
        secret_key="test-secret-key-for-jwt-signing-only",
        mongodb_uri="mongodb://localhost:27017",
        mongodb_db_name="fanforge_test",
        redis_url="redis://localhost:6379/1",
        auth0_domain=None,
        auth0_client_id=None,
        auth0_client_secret=None,
        jwt_expiration_hours=24,
        review_write_timeout_seconds=1.0,
        bulk_review_max_items=50,
        story_network="aeneid",
        story_registry_url="http://registry.test/",
        story_registry_api_key="test-registry-key",
        story_registry_timeout_seconds=2,
        story_registry_connect_retries=2,
        story_campaign_collection_contracts={
            "camp_summer": "0x9999999999999999999999999999999999999999"
        },
    )


# ==============================================================================
# Database and services
# ==============================================================================


@pytest.fixture
def fake_db() -> FakeDatabaseClient:
    return FakeDatabaseClient(build_seed())


@pytest.fixture
def submission_store(fake_db: FakeDatabaseClient) -> SubmissionStore:
    return SubmissionStore(fake_db)


@pytest.fixture
def audit_service(fake_db: FakeDatabaseClient) -> AuditService:
    return AuditService(fake_db)


@pytest.fixture
def mock_redis() -> AsyncMock:
    """RedisClient double: every read misses, every write succeeds."""
    mock = AsyncMock()
    mock.get_json = AsyncMock(return_value=None)
    mock.set_json = AsyncMock(return_value=True)
    mock.delete = AsyncMock(return_value=True)
    mock.ping = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def permission_service(fake_db: FakeDatabaseClient) -> PermissionService:
    # No Redis: every grant lookup reads user_roles.
    return PermissionService(fake_db, RoleCache(client_getter=lambda: None))


@pytest.fixture
def eligibility_service(submission_store: SubmissionStore) -> EligibilityService:
    return EligibilityService(submission_store)


@pytest.fixture
def mock_registry() -> AsyncMock:
    """StoryProtocolClient double that registers successfully."""
    registry = AsyncMock(spec=StoryProtocolClient)
    registry.register = AsyncMock(
        return_value=RegistrationReceipt(ip_id=NEW_IP_ID, tx_hash=NEW_TX_HASH, token_id="7")
    )
    return registry


@pytest.fixture
def registration_service(
    submission_store: SubmissionStore,
    eligibility_service: EligibilityService,
    mock_registry: AsyncMock,
    audit_service: AuditService,
    mock_settings: Settings,
) -> IPRegistrationService:
    return IPRegistrationService(
        store=submission_store,
        eligibility=eligibility_service,
        registry=mock_registry,
        audit=audit_service,
        settings=mock_settings,
    )


@pytest.fixture
def review_service(
    submission_store: SubmissionStore,
    audit_service: AuditService,
    permission_service: PermissionService,
    registration_service: IPRegistrationService,
    mock_settings: Settings,
) -> ReviewService:
    return ReviewService(
        store=submission_store,
        audit=audit_service,
        permissions=permission_service,
        registration=registration_service,
        settings=mock_settings,
    )


# ==============================================================================
# FastAPI Test Client
# ==============================================================================


@pytest.fixture
def test_client(
    mock_settings: Settings,
    fake_db: FakeDatabaseClient,
    review_service: ReviewService,
    eligibility_service: EligibilityService,
    registration_service: IPRegistrationService,
) -> Iterator[TestClient]:
    """
    TestClient with services bound to the in-memory database.

    Not entered as a context manager, so the lifespan (real MongoDB and
    Redis connections) never runs. Authentication is real: requests need a
    local JWT from ``auth_headers``.
    """
    app.dependency_overrides[get_settings] = lambda: mock_settings
    app.dependency_overrides[get_review_service] = lambda: review_service
    app.dependency_overrides[get_eligibility_service] = lambda: eligibility_service
    app.dependency_overrides[get_registration_service] = lambda: registration_service

    with (
        patch("app.core.auth.get_db_client", return_value=fake_db),
        patch("app.utils.cache.get_redis_client", return_value=None),
    ):
        yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(
    mock_settings: Settings, fake_db: FakeDatabaseClient
) -> Callable[[str], dict[str, str]]:
    """Factory: Authorization header carrying a local JWT for a seeded user."""

    def _headers(user_id: str) -> dict[str, str]:
        user = fake_db.get_users_collection().by_id(user_id)
        email = user["email"] if user else f"{user_id}@example.com"
        token = create_local_jwt(user_id, email, mock_settings)
        return {"Authorization": f"Bearer {token}"}

    return _headers
