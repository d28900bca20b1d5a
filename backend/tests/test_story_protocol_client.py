"""
Story Protocol Client Test Suite

Exercises the registration gateway client against httpx.MockTransport:
- request shape, auth header and response parsing (snake and camel case)
- error responses, malformed bodies and invalid IP ids
- connection retries, and no retry once the request was sent
- derivative request building: contributors, tags, license terms, contract
"""

import json

from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from app.config import Settings
from app.core.exceptions import ExternalServiceError
from app.models.campaign import Brand, Campaign
from app.models.registration import DerivativeRegistrationRequest
from app.models.submission import CreatorSummary, SubmissionWithRelations
from app.services.story_protocol_client import (
    REGISTER_DERIVATIVE_PATH,
    StoryProtocolClient,
    build_registration_request,
    get_explorer_url,
    is_valid_ip_id,
)

from conftest import BRAND_WALLET, CREATOR_WALLET, HERO_IP_ID, NEW_IP_ID, NEW_TX_HASH


@pytest.fixture
def registration_request() -> DerivativeRegistrationRequest:
    return DerivativeRegistrationRequest(
        submission_id="sub_approved",
        title="Sunset Squad",
        description="Fan art",
        image_url="https://cdn.fanforge.example/art/sunset.png",
        parent_ip_ids=[HERO_IP_ID],
        license_terms_ids=["386"],
        spg_nft_contract="0x9999999999999999999999999999999999999999",
    )


@pytest.fixture
def campaign() -> Campaign:
    return Campaign(_id="camp_summer", title="Summer Heroes", brand_id="brand_nova")


@pytest.fixture
def brand() -> Brand:
    return Brand(
        _id="brand_nova", name="Nova Studios", owner_id="user_owner", wallet_address=BRAND_WALLET
    )


@pytest.fixture
def approved_submission() -> SubmissionWithRelations:
    return SubmissionWithRelations(
        _id="sub_approved",
        title="Sunset Squad",
        artwork_url="https://cdn.fanforge.example/art/sunset.png",
        tags=["summer", "Fan Art"],
        used_asset_ids=["asset_hero"],
        campaign_id="camp_summer",
        creator_id="user_creator",
        status="approved",
        is_public=True,
        creator=CreatorSummary(
            id="user_creator", display_name="Pixel Painter", wallet_address=CREATOR_WALLET
        ),
    )


def _client(settings: Settings, handler) -> StoryProtocolClient:
    return StoryProtocolClient(settings, transport=httpx.MockTransport(handler))


# =============================================================================
# register()
# =============================================================================


class TestRegister:
    @pytest.mark.asyncio
    async def test_successful_registration(
        self, mock_settings: Settings, registration_request: DerivativeRegistrationRequest
    ) -> None:
        seen: dict[str, Any] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                201, json={"ip_id": NEW_IP_ID, "tx_hash": NEW_TX_HASH, "token_id": 12}
            )

        receipt = await _client(mock_settings, handler).register(registration_request)

        assert receipt.ip_id == NEW_IP_ID
        assert receipt.tx_hash == NEW_TX_HASH
        assert receipt.token_id == "12"
        assert seen["url"] == f"http://registry.test{REGISTER_DERIVATIVE_PATH}"
        assert seen["auth"] == "Bearer test-registry-key"
        assert seen["body"]["parent_ip_ids"] == [HERO_IP_ID]
        assert seen["body"]["ip_type"] == "Artwork"

    @pytest.mark.asyncio
    async def test_camel_case_response(
        self, mock_settings: Settings, registration_request: DerivativeRegistrationRequest
    ) -> None:
        def handler(_request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"ipId": NEW_IP_ID, "txHash": NEW_TX_HASH})

        receipt = await _client(mock_settings, handler).register(registration_request)

        assert receipt.ip_id == NEW_IP_ID
        assert receipt.token_id is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code,retryable", [(400, False), (422, False), (502, True)])
    async def test_error_response(
        self,
        mock_settings: Settings,
        registration_request: DerivativeRegistrationRequest,
        status_code: int,
        retryable: bool,
    ) -> None:
        def handler(_request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code, json={"error": "parent not licensed"})

        with pytest.raises(ExternalServiceError) as exc_info:
            await _client(mock_settings, handler).register(registration_request)

        assert exc_info.value.upstream_status == status_code
        assert exc_info.value.retryable is retryable
        assert "parent not licensed" in exc_info.value.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="<html>gateway</html>"),
            httpx.Response(200, json=["not", "an", "object"]),
            httpx.Response(200, json={"tx_hash": NEW_TX_HASH}),
            httpx.Response(200, json={"ip_id": "not-an-address"}),
        ],
    )
    async def test_malformed_response(
        self,
        mock_settings: Settings,
        registration_request: DerivativeRegistrationRequest,
        response: httpx.Response,
    ) -> None:
        with pytest.raises(ExternalServiceError):
            await _client(mock_settings, lambda _request: response).register(registration_request)

    @pytest.mark.asyncio
    async def test_connect_errors_are_retried(
        self, mock_settings: Settings, registration_request: DerivativeRegistrationRequest
    ) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            if calls["count"] < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"ip_id": NEW_IP_ID})

        with patch("app.services.story_protocol_client.asyncio.sleep", AsyncMock()) as sleep:
            receipt = await _client(mock_settings, handler).register(registration_request)

        assert receipt.ip_id == NEW_IP_ID
        assert calls["count"] == 3
        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_connect_errors_exhaust_retries(
        self, mock_settings: Settings, registration_request: DerivativeRegistrationRequest
    ) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            raise httpx.ConnectError("connection refused", request=request)

        with patch("app.services.story_protocol_client.asyncio.sleep", AsyncMock()):
            with pytest.raises(ExternalServiceError) as exc_info:
                await _client(mock_settings, handler).register(registration_request)

        assert calls["count"] == mock_settings.story_registry_connect_retries + 1
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_timeout_is_not_retried(
        self, mock_settings: Settings, registration_request: DerivativeRegistrationRequest
    ) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            raise httpx.ReadTimeout("gateway slow", request=request)

        with pytest.raises(ExternalServiceError) as exc_info:
            await _client(mock_settings, handler).register(registration_request)

        assert calls["count"] == 1
        assert exc_info.value.message == "Registry request timed out"


# =============================================================================
# Request building
# =============================================================================


class TestBuildRegistrationRequest:
    def test_contributors_split_evenly(
        self,
        approved_submission: SubmissionWithRelations,
        campaign: Campaign,
        brand: Brand,
        mock_settings: Settings,
    ) -> None:
        request = build_registration_request(
            approved_submission, campaign, brand, [HERO_IP_ID], mock_settings
        )

        assert [(c.name, c.address, c.contribution_percent) for c in request.creators] == [
            ("Pixel Painter", CREATOR_WALLET, 50),
            ("Nova Studios", BRAND_WALLET, 50),
        ]

    def test_single_known_wallet_takes_full_share(
        self,
        approved_submission: SubmissionWithRelations,
        campaign: Campaign,
        brand: Brand,
        mock_settings: Settings,
    ) -> None:
        brand.wallet_address = None

        request = build_registration_request(
            approved_submission, campaign, brand, [HERO_IP_ID], mock_settings
        )

        assert len(request.creators) == 1
        assert request.creators[0].contribution_percent == 100

    def test_tags_attributes_and_contract(
        self,
        approved_submission: SubmissionWithRelations,
        campaign: Campaign,
        brand: Brand,
        mock_settings: Settings,
    ) -> None:
        parents = [HERO_IP_ID, "0x" + "e" * 40]

        request = build_registration_request(
            approved_submission, campaign, brand, parents, mock_settings
        )

        assert request.tags == [
            "Nova Studios",
            "Summer Heroes",
            "Fan Art",
            "Derivative Work",
            "Official",
            "summer",
        ]
        assert {a.key: a.value for a in request.nft_attributes} == {
            "Campaign": "Summer Heroes",
            "Brand": "Nova Studios",
            "Creator": "Pixel Painter",
        }
        assert request.license_terms_ids == ["386", "386"]
        assert request.spg_nft_contract == "0x9999999999999999999999999999999999999999"
        assert request.description == 'Fan art created for the "Summer Heroes" campaign by Nova Studios.'
        assert request.metadata["network"] == "aeneid"

    def test_default_collection_for_unmapped_campaign(
        self,
        approved_submission: SubmissionWithRelations,
        brand: Brand,
        mock_settings: Settings,
    ) -> None:
        other = Campaign(_id="camp_winter", title="Winter", brand_id="brand_nova")

        request = build_registration_request(
            approved_submission, other, brand, [HERO_IP_ID], mock_settings
        )

        assert request.spg_nft_contract == mock_settings.story_default_collection_contract


class TestHelpers:
    @pytest.mark.parametrize(
        "value,expected",
        [(HERO_IP_ID, True), ("0x123", False), ("", False), (None, False), ("1x" + "a" * 40, False)],
    )
    def test_is_valid_ip_id(self, value: str | None, expected: bool) -> None:
        assert is_valid_ip_id(value) is expected

    def test_explorer_url_per_network(self, mock_settings: Settings) -> None:
        assert get_explorer_url(HERO_IP_ID, mock_settings) == (
            f"https://aeneid.explorer.story.foundation/ipa/{HERO_IP_ID}"
        )
        mock_settings.story_network = "mainnet"
        assert get_explorer_url(HERO_IP_ID, mock_settings) == (
            f"https://explorer.story.foundation/ipa/{HERO_IP_ID}"
        )
