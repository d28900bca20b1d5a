"""
Story Protocol registration gateway client.

The gateway owns everything chain-side (IPFS metadata pinning, minting into
the SPG collection, linking parents with license terms). From here it is a
single call: POST a derivative registration request and receive the new IP id
and transaction hash, or an error.

Retry policy: only failures to establish the connection are retried, because
then the request never reached the gateway. A timeout or any response, even
an error response, is final for this call since the gateway may already have
submitted a transaction.
"""

import asyncio
import logging

from typing import Any

import httpx

from pydantic import ValidationError

from app.config import Settings
from app.core.exceptions import ExternalServiceError
from app.models.asset import IP_ID_PATTERN
from app.models.campaign import Brand, Campaign
from app.models.registration import (
    Contributor,
    DerivativeRegistrationRequest,
    NftAttribute,
    RegistrationReceipt,
)
from app.models.submission import SubmissionWithRelations


logger = logging.getLogger(__name__)

REGISTER_DERIVATIVE_PATH = "/v1/derivatives"
BASE_TAGS = ("Fan Art", "Derivative Work", "Official")


def is_valid_ip_id(value: str | None) -> bool:
    return bool(value) and IP_ID_PATTERN.match(value) is not None


def get_explorer_url(ip_id: str, settings: Settings) -> str:
    return f"{settings.story_explorer_base_url}/ipa/{ip_id}"


def build_registration_request(
    submission: SubmissionWithRelations,
    campaign: Campaign,
    brand: Brand,
    parent_ip_ids: list[str],
    settings: Settings,
) -> DerivativeRegistrationRequest:
    """
    Assemble the derivative registration payload for an approved submission.

    The creator and the brand are credited 50/50 when both wallets are known;
    a single known wallet takes 100%. License terms are attached once per
    parent IP.
    """
    creator = submission.creator
    creator_name = (creator.display_name if creator else None) or "Creator"

    contributors = [
        (creator_name, creator.wallet_address if creator else None),
        (brand.name, brand.wallet_address),
    ]
    known = [(name, address) for name, address in contributors if address]
    share = 100 // len(known) if known else 0
    creators = [Contributor(name=n, address=a, contribution_percent=share) for n, a in known]

    description = submission.description or (
        f'Fan art created for the "{campaign.title}" campaign by {brand.name}.'
    )
    tags = list(dict.fromkeys([brand.name, campaign.title, *BASE_TAGS, *submission.tags]))

    return DerivativeRegistrationRequest(
        submission_id=submission.id or "",
        title=submission.title,
        description=description,
        image_url=submission.artwork_url,
        parent_ip_ids=parent_ip_ids,
        license_terms_ids=[settings.story_license_terms_id] * len(parent_ip_ids),
        spg_nft_contract=settings.collection_contract_for(campaign.id or ""),
        creators=creators,
        tags=tags,
        nft_attributes=[
            NftAttribute(key="Campaign", value=campaign.title),
            NftAttribute(key="Brand", value=brand.name),
            NftAttribute(key="Creator", value=creator_name),
        ],
        metadata={
            "campaign_id": campaign.id,
            "brand_id": brand.id,
            "creator_id": submission.creator_id,
            "network": settings.story_network,
        },
    )


class StoryProtocolClient:
    """
    Async client for the registration gateway.

    Attributes:
        settings: Gateway URL, API key, timeout and connect retry count
        transport: Optional httpx transport, used by tests to stub the gateway

    Example:
        ```python
        client = StoryProtocolClient(get_settings())
        receipt = await client.register(request)
        print(receipt.ip_id, receipt.tx_hash)
        ```
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.settings.story_registry_api_key:
            headers["Authorization"] = f"Bearer {self.settings.story_registry_api_key}"
        return headers

    async def register(self, request: DerivativeRegistrationRequest) -> RegistrationReceipt:
        """
        Register a derivative IP asset.

        Raises:
            ExternalServiceError: On connection failure after retries, timeout,
                non-2xx response, or a malformed response body.
        """
        payload = request.model_dump(mode="json")
        attempts = self.settings.story_registry_connect_retries + 1
        delay = 0.5

        async with httpx.AsyncClient(
            base_url=self.settings.story_registry_url,
            timeout=self.settings.story_registry_timeout_seconds,
            headers=self._headers(),
            transport=self.transport,
        ) as client:
            for attempt in range(1, attempts + 1):
                try:
                    response = await client.post(REGISTER_DERIVATIVE_PATH, json=payload)
                    break
                except httpx.ConnectError as e:
                    if attempt == attempts:
                        raise ExternalServiceError(
                            f"Registry unreachable: {e}", retryable=True
                        ) from e
                    logger.warning(
                        "Registry connection failed (attempt %d/%d), retrying in %.1fs",
                        attempt,
                        attempts,
                        delay,
                    )
                    await asyncio.sleep(delay)
                    delay *= 2
                except httpx.TimeoutException as e:
                    raise ExternalServiceError("Registry request timed out", retryable=True) from e
                except httpx.HTTPError as e:
                    raise ExternalServiceError(f"Registry transport error: {e}") from e

        return self._parse_response(response)

    @staticmethod
    def _parse_response(response: httpx.Response) -> RegistrationReceipt:
        if response.status_code >= 400:
            raise ExternalServiceError(
                f"Registry rejected registration ({response.status_code}): "
                f"{_error_detail(response)}",
                upstream_status=response.status_code,
                retryable=response.status_code >= 500,
            )

        try:
            body: dict[str, Any] = response.json()
            receipt = RegistrationReceipt(
                ip_id=body.get("ip_id") or body.get("ipId"),
                tx_hash=body.get("tx_hash") or body.get("txHash"),
                token_id=_optional_str(body.get("token_id") or body.get("tokenId")),
            )
        except (ValueError, AttributeError, ValidationError) as e:
            raise ExternalServiceError("Registry returned a malformed response") from e

        if not is_valid_ip_id(receipt.ip_id):
            raise ExternalServiceError(f"Registry returned an invalid IP id: {receipt.ip_id!r}")
        return receipt


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or body)
    return str(body)


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)
