"""
IP registration models.

Results of the eligibility check and of a registration attempt, and the
payload exchanged with the Story Protocol registration gateway.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EligibilityResult(BaseModel):
    eligible: bool
    reason: str | None = None


class RegistrationResult(BaseModel):
    """
    Outcome of one registration attempt.

    On failure ``error`` explains why and the submission is left untouched;
    the attempt may be repeated by calling the register endpoint again.
    """

    success: bool
    ip_id: str | None = None
    tx_hash: str | None = None
    error: str | None = None


class RegistrationStatus(BaseModel):
    registered: bool
    ip_id: str | None = None
    parent_ip_ids: list[str] = Field(default_factory=list)
    explorer_url: str | None = None


# =============================================================================
# Registry gateway payloads
# =============================================================================


class Contributor(BaseModel):
    name: str
    address: str
    contribution_percent: int = Field(..., ge=0, le=100)


class NftAttribute(BaseModel):
    key: str
    value: str


class DerivativeRegistrationRequest(BaseModel):
    """
    Request to register a submission as a derivative of its parent IP assets.

    ``license_terms_ids`` is parallel to ``parent_ip_ids``: one terms id per
    parent.
    """

    submission_id: str
    title: str
    description: str
    image_url: str
    parent_ip_ids: list[str] = Field(..., min_length=1)
    license_terms_ids: list[str] = Field(..., min_length=1)
    spg_nft_contract: str
    creators: list[Contributor] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    ip_type: str = "Artwork"
    nft_attributes: list[NftAttribute] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class RegistrationReceipt(BaseModel):
    """Successful gateway response."""

    ip_id: str
    tx_hash: str | None = None
    token_id: str | None = None
