"""
Brand asset model.

Assets are the licensed pieces of a brand's IP kit (characters, logos,
backgrounds...) that creators compose into submissions. An asset registered
with Story Protocol carries its IP id in ``ip_id``; that id is the registry
anchor a derivative submission links to as a parent.
"""

import re

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


IP_ID_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


class AssetCategory(str, Enum):
    CHARACTERS = "characters"
    BACKGROUNDS = "backgrounds"
    LOGOS = "logos"
    TITLES = "titles"
    PROPS = "props"
    OTHER = "other"


class Asset(BaseModel):
    """
    Licensed asset from a brand IP kit.

    Attributes:
        id: Asset id (aliased from _id)
        ip_kit_id: Kit the asset belongs to
        filename: Original file name
        url: Public URL of the asset file
        category: Asset category
        ip_id: Registry anchor once the asset is registered, else None
    """

    id: str | None = Field(default=None, alias="_id")
    ip_kit_id: str
    filename: str = Field(..., min_length=1, max_length=255)
    url: str
    category: AssetCategory = AssetCategory.OTHER
    ip_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    @field_validator("ip_id")
    @classmethod
    def validate_ip_id(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not IP_ID_PATTERN.match(v):
            raise ValueError("ip_id must be a 0x-prefixed 40 character hex address")
        return v

    def is_registered(self) -> bool:
        return self.ip_id is not None
