"""
Audit log and notification models.

Both collections are append-only. Audit entries record who changed what on
which entity; notifications are the in-app messages shown to creators.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AuditAction(str, Enum):
    SUBMISSION_CREATED = "submission_created"
    SUBMISSION_UPDATED = "submission_updated"
    SUBMISSION_APPROVED = "submission_approved"
    SUBMISSION_REJECTED = "submission_rejected"
    SUBMISSION_WITHDRAWN = "submission_withdrawn"
    SUBMISSION_DELETED = "submission_deleted"
    SUBMISSION_IP_REGISTERED = "submission_ip_registered"


class NotificationType(str, Enum):
    SUBMISSION_APPROVED = "submission_approved"
    SUBMISSION_REJECTED = "submission_rejected"
    SUBMISSION_IP_REGISTERED = "submission_ip_registered"


class AuditLogEntry(BaseModel):
    """
    Immutable record of a state change.

    Attributes:
        user_id: Actor; None for system actions such as background registration
        action: What happened
        entity_type: Kind of entity changed, e.g. "submission"
        entity_id: Changed entity id
        old_values: Relevant fields before the change
        new_values: Relevant fields after the change
        metadata: Extra context (creator id, campaign id, tx hash)
    """

    id: str | None = Field(default=None, alias="_id")
    user_id: str | None
    action: AuditAction
    entity_type: str = "submission"
    entity_id: str
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, frozen=True)


class Notification(BaseModel):
    id: str | None = Field(default=None, alias="_id")
    user_id: str
    type: NotificationType
    title: str = Field(..., max_length=200)
    message: str = Field(..., max_length=1000)
    data: dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)
