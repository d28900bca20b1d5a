"""
Audit and notification recorder.

Append-only writes to ``audit_logs`` and ``notifications``. Errors propagate
to the caller; the review orchestrator decides that a failed side effect
after a committed status change is logged rather than surfaced.
"""

import logging

from typing import Any

from bson import ObjectId

from app.core.database import DatabaseClient
from app.models.audit import AuditAction, AuditLogEntry, Notification, NotificationType


logger = logging.getLogger(__name__)


class AuditService:
    """
    Records audit entries and creator notifications.

    Example:
        ```python
        audit = AuditService(get_db_client())
        await audit.record(
            user_id=reviewer_id,
            action=AuditAction.SUBMISSION_APPROVED,
            entity_id=submission_id,
            old_values={"status": "pending"},
            new_values={"status": "approved"},
        )
        ```
    """

    def __init__(self, db: DatabaseClient) -> None:
        self.db = db

    async def record(
        self,
        *,
        user_id: str | None,
        action: AuditAction,
        entity_id: str,
        entity_type: str = "submission",
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            _id=str(ObjectId()),
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_values=old_values,
            new_values=new_values,
            metadata=metadata or {},
        )
        await self.db.get_audit_logs_collection().insert_one(entry.model_dump(by_alias=True))
        logger.debug("Audit %s recorded for %s %s", entry.action, entity_type, entity_id)
        return entry

    async def notify(
        self,
        *,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        notification = Notification(
            _id=str(ObjectId()),
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=data or {},
        )
        await self.db.get_notifications_collection().insert_one(
            notification.model_dump(by_alias=True)
        )
        return notification

    async def history(self, entity_id: str, entity_type: str = "submission") -> list[AuditLogEntry]:
        """Audit trail for one entity, oldest first."""
        cursor = self.db.get_audit_logs_collection().find(
            {"entity_type": entity_type, "entity_id": entity_id}
        ).sort("created_at", 1)
        documents = await cursor.to_list(length=500)
        return [AuditLogEntry.model_validate(doc) for doc in documents]
