"""
Review workflow error taxonomy.

Services raise these; the API layer renders them through a single exception
handler in ``app.main``. Each class carries the HTTP status it maps to so the
handler never needs to know about individual error types.
"""

from typing import Any

from fastapi import status


class ReviewWorkflowError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "status_code": self.status_code}


class UnauthenticatedError(ReviewWorkflowError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class ForbiddenError(ReviewWorkflowError):
    """Caller is authenticated but lacks authority over the resource."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFoundError(ReviewWorkflowError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidStateError(ReviewWorkflowError):
    """Operation not allowed from the entity's current status."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid state"


class WorkflowValidationError(ReviewWorkflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"


class ReviewTimeoutError(ReviewWorkflowError):
    """The transactional status write did not complete in time."""

    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_message = "Review update timed out"


class ExternalServiceError(ReviewWorkflowError):
    """
    The IP registry (or another outbound dependency) failed.

    Only raised by registry clients. The registration connector converts it
    into an unsuccessful result, so approve/reject never see it.
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "External service error"

    def __init__(
        self,
        message: str | None = None,
        *,
        retryable: bool = False,
        upstream_status: int | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message, **context)
        self.retryable = retryable
        self.upstream_status = upstream_status
