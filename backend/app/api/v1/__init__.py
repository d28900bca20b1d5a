"""
FanForge API v1 router aggregator.

Router Structure:
    - /submissions: review workflow (approve, reject, bulk review, withdraw,
      delete, IP registration)
"""

from fastapi import APIRouter

from app.api.v1.submissions import router as submissions_router


api_router = APIRouter()

api_router.include_router(
    submissions_router,
    prefix="/submissions",
    tags=["submissions"],
)

__all__ = ["api_router"]
