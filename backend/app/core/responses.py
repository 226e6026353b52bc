"""Response envelope models.

WHY RESPONSE ENVELOPES:
- Consistent structure across all endpoints
- Easy to distinguish success from error responses
- Type-safe response building in endpoints
"""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Standard response envelope for single resources.

    All success responses use {"data": ...} envelope.

    Usage:
        @router.get("/usage")
        async def get_usage(...) -> DataResponse[UsageSnapshotResponse]:
            snapshot = await meter.snapshot(user.id, user.tier)
            return DataResponse(data=UsageSnapshotResponse(...))
    """

    data: T


class ErrorDetail(BaseModel):
    """Error information in error responses.

    Attributes:
        code: Machine-readable error code (e.g., "QUOTA_EXCEEDED").
        message: Human-readable error message.
        details: Optional list of additional details (field errors, limits).
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope.

    Usage:
        return JSONResponse(
            status_code=429,
            content=ErrorResponse(
                error=ErrorDetail(code="QUOTA_EXCEEDED", message="Daily limit reached")
            ).model_dump(),
        )
    """

    error: ErrorDetail
