"""Tests for response envelope models."""

from app.core.responses import DataResponse, ErrorDetail, ErrorResponse
from app.schemas.ai import UsageWindow


class TestDataResponse:
    """Tests for DataResponse model (single resource)."""

    def test_data_response_serializes_with_data_key(self):
        response = DataResponse(data={"status": "ok"})
        assert response.model_dump() == {"data": {"status": "ok"}}

    def test_nested_schema_uses_camel_case_aliases(self):
        response = DataResponse(
            data=UsageWindow(used=3, limit=10, remaining=7, percentage=30)
        )
        result = response.model_dump(by_alias=True)
        assert result["data"] == {"used": 3, "limit": 10, "remaining": 7, "percentage": 30}


class TestErrorResponse:
    """Tests for the error envelope."""

    def test_error_response_serializes_with_error_key(self):
        response = ErrorResponse(
            error=ErrorDetail(code="UNAUTHORIZED", message="Authentication required")
        )
        assert response.model_dump() == {
            "error": {
                "code": "UNAUTHORIZED",
                "message": "Authentication required",
                "details": None,
            }
        }

    def test_error_response_with_details(self):
        response = ErrorResponse(
            error=ErrorDetail(
                code="QUOTA_EXCEEDED",
                message="Daily limit reached",
                details=[{"limit": 10, "used": 10}],
            )
        )
        assert response.model_dump()["error"]["details"] == [{"limit": 10, "used": 10}]
