"""
Standardized error response DTOs for authentication API.
"""

from pydantic import BaseModel, Field, field_serializer
from typing import Optional
from datetime import datetime, timezone

from src.core.exceptions.handler import ServiceErrorCode


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: ServiceErrorCode = Field(..., description="Error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[str] = Field(None, description="Additional error details")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc).replace(tzinfo=None),
        description="Error timestamp"
    )

    @field_serializer('timestamp')
    def serialize_timestamp(self, timestamp: datetime) -> str:
        """Serialize datetime to ISO format with Z suffix."""
        return timestamp.isoformat() + "Z"


class RateLimitErrorResponse(BaseModel):
    """Rate limit error response with retry information."""

    success: bool = False
    error: ErrorDetail = Field(..., description="Error details")
    retry_after: int = Field(..., description="Seconds to wait before retry")
    limit: int = Field(..., description="Rate limit threshold")
    remaining: int = Field(0, description="remaining requests")
    reset_time: datetime = Field(..., description="When the rate limit resets")

    @field_serializer('reset_time')
    def serialize_reset_time(self, reset_time: datetime) -> str:
        """Serialize datetime to ISO format with Z suffix."""
        return reset_time.isoformat() + "Z"
