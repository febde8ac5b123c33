"""
Output DTOs for authentication API endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, Optional
from datetime import datetime


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class NonceResponseDto(CamelModel):
    """DTO for challenge issuance response."""

    nonce: str = Field(..., description="Challenge nonce with embedded timestamp")
    message: str = Field(..., description="Message to be signed by wallet")


class LoginResponseDto(CamelModel):
    """DTO for successful login response. The token itself travels in the cookie."""

    success: bool = Field(True, description="Login success status")
    wallet_address: str = Field(..., alias="walletAddress", description="Lower-cased wallet address")
    expires_in: str = Field(..., alias="expiresIn", description="Session lifetime label")


class LogoutResponseDto(CamelModel):
    """DTO for logout response."""

    success: bool = Field(True, description="Logout success status")
    message: str = Field(default="Logged out successfully", description="Logout message")


class SessionCheckResponseDto(CamelModel):
    """DTO for session check response."""

    authenticated: bool = Field(..., description="Whether the session cookie is valid")
    wallet_address: Optional[str] = Field(None, alias="walletAddress", description="Authenticated wallet address")
    error: Optional[str] = Field(None, description="Why the session is not valid")


class SessionInfoResponseDto(CamelModel):
    """DTO for the protected session endpoint."""

    wallet_address: str = Field(..., alias="walletAddress")
    issued_at: datetime = Field(..., alias="issuedAt")
    expires_at: datetime = Field(..., alias="expiresAt")


class HealthCheckResponseDto(BaseModel):
    """DTO for health check response."""

    status: str = Field(..., description="Overall service status")
    timestamp: str = Field(..., description="Check timestamp")
    version: str = Field(..., description="Service version")
    services: Dict[str, Dict[str, str]] = Field(default_factory=dict, description="Component statuses")
