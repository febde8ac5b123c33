"""
Input DTOs for authentication API endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional


class LoginRequestDto(BaseModel):
    """
    DTO for login request.

    Every field is optional at the schema level so that a missing value is
    reported as a 400 by the login flow instead of a generic 422.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "walletAddress": "0x742d35Cc6634C0532925a3b844Bc454e4438f44e",
                "signature": "0x5f1c...1b",
                "message": "Authenticate to MVP Shell: k3Jd9aQz0LmPx7Rt2VbN8cYw6718f0c2a"
            }
        }
    )

    wallet_address: Optional[str] = Field(
        None,
        alias="walletAddress",
        description="Wallet address that signed the challenge"
    )
    signature: Optional[str] = Field(None, description="Hex-encoded personal-message signature")
    message: Optional[str] = Field(None, description="Signed challenge message")

    @field_validator('wallet_address', 'signature')
    @classmethod
    def strip_whitespace(cls, v):
        return v.strip() if isinstance(v, str) else v
