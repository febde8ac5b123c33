from datetime import datetime

from pydantic import BaseModel, Field


class TokenPayload(BaseModel):
    """Session token payload structure"""
    wallet_address: str = Field(..., description="Lower-cased wallet address")
    nonce: str = Field(..., description="Challenge consumed by the login that issued this token")
    iat: datetime = Field(..., description="Token issued at timestamp")
    exp: datetime = Field(..., description="Token expiration timestamp")
