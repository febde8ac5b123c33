from datetime import datetime, timedelta, timezone
from pydantic import BaseModel, Field


class Challenge(BaseModel):
    """Outstanding sign-in challenge held by the challenge store"""
    wallet_address: str = Field(..., description="Lower-cased wallet address owning the challenge")
    nonce: str = Field(..., description="Random alphanumeric value ending in an 8-char hex timestamp")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def is_expired(self, ttl_seconds: float, now: datetime = None) -> bool:
        """Check if the challenge has outlived the store TTL"""
        now = now or datetime.now(timezone.utc)
        return now > self.created_at + timedelta(seconds=ttl_seconds)

    class Config:
        json_schema_extra = {
            "example": {
                "wallet_address": "0x742d35cc6634c0532925a3b844bc454e4438f44e",
                "nonce": "k3Jd9aQz0LmPx7Rt2VbN8cYw6718f0c2a",
                "created_at": "2024-02-06T10:00:00Z"
            }
        }
