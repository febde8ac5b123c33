from typing import List
from pydantic_settings import BaseSettings
from functools import lru_cache


def auth_message_prefix(app_name: str) -> str:
    """Fixed text a wallet signs in front of its nonce"""
    return f"Authenticate to {app_name}: "


class Settings(BaseSettings):
    # App Settings
    APP_NAME: str = "MVP Shell"  # Also used in the sign-in message template
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"  # development or production

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Session Token Settings
    JWT_SECRET_KEY: str = "your-super-secret-jwt-key-change-this-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_SECRET_LENGTH: int = 32  # minimum recommended secret length
    SESSION_TOKEN_EXPIRE_HOURS: int = 24

    # Session Cookie Settings
    SESSION_COOKIE_NAME: str = "authToken"
    SESSION_COOKIE_SECURE: bool = True

    # Challenge Settings
    CHALLENGE_STORE_BACKEND: str = "memory"  # memory or redis
    CHALLENGE_STORE_TTL_SECONDS: int = 60
    CHALLENGE_MAX_AGE_SECONDS: int = 300  # 5 minutes, measured from the embedded timestamp
    CHALLENGE_RANDOM_LENGTH: int = 24
    REQUIRE_ISSUED_CHALLENGE: bool = True

    # Redis Settings
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 10

    # Rate Limiting (requests per minute)
    RATE_LIMIT_DEFAULT: int = 100
    RATE_LIMIT_AUTH_NONCE: int = 10
    RATE_LIMIT_AUTH_LOGIN: int = 10
    SUSPICIOUS_IP_THRESHOLD: int = 5  # failed logins before blocking
    IP_BLOCK_DURATION: int = 15  # minutes
    TRUSTED_PROXIES: List[str] = []  # peers allowed to set X-Forwarded-For / X-Real-IP

    # CORS
    PRODUCTION_ORIGINS: List[str] = [
        "https://www.thecitizen.io",
    ]
    DEVELOPMENT_ORIGINS: List[str] = [
        "https://www.thecitizen.io",
        "http://localhost:3000",  # Frontend development
    ]

    @property
    def allowed_origins(self) -> List[str]:
        if self.ENVIRONMENT == "development":
            return self.DEVELOPMENT_ORIGINS
        return self.PRODUCTION_ORIGINS

    @property
    def auth_message_prefix(self) -> str:
        return auth_message_prefix(self.APP_NAME)

    class Config:
        env_file = ".env"
        case_sensitive = True

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
