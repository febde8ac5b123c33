"""
FastAPI dependency injection functions.
Clean, maintainable dependency resolution using FastAPI's native DI system.
"""

from functools import lru_cache

from fastapi import Depends, Request

from src.core.service.auth.cache.base import ChallengeStore
from src.core.service.auth.cache.challenge_store import RedisChallengeStore
from src.core.service.auth.cache.memory_challenge_store import InMemoryChallengeStore
from src.core.service.auth.challenge_service import ChallengeService
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.login_service import LoginService
from src.core.service.auth.signature_verification import SignatureVerificationService
from src.infra.config.redis import create_redis_client
from src.infra.config.settings import settings
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


def create_challenge_store() -> ChallengeStore:
    """Build the configured challenge store backend."""
    if settings.CHALLENGE_STORE_BACKEND == "redis":
        logger.info("Using Redis challenge store")
        return RedisChallengeStore(create_redis_client())
    logger.info("Using in-memory challenge store")
    return InMemoryChallengeStore()


def get_challenge_store(request: Request) -> ChallengeStore:
    """Get the process-wide challenge store owned by the app."""
    return request.app.state.challenge_store


@lru_cache()
def get_jwt_service() -> JWTService:
    """Get session token service; the signing secret is read once."""
    return JWTService()


@lru_cache()
def get_signature_service() -> SignatureVerificationService:
    """Get signature verification service."""
    return SignatureVerificationService()


def get_challenge_service(
    challenge_store: ChallengeStore = Depends(get_challenge_store)
) -> ChallengeService:
    """Get challenge service with its store."""
    return ChallengeService(challenge_store)


def get_login_service(
    challenge_store: ChallengeStore = Depends(get_challenge_store),
    signature_service: SignatureVerificationService = Depends(get_signature_service),
    jwt_service: JWTService = Depends(get_jwt_service)
) -> LoginService:
    """Get login service with dependencies."""
    return LoginService(challenge_store, signature_service, jwt_service)
