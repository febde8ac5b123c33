import json
from datetime import datetime
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from src.core.exceptions.handler import ServiceError, ServiceErrorCode
from src.core.service.auth.cache.base import ChallengeStore
from src.core.service.auth.models.challenge import Challenge
from src.core.logger.logger import get_logger
from src.infra.config.settings import settings

logger = get_logger(__name__)


class RedisChallengeStore(ChallengeStore):
    """Redis store for managing authentication challenges across instances.

    Expiry is the key's native TTL. Overwriting a key resets its TTL, so there
    is no stale timer that could delete a newer challenge.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        ttl_seconds: int = settings.CHALLENGE_STORE_TTL_SECONDS
    ):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.key_prefix = "auth:nonce:"

    def _get_key(self, wallet_address: str) -> str:
        """Get Redis key for wallet address"""
        return f"{self.key_prefix}{self.normalize_owner(wallet_address)}"

    def _unavailable(self, action: str, wallet_address: str, error: Exception) -> ServiceError:
        logger.error(
            f"Error {action} challenge",
            extra={
                "wallet_address": wallet_address,
                "error": str(error)
            }
        )
        return ServiceError(
            code=ServiceErrorCode.SERVICE_UNAVAILABLE,
            message="Challenge store unavailable",
            status_code=503
        )

    def _serialize_challenge(self, challenge: Challenge) -> str:
        """Serialize challenge to JSON string"""
        challenge_dict = challenge.model_dump()
        challenge_dict["created_at"] = challenge_dict["created_at"].isoformat()
        return json.dumps(challenge_dict)

    def _deserialize_challenge(self, data: str) -> Challenge:
        """Deserialize JSON string to Challenge object"""
        challenge_dict = json.loads(data)
        challenge_dict["created_at"] = datetime.fromisoformat(challenge_dict["created_at"])
        return Challenge(**challenge_dict)

    async def store(self, wallet_address: str, nonce: str) -> Challenge:
        """Save challenge to Redis with TTL"""
        challenge = Challenge(wallet_address=self.normalize_owner(wallet_address), nonce=nonce)
        try:
            await self.redis.setex(
                self._get_key(wallet_address),
                self.ttl_seconds,
                self._serialize_challenge(challenge)
            )
            logger.debug(
                "Saved challenge",
                extra={
                    "wallet_address": challenge.wallet_address,
                    "ttl": self.ttl_seconds
                }
            )
            return challenge

        except RedisError as e:
            raise self._unavailable("saving", challenge.wallet_address, e) from e

    async def lookup(self, wallet_address: str) -> Optional[Challenge]:
        """Get challenge from Redis if exists"""
        try:
            data = await self.redis.get(self._get_key(wallet_address))
            if not data:
                return None
            return self._deserialize_challenge(data)

        except RedisError as e:
            raise self._unavailable("getting", wallet_address, e) from e

    async def remove(self, wallet_address: str) -> None:
        """Delete challenge from Redis"""
        try:
            await self.redis.delete(self._get_key(wallet_address))
            logger.debug(
                "Deleted challenge",
                extra={"wallet_address": wallet_address}
            )

        except RedisError as e:
            raise self._unavailable("deleting", wallet_address, e) from e

    async def consume(self, wallet_address: str, nonce: str) -> bool:
        """Compare-and-delete under WATCH; a concurrent change aborts the delete"""
        key = self._get_key(wallet_address)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                data = await pipe.get(key)
                if not data or self._deserialize_challenge(data).nonce != nonce:
                    return False

                pipe.multi()
                pipe.delete(key)
                await pipe.execute()

            logger.debug(
                "Consumed challenge",
                extra={"wallet_address": self.normalize_owner(wallet_address)}
            )
            return True

        except WatchError:
            logger.info(
                "Challenge consumed concurrently",
                extra={"wallet_address": self.normalize_owner(wallet_address)}
            )
            return False
        except RedisError as e:
            raise self._unavailable("consuming", wallet_address, e) from e

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except Exception as e:
            logger.warning(f"Redis ping failed: {e}")
            return False
