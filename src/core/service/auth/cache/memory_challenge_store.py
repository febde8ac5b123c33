import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from src.core.service.auth.cache.base import ChallengeStore
from src.core.service.auth.models.challenge import Challenge
from src.core.logger.logger import get_logger
from src.infra.config.settings import settings

logger = get_logger(__name__)


class InMemoryChallengeStore(ChallengeStore):
    """
    Process-local challenge store for single-instance deployments.

    Each `store` schedules a fire-once eviction on the running event loop.
    The eviction compares the stored nonce before deleting, so a timer left
    over from an overwritten entry never removes the newer one. `lookup`
    applies the same TTL lazily in case the timer could not run.
    """

    def __init__(
        self,
        ttl_seconds: float = settings.CHALLENGE_STORE_TTL_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._challenges: Dict[str, Challenge] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}

    @property
    def size(self) -> int:
        return len(self._challenges)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc)

    async def store(self, wallet_address: str, nonce: str) -> Challenge:
        key = self.normalize_owner(wallet_address)
        challenge = Challenge(wallet_address=key, nonce=nonce, created_at=self._now())
        self._challenges[key] = challenge

        previous = self._timers.pop(key, None)
        if previous is not None:
            previous.cancel()
        try:
            loop = asyncio.get_running_loop()
            self._timers[key] = loop.call_later(self.ttl_seconds, self._expire, key, nonce)
        except RuntimeError:
            # No running loop; lookup() enforces the TTL instead
            pass

        logger.debug(
            "Stored challenge",
            extra={
                "wallet_address": key,
                "ttl": self.ttl_seconds,
                "store_size": len(self._challenges)
            }
        )
        return challenge

    def _expire(self, key: str, nonce: str) -> None:
        stored = self._challenges.get(key)
        if stored is not None and stored.nonce == nonce:
            del self._challenges[key]
            self._timers.pop(key, None)
            logger.debug(
                "Challenge auto-expired",
                extra={"wallet_address": key, "ttl": self.ttl_seconds}
            )

    async def lookup(self, wallet_address: str) -> Optional[Challenge]:
        key = self.normalize_owner(wallet_address)
        challenge = self._challenges.get(key)
        if challenge is None:
            return None

        if challenge.is_expired(self.ttl_seconds, now=self._now()):
            self._expire(key, challenge.nonce)
            return None
        return challenge

    async def remove(self, wallet_address: str) -> None:
        key = self.normalize_owner(wallet_address)
        self._discard(key)
        logger.debug("Deleted challenge", extra={"wallet_address": key})

    async def consume(self, wallet_address: str, nonce: str) -> bool:
        # No await between the check and the pop
        key = self.normalize_owner(wallet_address)
        challenge = self._challenges.get(key)
        if challenge is None or challenge.nonce != nonce:
            return False
        if challenge.is_expired(self.ttl_seconds, now=self._now()):
            self._discard(key)
            return False

        self._discard(key)
        logger.debug("Consumed challenge", extra={"wallet_address": key})
        return True

    def _discard(self, key: str) -> None:
        self._challenges.pop(key, None)
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
