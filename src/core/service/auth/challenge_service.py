import time
from typing import Callable

from src.core.service.auth.cache.base import ChallengeStore
from src.core.service.auth.utils.nonce import generate_nonce
from src.core.logger.logger import get_logger
from src.infra.config.settings import settings

logger = get_logger(__name__)


class ChallengeService:
    """Issues sign-in challenges and registers them in the challenge store"""

    def __init__(
        self,
        challenge_store: ChallengeStore,
        random_length: int = settings.CHALLENGE_RANDOM_LENGTH,
        clock: Callable[[], float] = time.time
    ):
        self.store = challenge_store
        self.random_length = random_length
        self.clock = clock

    def build_message(self, nonce: str) -> str:
        """Message the wallet must sign for `nonce`"""
        return f"{settings.auth_message_prefix}{nonce}"

    async def issue(self, wallet_address: str) -> str:
        """Generate a fresh nonce for `wallet_address` and store it, replacing any prior one"""
        nonce = generate_nonce(self.clock(), self.random_length)
        challenge = await self.store.store(wallet_address, nonce)

        logger.info(
            f"Generated challenge for {challenge.wallet_address}",
            extra={"wallet_address": challenge.wallet_address}
        )
        return nonce
