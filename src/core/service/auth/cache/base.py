from abc import ABC, abstractmethod
from typing import Optional

from src.core.service.auth.models.challenge import Challenge


class ChallengeStore(ABC):
    """
    Keyed storage of outstanding challenges, one per wallet address.

    Keys are lower-cased wallet addresses. `store` overwrites any previous
    challenge for the same owner and arranges for the entry to disappear after
    the store TTL, but only while it still holds that exact nonce.
    `consume` is the single-use step of a login: at most one caller can win
    it for a given stored nonce.
    None of the operations signal absence as an error.
    """

    @staticmethod
    def normalize_owner(wallet_address: str) -> str:
        return wallet_address.strip().lower()

    @abstractmethod
    async def store(self, wallet_address: str, nonce: str) -> Challenge:
        """Register `nonce` for `wallet_address`, replacing any prior entry"""

    @abstractmethod
    async def lookup(self, wallet_address: str) -> Optional[Challenge]:
        """Return the live challenge for `wallet_address`, or None"""

    @abstractmethod
    async def remove(self, wallet_address: str) -> None:
        """Unconditionally delete the challenge for `wallet_address`"""

    @abstractmethod
    async def consume(self, wallet_address: str, nonce: str) -> bool:
        """Delete the challenge only if it still holds `nonce`; report whether it did"""

    async def ping(self) -> bool:
        """Report whether the backing storage is reachable"""
        return True
