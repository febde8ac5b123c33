"""
Wallet login orchestration.

A login attempt moves START -> NONCE_VALIDATED -> SIGNATURE_VERIFIED ->
SESSION_ISSUED, or stops at REJECTED. All syntactic and freshness checks run
before signature recovery. A rejected attempt issues no token and leaves the
challenge in place. A successful one consumes it, and only one concurrent
attempt can do so.
"""

import re
import time
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

from src.core.exceptions.handler import ServiceError, ServiceErrorCode
from src.core.service.auth.cache.base import ChallengeStore
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.signature_verification import SignatureVerificationService
from src.core.service.auth.utils.nonce import extract_timestamp, is_valid_nonce_format
from src.core.logger.logger import get_logger
from src.infra.config.settings import auth_message_prefix, settings

logger = get_logger(__name__)

MAX_WALLET_ADDRESS_LENGTH = 100


class LoginState(str, Enum):
    START = "start"
    NONCE_VALIDATED = "nonce_validated"
    SIGNATURE_VERIFIED = "signature_verified"
    SESSION_ISSUED = "session_issued"
    REJECTED = "rejected"


class LoginResult(BaseModel):
    wallet_address: str
    token: str
    expires_in: str
    state: LoginState = LoginState.SESSION_ISSUED


class LoginService:
    """Turns a signed challenge into a session token"""

    def __init__(
        self,
        challenge_store: ChallengeStore,
        signature_service: SignatureVerificationService,
        jwt_service: JWTService,
        max_challenge_age: int = settings.CHALLENGE_MAX_AGE_SECONDS,
        require_issued_challenge: bool = settings.REQUIRE_ISSUED_CHALLENGE,
        app_name: str = settings.APP_NAME,
        clock: Callable[[], float] = time.time
    ):
        self.store = challenge_store
        self.signature_service = signature_service
        self.jwt_service = jwt_service
        self.max_challenge_age = max_challenge_age
        self.require_issued_challenge = require_issued_challenge
        self.message_prefix = auth_message_prefix(app_name)
        self.message_pattern = re.compile(re.escape(self.message_prefix) + r"(.+)")
        self.clock = clock

    @property
    def expires_in_label(self) -> str:
        return f"{self.jwt_service.max_age_seconds // 3600}h"

    def _reject(
        self,
        code: ServiceErrorCode,
        message: str,
        status_code: int,
        wallet_address: Optional[str],
        stage: LoginState
    ) -> ServiceError:
        logger.warning(
            f"Login rejected: {message}",
            extra={
                "wallet_address": wallet_address,
                "error_code": code.value,
                "stage": stage.value,
                "state": LoginState.REJECTED.value
            }
        )
        return ServiceError(
            code=code,
            message=message,
            status_code=status_code,
            context={"wallet_address": wallet_address, "stage": stage.value}
        )

    def extract_nonce(self, message: str) -> Optional[str]:
        """Pull the nonce out of `Authenticate to <App>: <nonce>`"""
        match = self.message_pattern.fullmatch(message)
        return match.group(1) if match else None

    async def validate_challenge(self, wallet_address: str, message: str) -> str:
        """Run every check that precedes signature recovery and return the nonce"""
        state = LoginState.START

        nonce = self.extract_nonce(message)
        if not nonce:
            raise self._reject(
                ServiceErrorCode.INVALID_FORMAT, "Invalid message format", 400, wallet_address, state
            )

        if not is_valid_nonce_format(nonce):
            raise self._reject(
                ServiceErrorCode.INVALID_CHALLENGE, "Invalid challenge format", 400, wallet_address, state
            )

        timestamp = extract_timestamp(nonce)
        if timestamp is None:
            raise self._reject(
                ServiceErrorCode.INVALID_CHALLENGE, "Invalid challenge format", 400, wallet_address, state
            )

        age = int(self.clock()) - timestamp
        if age > self.max_challenge_age:
            raise self._reject(
                ServiceErrorCode.EXPIRED_CHALLENGE, "Challenge expired - please try again", 401, wallet_address, state
            )
        if age < 0:
            raise self._reject(
                ServiceErrorCode.INVALID_TIMESTAMP, "Invalid challenge timestamp", 401, wallet_address, state
            )

        if self.require_issued_challenge:
            challenge = await self.store.lookup(wallet_address)
            if challenge is None or challenge.nonce != nonce:
                raise self._reject(
                    ServiceErrorCode.CHALLENGE_NOT_FOUND,
                    "Challenge not found - please request a new one",
                    401,
                    wallet_address,
                    state
                )

        logger.debug(
            "Challenge validated",
            extra={"wallet_address": wallet_address, "age": age, "state": LoginState.NONCE_VALIDATED.value}
        )
        return nonce

    async def login(
        self,
        wallet_address: Optional[str],
        signature: Optional[str],
        message: Optional[str]
    ) -> LoginResult:
        """
        Authenticate a wallet from a signed challenge message.

        Raises:
            ServiceError: 400 for malformed input, 401 for stale, unknown or
                badly signed challenges.
        """
        if not wallet_address or not signature or not message:
            raise self._reject(
                ServiceErrorCode.MISSING_FIELD,
                "Missing required information",
                400,
                wallet_address,
                LoginState.START
            )
        if len(wallet_address) > MAX_WALLET_ADDRESS_LENGTH:
            raise self._reject(
                ServiceErrorCode.INVALID_INPUT,
                "Wallet address too long",
                400,
                wallet_address[:MAX_WALLET_ADDRESS_LENGTH],
                LoginState.START
            )

        nonce = await self.validate_challenge(wallet_address, message)

        if not self.signature_service.verify(wallet_address, self.message_prefix + nonce, signature):
            raise self._reject(
                ServiceErrorCode.INVALID_SIGNATURE,
                "Invalid signature - ID verification failed",
                401,
                wallet_address,
                LoginState.NONCE_VALIDATED
            )
        logger.debug(
            "Signature verified",
            extra={"wallet_address": wallet_address, "state": LoginState.SIGNATURE_VERIFIED.value}
        )

        normalized_address = wallet_address.lower()
        consumed = await self.store.consume(normalized_address, nonce)
        if self.require_issued_challenge and not consumed:
            raise self._reject(
                ServiceErrorCode.CHALLENGE_NOT_FOUND,
                "Challenge not found - please request a new one",
                401,
                wallet_address,
                LoginState.SIGNATURE_VERIFIED
            )

        token = self.jwt_service.issue_token(normalized_address, nonce)

        logger.info(
            f"Authentication successful for {normalized_address}",
            extra={"wallet_address": normalized_address, "state": LoginState.SESSION_ISSUED.value}
        )

        return LoginResult(
            wallet_address=normalized_address,
            token=token,
            expires_in=self.expires_in_label
        )
