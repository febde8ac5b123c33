import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt
from jwt.exceptions import InvalidTokenError
from pydantic import ValidationError

from src.core.logger.logger import get_logger
from src.core.service.auth.models.token import TokenPayload
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class JWTService:
    """Issues and verifies signed, expiring session tokens"""

    def __init__(
        self,
        secret_key: str = settings.JWT_SECRET_KEY,
        algorithm: str = settings.JWT_ALGORITHM,
        expire_hours: int = settings.SESSION_TOKEN_EXPIRE_HOURS,
        clock: Callable[[], float] = time.time
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expires_delta = timedelta(hours=expire_hours)
        self.clock = clock

    @property
    def max_age_seconds(self) -> int:
        return int(self.expires_delta.total_seconds())

    def issue_token(self, wallet_address: str, nonce: str) -> str:
        """
        Create a session token for an authenticated wallet.
        The consumed nonce is bound into the payload so tokens from different
        logins are never interchangeable.
        """
        issued_at = datetime.fromtimestamp(int(self.clock()), tz=timezone.utc)

        to_encode = TokenPayload(
            wallet_address=wallet_address.lower(),
            nonce=nonce,
            iat=issued_at,
            exp=issued_at + self.expires_delta
        )

        return jwt.encode(
            to_encode.model_dump(),
            self.secret_key,
            algorithm=self.algorithm
        )

    def verify_token(self, token: str) -> Optional[TokenPayload]:
        """
        Verify signature and expiry of a session token.
        Expiry is judged against `self.clock`, the same clock that stamps `iat`.
        Returns the payload, or None for any invalid, tampered or expired token.
        """
        try:
            payload = TokenPayload(**jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat"], "verify_exp": False, "verify_iat": False}
            ))

        except (InvalidTokenError, ValidationError) as e:
            logger.warning(
                "Invalid session token",
                extra={
                    "error_type": type(e).__name__,
                    "error": str(e)
                }
            )
            return None

        if self.clock() >= payload.exp.timestamp():
            logger.info("Session token expired", extra={"wallet_address": payload.wallet_address})
            return None
        return payload
