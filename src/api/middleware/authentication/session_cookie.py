from fastapi import Depends, Request, Response

from src.core.dependencies import get_jwt_service
from src.core.exceptions.handler import ServiceError, ServiceErrorCode
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.models.token import TokenPayload
from src.infra.config.settings import settings
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


def set_auth_cookie(response: Response, token: str, max_age: int) -> None:
    """Hand the session token to the browser as an HTTP-only cookie"""
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=max_age,
        path="/",
        secure=settings.SESSION_COOKIE_SECURE,
        httponly=True,
        samesite="strict"
    )


def clear_auth_cookie(response: Response) -> None:
    """Overwrite the session cookie with an immediately expired one"""
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        secure=settings.SESSION_COOKIE_SECURE,
        httponly=True,
        samesite="strict"
    )


class SessionCookieAuth:
    """
    Admits a request only if it carries a valid session cookie.

    The verified payload is returned to the handler and attached to
    `request.state`; rejected requests never reach the handler.
    """

    async def __call__(
        self,
        request: Request,
        jwt_service: JWTService = Depends(get_jwt_service)
    ) -> TokenPayload:
        token = request.cookies.get(settings.SESSION_COOKIE_NAME)
        if not token:
            raise ServiceError(
                code=ServiceErrorCode.AUTHENTICATION_REQUIRED,
                message="No session found - please authenticate first",
                status_code=401
            )

        payload = jwt_service.verify_token(token)
        if payload is None:
            raise ServiceError(
                code=ServiceErrorCode.INVALID_TOKEN,
                message="Invalid or expired session - please sign in again",
                status_code=401
            )

        request.state.session = payload
        request.state.wallet_address = payload.wallet_address
        logger.debug(
            "Session admitted",
            extra={"wallet_address": payload.wallet_address, "path": request.url.path}
        )
        return payload


require_session = SessionCookieAuth()
