"""
Authentication controller: challenge issuance, wallet login, logout and session check.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse

from src.api.controller.auth.dto.input_dto import LoginRequestDto
from src.api.controller.auth.dto.output_dto import (
    NonceResponseDto, LoginResponseDto, LogoutResponseDto, SessionCheckResponseDto
)
from src.api.middleware.authentication.session_cookie import set_auth_cookie, clear_auth_cookie
from src.core.dependencies import get_challenge_service, get_jwt_service, get_login_service
from src.core.exceptions.handler import ServiceError, ServiceErrorCode
from src.core.service.auth.challenge_service import ChallengeService
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.login_service import MAX_WALLET_ADDRESS_LENGTH, LoginService
from src.infra.config.settings import get_settings
from src.core.logger.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()
router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/nonce", response_model=NonceResponseDto)
async def get_nonce(
    wallet_address: Optional[str] = Query(None, alias="walletAddress"),
    challenge_service: ChallengeService = Depends(get_challenge_service)
):
    """
    Issue a sign-in challenge for a wallet address.

    The client signs the returned message with its wallet and submits it to /auth/login.
    A new request for the same wallet replaces the previous challenge.
    """
    if not wallet_address or not wallet_address.strip():
        raise ServiceError(
            code=ServiceErrorCode.MISSING_FIELD,
            message="Wallet address required",
            status_code=status.HTTP_400_BAD_REQUEST
        )
    wallet_address = wallet_address.strip()
    if len(wallet_address) > MAX_WALLET_ADDRESS_LENGTH:
        raise ServiceError(
            code=ServiceErrorCode.INVALID_INPUT,
            message="Wallet address too long",
            status_code=status.HTTP_400_BAD_REQUEST
        )

    try:
        nonce = await challenge_service.issue(wallet_address)
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Failed to create challenge: {str(e)}", exc_info=True)
        raise ServiceError(
            code=ServiceErrorCode.INTERNAL_ERROR,
            message="Failed to generate challenge",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return NonceResponseDto(nonce=nonce, message=challenge_service.build_message(nonce))


@router.post("/login", response_model=LoginResponseDto)
async def login(
    request: LoginRequestDto,
    response: Response,
    login_service: LoginService = Depends(get_login_service),
    jwt_service: JWTService = Depends(get_jwt_service)
):
    """
    Verify a signed challenge and start a session.

    On success the session token is set as an HTTP-only `authToken` cookie and
    the challenge is consumed. Failed attempts leave the challenge in place.
    """
    logger.info(
        "Login request received",
        extra={
            "wallet_address": request.wallet_address,
            "has_signature": bool(request.signature),
            "has_message": bool(request.message)
        }
    )

    try:
        result = await login_service.login(
            wallet_address=request.wallet_address,
            signature=request.signature,
            message=request.message
        )
    except ServiceError:
        raise
    except Exception as e:
        logger.error(
            f"Authentication error: {str(e)}",
            extra={"wallet_address": request.wallet_address},
            exc_info=True
        )
        raise ServiceError(
            code=ServiceErrorCode.INTERNAL_ERROR,
            message="Authentication failed",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    set_auth_cookie(response, result.token, jwt_service.max_age_seconds)

    return LoginResponseDto(
        success=True,
        wallet_address=result.wallet_address,
        expires_in=result.expires_in
    )


@router.post("/logout", response_model=LogoutResponseDto)
async def logout(response: Response):
    """
    Clear the session cookie.

    Logout is client-side only: a token captured before logout stays valid
    until it expires. Calling this without a session still succeeds.
    """
    clear_auth_cookie(response)
    logger.info("User logged out - cookie cleared")
    return LogoutResponseDto()


@router.get(
    "/check",
    response_model=SessionCheckResponseDto,
    response_model_exclude_none=True,
    responses={401: {"model": SessionCheckResponseDto}}
)
async def check_session(
    request: Request,
    jwt_service: JWTService = Depends(get_jwt_service)
):
    """Report whether the request carries a valid session cookie."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        return _unauthenticated("No session found")

    payload = jwt_service.verify_token(token)
    if payload is None:
        return _unauthenticated("Invalid or expired session")

    return SessionCheckResponseDto(authenticated=True, wallet_address=payload.wallet_address)


def _unauthenticated(error: str) -> JSONResponse:
    body = SessionCheckResponseDto(authenticated=False, error=error)
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content=body.model_dump(by_alias=True, exclude_none=True)
    )
