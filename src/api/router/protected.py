from fastapi import APIRouter, Depends

from src.api.controller.auth.dto.output_dto import SessionInfoResponseDto
from src.api.middleware.authentication.session_cookie import require_session
from src.core.service.auth.models.token import TokenPayload
from src.core.logger.logger import logger

router = APIRouter()

@router.get("/protected", response_model=SessionInfoResponseDto)
async def protected_route(session: TokenPayload = Depends(require_session)):
    """
    Protected endpoint that requires a valid session cookie
    Returns the authenticated wallet and session window
    """
    logger.info(f"Authenticated access to protected endpoint by {session.wallet_address}")
    return SessionInfoResponseDto(
        wallet_address=session.wallet_address,
        issued_at=session.iat,
        expires_at=session.exp
    )
