import json
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from typing import Dict

from src.core.logger.logger import logger
from src.core.exceptions.handler import utc_timestamp
from src.api.controller.auth.dto.output_dto import HealthCheckResponseDto
from src.infra.config.settings import settings

router = APIRouter()


async def check_challenge_store_health(request: Request) -> Dict[str, str]:
    """Check the challenge store backend."""
    store = request.app.state.challenge_store
    try:
        reachable = await store.ping()
    except Exception as e:
        return {"status": "unhealthy", "backend": settings.CHALLENGE_STORE_BACKEND, "message": str(e)}
    return {
        "status": "healthy" if reachable else "unhealthy",
        "backend": settings.CHALLENGE_STORE_BACKEND,
        "message": "Connected" if reachable else "Connection failed"
    }


@router.get("/health", response_model=HealthCheckResponseDto)
async def health_check(request: Request):
    """
    Health check endpoint.
    Returns the status of the service and its challenge store.
    """
    correlation_id = request.headers.get("X-Request-ID", "N/A")

    store_health = await check_challenge_store_health(request)
    overall = "healthy" if store_health["status"] == "healthy" else "unhealthy"

    response = HealthCheckResponseDto(
        status=overall,
        timestamp=utc_timestamp(),
        version=settings.APP_VERSION,
        services={"challenge_store": store_health}
    )

    logger.info(json.dumps({
        "message": "health_check",
        "request_id": correlation_id,
        "status": overall,
        "services": response.services
    }))

    status_code = status.HTTP_200_OK if overall == "healthy" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=response.model_dump())
