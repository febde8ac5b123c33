import json
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError

from src.infra.config.settings import settings
from src.core.logger.logger import logger
from src.core.dependencies import create_challenge_store
from src.core.exceptions.handler import ServiceError, GlobalErrorHandler, utc_timestamp
from src.api.router import health, protected, auth
from src.api.middleware.security.rate_limiter import RateLimitMiddleware
from src.api.middleware.logging.request_logging import RequestLoggingMiddleware

def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="""
Wallet authentication API - challenge-response sign-in with Ethereum wallets.

## Flow
1. `GET /api/v1/auth/nonce?walletAddress=...` returns a one-time challenge.
2. The wallet signs `Authenticate to <App>: <nonce>`.
3. `POST /api/v1/auth/login` verifies the signature and sets the `authToken` session cookie.

## Authentication
Protected endpoints require the HTTP-only `authToken` cookie issued at login.
        """,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=600,  # 10 minutes
    )

    # Rate limiting middleware
    app.add_middleware(RateLimitMiddleware)

    # Request logging middleware (added last so it wraps everything)
    app.add_middleware(RequestLoggingMiddleware)

    # Add centralized error handlers
    app.add_exception_handler(ServiceError, GlobalErrorHandler.service_error_handler)
    app.add_exception_handler(RequestValidationError, GlobalErrorHandler.validation_error_handler)
    app.add_exception_handler(Exception, GlobalErrorHandler.general_exception_handler)

    # Include routers
    app.include_router(health.router, prefix="/api/v1")
    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(protected.router, prefix="/api/v1")

    # Process-wide challenge store shared by every request
    app.state.challenge_store = create_challenge_store()

    @app.on_event("startup")
    async def startup_event():
        logger.info(json.dumps({
            "message": "Starting authentication service",
            "timestamp": utc_timestamp(),
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "challenge_store": settings.CHALLENGE_STORE_BACKEND
        }))

        if len(settings.JWT_SECRET_KEY) < settings.JWT_SECRET_LENGTH or settings.JWT_SECRET_KEY.startswith("your-"):
            logger.warning("JWT_SECRET_KEY is a placeholder or too short - set a strong secret in production")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info(json.dumps({
            "message": "Shutting down authentication service",
            "timestamp": utc_timestamp(),
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION
        }))

    return app
