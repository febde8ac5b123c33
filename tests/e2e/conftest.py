"""
E2E test configuration and fixtures.
"""

import time

import pytest

from src.core.dependencies import get_jwt_service, get_login_service, get_signature_service
from src.core.service.auth.login_service import LoginService


@pytest.fixture
def override_login_service(app):
    """Swap the login service for one with a shifted clock or a different challenge policy."""
    def _override(offset_seconds: float = 0, **kwargs):
        def _login_service() -> LoginService:
            return LoginService(
                app.state.challenge_store,
                get_signature_service(),
                get_jwt_service(),
                clock=lambda: time.time() + offset_seconds,
                **kwargs
            )
        app.dependency_overrides[get_login_service] = _login_service
    return _override
