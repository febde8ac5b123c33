from typing import Generator

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from fastapi.testclient import TestClient

from src.app import create_app
from src.infra.config.settings import settings


def sign_message(message: str, private_key) -> str:
    """Sign `message` the way a wallet's personal_sign does and return 0x-hex"""
    signed = Account.sign_message(encode_defunct(text=message), private_key=private_key)
    return "0x" + bytes(signed.signature).hex()


@pytest.fixture
def test_wallet():
    """Create a throwaway wallet for signing challenges"""
    account = Account.create()
    return {
        'address': account.address,
        'key': account.key
    }


@pytest.fixture
def sign():
    """Wallet-side signer: sign(message, private_key) -> 0x-hex signature"""
    return sign_message


@pytest.fixture
def app():
    """Fresh application instance with its own challenge store"""
    return create_app()


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Test client over HTTPS so Secure cookies behave as in a browser"""
    with TestClient(app, base_url="https://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(client):
    """Run the nonce -> sign -> login round trip for a wallet and return the login response"""
    def _login(wallet, address=None):
        address = address or wallet['address']
        nonce_response = client.get("/api/v1/auth/nonce", params={"walletAddress": address})
        assert nonce_response.status_code == 200

        message = f"{settings.auth_message_prefix}{nonce_response.json()['nonce']}"
        return client.post(
            "/api/v1/auth/login",
            json={
                "walletAddress": address,
                "signature": sign_message(message, wallet['key']),
                "message": message
            }
        )
    return _login
