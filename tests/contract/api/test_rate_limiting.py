import time
from datetime import datetime, timedelta

from src.api.middleware.security.rate_limiter import LOGIN_PATH, NONCE_PATH, RateLimiter
from src.core.service.auth.utils.nonce import generate_nonce
from src.infra.config.settings import settings

NONCE_URL = "/api/v1/auth/nonce"
LOGIN_URL = "/api/v1/auth/login"
TEST_ADDRESS = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"


def _unknown_challenge_login(client, headers=None):
    return client.post(
        LOGIN_URL,
        json={
            "walletAddress": TEST_ADDRESS,
            "signature": "0x1234",
            "message": f"{settings.auth_message_prefix}{generate_nonce(time.time())}"
        },
        headers=headers
    )


def test_nonce_rate_limit_exceeded(client):
    """Test rate limiting kicks in after too many challenge requests"""
    for _ in range(settings.RATE_LIMIT_AUTH_NONCE):
        response = client.get(NONCE_URL, params={"walletAddress": TEST_ADDRESS})
        assert response.status_code == 200

    # Next request should be rate limited
    response = client.get(NONCE_URL, params={"walletAddress": TEST_ADDRESS})
    assert response.status_code == 429
    assert "retry-after" in response.headers
    assert response.headers["x-ratelimit-limit"] == str(settings.RATE_LIMIT_AUTH_NONCE)

    data = response.json()
    assert data["success"] is False
    assert data["error"]["code"] == "RATE_LIMIT_EXCEEDED"
    assert data["limit"] == settings.RATE_LIMIT_AUTH_NONCE
    assert data["remaining"] == 0


def test_successful_responses_carry_rate_limit_headers(client):
    response = client.get(NONCE_URL, params={"walletAddress": TEST_ADDRESS})

    assert response.status_code == 200
    assert response.headers["x-ratelimit-limit"] == str(settings.RATE_LIMIT_AUTH_NONCE)
    assert response.headers["x-ratelimit-remaining"] == str(settings.RATE_LIMIT_AUTH_NONCE - 1)


def test_suspicious_ip_blocking(client):
    """Test an IP gets blocked after repeated failed logins"""
    for _ in range(settings.SUSPICIOUS_IP_THRESHOLD):
        response = _unknown_challenge_login(client)
        assert response.status_code == 401

    # Next request from same IP should be blocked
    response = client.get("/api/v1/auth/check")
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "IP_BLOCKED"
    assert "retry-after" in response.headers

    # Health checks are exempt
    assert client.get("/api/v1/health").status_code == 200

    # A forged forwarding header from an untrusted peer changes nothing
    response = client.get(NONCE_URL, params={"walletAddress": TEST_ADDRESS}, headers={"X-Forwarded-For": "10.0.0.2"})
    assert response.status_code == 403


def test_rotating_forwarded_for_does_not_evade_block(client):
    for i in range(settings.SUSPICIOUS_IP_THRESHOLD):
        response = _unknown_challenge_login(client, headers={"X-Forwarded-For": f"10.0.0.{i}"})
        assert response.status_code == 401

    response = _unknown_challenge_login(client, headers={"X-Forwarded-For": "10.0.0.99"})
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "IP_BLOCKED"


def test_trusted_proxy_forwards_client_address(client, monkeypatch):
    monkeypatch.setattr(settings, "TRUSTED_PROXIES", ["testclient"])
    for _ in range(settings.SUSPICIOUS_IP_THRESHOLD):
        response = _unknown_challenge_login(client, headers={"X-Forwarded-For": "203.0.113.7"})
        assert response.status_code == 401

    blocked = client.get(NONCE_URL, params={"walletAddress": TEST_ADDRESS}, headers={"X-Forwarded-For": "203.0.113.7"})
    assert blocked.status_code == 403

    # Other clients behind the same proxy are unaffected
    other = client.get(NONCE_URL, params={"walletAddress": TEST_ADDRESS}, headers={"X-Forwarded-For": "203.0.113.8"})
    assert other.status_code == 200


def test_malformed_logins_do_not_block(client):
    for _ in range(settings.SUSPICIOUS_IP_THRESHOLD + 1):
        response = client.post(LOGIN_URL, json={"walletAddress": TEST_ADDRESS})
        assert response.status_code == 400

    client.cookies.clear()
    assert client.get("/api/v1/auth/check").status_code == 401


def test_cors_headers(client):
    """Test CORS headers are properly set for allowed origins"""
    origin = settings.allowed_origins[0]
    headers = {
        "Origin": origin,
        "Access-Control-Request-Method": "POST",
        "Access-Control-Request-Headers": "content-type",
    }
    response = client.options(LOGIN_URL, headers=headers)
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == origin
    assert response.headers["access-control-allow-credentials"] == "true"
    assert "POST" in response.headers["access-control-allow-methods"]
    assert "content-type" in response.headers["access-control-allow-headers"].lower()


def test_cors_rejects_unknown_origin(client):
    headers = {
        "Origin": "https://evil.example.com",
        "Access-Control-Request-Method": "POST",
    }
    response = client.options(LOGIN_URL, headers=headers)
    assert "access-control-allow-origin" not in response.headers


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 2, 6, 10, 0, 0)

    def __call__(self) -> datetime:
        return self.now


def test_paths_share_fixed_buckets():
    assert RateLimiter.bucket_for(NONCE_PATH) == "nonce"
    assert RateLimiter.bucket_for(LOGIN_PATH) == "login"
    assert RateLimiter.bucket_for("/nope/1") == "default"
    assert RateLimiter.bucket_for(f"{NONCE_PATH}/extra") == "default"


def test_unknown_paths_do_not_grow_tracking():
    limiter = RateLimiter(clock=FakeClock())

    for i in range(300):
        limiter.add_request("10.0.0.1", limiter.bucket_for(f"/nope/{i}"))

    assert set(limiter.endpoint_requests) == {"default"}
    assert set(limiter.endpoint_requests["default"]) == {"10.0.0.1"}


def test_idle_entries_are_swept():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    for i in range(50):
        limiter.add_request(f"10.0.1.{i}", "default")
    limiter.record_failed_attempt("10.0.2.1")
    limiter.block_ip("10.0.2.2")

    clock.now += timedelta(minutes=settings.IP_BLOCK_DURATION + 1)
    limiter.add_request("10.0.3.1", "nonce")

    assert limiter.endpoint_requests == {"nonce": {"10.0.3.1": [clock.now]}}
    assert limiter.failed_attempts == {}
    assert limiter.blocked_ips == {}


def test_window_expiry_drops_ip_entry():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    limiter.add_request("10.0.0.1", "login")

    clock.now += timedelta(seconds=61)
    is_limited, current_count, _, _ = limiter.is_rate_limited("10.0.0.1", "login")

    assert not is_limited
    assert current_count == 0
    assert "10.0.0.1" not in limiter.endpoint_requests["login"]
