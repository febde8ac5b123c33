from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Tuple, Optional
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from src.infra.config.settings import get_settings
from src.core.logger.logger import get_logger
from src.core.exceptions.handler import ServiceErrorCode
from src.api.controller.auth.dto.error_responses import RateLimitErrorResponse, ErrorDetail

logger = get_logger(__name__)
settings = get_settings()

API_PREFIX = "/api/v1"
NONCE_PATH = f"{API_PREFIX}/auth/nonce"
LOGIN_PATH = f"{API_PREFIX}/auth/login"
EXEMPT_PATHS = {f"{API_PREFIX}/health", "/docs", "/redoc", "/openapi.json"}

REQUEST_WINDOW = timedelta(minutes=1)
FAILED_ATTEMPT_WINDOW = timedelta(minutes=5)
SWEEP_INTERVAL = timedelta(minutes=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RateLimiter:
    """Sliding one-minute rate limiter with per-bucket limits and IP blocking.

    Requests are counted per (bucket, IP), where the bucket is one of
    `nonce`, `login` or `default`. IPs with no request inside the window,
    lapsed blocks and stale failure counters are swept out once per
    SWEEP_INTERVAL, so memory follows the set of recently active clients.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self.clock = clock
        # Bucket -> IP -> timestamps
        self.endpoint_requests: Dict[str, Dict[str, List[datetime]]] = {}
        self.blocked_ips: Dict[str, datetime] = {}  # IP -> Unblock time
        self.failed_attempts: Dict[str, Tuple[int, datetime]] = {}  # IP -> (count, first_attempt)
        self._last_sweep = clock()

        # Bucket-specific rate limits (requests per minute)
        self.endpoint_limits = {
            'nonce': settings.RATE_LIMIT_AUTH_NONCE,
            'login': settings.RATE_LIMIT_AUTH_LOGIN,
            'default': settings.RATE_LIMIT_DEFAULT
        }

    @staticmethod
    def bucket_for(path: str) -> str:
        if path == NONCE_PATH:
            return 'nonce'
        if path == LOGIN_PATH:
            return 'login'
        return 'default'

    def is_blocked(self, ip: str) -> Optional[datetime]:
        """Return the unblock time if the IP is currently blocked."""
        unblock_at = self.blocked_ips.get(ip)
        if unblock_at is None:
            return None
        if self.clock() < unblock_at:
            return unblock_at
        del self.blocked_ips[ip]
        return None

    def is_rate_limited(self, ip: str, bucket: str) -> Tuple[bool, int, int, datetime]:
        """
        Check if IP is rate limited for a bucket.
        Returns: (is_limited, current_count, limit, reset_time)
        """
        now = self.clock()
        limit = self.endpoint_limits.get(bucket, self.endpoint_limits['default'])

        requests = self.endpoint_requests.get(bucket, {})
        if ip in requests:
            recent = [ts for ts in requests[ip] if now - ts < REQUEST_WINDOW]
            if recent:
                requests[ip] = recent
            else:
                del requests[ip]

        current_count = len(requests.get(ip, []))
        reset_time = now.replace(second=0, microsecond=0) + REQUEST_WINDOW

        return current_count >= limit, current_count, limit, reset_time

    def add_request(self, ip: str, bucket: str):
        """Add request to bucket-specific tracking."""
        now = self.clock()
        if now - self._last_sweep >= SWEEP_INTERVAL:
            self.sweep()
        self.endpoint_requests.setdefault(bucket, {}).setdefault(ip, []).append(now)

    def sweep(self):
        """Forget idle IPs, lapsed blocks and expired failure counters."""
        now = self.clock()
        for requests in self.endpoint_requests.values():
            for ip in [ip for ip, stamps in requests.items() if not stamps or now - stamps[-1] >= REQUEST_WINDOW]:
                del requests[ip]
        for bucket in [bucket for bucket, requests in self.endpoint_requests.items() if not requests]:
            del self.endpoint_requests[bucket]

        for ip in [ip for ip, unblock_at in self.blocked_ips.items() if now >= unblock_at]:
            del self.blocked_ips[ip]
        for ip in [ip for ip, (_, first) in self.failed_attempts.items() if now - first >= FAILED_ATTEMPT_WINDOW]:
            del self.failed_attempts[ip]

        self._last_sweep = now

    def record_failed_attempt(self, ip: str):
        """Record failed authentication attempt and block IP if suspicious."""
        now = self.clock()

        if ip not in self.failed_attempts:
            count, first_attempt = 1, now
        else:
            count, first_attempt = self.failed_attempts[ip]
            if now - first_attempt < FAILED_ATTEMPT_WINDOW:
                count += 1
            else:
                # Reset counter after 5 minutes
                count, first_attempt = 1, now

        if count >= settings.SUSPICIOUS_IP_THRESHOLD:
            self.failed_attempts.pop(ip, None)
            self.block_ip(ip)
        else:
            self.failed_attempts[ip] = (count, first_attempt)

    def block_ip(self, ip: str):
        """Block IP for suspicious activity."""
        self.blocked_ips[ip] = self.clock() + timedelta(minutes=settings.IP_BLOCK_DURATION)
        logger.warning(f"IP {ip} has been blocked for {settings.IP_BLOCK_DURATION} minutes due to suspicious activity")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware with endpoint-specific limits and detailed error responses."""

    def __init__(self, app):
        super().__init__(app)
        self.rate_limiter = RateLimiter()

    def _get_client_ip(self, request: Request) -> str:
        """Get client IP; forwarding headers count only when the peer is a trusted proxy."""
        peer = request.client.host if request.client else "unknown"
        trusted = set(settings.TRUSTED_PROXIES)
        if peer not in trusted:
            return peer

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # Rightmost hop that is not one of our own proxies
            hops = [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]
            for hop in reversed(hops):
                if hop not in trusted:
                    return hop

        real_ip = request.headers.get("X-Real-IP")
        if real_ip and real_ip.strip():
            return real_ip.strip()

        return peer

    def _create_rate_limit_response(self, current_count: int, limit: int, reset_time: datetime) -> Response:
        """Create standardized rate limit error response."""
        retry_after = max(1, int((reset_time - self.rate_limiter.clock()).total_seconds()))
        error_response = RateLimitErrorResponse(
            error=ErrorDetail(
                code=ServiceErrorCode.RATE_LIMIT_EXCEEDED,
                message=f"Rate limit exceeded. Maximum {limit} requests per minute.",
                details=f"Current count: {current_count}/{limit}. Try again after {retry_after} seconds."
            ),
            retry_after=retry_after,
            limit=limit,
            remaining=0,
            reset_time=reset_time
        )

        response = Response(
            content=error_response.model_dump_json(),
            media_type="application/json",
            status_code=429
        )
        response.headers["Retry-After"] = str(retry_after)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = "0"
        response.headers["X-RateLimit-Reset"] = str(int(reset_time.replace(tzinfo=timezone.utc).timestamp()))

        return response

    def _create_ip_blocked_response(self, unblock_at: datetime) -> Response:
        """Create IP blocked error response."""
        retry_after = max(1, int((unblock_at - self.rate_limiter.clock()).total_seconds()))

        error_response = RateLimitErrorResponse(
            error=ErrorDetail(
                code=ServiceErrorCode.IP_BLOCKED,
                message="IP temporarily blocked due to suspicious activity",
                details=f"IP will be unblocked in {retry_after} seconds"
            ),
            retry_after=retry_after,
            limit=0,
            remaining=0,
            reset_time=unblock_at
        )

        response = Response(
            content=error_response.model_dump_json(),
            media_type="application/json",
            status_code=403
        )
        response.headers["Retry-After"] = str(retry_after)

        return response

    async def dispatch(self, request: Request, call_next) -> Response:
        # Skip rate limiting for CORS preflight requests and health checks
        if request.method == "OPTIONS" or request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        ip = self._get_client_ip(request)
        endpoint = request.url.path
        bucket = self.rate_limiter.bucket_for(endpoint)

        unblock_at = self.rate_limiter.is_blocked(ip)
        if unblock_at is not None:
            logger.warning(f"Blocked request from IP {ip} to {endpoint}")
            return self._create_ip_blocked_response(unblock_at)

        is_limited, current_count, limit, reset_time = self.rate_limiter.is_rate_limited(ip, bucket)
        if is_limited:
            logger.warning(f"Rate limit exceeded for IP {ip} on {endpoint}: {current_count}/{limit}")
            return self._create_rate_limit_response(current_count, limit, reset_time)

        self.rate_limiter.add_request(ip, bucket)

        response = await call_next(request)

        # Only failed logins count towards blocking
        if response.status_code == 401 and bucket == 'login':
            self.rate_limiter.record_failed_attempt(ip)
            logger.info(f"Recorded failed auth attempt from IP {ip} on {endpoint}")

        if response.status_code < 400:
            response.headers["X-RateLimit-Limit"] = str(limit)
            response.headers["X-RateLimit-Remaining"] = str(max(0, limit - current_count - 1))
            response.headers["X-RateLimit-Reset"] = str(int(reset_time.replace(tzinfo=timezone.utc).timestamp()))

        return response
