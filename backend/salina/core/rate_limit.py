"""
Rate Limiting Middleware
Sliding-window limits for token exchange, exports and portal access
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Tuple, Optional
import threading
import logging

from salina.core.config import settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Thread-safe in-memory rate limiter using sliding window algorithm.
    Limits are per process; run behind a shared limiter when scaling out.
    """

    def __init__(self):
        self._requests: Dict[str, list] = defaultdict(list)
        self._lock = threading.Lock()

        # (requests, window seconds), matched by path prefix
        self.limits = {
            '/api/v1/auth/token': (10, 60),
            '/api/v1/contacts/export': (10, 60),
            '/api/v1/reports/sales/export': (20, 60),
            '/api/v1/reports/liability/export': (20, 60),
            '/api/v1/receivables/aging/export': (20, 60),
            '/api/v1/receivables/aging/pdf': (20, 60),
            '/api/v1/receivables/aging/xlsx': (20, 60),
            '/api/v1/audit/logs/export': (10, 60),
            'default': (settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW),
        }
        # Portal invitations hit the identity provider
        self.portal_access_limit = (10, 60)

    def _get_client_ip(self, request: Request) -> str:
        """Get client IP address from request"""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"

    def _get_rate_limit_key(self, request: Request) -> str:
        """Combine client IP with a token prefix when a bearer token is present"""
        ip = self._get_client_ip(request)

        auth_header = request.headers.get("Authorization", "")
        caller = "anonymous"
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
            if len(token) > 8:
                caller = token[:8]

        return f"{ip}:{caller}"

    def _cleanup_old_requests(self, key: str, window_seconds: int):
        """Remove requests outside the time window"""
        cutoff = datetime.utcnow() - timedelta(seconds=window_seconds)
        self._requests[key] = [
            timestamp for timestamp in self._requests[key]
            if timestamp > cutoff
        ]

    def _limit_for(self, path: str) -> Tuple[int, int]:
        if path.endswith('/portal-access'):
            return self.portal_access_limit
        for pattern, limit in self.limits.items():
            if pattern != 'default' and path.startswith(pattern):
                return limit
        return self.limits['default']

    def is_allowed(self, request: Request) -> Tuple[bool, Optional[Dict]]:
        """
        Check if the request is allowed under rate limiting rules.

        Returns:
            Tuple of (is_allowed, rate_limit_info)
        """
        path = request.url.path
        method = request.method

        # Reads are only limited on the export endpoints
        is_export = any(path.startswith(p) for p in self.limits if p.endswith(('/export', '/pdf', '/xlsx')))
        if method in ['GET', 'HEAD', 'OPTIONS'] and not is_export:
            return True, None

        limit, window = self._limit_for(path)
        key = f"{path}:{self._get_rate_limit_key(request)}"

        with self._lock:
            self._cleanup_old_requests(key, window)

            current_count = len(self._requests[key])

            if current_count >= limit:
                # Calculate retry-after
                oldest_request = min(self._requests[key]) if self._requests[key] else datetime.utcnow()
                retry_after = int((oldest_request + timedelta(seconds=window) - datetime.utcnow()).total_seconds())

                logger.warning(f"Rate limit exceeded for {key}: {current_count}/{limit} requests")

                return False, {
                    'limit': limit,
                    'remaining': 0,
                    'reset': retry_after,
                    'retry_after': max(1, retry_after)
                }

            # Record the request
            self._requests[key].append(datetime.utcnow())

            return True, {
                'limit': limit,
                'remaining': limit - current_count - 1,
                'reset': window
            }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """FastAPI middleware for rate limiting"""

    def __init__(self, app, rate_limiter: Optional[RateLimiter] = None):
        super().__init__(app)
        self.rate_limiter = rate_limiter or RateLimiter()

    async def dispatch(self, request: Request, call_next):
        if not settings.RATE_LIMIT_ENABLED or not request.url.path.startswith('/api/'):
            return await call_next(request)

        is_allowed, rate_info = self.rate_limiter.is_allowed(request)

        if not is_allowed:
            retry_after = rate_info.get('retry_after', 60)
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    'success': False,
                    'error': 'Too many requests. Please try again later.',
                },
                headers={
                    'Retry-After': str(retry_after),
                    'X-RateLimit-Limit': str(rate_info.get('limit', 0)),
                    'X-RateLimit-Remaining': '0',
                    'X-RateLimit-Reset': str(rate_info.get('reset', 60))
                }
            )

        response = await call_next(request)

        if rate_info:
            response.headers['X-RateLimit-Limit'] = str(rate_info['limit'])
            response.headers['X-RateLimit-Remaining'] = str(rate_info['remaining'])
            response.headers['X-RateLimit-Reset'] = str(rate_info['reset'])

        return response
