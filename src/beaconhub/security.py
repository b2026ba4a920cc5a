"""
Script: security.py
Created: 2026-10-18
Purpose: HTTP middleware for rate limiting, security headers and request filtering
Keywords: security, rate-limit, headers, middleware, beaconhub
Status: active
Prerequisites:
  - fastapi, loguru
Changelog:
  - 2026-10-18: Per-client sliding window limiter, header hardening, request filter
"""

import math
import re
import time
from typing import Dict, List

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger

from .config import Settings
from .gate import PUBLIC, classify_route, resolve_client_ip


def client_ip(request: Request) -> str:
    peer = request.client.host if request.client else None
    return resolve_client_ip(request.headers, peer)


# =============================================================================
# Rate limiting
# =============================================================================

class RateLimiter:
    """Sliding-window request limit per client address."""

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._windows: Dict[str, List[float]] = {}

    def hit(self, key: str, now: float = None) -> float:
        """
        Record a request for `key`.

        Returns 0 when the request is within the limit, otherwise the number of
        seconds until the oldest request in the window expires.
        """
        now = time.time() if now is None else now
        window = [t for t in self._windows.get(key, []) if now - t < self.window_seconds]
        if len(window) >= self.max_requests:
            self._windows[key] = window
            return max(0.0, window[0] + self.window_seconds - now)
        window.append(now)
        self._windows[key] = window
        return 0.0

    def prune(self, now: float = None) -> int:
        """Drop expired timestamps and empty windows. Returns keys removed."""
        now = time.time() if now is None else now
        removed = 0
        for key in list(self._windows):
            self._windows[key] = [t for t in self._windows[key] if now - t < self.window_seconds]
            if not self._windows[key]:
                del self._windows[key]
                removed += 1
        return removed

    def __len__(self) -> int:
        return len(self._windows)

    async def __call__(self, request: Request, call_next):
        ip = client_ip(request)
        retry_after = self.hit(ip)
        if retry_after:
            seconds = math.ceil(retry_after)
            logger.warning(f"Rate limit exceeded for {ip}")
            return JSONResponse(
                status_code=429,
                headers={"Retry-After": str(seconds)},
                content={
                    "error": "Rate limit exceeded",
                    "message": f"Too many requests. Limit: {self.max_requests} per {self.window_seconds} seconds",
                    "retryAfter": seconds,
                },
            )
        return await call_next(request)


# =============================================================================
# Security headers + request logging
# =============================================================================

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


class SecurityHeaders:
    """Adds hardening headers to every response, optionally logs the request."""

    def __init__(self, request_logging: bool = False):
        self.request_logging = request_logging

    async def __call__(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        if "server" in response.headers:
            del response.headers["server"]

        if self.request_logging:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                f"Request processed method={request.method} url={request.url.path} "
                f"ip={client_ip(request)} userAgent={request.headers.get('user-agent', 'unknown')} "
                f"statusCode={response.status_code} responseTime={elapsed_ms:.1f}ms"
            )
        return response


# =============================================================================
# Request filter
# =============================================================================

SUSPICIOUS_USER_AGENTS = [
    re.compile(p, re.IGNORECASE)
    for p in (r"bot", r"crawler", r"spider", r"scraper", r"curl", r"wget")
]

SUSPICIOUS_URL_PATTERNS = [
    re.compile(r"\.\."),  # path traversal
    re.compile(r"script", re.IGNORECASE),
    re.compile(r"eval", re.IGNORECASE),
    re.compile(r"union.*select", re.IGNORECASE),
    re.compile(r"alert\(", re.IGNORECASE),
]


def raw_url(request: Request) -> str:
    """Path plus undecoded query string, as the client sent it."""
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    query = request.scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path


class RequestFilter:
    """
    Rejects oversized bodies, then (when enabled) suspicious URLs and, in
    production, bot user agents. Public routes skip the URL and agent checks.
    Runs inside AccessGate, so the gate's 401/403/500 answers come first.
    """

    def __init__(self, settings: Settings):
        self.max_request_size = settings.max_request_size
        self.filters_enabled = settings.security_filters_enabled
        self.block_bots = settings.is_production

    async def __call__(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_request_size:
            return JSONResponse(
                status_code=413,
                content={
                    "error": "Payload too large",
                    "message": f"Request body cannot exceed {self.max_request_size} bytes",
                },
            )

        if not self.filters_enabled or classify_route(request.url.path) == PUBLIC:
            return await call_next(request)

        user_agent = request.headers.get("user-agent", "")
        if self.block_bots and any(p.search(user_agent) for p in SUSPICIOUS_USER_AGENTS):
            logger.warning(f"Blocked suspicious user agent: {user_agent} from IP: {client_ip(request)}")
            return JSONResponse(
                status_code=403,
                content={"error": "Access denied", "message": "Automated requests are not allowed"},
            )

        url = raw_url(request).lower()
        if any(p.search(url) for p in SUSPICIOUS_URL_PATTERNS):
            logger.warning(f"Blocked suspicious URL: {url} from IP: {client_ip(request)}")
            return JSONResponse(
                status_code=400,
                content={"error": "Bad request", "message": "Invalid request format"},
            )

        return await call_next(request)
