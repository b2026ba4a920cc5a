"""
Script: gate.py
Created: 2026-10-18
Purpose: Request authorization gate (public routes, IP allow-list, API key)
Keywords: auth, api-key, allowlist, gate, middleware, beaconhub
Status: active
Prerequisites:
  - fastapi, loguru
Changelog:
  - 2026-10-18: Merged header-secret dependency and IP allow-list into one gate
"""

import hmac
from dataclasses import dataclass
from typing import FrozenSet, Mapping, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger

from .config import Settings


# =============================================================================
# Constants
# =============================================================================

API_KEY_HEADER = "X-API-Key"

PUBLIC = "public"
PROTECTED = "protected"

# Root is compared exactly; as a prefix it would match every path.
PUBLIC_PATHS = ("/",)
# Plain prefix test: "/api/healthx" is public too.
PUBLIC_PREFIXES = ("/api/health", "/docs", "/redoc", "/openapi.json")

LOOPBACK_ADDRESSES = frozenset({"127.0.0.1", "::1"})
ALLOW_ALL = "*"
UNKNOWN_CLIENT = "unknown"


# =============================================================================
# Decision
# =============================================================================

@dataclass(frozen=True)
class GateDecision:
    """Outcome of the gate for one request."""
    allowed: bool
    status_code: int = 200
    error: Optional[str] = None
    message: Optional[str] = None
    client_ip: str = UNKNOWN_CLIENT

    def body(self) -> dict:
        return {"error": self.error, "message": self.message}


def _deny(status_code: int, error: str, message: str, client_ip: str = UNKNOWN_CLIENT) -> GateDecision:
    return GateDecision(False, status_code, error, message, client_ip)


# =============================================================================
# Checks
# =============================================================================

def classify_route(path: str) -> str:
    """Return PUBLIC if the path skips all checks, PROTECTED otherwise."""
    if path in PUBLIC_PATHS:
        return PUBLIC
    for prefix in PUBLIC_PREFIXES:
        if path.startswith(prefix):
            return PUBLIC
    return PROTECTED


def resolve_client_ip(headers: Mapping[str, str], peer: Optional[str] = None) -> str:
    """
    Work out the caller address from proxy headers or the transport peer.

    X-Forwarded-For and X-Real-IP are supplied by the client and can be forged
    unless a trusted proxy overwrites them. The result is only good for
    allow-listing, rate limiting and logs.

    `headers` must answer lowercase header names (Starlette's Headers does).
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip

    return peer or UNKNOWN_CLIENT


def ip_allowed(client_ip: str, allowlist: FrozenSet[str]) -> bool:
    """True when the allow-list admits client_ip."""
    if not allowlist:
        return True
    if client_ip in allowlist or ALLOW_ALL in allowlist:
        return True
    return client_ip in LOOPBACK_ADDRESSES


def check_api_key(supplied: Optional[str], expected: str) -> Optional[GateDecision]:
    """
    Compare the supplied key with the configured one.

    Returns a deny decision for the first failing check, or None when the key
    is accepted. Order matters: a missing header is reported before a missing
    server key, which is reported before a mismatch.
    """
    if not supplied:
        return _deny(401, "API key is required",
                     f"Please provide a valid API key in the {API_KEY_HEADER} header")

    if not expected:
        return _deny(500, "Server configuration error", "API key not configured on server")

    if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        return _deny(401, "Invalid API key", "The provided API key is invalid")

    return None


# =============================================================================
# Gate
# =============================================================================

class AccessGate:
    """
    Runs the route classifier, IP allow-list and API key check in that order.

    Holds only the read-only Settings it was built with, so evaluating the same
    request twice always gives the same decision. Instances double as Starlette
    HTTP middleware.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def evaluate(self, path: str, headers: Mapping[str, str], peer: Optional[str] = None) -> GateDecision:
        if classify_route(path) == PUBLIC:
            return GateDecision(True)

        client_ip = resolve_client_ip(headers, peer)

        if self.settings.ip_allowlist_enabled and not ip_allowed(client_ip, self.settings.ip_allowlist):
            logger.warning(f"Blocked request from non-allowlisted IP: {client_ip} path={path}")
            return _deny(403, "Access denied",
                         "Your IP address is not allowed to access this resource", client_ip)

        denied = check_api_key(headers.get(API_KEY_HEADER.lower()), self.settings.api_key)
        if denied is not None:
            if denied.status_code == 500:
                logger.error("API_KEY is not configured; rejecting protected request")
            return GateDecision(False, denied.status_code, denied.error, denied.message, client_ip)

        logger.info(f"Authorized request from {client_ip} to {path}")
        return GateDecision(True, client_ip=client_ip)

    async def __call__(self, request: Request, call_next):
        peer = request.client.host if request.client else None
        decision = self.evaluate(request.url.path, request.headers, peer)
        if not decision.allowed:
            return JSONResponse(status_code=decision.status_code, content=decision.body())
        return await call_next(request)
