"""Rate limiting, security headers and the request filter."""

from dataclasses import replace

from beaconhub.security import SECURITY_HEADERS, RateLimiter


def test_security_headers_on_every_response(client):
    for response in (client.get("/api/health"), client.get("/api/users")):
        for name, value in SECURITY_HEADERS.items():
            assert response.headers[name] == value
        assert "server" not in response.headers


def test_rate_limit_per_caller(make_client, settings, auth_headers):
    c = make_client(replace(settings, rate_limit_max=3, rate_limit_window=60))
    codes = [c.get("/api/health").status_code for _ in range(3)]
    assert codes == [200, 200, 200]

    r = c.get("/api/users", headers=auth_headers)
    assert r.status_code == 429
    body = r.json()
    assert body["error"] == "Rate limit exceeded"
    assert body["message"] == "Too many requests. Limit: 3 per 60 seconds"
    assert 0 < body["retryAfter"] <= 60
    assert r.headers["Retry-After"] == str(body["retryAfter"])

    # Another caller address has its own window.
    r = c.get("/api/users", headers={**auth_headers, "X-Forwarded-For": "203.0.113.5"})
    assert r.status_code == 200


def test_rate_limiter_window_slides():
    limiter = RateLimiter(max_requests=2, window_seconds=10)
    assert limiter.hit("a", now=100.0) == 0
    assert limiter.hit("a", now=101.0) == 0
    assert limiter.hit("a", now=102.0) == 8.0
    assert limiter.hit("a", now=110.5) == 0
    assert limiter.hit("b", now=110.5) == 0


def test_rate_limiter_prune():
    limiter = RateLimiter(max_requests=5, window_seconds=10)
    limiter.hit("old", now=0.0)
    limiter.hit("new", now=15.0)
    assert limiter.prune(now=16.0) == 1
    assert len(limiter) == 1


def test_payload_too_large(make_client, settings, auth_headers):
    c = make_client(replace(settings, max_request_size=16))
    r = c.post("/api/users", headers=auth_headers, json={"full_name": "A very long name", "tag": "x"})
    assert r.status_code == 413
    assert r.json()["error"] == "Payload too large"


def test_url_filter_off_by_default(client, auth_headers):
    r = client.get("/api/users", headers=auth_headers, params={"q": "<script>"})
    assert r.status_code == 200
    r = client.get("/api/users/description", headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid user ID"


def test_suspicious_url_blocked_when_enabled(make_client, settings, auth_headers):
    c = make_client(replace(settings, security_filters_enabled=True))
    r = c.get("/api/users", headers=auth_headers, params={"q": "<script>alert(1)</script>"})
    assert r.status_code == 400
    assert r.json() == {"error": "Bad request", "message": "Invalid request format"}

    r = c.get("/api/users?filter=1 UNION ALL SELECT password", headers=auth_headers)
    assert r.status_code == 400


def test_url_filter_runs_after_gate(make_client, settings):
    c = make_client(replace(settings, security_filters_enabled=True))
    r = c.get("/api/users/evaluate")
    assert r.status_code == 401
    assert r.json()["error"] == "API key is required"

    r = c.get("/api/users/evaluate", headers={"X-API-Key": "wrong"})
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid API key"


def test_url_filter_skips_public_routes(make_client, settings):
    c = make_client(replace(settings, security_filters_enabled=True))
    assert c.get("/api/health", params={"q": "eval"}).status_code == 200
    assert c.get("/api/health?q=<script>").status_code == 200


def test_bot_user_agents_blocked_in_production(make_client, settings, auth_headers):
    c = make_client(replace(settings, environment="production", security_filters_enabled=True))
    r = c.get("/api/users", headers={**auth_headers, "User-Agent": "curl/8.4.0"})
    assert r.status_code == 403
    assert r.json()["message"] == "Automated requests are not allowed"

    # Gate answers first for keyless callers.
    assert c.get("/api/users", headers={"User-Agent": "curl/8.4.0"}).status_code == 401
    assert c.get("/api/health", headers={"User-Agent": "curl/8.4.0"}).status_code == 200
    assert c.get("/api/users", headers={**auth_headers, "User-Agent": "Mozilla/5.0"}).status_code == 200


def test_bot_user_agents_allowed_outside_production(make_client, settings, auth_headers):
    c = make_client(replace(settings, security_filters_enabled=True))
    r = c.get("/api/users", headers={**auth_headers, "User-Agent": "python-requests bot"})
    assert r.status_code == 200


def test_cors_preflight(client, settings):
    r = client.options(
        "/api/users",
        headers={"Origin": settings.cors_origin, "Access-Control-Request-Method": "GET"},
    )
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == settings.cors_origin
