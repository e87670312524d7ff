"""Response header builders: CORS, security and cache directives."""

from typing import Any

from fastapi.responses import JSONResponse

CORS_ALLOW_METHODS = "GET, HEAD, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type, Authorization, X-Client-Info, apikey"
CORS_MAX_AGE = "86400"

# Seconds a response may be cached, by endpoint class
CACHE_TTL_SECONDS: dict[str, int] = {
    "search": 60,
    "search_autocomplete": 3600,
    "search_facets": 3600,
}


def cors_headers(request_origin: str | None, allowed_origins: list[str]) -> dict[str, str]:
    """CORS headers for any response, including errors and preflights."""
    if "*" in allowed_origins:
        origin = "*"
    elif request_origin and request_origin in allowed_origins:
        origin = request_origin
    else:
        origin = allowed_origins[0] if allowed_origins else "null"

    headers = {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Access-Control-Max-Age": CORS_MAX_AGE,
    }
    if origin != "*":
        headers["Vary"] = "Origin"
    return headers


def security_headers() -> dict[str, str]:
    return {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }


def cache_headers(preset: str | None) -> dict[str, str]:
    """Cache-Control for a preset; unknown or None presets are not cached."""
    ttl = CACHE_TTL_SECONDS.get(preset) if preset else None
    if ttl is None:
        return {"Cache-Control": "no-store"}
    return {
        "Cache-Control": f"public, max-age={ttl}, s-maxage={ttl}, stale-while-revalidate={ttl * 2}",
    }


def error_response(
    status_code: int,
    body: dict[str, Any],
    request_origin: str | None,
    allowed_origins: list[str],
    extra_headers: dict[str, str] | None = None,
) -> JSONResponse:
    """JSON error response carrying CORS, security and no-store headers."""
    headers = {
        **security_headers(),
        **cache_headers(None),
        **cors_headers(request_origin, allowed_origins),
        **(extra_headers or {}),
    }
    return JSONResponse(status_code=status_code, content=body, headers=headers)
