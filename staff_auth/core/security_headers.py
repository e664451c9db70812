"""HTTP security headers for token-bearing API responses."""

from __future__ import annotations

from fastapi import FastAPI, Request

from staff_auth.core.config import Settings

# Every auth response may carry a credential, so none of them is cacheable.
_TOKEN_RESPONSE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}


def install_security_headers_middleware(app: FastAPI, settings: Settings, *, path_prefix: str = "/api") -> None:
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):  # type: ignore[override]
        response = await call_next(request)

        if (request.url.path or "").startswith(path_prefix):
            response.headers.update(_TOKEN_RESPONSE_HEADERS)
            if settings.is_production:
                response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
