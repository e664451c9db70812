from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from staff_auth.core.config import Settings, settings
from staff_auth.core.exceptions import StaffAuthException
from staff_auth.core.logging import setup_logging
from staff_auth.core.security_headers import install_security_headers_middleware
from staff_auth.db.session import SessionLocal
from staff_auth.routers import auth
from staff_auth.services.maintenance import TokenCleanupLoop

API_PREFIX = "/api"


def create_app(app_settings: Settings | None = None) -> FastAPI:
    app_settings = app_settings or settings
    setup_logging(app_settings.LOG_LEVEL, audit_level=app_settings.AUDIT_LOG_LEVEL)
    # Missing or weak signing keys stop the process here, never per request.
    app_settings.validate_runtime_security()

    cleanup = TokenCleanupLoop(SessionLocal, interval_seconds=app_settings.TOKEN_CLEANUP_INTERVAL_SECONDS)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if app_settings.TOKEN_CLEANUP_ENABLED:
            await cleanup.start()
        try:
            yield
        finally:
            await cleanup.stop()

    app = FastAPI(title=app_settings.APP_NAME, lifespan=lifespan)
    app.state.token_cleanup = cleanup
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_security_headers_middleware(app, app_settings, path_prefix=API_PREFIX)

    app.include_router(auth.router, prefix=f"{API_PREFIX}/auth", tags=["auth"])

    @app.exception_handler(StaffAuthException)
    async def handle_staff_auth_exception(_: Request, exc: StaffAuthException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)

    return app


app = create_app()
