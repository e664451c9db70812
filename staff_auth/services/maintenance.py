"""Background loop that prunes long-expired refresh tokens."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from sqlalchemy.orm import Session

from staff_auth.core.config import settings
from staff_auth.db.session import session_scope
from staff_auth.services.refresh_tokens import cleanup_expired_refresh_tokens

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 60


def run_cleanup_once(session_factory: Callable[[], Session]) -> int:
    with session_scope(session_factory) as db:
        return cleanup_expired_refresh_tokens(db)


class TokenCleanupLoop:
    """Owns the periodic cleanup task for one application instance."""

    def __init__(self, session_factory: Callable[[], Session], *, interval_seconds: int | None = None):
        self._session_factory = session_factory
        self._interval = max(MIN_INTERVAL_SECONDS, interval_seconds or settings.TOKEN_CLEANUP_INTERVAL_SECONDS)
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _run_once(self) -> None:
        try:
            run_cleanup_once(self._session_factory)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Refresh token cleanup failed: %s", exc)

    async def _loop(self) -> None:
        while True:
            await asyncio.to_thread(self._run_once)
            await asyncio.sleep(self._interval)

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._loop(), name="refresh-token-cleanup")
        logger.info("Refresh token cleanup loop started (every %s seconds)", self._interval)

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
