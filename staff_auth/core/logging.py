"""Logging setup: one root handler plus a dedicated channel for security audit events."""

from __future__ import annotations

import logging
import os

AUDIT_LOGGER_NAME = "staff_auth.audit"


def setup_logging(level: str | None = None, *, audit_level: str | None = None) -> None:
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level_name,
            format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        )

    # Reuse and revocation events stay visible when the rest of the app runs quietly.
    logging.getLogger(AUDIT_LOGGER_NAME).setLevel((audit_level or "INFO").upper())
