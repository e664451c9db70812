"""Delete refresh tokens that expired longer ago than the retention window.

Usage:

    python scripts/cleanup_refresh_tokens.py
    python scripts/cleanup_refresh_tokens.py --retention-days 7
"""

from __future__ import annotations

import argparse
import datetime as dt
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(BASE_DIR))

from staff_auth.core.config import settings  # noqa: E402
from staff_auth.core.logging import setup_logging  # noqa: E402
from staff_auth.db.session import SessionLocal  # noqa: E402
from staff_auth.services.refresh_tokens import cleanup_expired_refresh_tokens  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Prune expired refresh tokens and their sessions")
    parser.add_argument(
        "--retention-days",
        type=int,
        default=settings.TOKEN_RETENTION_DAYS,
        help="Keep expired tokens this many days before deleting (default: TOKEN_RETENTION_DAYS)",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    if args.retention_days < 0:
        print("--retention-days must be zero or positive")
        return 1

    setup_logging(settings.LOG_LEVEL, audit_level=settings.AUDIT_LOG_LEVEL)
    db = SessionLocal()
    try:
        deleted = cleanup_expired_refresh_tokens(db, retention=dt.timedelta(days=args.retention_days))
    finally:
        db.close()
    print(f"Deleted {deleted} expired refresh token(s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
