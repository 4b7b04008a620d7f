"""
Rate Limiting Service

WHY: Bound abuse of the mutating billing endpoints. Bulk operations get a
lower cap than single ones.

DESIGN:
- Fixed window per (identity, action), counted from rate_limit_events rows
- Limits and window come from app config (RATE_LIMITS, RATE_LIMIT_WINDOW_SECONDS)
- Each allowed call is recorded immediately in its own commit
- Rejected calls are not recorded, so a blocked client is not locked out longer
"""

from datetime import timedelta

from flask import current_app

from ..errors import RateLimitExceededError
from ..extensions import db
from ..models import RateLimitEvent
from app.time_utils import utcnow


DEFAULT_LIMIT = 10


def get_limit(action: str) -> int:
    return current_app.config.get("RATE_LIMITS", {}).get(action, DEFAULT_LIMIT)


def get_window() -> timedelta:
    return timedelta(seconds=current_app.config.get("RATE_LIMIT_WINDOW_SECONDS", 60))


def count_recent_calls(identity: str, action: str) -> int:
    cutoff = utcnow() - get_window()
    return db.session.query(RateLimitEvent).filter(
        RateLimitEvent.identity == identity,
        RateLimitEvent.action == action,
        RateLimitEvent.occurred_at >= cutoff,
    ).count()


def check_rate_limit(identity: str | None, action: str, limit: int | None = None) -> dict:
    """
    Gate one call. Records it when allowed.

    Returns dict with limit / remaining.
    Raises RateLimitExceededError once the window's limit is used up.
    """
    identity = identity or "anon"
    limit = limit if limit is not None else get_limit(action)

    used = count_recent_calls(identity, action)
    if used >= limit:
        current_app.logger.warning("Rate limit hit: %s on %s", identity, action)
        raise RateLimitExceededError("Too many requests. Please try again later.")

    db.session.add(RateLimitEvent(identity=identity, action=action, occurred_at=utcnow()))
    db.session.commit()

    return {
        "limit": limit,
        "remaining": max(0, limit - used - 1),
    }


def cleanup_old_events(retention_days: int = 1) -> int:
    """Delete rate-limit events older than the retention window. Returns rows deleted."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(RateLimitEvent).filter(RateLimitEvent.occurred_at < cutoff).delete()
    db.session.commit()
    return deleted
