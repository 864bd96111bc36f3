from collections import namedtuple
from datetime import datetime, timedelta
import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from . import db
from .models import RateLimit

logger = logging.getLogger(__name__)

RateLimitStatus = namedtuple("RateLimitStatus", ["allowed", "remaining", "reset_at"])


def _settings():
    config = current_app.config
    return (
        config["RATE_LIMIT_ENABLED"],
        config["RATE_LIMIT_MAX_REQUESTS"],
        timedelta(seconds=config["RATE_LIMIT_WINDOW_SECONDS"]),
    )


def _live_window(user_ip, now, window):
    return (
        RateLimit.query
        .filter(RateLimit.user_ip == user_ip, RateLimit.window_start >= now - window)
        .order_by(RateLimit.window_start.desc())
        .first()
    )


def check_rate_limit(user_ip, now=None):
    """Whether ``user_ip`` may submit another idea in the current window."""
    enabled, max_requests, window = _settings()
    if not enabled:
        return RateLimitStatus(True, max_requests, None)

    now = now or datetime.utcnow()
    try:
        existing = _live_window(user_ip, now, window)
    except SQLAlchemyError as e:
        logger.error(f"Rate limit lookup failed for {user_ip}: {e}")
        db.session.rollback()
        return RateLimitStatus(True, max_requests - 1, None)

    if existing is None:
        return RateLimitStatus(True, max_requests - 1, now + window)

    reset_at = existing.window_start + window
    if existing.request_count >= max_requests:
        return RateLimitStatus(False, 0, reset_at)

    return RateLimitStatus(True, max_requests - existing.request_count - 1, reset_at)


def record_request(user_ip, now=None):
    """Count one submission against ``user_ip``, opening a new window if needed."""
    enabled, _, window = _settings()
    if not enabled:
        return

    now = now or datetime.utcnow()
    try:
        existing = _live_window(user_ip, now, window)
        if existing is not None:
            existing.request_count += 1
            existing.last_request = now
        else:
            RateLimit.query.filter(
                RateLimit.user_ip == user_ip, RateLimit.window_start < now - window
            ).delete(synchronize_session=False)
            db.session.add(RateLimit(user_ip=user_ip, window_start=now,
                                     request_count=1, last_request=now))
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Rate limit update failed for {user_ip}: {e}")
        db.session.rollback()
