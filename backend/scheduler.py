"""
Startup Dashboard - Background Scheduler

Periodic maintenance on an APScheduler BackgroundScheduler:
- every 6 hours, delete "user" accounts that never linked to a company
  and are older than 6 hours

Disable with SCHEDULER_ENABLED=false.
"""
import os
import logging
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from cache import invalidate_user
from constants import CLEANUP_INTERVAL_HOURS, ROLE_USER, UNLINKED_USER_MAX_AGE_HOURS
from database import PasswordResetToken, SessionLocal, User

logger = logging.getLogger(__name__)

_scheduler: Optional[BackgroundScheduler] = None


def cleanup_unlinked_users(db: Session, now: Optional[datetime] = None) -> int:
    """Delete unlinked member accounts created before the cutoff; returns the count."""
    cutoff = (now or datetime.utcnow()) - timedelta(hours=UNLINKED_USER_MAX_AGE_HOURS)
    stale_ids = [
        uid for (uid,) in db.query(User.id).filter(
            User.role == ROLE_USER,
            User.startup_id.is_(None),
            User.created_at <= cutoff,
        ).all()
    ]
    if not stale_ids:
        return 0
    db.query(PasswordResetToken).filter(PasswordResetToken.user_id.in_(stale_ids)).delete(
        synchronize_session=False
    )
    db.query(User).filter(User.id.in_(stale_ids)).delete(synchronize_session=False)
    db.commit()
    for uid in stale_ids:
        invalidate_user(uid)
    return len(stale_ids)


def run_cleanup_job():
    db = SessionLocal()
    try:
        removed = cleanup_unlinked_users(db)
        logger.info("Unlinked user cleanup removed %s accounts", removed)
    except Exception:
        db.rollback()
        logger.exception("Unlinked user cleanup failed")
    finally:
        db.close()


def is_scheduler_enabled() -> bool:
    return os.getenv("SCHEDULER_ENABLED", "true").lower() in ("true", "1", "yes")


def start_scheduler() -> Optional[BackgroundScheduler]:
    global _scheduler
    if not is_scheduler_enabled():
        logger.info("Scheduler disabled (SCHEDULER_ENABLED=false)")
        return None
    if _scheduler is None:
        _scheduler = BackgroundScheduler(timezone="UTC")
        _scheduler.add_job(
            run_cleanup_job,
            "interval",
            hours=CLEANUP_INTERVAL_HOURS,
            id="cleanup_unlinked_users",
            replace_existing=True,
        )
        _scheduler.start()
        logger.info("Scheduler started (cleanup every %sh)", CLEANUP_INTERVAL_HOURS)
    return _scheduler


def shutdown_scheduler():
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
