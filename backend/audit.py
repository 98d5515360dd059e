"""
Startup Dashboard - Audit Trail

Structured audit records for privileged writes and auth events. Each record
goes to the "audit" logger with type=audit, event, ip, user_id, status and
reason on failure; successful privileged writes are also persisted to the
activity_logs table.

Usage:
    with audited(request, db, "company_delete", company_id=5) as entry:
        ...
        entry["users_unlinked"] = 3
"""
import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from access import caller_id
from database import ActivityLog
from dependencies import client_ip

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("audit")


def _caller_of(request: Request):
    return getattr(request.state, "caller", None)


def emit(request: Request, event: str, status: str = "success",
         reason: Optional[str] = None, user_id: Optional[int] = None, **fields: Any) -> None:
    """Write one audit record to the log."""
    record = {
        "type": "audit",
        "event": event,
        "ip": client_ip(request),
        "user_id": user_id if user_id is not None else caller_id(_caller_of(request)),
        "status": status,
    }
    if reason:
        record["reason"] = reason
    record.update(fields)
    if status == "success":
        audit_logger.info(event, extra=record)
    else:
        audit_logger.warning(event, extra=record)


def log_activity(db: Session, request: Request, event: str,
                 details: Dict[str, Any], user_id: Optional[int] = None) -> None:
    """Persist a successful privileged write to activity_logs."""
    caller = _caller_of(request)
    activity = ActivityLog(
        user_id=user_id if user_id is not None else caller_id(caller),
        user_email=getattr(caller, "email", None),
        action_type=event,
        action_details=json.dumps(details, default=str),
        ip_address=client_ip(request),
    )
    db.add(activity)
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to persist activity log for %s", event)


@contextmanager
def audited(request: Request, db: Optional[Session], event: str, **fields: Any):
    """Audit the enclosed block: failure records carry the error, success is persisted."""
    entry: Dict[str, Any] = dict(fields)
    try:
        yield entry
    except Exception as e:
        emit(request, event, status="failure", reason=getattr(e, "message", None) or str(e), **entry)
        raise
    emit(request, event, **entry)
    if db is not None:
        log_activity(db, request, event, entry)
