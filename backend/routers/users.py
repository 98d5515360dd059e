"""
Startup Dashboard - Users Router

Endpoints:
- GET    /api/users/me - The caller's account
- PUT    /api/users - Edit own name and position
- DELETE /api/users - Delete own account
- GET    /api/users/totp - TOTP provisioning URI for an authenticator app
- GET    /api/users/backup-code - The caller's recovery backup code
"""

import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from access import Admin, Caller, caller_id
from audit import audited
from auth import auth_manager
from database import get_db, User
from dependencies import get_authenticated_caller
from errors import Forbidden, Unauthorized
from mfa import get_totp_uri
from schemas.users import UserResponse, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


def _current_user(db: Session, caller: Caller) -> User:
    user = db.query(User).filter(User.id == caller_id(caller)).first()
    if not user:
        raise Unauthorized("User not found")
    return user


@router.get("/me", response_model=UserResponse)
def read_me(db: Session = Depends(get_db), caller: Caller = Depends(get_authenticated_caller)):
    return _current_user(db, caller)


@router.put("")
def edit_me(
    request: Request,
    body: UserUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_authenticated_caller)
):
    """Only name and position are editable."""
    with audited(request, None, "edit_user"):
        user = _current_user(db, caller)
        if body.name is not None:
            user.name = body.name
        if body.position is not None:
            user.position = body.position
        db.commit()
    return {"message": "user updated successfully"}


@router.delete("")
def delete_me(
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_authenticated_caller)
):
    if isinstance(caller, Admin):
        raise Forbidden("Administrator accounts cannot delete themselves")
    with audited(request, None, "delete_user_self"):
        auth_manager.delete_user(db, _current_user(db, caller))
    return {"message": "user deleted successfully"}


@router.get("/totp")
def totp_uri(db: Session = Depends(get_db), caller: Caller = Depends(get_authenticated_caller)):
    user = _current_user(db, caller)
    return {"uri": get_totp_uri(user.totp_secret, user.email)}


@router.get("/backup-code")
def backup_code(
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_authenticated_caller)
):
    with audited(request, None, "view_backup_code"):
        user = _current_user(db, caller)
    return {"backup_code": user.backup_code}
