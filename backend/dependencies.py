"""
Startup Dashboard - Shared FastAPI Dependencies

Centralizes caller resolution used across the routers.
"""

import logging
from typing import Annotated

from fastapi import Depends, Path, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from access import (
    Caller, caller_from_claims, require_admin, require_authenticated,
    require_member, require_staff,
)
from auth import auth_manager
from constants import MAX_ID
from database import get_db
from errors import Unauthorized

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/user/login", auto_error=False)

# Path ids, bounded to the INTEGER column range
RowId = Annotated[int, Path(ge=0, le=MAX_ID)]


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


def get_caller(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Caller:
    """Classify the caller. Never raises; anonymous callers are a variant."""
    claims = auth_manager.verify_token(token) if token else None
    caller = caller_from_claims(db, claims)
    request.state.caller = caller
    return caller


def get_authenticated_caller(
    token: str = Depends(oauth2_scheme),
    caller: Caller = Depends(get_caller)
) -> Caller:
    """Any signed-in account. Raises 401 if the token is missing or invalid."""
    if not token:
        raise Unauthorized("Authorization header missing")
    return require_authenticated(caller)


def get_member(caller: Caller = Depends(get_authenticated_caller)):
    return require_member(caller)


def get_staff(caller: Caller = Depends(get_authenticated_caller)):
    return require_staff(caller)


def get_admin(caller: Caller = Depends(get_authenticated_caller)):
    return require_admin(caller)
