"""
Startup Dashboard - Authentication Router

Endpoints:
- POST /api/auth/user/signup - Create a startup member account, returns a token
- POST /api/auth/user/login - Member login
- POST /api/auth/vc/signup - Create a VC account (pending approval)
- POST /api/auth/vc/login - VC login, requires approval
- POST /api/auth/admin/login - Administrator / moderator login
- POST /api/auth/forgot-password - Exchange a TOTP or backup code for a reset token
- POST /api/auth/reset-password/{token} - Set a new password
"""

import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from audit import audited
from auth import auth_manager
from constants import ROLE_ADMIN, ROLE_MODERATOR, ROLE_USER, ROLE_VC
from database import get_db, User
from errors import Unauthorized
from mfa import verify_backup_code, verify_totp
from rate_limit import AUTH_LIMIT, limiter
from schemas.auth import (
    ForgotPasswordRequest, LoginRequest, ResetPasswordRequest, SignupRequest,
    TokenResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post("/user/signup", response_model=TokenResponse)
@limiter.limit(AUTH_LIMIT)
def user_signup(request: Request, body: SignupRequest, db: Session = Depends(get_db)):
    """Create a member account and sign it in."""
    with audited(request, None, "user_signup", email=body.email) as entry:
        user = auth_manager.create_user(
            db, name=body.name, position=body.position, email=body.email,
            password=body.password, role=ROLE_USER, approved=True,
        )
        entry["user_id"] = user.id
    return {"token": auth_manager.create_access_token(user)}


@router.post("/vc/signup")
@limiter.limit(AUTH_LIMIT)
def vc_signup(request: Request, body: SignupRequest, db: Session = Depends(get_db)):
    """Create a VC account; an administrator must approve it before login."""
    with audited(request, None, "vc_signup", email=body.email) as entry:
        user = auth_manager.create_user(
            db, name=body.name, position=body.position, email=body.email,
            password=body.password, role=ROLE_VC, approved=False,
        )
        entry["user_id"] = user.id
    return {"message": "Your account is submitted for approval"}


def _login(request: Request, db: Session, body: LoginRequest, event: str, roles):
    with audited(request, None, event, email=body.email) as entry:
        user = auth_manager.authenticate_user(db, body.email, body.password, roles=roles)
        entry["user_id"] = user.id
    return {"token": auth_manager.create_access_token(user)}


@router.post("/user/login", response_model=TokenResponse)
@limiter.limit(AUTH_LIMIT)
def user_login(request: Request, body: LoginRequest, db: Session = Depends(get_db)):
    return _login(request, db, body, "user_login", (ROLE_USER,))


@router.post("/vc/login", response_model=TokenResponse)
@limiter.limit(AUTH_LIMIT)
def vc_login(request: Request, body: LoginRequest, db: Session = Depends(get_db)):
    return _login(request, db, body, "vc_login", (ROLE_VC,))


@router.post("/admin/login", response_model=TokenResponse)
@limiter.limit(AUTH_LIMIT)
def admin_login(request: Request, body: LoginRequest, db: Session = Depends(get_db)):
    return _login(request, db, body, "admin_login", (ROLE_ADMIN, ROLE_MODERATOR))


@router.post("/forgot-password")
@limiter.limit(AUTH_LIMIT)
def forgot_password(request: Request, body: ForgotPasswordRequest, db: Session = Depends(get_db)):
    """Issue a reset token to a caller holding the account's TOTP or backup code."""
    with audited(request, None, "forgot_password", email=body.email) as entry:
        user = db.query(User).filter(User.email == body.email).first()
        if not user:
            raise Unauthorized("Invalid email or password")
        if body.otp:
            valid = verify_totp(user.totp_secret, body.otp)
            method = "otp"
        else:
            valid = verify_backup_code(user.backup_code, body.backup_code)
            method = "backup_code"
        entry.update({"user_id": user.id, "method": method})
        if not valid:
            raise Unauthorized("Invalid OTP" if method == "otp" else "Invalid backup code")
        token = auth_manager.issue_reset_token(db, user)
    return {"reset_token": token}


@router.post("/reset-password/{token}")
@limiter.limit(AUTH_LIMIT)
def reset_password(request: Request, token: str, body: ResetPasswordRequest,
                   db: Session = Depends(get_db)):
    with audited(request, None, "reset_password") as entry:
        user = auth_manager.reset_password(db, token, body.password)
        entry["user_id"] = user.id
    return {"message": "Password has been reset successfully"}
