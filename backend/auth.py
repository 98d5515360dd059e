"""
Startup Dashboard - Authentication

Account creation, credential checks, JWT issuing/verification and
password-reset tokens.

Tokens are HS256 JWTs carrying {id, role, iat, exp}; they expire after
six hours.
"""
import os
import secrets
import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from jose import jwt, JWTError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cache import invalidate_user
from config import get_settings
from constants import ACCESS_TOKEN_EXPIRE_HOURS, ROLE_ADMIN, ROLE_VC
from database import User, PasswordResetToken
from errors import Conflict, Unauthorized
from mfa import generate_backup_code, generate_totp_secret
from passwords import hash_password, verify_password

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class AuthManager:
    """Handles user authentication with database persistence."""

    DEFAULT_ADMIN_EMAIL = "admin@dashboard.local"

    def ensure_default_admin(self, db: Session):
        """Create the admin account from ADMIN_EMAIL / ADMIN_PASSWORD if missing.

        Without ADMIN_PASSWORD nothing is created.
        """
        admin_email = os.getenv("ADMIN_EMAIL") or self.DEFAULT_ADMIN_EMAIL
        admin_password = os.getenv("ADMIN_PASSWORD")
        if not admin_password:
            logger.info("ADMIN_PASSWORD not set; skipping default admin creation")
            return None
        existing = db.query(User).filter(User.email == admin_email).first()
        if existing:
            return existing
        logger.info("Creating default admin: %s", admin_email)
        return self.create_user(
            db, name="Administrator", position="", email=admin_email,
            password=admin_password, role=ROLE_ADMIN, approved=True,
        )

    def create_user(self, db: Session, name: str, position: str, email: str,
                    password: str, role: str, approved: bool = False) -> User:
        """Create a new account. Duplicate email is a conflict."""
        if db.query(User).filter(User.email == email).first():
            raise Conflict("Email already registered")

        user = User(
            name=name,
            position=position,
            email=email,
            hashed_password=hash_password(password),
            role=role,
            approved=approved,
            backup_code=generate_backup_code(),
            totp_secret=generate_totp_secret(),
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise Conflict("Email already registered")
        db.refresh(user)
        return user

    def authenticate_user(self, db: Session, email: str, password: str,
                          roles: Optional[Tuple[str, ...]] = None) -> User:
        """Check credentials; raises Unauthorized on any mismatch."""
        user = db.query(User).filter(User.email == email).first()
        if not user or not verify_password(password, user.hashed_password):
            raise Unauthorized("Invalid email or password")
        if roles is not None and user.role not in roles:
            raise Unauthorized("Invalid email or password")
        if user.role == ROLE_VC and not user.approved:
            raise Unauthorized("This account is still not approved")
        return user

    def create_access_token(self, user: User, expires_delta: timedelta = None) -> str:
        """Create JWT access token."""
        now = datetime.utcnow()
        expire = now + (expires_delta or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))
        claims = {"id": user.id, "role": user.role, "iat": now, "exp": expire}
        return jwt.encode(claims, get_settings().jwt_secret, algorithm=ALGORITHM)

    def verify_token(self, token: str) -> Optional[dict]:
        """Decoded claims, or None for an invalid or expired token."""
        try:
            payload = jwt.decode(token, get_settings().jwt_secret, algorithms=[ALGORITHM])
        except JWTError as e:
            logger.debug("Token verification failed: %s", e)
            return None
        if not isinstance(payload.get("id"), int) or not payload.get("role"):
            return None
        return payload

    def delete_user(self, db: Session, user: User) -> None:
        """Delete an account and its pending reset tokens."""
        user_id = user.id
        db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user_id).delete(
            synchronize_session=False
        )
        db.delete(user)
        db.commit()
        invalidate_user(user_id)

    def issue_reset_token(self, db: Session, user: User) -> str:
        """Store and return a one-shot reset token valid for token-expiry minutes."""
        token = secrets.token_hex(20)
        db.add(PasswordResetToken(
            token=token,
            user_id=user.id,
            expires_at=datetime.utcnow() + timedelta(minutes=get_settings().token_expiry),
        ))
        db.commit()
        return token

    def reset_password(self, db: Session, token: str, new_password: str) -> User:
        record = db.query(PasswordResetToken).filter(PasswordResetToken.token == token).first()
        if not record or record.used or record.expires_at < datetime.utcnow():
            raise Unauthorized("Invalid or expired reset token")
        user = db.query(User).filter(User.id == record.user_id).first()
        if not user:
            raise Unauthorized("Invalid or expired reset token")
        user.hashed_password = hash_password(new_password)
        record.used = True
        db.commit()
        return user


auth_manager = AuthManager()
