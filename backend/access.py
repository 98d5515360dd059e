"""
Startup Dashboard - Access Resolver

The caller is classified once per request into one of four variants:

    Anonymous            no or invalid token, or the account no longer exists
    Member(company_id)   role "user", optionally linked to a company
    VC(approved)         venture-capital reviewer
    Admin(role)          "admin" or "moderator"

resolve_access() then decides full vs filtered access for a target company.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy.orm import Session

from cache import cache_user, get_cached_user
from constants import ROLE_ADMIN, ROLE_MODERATOR, ROLE_USER, ROLE_VC
from database import User
from errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Anonymous:
    pass


@dataclass(frozen=True)
class Member:
    user_id: int
    email: str
    company_id: Optional[int] = None


@dataclass(frozen=True)
class VC:
    user_id: int
    email: str
    approved: bool = False


@dataclass(frozen=True)
class Admin:
    user_id: int
    email: str
    role: str = ROLE_ADMIN

    @property
    def is_moderator(self) -> bool:
        return self.role == ROLE_MODERATOR


Caller = Union[Anonymous, Member, VC, Admin]


def user_snapshot(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "approved": bool(user.approved),
        "startup_id": user.startup_id,
    }


def load_user_snapshot(db: Session, user_id: int) -> Optional[dict]:
    """User by id through the cache."""
    snapshot = get_cached_user(user_id)
    if snapshot is not None:
        return snapshot
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        return None
    snapshot = user_snapshot(user)
    cache_user(snapshot)
    return snapshot


def caller_from_snapshot(snapshot: Optional[dict]) -> Caller:
    if snapshot is None:
        return Anonymous()
    role = snapshot["role"]
    if role == ROLE_USER:
        return Member(snapshot["id"], snapshot["email"], snapshot.get("startup_id"))
    if role == ROLE_VC:
        return VC(snapshot["id"], snapshot["email"], snapshot.get("approved", False))
    if role in (ROLE_ADMIN, ROLE_MODERATOR):
        return Admin(snapshot["id"], snapshot["email"], role)
    logger.warning("Unknown role %r for user %s", role, snapshot["id"])
    return Anonymous()


def caller_from_claims(db: Session, claims: Optional[dict]) -> Caller:
    """Variant for verified JWT claims; the stored role wins over the claimed one."""
    if not claims:
        return Anonymous()
    return caller_from_snapshot(load_user_snapshot(db, claims["id"]))


def caller_id(caller: Caller) -> Optional[int]:
    return getattr(caller, "user_id", None)


def require_authenticated(caller: Caller) -> Caller:
    if isinstance(caller, Anonymous):
        raise Unauthorized("Not authenticated")
    if isinstance(caller, VC) and not caller.approved:
        raise Unauthorized("This account is still not approved")
    return caller


def resolve_access(caller: Caller, company_id: int) -> bool:
    """True for full access, False for the masked view; raises for anonymous callers."""
    require_authenticated(caller)
    if isinstance(caller, Admin):
        return True
    if isinstance(caller, Member) and caller.company_id is not None:
        return caller.company_id == company_id
    return False


def require_member(caller: Caller) -> Member:
    """Only startup members may write sections or manage their own company."""
    require_authenticated(caller)
    if not isinstance(caller, Member):
        raise Forbidden("This action requires a startup member account")
    return caller


def require_company_member(caller: Caller) -> Member:
    member = require_member(caller)
    if member.company_id is None:
        raise Forbidden("You are not linked to a company")
    return member


def require_staff(caller: Caller) -> Admin:
    require_authenticated(caller)
    if not isinstance(caller, Admin):
        raise Forbidden("Administrator or moderator role required")
    return caller


def require_admin(caller: Caller) -> Admin:
    staff = require_staff(caller)
    if staff.role != ROLE_ADMIN:
        raise Forbidden("Administrator role required")
    return staff
