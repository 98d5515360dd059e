"""
Startup Dashboard - Company Records

Company lookup through the company cache, creation with a generated join
code, joining, info edits and deletion. Deleting a company removes its
quarters and all section history and detaches every linked user.
"""
import logging
import secrets
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cache import (
    cache_company, get_cached_company, invalidate_company,
    invalidate_company_quarters, invalidate_user,
)
from database import Company, User, generate_secret_code
from errors import Conflict, Forbidden, InternalError, NotFound, Unauthorized

logger = logging.getLogger(__name__)

# Collisions on a 48-bit code are unlikely; bail out after a few redraws.
_SECRET_CODE_ATTEMPTS = 3


def company_snapshot(company: Company) -> dict:
    return {
        "id": company.id,
        "name": company.name,
        "contact_name": company.contact_name,
        "contact_email": company.contact_email,
        "secret_code": company.secret_code,
        "sector": company.sector,
        "description": company.description,
    }


def company_summary(snapshot: dict) -> dict:
    """Public summary served for data=info."""
    return {
        "company_id": snapshot["id"],
        "company_name": snapshot["name"],
        "company_contact_name": snapshot["contact_name"],
        "company_contact_email": snapshot["contact_email"],
    }


def get_company(db: Session, company_id: int) -> dict:
    """Company snapshot by id; cache first, then the store."""
    cached = get_cached_company(company_id)
    if cached is not None:
        return cached
    company = db.query(Company).filter(Company.id == company_id).first()
    if company is None:
        raise NotFound("Company not found")
    snapshot = company_snapshot(company)
    cache_company(snapshot)
    return snapshot


def list_companies(db: Session) -> Dict[int, str]:
    return {c.id: c.name for c in db.query(Company).order_by(Company.id).all()}


def list_company_details(db: Session):
    return [company_snapshot(c) for c in db.query(Company).order_by(Company.id).all()]


def _load_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise Unauthorized("User not found")
    return user


def create_company(db: Session, user_id: int, name: str, contact_name: str,
                   contact_email: str, sector: Optional[str] = None,
                   description: Optional[str] = None) -> dict:
    """Create a company and link the creator to it."""
    user = _load_user(db, user_id)
    if user.startup_id is not None:
        raise Forbidden("User already belongs to a company")
    if db.query(Company).filter(Company.contact_email == contact_email).first():
        raise Conflict("Company with this contact email already exists")

    for _ in range(_SECRET_CODE_ATTEMPTS):
        company = Company(
            name=name,
            contact_name=contact_name,
            contact_email=contact_email,
            sector=sector,
            description=description,
            secret_code=generate_secret_code(),
        )
        db.add(company)
        try:
            db.flush()
        except IntegrityError as e:
            db.rollback()
            if "secret_code" in str(e.orig):
                continue
            raise Conflict("Company with this contact email already exists")
        user = _load_user(db, user_id)
        user.startup_id = company.id
        db.commit()
        db.refresh(company)
        invalidate_user(user_id)
        snapshot = company_snapshot(company)
        cache_company(snapshot)
        logger.info("Company %s created by user %s", company.id, user_id)
        return snapshot
    raise InternalError("Could not allocate a unique secret code")


def join_company(db: Session, user_id: int, company_id: int, secret_code: str) -> dict:
    user = _load_user(db, user_id)
    if user.startup_id is not None:
        raise Forbidden("User already belongs to a company")
    snapshot = get_company(db, company_id)
    if not secrets.compare_digest(snapshot["secret_code"].encode(), (secret_code or "").encode()):
        raise Unauthorized("Invalid secret code")
    user.startup_id = company_id
    db.commit()
    invalidate_user(user_id)
    return snapshot


def update_company_info(db: Session, company_id: int, changes: dict) -> dict:
    """In-place patch of name / contact_name / contact_email."""
    company = db.query(Company).filter(Company.id == company_id).first()
    if company is None:
        raise NotFound("Company not found")
    email = changes.get("contact_email")
    if email and email != company.contact_email:
        taken = (
            db.query(Company)
            .filter(Company.contact_email == email, Company.id != company_id)
            .first()
        )
        if taken:
            raise Conflict("Company with this contact email already exists")
    for field in ("name", "contact_name", "contact_email"):
        if changes.get(field) is not None:
            setattr(company, field, changes[field])
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Company with this contact email already exists")
    db.refresh(company)
    invalidate_company(company_id)
    snapshot = company_snapshot(company)
    cache_company(snapshot)
    return snapshot


def delete_company(db: Session, company_id: int) -> int:
    """Delete a company and its history; returns the number of users unlinked."""
    company = db.query(Company).filter(Company.id == company_id).first()
    if company is None:
        raise NotFound("Company not found")
    member_ids = [
        uid for (uid,) in db.query(User.id).filter(User.startup_id == company_id).all()
    ]
    db.query(User).filter(User.startup_id == company_id).update(
        {User.startup_id: None}, synchronize_session="fetch"
    )
    db.delete(company)
    db.commit()
    invalidate_company(company_id)
    invalidate_company_quarters(company_id)
    for uid in member_ids:
        invalidate_user(uid)
    logger.info("Company %s deleted, %s users unlinked", company_id, len(member_ids))
    return len(member_ids)
