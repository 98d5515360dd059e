"""
Startup Dashboard - Management Router

Staff endpoints (admin or moderator):
- GET    /api/manage/company/list - All companies with contact details
- GET    /api/manage/company/{id}?data=&quarter=&year= - Full-access section read
- PUT    /api/manage/company/edit/{id}?data=&quarter=&year= - Admin section write
- DELETE /api/manage/company/delete/{id} - Delete any company
- GET    /api/manage/company/perms/{id}?data=&quarter=&year= - Current masks
- POST   /api/manage/company/perms/{id}?data=&quarter=&year= - Publish new masks
- POST   /api/manage/company/quarters/{id}/new - Add a quarter to any company

Admin-only endpoints:
- GET    /api/manage/vc/list
- PUT    /api/manage/vc/{id}/approve
- PUT    /api/manage/vc/{id}/remove
- DELETE /api/manage/vc/{id}
- GET    /api/manage/users
- DELETE /api/manage/users/{id}
"""

import logging
from typing import Any
from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from access import Admin
from audit import audited
from auth import auth_manager
from cache import invalidate_user
from companies import delete_company, get_company, list_company_details
from constants import ROLE_USER, ROLE_VC
from database import get_db, User
from dependencies import RowId, get_admin, get_staff
from errors import NotFound
from quarters import create_quarter
from schemas.company import MaskUpdate, QuarterCreate
from schemas.users import UserResponse
from section_service import (
    admin_write_section, parse_section_query, read_section,
    section_permissions, set_section_masks,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/manage", tags=["Management"])


# ============== Companies ==============


@router.get("/company/list")
def manage_company_list(db: Session = Depends(get_db), staff: Admin = Depends(get_staff)):
    return list_company_details(db)


@router.get("/company/perms/{company_id}")
def manage_get_perms(
    request: Request,
    company_id: RowId,
    db: Session = Depends(get_db),
    staff: Admin = Depends(get_staff)
):
    """Visibility / editability masks of the latest version, with the per-field bit table."""
    section, label, year = parse_section_query(request.query_params)
    return section_permissions(db, company_id, section, label, year)


@router.post("/company/perms/{company_id}")
def manage_set_perms(
    request: Request,
    company_id: RowId,
    body: MaskUpdate,
    db: Session = Depends(get_db),
    staff: Admin = Depends(get_staff)
):
    section, label, year = parse_section_query(request.query_params)
    with audited(request, db, "section_perms", company_id=company_id,
                 section=section, quarter=label, year=year,
                 is_visible=body.is_visible, is_editable=body.is_editable) as entry:
        result = set_section_masks(
            db, company_id, section, label, year, body.is_visible, body.is_editable
        )
        entry["version"] = result["version"]
    return result


@router.post("/company/quarters/{company_id}/new", status_code=201)
def manage_add_quarter(
    request: Request,
    company_id: RowId,
    body: QuarterCreate,
    db: Session = Depends(get_db),
    staff: Admin = Depends(get_staff)
):
    get_company(db, company_id)
    with audited(request, db, "admin_quarter_add", company_id=company_id,
                 quarter=body.quarter, year=body.year) as entry:
        quarter = create_quarter(db, company_id, body.quarter, body.year)
        entry["quarter_id"] = quarter["id"]
    return {"message": "Quarter created successfully", "quarter_id": quarter["id"]}


@router.api_route("/company/edit/{company_id}", methods=["PUT", "POST"])
def manage_company_edit(
    request: Request,
    company_id: RowId,
    body: Any = Body(...),
    db: Session = Depends(get_db),
    staff: Admin = Depends(get_staff)
):
    """Administrator write: no editability check, masks may be overridden."""
    section, label, year = parse_section_query(request.query_params)
    with audited(request, db, "admin_section_edit", company_id=company_id,
                 section=section or "info", quarter=label, year=year) as entry:
        result = admin_write_section(db, company_id, section, label, year, body)
        if "version" in result:
            entry["version"] = result["version"]
    return result


@router.delete("/company/delete/{company_id}")
def manage_company_delete(
    request: Request,
    company_id: RowId,
    db: Session = Depends(get_db),
    staff: Admin = Depends(get_staff)
):
    with audited(request, db, "admin_company_delete", company_id=company_id) as entry:
        entry["users_unlinked"] = delete_company(db, company_id)
    return {"message": "Company deleted successfully", "users_unlinked": entry["users_unlinked"]}


@router.get("/company/{company_id}")
def manage_company_read(
    request: Request,
    company_id: RowId,
    db: Session = Depends(get_db),
    staff: Admin = Depends(get_staff)
):
    section, label, year = parse_section_query(request.query_params)
    return read_section(db, staff, company_id, section, label, year)


# ============== VC accounts ==============


def _account(db: Session, user_id: int, role: str, missing: str) -> User:
    user = db.query(User).filter(User.id == user_id, User.role == role).first()
    if not user:
        raise NotFound(missing)
    return user


@router.get("/vc/list")
def manage_vc_list(db: Session = Depends(get_db), admin: Admin = Depends(get_admin)):
    vcs = db.query(User).filter(User.role == ROLE_VC).order_by(User.id).all()
    return [{"id": v.id, "name": v.name, "email": v.email, "approved": bool(v.approved)} for v in vcs]


def _set_vc_approval(request: Request, db: Session, vc_id: int, approved: bool, event: str):
    with audited(request, db, event, target_id=vc_id):
        vc = _account(db, vc_id, ROLE_VC, "User does not exist")
        vc.approved = approved
        db.commit()
        invalidate_user(vc_id)


@router.put("/vc/{vc_id}/approve")
def manage_vc_approve(
    request: Request,
    vc_id: RowId,
    db: Session = Depends(get_db),
    admin: Admin = Depends(get_admin)
):
    _set_vc_approval(request, db, vc_id, True, "approve_vc")
    return {"message": "VC approved"}


@router.put("/vc/{vc_id}/remove")
def manage_vc_remove(
    request: Request,
    vc_id: RowId,
    db: Session = Depends(get_db),
    admin: Admin = Depends(get_admin)
):
    """Revoke approval; the account stays but can no longer sign in."""
    _set_vc_approval(request, db, vc_id, False, "remove_vc")
    return {"message": "VC approval removed"}


@router.delete("/vc/{vc_id}")
def manage_vc_delete(
    request: Request,
    vc_id: RowId,
    db: Session = Depends(get_db),
    admin: Admin = Depends(get_admin)
):
    with audited(request, db, "delete_vc", target_id=vc_id):
        auth_manager.delete_user(db, _account(db, vc_id, ROLE_VC, "VC does not exist"))
    return {"message": "VC deleted"}


# ============== Member accounts ==============


@router.get("/users")
def manage_users(db: Session = Depends(get_db), admin: Admin = Depends(get_admin)):
    users = db.query(User).filter(User.role == ROLE_USER).order_by(User.id).all()
    return [UserResponse.model_validate(u).model_dump(mode="json") for u in users]


@router.delete("/users/{user_id}")
def manage_user_delete(
    request: Request,
    user_id: RowId,
    db: Session = Depends(get_db),
    admin: Admin = Depends(get_admin)
):
    with audited(request, db, "delete_user", target_id=user_id):
        auth_manager.delete_user(db, _account(db, user_id, ROLE_USER, "User does not exist"))
    return {"message": "User deleted"}
