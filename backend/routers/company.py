"""
Startup Dashboard - Company Router

Endpoints:
- GET    /api/company/list - Map of company id -> name
- GET    /api/company/quarters/{id} - Quarters of a company
- POST   /api/company/quarters/add - Add a quarter to the caller's company
- POST   /api/company/create - Create a company and link the caller
- POST   /api/company/join/{id} - Join a company with its secret code
- GET    /api/company/me - The caller's company, including the secret code
- DELETE /api/company/delete - Delete the caller's company
- PUT    /api/company/edit?data=&quarter=&year= - Append a section version
- GET    /api/company/metrics/{id}?key= - Per-quarter metric series
- GET    /api/company/{id}?data=&quarter=&year= - Read a section
"""

import logging
from typing import Any
from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from access import Caller, Member, require_company_member
from audit import audited
from companies import (
    create_company, delete_company, get_company, join_company, list_companies,
)
from database import get_db
from dependencies import RowId, get_authenticated_caller, get_member
from metric_series import metric_series
from quarters import create_quarter, list_quarters
from schemas.company import CompanyCreate, JoinRequest, QuarterCreate
from section_service import parse_section_query, read_section, write_section

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/company", tags=["Company"])


@router.get("/list")
def company_list(db: Session = Depends(get_db)):
    return list_companies(db)


@router.get("/quarters/{company_id}")
def company_quarters(
    company_id: RowId,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_authenticated_caller)
):
    get_company(db, company_id)
    return [
        {"id": q["id"], "quarter": q["quarter"], "year": q["year"], "date": q["date"]}
        for q in list_quarters(db, company_id)
    ]


@router.post("/quarters/add", status_code=201)
def add_quarter(
    request: Request,
    body: QuarterCreate,
    db: Session = Depends(get_db),
    member: Member = Depends(get_member)
):
    """Add a quarter to the caller's own company; duplicates are a conflict."""
    member = require_company_member(member)
    with audited(request, db, "quarter_add", company_id=member.company_id,
                 quarter=body.quarter, year=body.year) as entry:
        quarter = create_quarter(db, member.company_id, body.quarter, body.year)
        entry["quarter_id"] = quarter["id"]
    return {"message": "Quarter created successfully", "quarter_id": quarter["id"]}


@router.post("/create", status_code=201)
def company_create(
    request: Request,
    body: CompanyCreate,
    db: Session = Depends(get_db),
    member: Member = Depends(get_member)
):
    with audited(request, db, "company_create", contact_email=body.contact_email) as entry:
        company = create_company(
            db, member.user_id,
            name=body.name,
            contact_name=body.contact_name,
            contact_email=body.contact_email,
            sector=body.sector,
            description=body.description,
        )
        entry["company_id"] = company["id"]
    return {"message": "Company created successfully", "company_id": company["id"]}


@router.post("/join/{company_id}")
def company_join(
    request: Request,
    company_id: RowId,
    body: JoinRequest,
    db: Session = Depends(get_db),
    member: Member = Depends(get_member)
):
    with audited(request, db, "company_join", company_id=company_id):
        join_company(db, member.user_id, company_id, body.secret_code)
    return {"message": "Successfully joined the company"}


@router.get("/me")
def my_company(db: Session = Depends(get_db), member: Member = Depends(get_member)):
    member = require_company_member(member)
    company = get_company(db, member.company_id)
    return {
        "company_id": company["id"],
        "company_name": company["name"],
        "company_contact_name": company["contact_name"],
        "company_contact_email": company["contact_email"],
        "sector": company["sector"],
        "description": company["description"],
        "secret_code": company["secret_code"],
    }


@router.delete("/delete")
def company_delete(request: Request, db: Session = Depends(get_db), member: Member = Depends(get_member)):
    """Delete the caller's company with all of its history."""
    member = require_company_member(member)
    with audited(request, db, "company_delete", company_id=member.company_id) as entry:
        entry["users_unlinked"] = delete_company(db, member.company_id)
    return {"message": "Company deleted successfully"}


@router.api_route("/edit", methods=["PUT", "POST"])
def company_edit(
    request: Request,
    body: Any = Body(...),
    db: Session = Depends(get_db),
    member: Member = Depends(get_member)
):
    """Write a section of the caller's company.

    Non-info sections append version max+1; fields locked by the previous
    version's editability mask are rejected with 401 and the field list.
    """
    member = require_company_member(member)
    section, label, year = parse_section_query(request.query_params)
    with audited(request, db, "section_edit", company_id=member.company_id,
                 section=section or "info", quarter=label, year=year) as entry:
        result = write_section(db, member.company_id, section, label, year, body)
        if "version" in result:
            entry["version"] = result["version"]
    return result


@router.get("/metrics/{company_id}")
def company_metrics(
    request: Request,
    company_id: RowId,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_authenticated_caller)
):
    return metric_series(db, caller, company_id, request.query_params)


@router.get("/{company_id}")
def company_read(
    request: Request,
    company_id: RowId,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_authenticated_caller)
):
    section, label, year = parse_section_query(request.query_params)
    return read_section(db, caller, company_id, section, label, year)
