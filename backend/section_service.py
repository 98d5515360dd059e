"""
Startup Dashboard - Section Read/Write Coordinator

Orchestrates section reads (latest version, masked for filtered readers)
and writes (append the next version after the editability check).

Query shape shared by the read and write endpoints:

    ?data={section}&quarter={Q1..Q4}&year={year}

`data` absent or "info" addresses the company record itself.
"""
import logging
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.orm import Session

from access import Caller, resolve_access
from companies import company_summary, get_company, update_company_info
from constants import MAX_APPEND_RETRIES
from errors import InternalError, InvalidInput, NotFound, VersionConflict
from masks import (
    carried_masks, check_editable, mask_table, merge_values,
    project_visible, validate_mask,
)
from quarters import parse_year, resolve_quarter, validate_label
from schemas.company import CompanyInfoUpdate
from sections import INFO_SECTION, SectionSchema, get_section
import versioned_store as store

logger = logging.getLogger(__name__)

MASK_KEYS = ("is_visible", "is_editable")


def parse_section_query(query_params) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """(section, quarter, year) from request query params.

    Repeated parameters and an empty `data` value are invalid input.
    """
    values = {}
    for name in ("data", "quarter", "year"):
        found = query_params.getlist(name)
        if len(found) > 1:
            raise InvalidInput(f"duplicate query parameter '{name}'")
        values[name] = found[0] if found else None
    if values["data"] is not None and values["data"] == "":
        raise InvalidInput("query parameter 'data' must not be empty")
    return values["data"], values["quarter"], values["year"]


def _is_info(section: Optional[str]) -> bool:
    return section is None or section == INFO_SECTION


def _quarter_for(db: Session, company_id: int, label: Optional[str], year_raw) -> dict:
    year = parse_year(year_raw)
    validate_label(label)
    return resolve_quarter(db, company_id, label, year)


# =============================================================================
# READ
# =============================================================================

def read_section(db: Session, caller: Caller, company_id: int, section: Optional[str],
                 label: Optional[str], year_raw) -> Dict[str, Any]:
    schema = None if _is_info(section) else get_section(section)
    company = get_company(db, company_id)
    if schema is None:
        resolve_access(caller, company_id)
        return company_summary(company)

    year = parse_year(year_raw)
    validate_label(label)
    full_access = resolve_access(caller, company_id)
    quarter = resolve_quarter(db, company_id, label, year)

    rows = store.latest_versions_for_quarter(db, schema, company_id, quarter["id"])
    if not rows:
        raise NotFound(f"No {section} data for {label} {year}")
    return {
        "quarter_id": quarter["id"],
        "data": [project_visible(schema, row, full_access) for row in rows],
    }


# =============================================================================
# WRITE
# =============================================================================

def _parse_info(body: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(body, dict):
        raise InvalidInput("request body must be a JSON object")
    try:
        return CompanyInfoUpdate.model_validate(body).model_dump(exclude_unset=True)
    except ValidationError as e:
        raise InvalidInput("invalid company info", extra={"details": [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]})


def _append_next_version(db: Session, schema: SectionSchema, company_id: int,
                         quarter_id: int, payload: Dict[str, Any],
                         enforce_editable: bool,
                         mask_overrides: Optional[Dict[str, int]] = None):
    """Stamp and append version max+1, retrying once when a concurrent writer wins."""
    for attempt in range(MAX_APPEND_RETRIES + 1):
        previous = store.latest_row(db, schema, company_id, quarter_id)
        if enforce_editable:
            check_editable(schema, previous, payload)
        masks = carried_masks(schema, previous)
        if mask_overrides:
            masks.update({k: v for k, v in mask_overrides.items() if v is not None})
        version = store.max_version(db, schema, company_id, quarter_id) + 1
        row = schema.build_row(
            company_id, quarter_id, version,
            merge_values(schema, previous, payload),
            masks["is_visible"], masks["is_editable"],
        )
        try:
            return store.append(db, schema, row)
        except VersionConflict:
            logger.warning(
                "Retrying %s append for company=%s quarter=%s (attempt %s)",
                schema.id, company_id, quarter_id, attempt + 1
            )
    raise InternalError(f"{schema.id} version conflict persisted after retry")


def write_section(db: Session, company_id: int, section: Optional[str],
                  label: Optional[str], year_raw, body: Dict[str, Any]) -> Dict[str, Any]:
    """Member write path: info patch, or append a version under the editability mask."""
    if _is_info(section):
        update_company_info(db, company_id, _parse_info(body))
        return {"message": "Company updated successfully"}

    schema = get_section(section)
    payload = schema.parse_payload(body)
    quarter = _quarter_for(db, company_id, label, year_raw)
    row = _append_next_version(db, schema, company_id, quarter["id"], payload, enforce_editable=True)
    return {"message": f"{schema.title} updated successfully", "version": row.version, "id": row.id}


def admin_write_section(db: Session, company_id: int, section: Optional[str],
                        label: Optional[str], year_raw, body: Dict[str, Any]) -> Dict[str, Any]:
    """Administrator write path: no editability check; masks may be overridden."""
    get_company(db, company_id)
    if _is_info(section):
        update_company_info(db, company_id, _parse_info(body))
        return {"message": "Company updated successfully"}

    schema = get_section(section)
    if not isinstance(body, dict):
        raise InvalidInput("request body must be a JSON object")
    body = dict(body)
    overrides = {key: validate_mask(schema, key, body.pop(key, None)) for key in MASK_KEYS}
    payload = schema.parse_payload(body)
    quarter = _quarter_for(db, company_id, label, year_raw)
    row = _append_next_version(
        db, schema, company_id, quarter["id"], payload,
        enforce_editable=False, mask_overrides=overrides,
    )
    return {
        "message": f"{schema.title} updated successfully",
        "version": row.version,
        "id": row.id,
        "is_visible": row.is_visible,
        "is_editable": row.is_editable,
    }


# =============================================================================
# PERMISSIONS
# =============================================================================

def section_permissions(db: Session, company_id: int, section: Optional[str],
                        label: Optional[str], year_raw) -> Dict[str, Any]:
    """Masks of the latest version (section defaults when nothing was written)."""
    if _is_info(section):
        raise InvalidInput("permissions apply to versioned sections only")
    schema = get_section(section)
    get_company(db, company_id)
    quarter = _quarter_for(db, company_id, label, year_raw)
    latest = store.latest_row(db, schema, company_id, quarter["id"])
    masks = carried_masks(schema, latest)
    return {
        "quarter_id": quarter["id"],
        "section": schema.id,
        "version": latest.version if latest else 0,
        "mask_width": schema.mask_width,
        "default_mask": schema.default_mask,
        "is_visible": masks["is_visible"],
        "is_editable": masks["is_editable"],
        "fields": mask_table(schema, masks["is_visible"], masks["is_editable"]),
    }


def set_section_masks(db: Session, company_id: int, section: Optional[str],
                      label: Optional[str], year_raw,
                      is_visible: Optional[int], is_editable: Optional[int]) -> Dict[str, Any]:
    """Publish a new version that only changes the masks of the latest one."""
    if _is_info(section):
        raise InvalidInput("permissions apply to versioned sections only")
    if is_visible is None and is_editable is None:
        raise InvalidInput("provide is_visible and/or is_editable")
    schema = get_section(section)
    get_company(db, company_id)
    quarter = _quarter_for(db, company_id, label, year_raw)
    if store.latest_row(db, schema, company_id, quarter["id"]) is None:
        raise NotFound(f"No {section} data for {quarter['quarter']} {quarter['year']}")
    return admin_write_section(
        db, company_id, section, label, year_raw,
        {"is_visible": is_visible, "is_editable": is_editable},
    )
