"""
Startup Dashboard - Quarter Index

Per-company quarters identified by (label, year). Lookups go through the
quarter cache keyed "{company}_{label}_{year}"; quarters are never mutated
so a cached snapshot stays valid until its company is deleted.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cache import cache_quarter, get_cached_quarter
from constants import MAX_YEAR, QUARTER_LABELS
from database import Quarter
from errors import Conflict, InvalidInput, NotFound

logger = logging.getLogger(__name__)


def quarter_snapshot(quarter: Quarter) -> dict:
    return {
        "id": quarter.id,
        "company_id": quarter.company_id,
        "quarter": quarter.quarter,
        "year": quarter.year,
        "date": quarter.date.isoformat() if quarter.date else None,
    }


def validate_label(label: Optional[str]) -> str:
    if label not in QUARTER_LABELS:
        raise InvalidInput("quarter must be one of " + ", ".join(QUARTER_LABELS))
    return label


def parse_year(raw) -> int:
    """Year from a query string or body; an unsigned integer up to MAX_YEAR."""
    if isinstance(raw, bool):
        raise InvalidInput("year must be an unsigned integer")
    if isinstance(raw, str):
        if not raw.isascii() or not raw.isdigit():
            raise InvalidInput("year must be an unsigned integer")
        if len(raw.lstrip("0")) > len(str(MAX_YEAR)):
            raise InvalidInput(f"year must be at most {MAX_YEAR}")
        raw = int(raw)
    if not isinstance(raw, int) or raw < 0:
        raise InvalidInput("year must be an unsigned integer")
    if raw > MAX_YEAR:
        raise InvalidInput(f"year must be at most {MAX_YEAR}")
    return raw


def find_quarter(db: Session, company_id: int, label: str, year: int) -> Optional[dict]:
    cached = get_cached_quarter(company_id, label, year)
    if cached is not None:
        return cached
    quarter = (
        db.query(Quarter)
        .filter(Quarter.company_id == company_id, Quarter.quarter == label, Quarter.year == year)
        .first()
    )
    if quarter is None:
        return None
    snapshot = quarter_snapshot(quarter)
    cache_quarter(snapshot)
    return snapshot


def resolve_quarter(db: Session, company_id: int, label: str, year: int) -> dict:
    """Exact (company, label, year) lookup; 404 when the quarter does not exist."""
    validate_label(label)
    snapshot = find_quarter(db, company_id, label, year)
    if snapshot is None:
        raise NotFound(f"Quarter {label} {year} not found")
    return snapshot


def list_quarters(db: Session, company_id: int) -> List[dict]:
    quarters = (
        db.query(Quarter)
        .filter(Quarter.company_id == company_id)
        .order_by(Quarter.year.asc(), Quarter.quarter.asc())
        .all()
    )
    return [quarter_snapshot(q) for q in quarters]


def create_quarter(db: Session, company_id: int, label: str, year: int) -> dict:
    """Add a quarter; an existing (company, label, year) is a conflict."""
    validate_label(label)
    if find_quarter(db, company_id, label, year) is not None:
        raise Conflict(f"Quarter {label} {year} already exists")
    quarter = Quarter(company_id=company_id, quarter=label, year=year, date=datetime.utcnow())
    db.add(quarter)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(f"Quarter {label} {year} already exists")
    db.refresh(quarter)
    snapshot = quarter_snapshot(quarter)
    cache_quarter(snapshot)
    logger.info("Created quarter %s %s for company %s", label, year, company_id)
    return snapshot
