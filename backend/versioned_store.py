"""
Startup Dashboard - Versioned Section Store

Append-only persistence for section rows keyed by (company, quarter, version).
Rows are never updated; "latest" is the row with the highest version for its
(company, quarter), selected with a MAX(version) GROUP BY join so the same
query runs on SQLite and PostgreSQL.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from sqlalchemy import and_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import Quarter
from errors import VersionConflict
from metrics import track_version_write
from sections import SectionSchema

logger = logging.getLogger(__name__)


class SeriesPoint(NamedTuple):
    quarter_id: int
    quarter: str
    year: int
    date: Optional[datetime]
    version: int
    is_visible: int
    values: Dict[str, Any]


def latest_versions_for_quarter(db: Session, schema: SectionSchema,
                                company_id: int, quarter_id: int) -> List:
    """Rows holding the maximum version for (company, quarter); at most one."""
    model = schema.model
    max_version = (
        db.query(func.max(model.version))
        .filter(model.company_id == company_id, model.quarter_id == quarter_id)
        .scalar_subquery()
    )
    return (
        db.query(model)
        .filter(
            model.company_id == company_id,
            model.quarter_id == quarter_id,
            model.version == max_version,
        )
        .all()
    )


def latest_row(db: Session, schema: SectionSchema, company_id: int, quarter_id: int):
    rows = latest_versions_for_quarter(db, schema, company_id, quarter_id)
    return rows[0] if rows else None


def max_version(db: Session, schema: SectionSchema, company_id: int, quarter_id: int) -> int:
    """Current maximum version for the key, or 0 if nothing was written yet."""
    model = schema.model
    value = (
        db.query(func.max(model.version))
        .filter(model.company_id == company_id, model.quarter_id == quarter_id)
        .scalar()
    )
    return value or 0


def latest_rows_per_quarter(db: Session, schema: SectionSchema, company_id: int) -> List:
    """(row, quarter) pairs, one per quarter, ordered by (year, label)."""
    model = schema.model
    latest = (
        db.query(model.quarter_id.label("quarter_id"), func.max(model.version).label("max_version"))
        .filter(model.company_id == company_id)
        .group_by(model.quarter_id)
        .subquery()
    )
    return (
        db.query(model, Quarter)
        .join(latest, and_(
            model.quarter_id == latest.c.quarter_id,
            model.version == latest.c.max_version,
        ))
        .join(Quarter, Quarter.id == model.quarter_id)
        .filter(model.company_id == company_id)
        .order_by(Quarter.year.asc(), Quarter.quarter.asc())
        .all()
    )


def latest_per_quarter_series(db: Session, schema: SectionSchema, company_id: int,
                              columns: Sequence[str]) -> List[SeriesPoint]:
    """Time-series primitive: the projected columns of the latest version per quarter."""
    specs = [schema.get_field(name) for name in columns]
    return [
        SeriesPoint(
            quarter_id=quarter.id,
            quarter=quarter.quarter,
            year=quarter.year,
            date=quarter.date,
            version=row.version,
            is_visible=row.is_visible,
            values={spec.name: schema.read_value(row, spec) for spec in specs},
        )
        for row, quarter in latest_rows_per_quarter(db, schema, company_id)
    ]


def _is_version_clash(schema: SectionSchema, error: IntegrityError) -> bool:
    """True when the (company, quarter, version) unique constraint was violated.

    psycopg2 reports the constraint name; SQLite only names the columns.
    """
    table = schema.model.__tablename__
    constraint = getattr(getattr(error.orig, "diag", None), "constraint_name", None)
    if constraint is not None:
        return constraint == f"uq_{table}_company_quarter_version"
    message = str(error.orig)
    return "UNIQUE constraint failed" in message and f"{table}.version" in message


def append(db: Session, schema: SectionSchema, row) -> Any:
    """Insert a stamped row and its children in one transaction.

    A uniqueness violation on (company, quarter, version) means another
    writer got there first and surfaces as VersionConflict.
    """
    db.add(row)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if _is_version_clash(schema, e):
            logger.info(
                "Version conflict on %s company=%s quarter=%s version=%s",
                schema.id, row.company_id, row.quarter_id, row.version
            )
            raise VersionConflict(schema.id, row.version)
        raise
    db.refresh(row)
    track_version_write(schema.id)
    return row
