"""
Startup Dashboard - Metrics Projector

Per-company time series built from the latest version of a section in each
quarter. Every metric key names one or more (section, columns) parts; parts
are joined on quarter, so a quarter appears only when every part has data.

Each element carries quarter, year and date plus the projected columns and
the series is ordered by (year, quarter). Readers without full access get
null for any column whose visibility bit is off in that quarter's row.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from access import Caller, resolve_access
from companies import get_company
from errors import InvalidInput
from sections import SECTIONS, SectionSchema
import versioned_store as store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetricSpec:
    key: str
    parts: Tuple[Tuple[str, Tuple[str, ...]], ...]
    description: str = ""


def _single(key: str, section: str, *columns: str, description: str = "") -> MetricSpec:
    return MetricSpec(key, ((section, columns),), description)


METRICS: Dict[str, MetricSpec] = {m.key: m for m in (
    _single("finance", "finance",
            "quarterly_revenue", "revenue_growth", "gross_margin", "net_margin"),
    _single("market", "market",
            "total_customers", "customer_growth", "conversion_rate", "retention_rate", "churn_rate"),
    _single("economics", "uniteconomics", "cac", "cac_payback", "arpu", "ltv"),
    _single("product", "product",
            "active_users", "engagement_metrics", "milestones_achieved", "milestones_missed",
            "roadmap", "technical_challenges", "product_bottlenecks"),
    _single("teamperf", "teamperf",
            "team_strengths", "development_initiatives", "team_size", "new_hires",
            "turnover", "vacant_positions", "leadership_alignment", "skill_gaps"),
    _single("fund", "fund", "last_round", "target_amount", "valuation_expectations"),
    _single("operational", "operation",
            "infrastructure_capacity", "operational_bottlenecks", "optimization_areas", "scaling_plans"),
    _single("risk", "risk",
            "strategic_risks", "operational_risks", "financial_risks", "legal_risks",
            "regulatory_risks", "mitigation_plans"),
    _single("additional", "additional",
            "customer_feedback", "market_trends", "regulatory_changes", "noteworthy_events"),
    _single("assessment", "self", "assessment_text", "assessment_score"),

    # Dashboard charts
    _single("revenue_growth", "finance", "quarterly_revenue", "revenue_growth"),
    _single("runway", "finance", "cash_balance", "burn_rate", "cash_runway"),
    _single("cac_ltv", "uniteconomics", "cac", "ltv", "ltv_ratio"),
    _single("milestones", "product", "milestones_achieved", "roadmap"),
    _single("market_share", "market", "market_share", "total_customers"),
    MetricSpec("funds_raised", (
        ("finance", ("cash_balance",)),
        ("fund", ("last_round",)),
    )),
    MetricSpec("user_growth", (
        ("product", ("active_users",)),
        ("market", ("total_customers",)),
    )),
    MetricSpec("kpis", (
        ("product", ("active_users",)),
        ("market", ("conversion_rate", "churn_rate")),
        ("finance", ("gross_margin",)),
    )),
)}

# Grouped child rows of the latest finance version per quarter.
REVENUE_BREAKDOWN_KEY = "revenue_breakdown"

METRIC_KEYS = tuple(METRICS) + (REVENUE_BREAKDOWN_KEY,)


def parse_metric_key(query_params) -> str:
    keys = query_params.getlist("key")
    if len(keys) != 1:
        raise InvalidInput("You must provide exactly one 'key' query parameter")
    key = keys[0]
    if key not in METRIC_KEYS:
        raise InvalidInput(f"unknown metric key '{key}'")
    return key


def _date(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _masked_values(schema: SectionSchema, point: store.SeriesPoint, full_access: bool) -> Dict[str, Any]:
    if full_access:
        return dict(point.values)
    return {
        name: value if schema.is_set(point.is_visible, name) else None
        for name, value in point.values.items()
    }


def project(db: Session, spec: MetricSpec, company_id: int, full_access: bool) -> List[Dict[str, Any]]:
    """Join the parts of a metric on quarter; ordered by (year, quarter)."""
    merged: Dict[int, Dict[str, Any]] = {}
    order: List[int] = []
    for index, (section_id, columns) in enumerate(spec.parts):
        schema = SECTIONS[section_id]
        points = store.latest_per_quarter_series(db, schema, company_id, columns)
        seen = set()
        for point in points:
            seen.add(point.quarter_id)
            if index == 0:
                order.append(point.quarter_id)
                merged[point.quarter_id] = {
                    "quarter": point.quarter,
                    "year": point.year,
                    "date": _date(point.date),
                }
            if point.quarter_id in merged:
                merged[point.quarter_id].update(_masked_values(schema, point, full_access))
        # inner join: drop quarters missing from this part
        for quarter_id in list(merged):
            if quarter_id not in seen:
                del merged[quarter_id]
    return [merged[q] for q in order if q in merged]


def revenue_breakdown(db: Session, company_id: int, full_access: bool) -> List[Dict[str, Any]]:
    schema = SECTIONS["finance"]
    series = []
    for row, quarter in store.latest_rows_per_quarter(db, schema, company_id):
        if not row.revenue_breakdowns:
            continue
        visible = full_access or schema.is_set(row.is_visible, "revenue_breakdowns")
        series.append({
            "quarter": quarter.quarter,
            "year": quarter.year,
            "date": _date(quarter.date),
            "breakdowns": (
                schema.read_value(row, schema.get_field("revenue_breakdowns")) if visible else None
            ),
        })
    return series


def metric_series(db: Session, caller: Caller, company_id: int, query_params) -> List[Dict[str, Any]]:
    get_company(db, company_id)
    key = parse_metric_key(query_params)
    full_access = resolve_access(caller, company_id)
    if key == REVENUE_BREAKDOWN_KEY:
        return revenue_breakdown(db, company_id, full_access)
    return project(db, METRICS[key], company_id, full_access)
