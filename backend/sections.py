"""
Startup Dashboard - Section Schema Registry

Declarative description of the twelve quarterly sections. For each one the
registry holds the ordered field list (bit i of a row's masks refers to
field i), the mask width, the default mask and the payload model used to
validate writes.

The bit table is part of the external contract. New fields are appended
at the end of a section so existing bit indexes never move.

Usage:
    from sections import get_section
    schema = get_section("finance")
    schema.bit("quarterly_revenue")   # -> 4
    schema.default_mask               # -> 1023
"""
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from database import (
    Base,
    FinancialHealth, RevenueBreakdown,
    MarketTraction,
    UnitEconomics, MarketingBreakdown,
    ProductDevelopment,
    TeamPerformance,
    FundraisingStatus,
    CompetitiveLandscape,
    OperationalEfficiency,
    RiskManagement,
    AdditionalInfo,
    SelfAssessment,
    Attachment,
)
from errors import InvalidInput

TEXT = "text"
SEQUENCE = "sequence"
RATING = "rating"
CHILDREN = "children"

SEQUENCE_SEPARATOR = "|"

# Section id used by the read path for the company summary; not versioned.
INFO_SECTION = "info"


@dataclass(frozen=True)
class ChildSpec:
    """An owned collection stored in its own table."""
    model: Type[Base]
    parent_key: str
    fields: Tuple[str, ...]


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: str = TEXT
    child: Optional[ChildSpec] = None

    @property
    def column(self) -> str:
        return self.name


@dataclass
class SectionSchema:
    id: str
    title: str
    model: Type[Base]
    fields: Tuple[FieldSpec, ...]
    mask_width: int = 0
    payload_model: Type[BaseModel] = None
    _bits: Dict[str, int] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        n = len(self.fields)
        if not self.mask_width:
            self.mask_width = 8 if n <= 8 else 16
        if n > self.mask_width:
            raise ValueError(f"{self.id}: {n} fields do not fit a {self.mask_width}-bit mask")
        self._bits = {f.name: i for i, f in enumerate(self.fields)}
        if len(self._bits) != n:
            raise ValueError(f"{self.id}: duplicate field names")
        self.payload_model = _build_payload_model(self)

    @property
    def default_mask(self) -> int:
        return (1 << len(self.fields)) - 1

    @property
    def max_mask(self) -> int:
        return (1 << self.mask_width) - 1

    def bit(self, name: str) -> int:
        return self._bits[name]

    def get_field(self, name: str) -> FieldSpec:
        return self.fields[self._bits[name]]

    def is_set(self, mask: int, name: str) -> bool:
        return bool(mask & (1 << self._bits[name]))

    def mask_of(self, names) -> int:
        """Mask with exactly the given fields' bits set."""
        mask = 0
        for name in names:
            mask |= 1 << self._bits[name]
        return mask

    # -- row <-> wire values -------------------------------------------------

    def read_value(self, row, spec: FieldSpec) -> Any:
        """Wire representation of one field of a stored row."""
        raw = getattr(row, spec.column)
        if spec.kind == CHILDREN:
            return [{name: getattr(child, name) or "" for name in spec.child.fields} for child in raw]
        if spec.kind == SEQUENCE:
            return raw.split(SEQUENCE_SEPARATOR) if raw else []
        if spec.kind == RATING:
            return raw
        return raw if raw is not None else ""

    def empty_value(self, spec: FieldSpec) -> Any:
        if spec.kind in (CHILDREN, SEQUENCE):
            return []
        if spec.kind == RATING:
            return None
        return ""

    def row_values(self, row) -> Dict[str, Any]:
        """All field values of a row, or empty values when there is no row."""
        if row is None:
            return {f.name: self.empty_value(f) for f in self.fields}
        return {f.name: self.read_value(row, f) for f in self.fields}

    def build_row(self, company_id: int, quarter_id: int, version: int,
                  values: Dict[str, Any], is_visible: int, is_editable: int):
        """New (unsaved) model instance, children included."""
        columns = {}
        children = {}
        for spec in self.fields:
            value = values.get(spec.name, self.empty_value(spec))
            if spec.kind == CHILDREN:
                children[spec.column] = [
                    spec.child.model(**{name: item.get(name, "") for name in spec.child.fields})
                    for item in value
                ]
            elif spec.kind == SEQUENCE:
                columns[spec.column] = SEQUENCE_SEPARATOR.join(value)
            else:
                columns[spec.column] = value
        row = self.model(
            company_id=company_id,
            quarter_id=quarter_id,
            version=version,
            is_visible=is_visible,
            is_editable=is_editable,
            **columns,
        )
        for column, items in children.items():
            setattr(row, column, items)
        return row

    def parse_payload(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Validate a write body; returns only the fields the caller supplied."""
        if not isinstance(body, dict):
            raise InvalidInput("request body must be a JSON object")
        try:
            parsed = self.payload_model.model_validate(body)
        except ValidationError as e:
            raise InvalidInput(f"invalid {self.id} payload", extra={"details": _error_details(e)})
        values = parsed.model_dump(exclude_unset=True)
        for spec in self.fields:
            if spec.name not in values:
                continue
            if values[spec.name] is None:
                values[spec.name] = self.empty_value(spec)
            elif spec.kind == SEQUENCE:
                for item in values[spec.name]:
                    if not item:
                        raise InvalidInput(f"{spec.name} entries must not be empty")
                    if SEQUENCE_SEPARATOR in item:
                        raise InvalidInput(f"{spec.name} entries must not contain '{SEQUENCE_SEPARATOR}'")
        return values


def _error_details(e: ValidationError) -> List[Dict[str, Any]]:
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in e.errors()
    ]


_payload_config = ConfigDict(extra="forbid", coerce_numbers_to_str=True)


def _build_payload_model(schema: SectionSchema) -> Type[BaseModel]:
    definitions = {}
    for spec in schema.fields:
        if spec.kind == CHILDREN:
            child_model = create_model(
                f"{spec.child.model.__name__}Payload",
                __config__=_payload_config,
                **{name: (str, "") for name in spec.child.fields},
            )
            definitions[spec.name] = (Optional[List[child_model]], None)
        elif spec.kind == SEQUENCE:
            definitions[spec.name] = (Optional[List[str]], None)
        elif spec.kind == RATING:
            definitions[spec.name] = (Optional[Annotated[int, Field(ge=1, le=10)]], None)
        else:
            definitions[spec.name] = (Optional[str], None)
    return create_model(
        f"{schema.model.__name__}Payload",
        __config__=_payload_config,
        **definitions,
    )


def _text(*names: str) -> Tuple[FieldSpec, ...]:
    return tuple(FieldSpec(name) for name in names)


# =============================================================================
# REGISTRY
# =============================================================================

_SCHEMAS = [
    SectionSchema(
        id="finance", title="Financial Health",
        model=FinancialHealth, mask_width=16,
        fields=_text(
            "cash_balance", "burn_rate", "cash_runway", "burn_rate_change",
            "quarterly_revenue", "revenue_growth", "gross_margin", "net_margin",
            "profitability_timeline",
        ) + (
            FieldSpec("revenue_breakdowns", CHILDREN, ChildSpec(
                RevenueBreakdown, "financial_health_id", ("product", "revenue", "percentage"))),
        ),
    ),
    SectionSchema(
        id="market", title="Market Traction",
        model=MarketTraction, mask_width=16,
        fields=_text(
            "new_customers", "total_customers", "customer_growth", "retention_rate",
            "churn_rate", "pipeline_value", "conversion_rate", "sales_cycle",
            "sales_process_changes", "market_share", "market_share_change", "market_trends",
        ),
    ),
    SectionSchema(
        id="uniteconomics", title="Unit Economics",
        model=UnitEconomics, mask_width=8,
        fields=_text("cac", "cac_change", "ltv", "ltv_ratio", "cac_payback", "arpu") + (
            FieldSpec("marketing_breakdowns", CHILDREN, ChildSpec(
                MarketingBreakdown, "unit_economics_id", ("channel", "spend", "budget", "cac"))),
        ),
    ),
    SectionSchema(
        id="product", title="Product Development",
        model=ProductDevelopment, mask_width=16,
        fields=_text(
            "milestones_achieved", "milestones_missed", "roadmap", "active_users",
            "engagement_metrics", "nps", "feature_adoption", "technical_challenges",
            "technical_debt", "product_bottlenecks",
        ),
    ),
    SectionSchema(
        id="teamperf", title="Team Performance",
        model=TeamPerformance, mask_width=8,
        fields=_text(
            "team_size", "new_hires", "turnover", "vacant_positions",
            "leadership_alignment", "team_strengths", "skill_gaps", "development_initiatives",
        ),
    ),
    SectionSchema(
        id="fund", title="Fundraising Status",
        model=FundraisingStatus, mask_width=8,
        fields=_text(
            "last_round", "current_investors", "investor_relations", "next_round",
            "target_amount", "investor_pipeline", "valuation_expectations",
        ),
    ),
    SectionSchema(
        id="competitive", title="Competitive Landscape",
        model=CompetitiveLandscape, mask_width=8,
        fields=_text(
            "new_competitors", "competitor_strategies", "market_shifts",
            "differentiators", "threats", "defensive_strategies",
        ),
    ),
    SectionSchema(
        id="operation", title="Operational Efficiency",
        model=OperationalEfficiency, mask_width=8,
        fields=_text(
            "operational_changes", "impact_metrics", "optimization_areas",
            "operational_bottlenecks", "infrastructure_capacity", "scaling_plans",
        ),
    ),
    SectionSchema(
        id="risk", title="Risk Management",
        model=RiskManagement, mask_width=16,
        fields=_text(
            "regulatory_changes", "compliance_status", "regulatory_concerns",
            "security_audits", "data_protection", "security_incidents",
            "key_dependencies", "contingency_plans",
            "strategic_risks", "operational_risks", "financial_risks",
            "legal_risks", "regulatory_risks", "mitigation_plans",
        ),
    ),
    SectionSchema(
        id="additional", title="Additional Information",
        model=AdditionalInfo, mask_width=16,
        fields=_text(
            "growth_challenges", "support_needed", "policy_changes", "policy_impact",
            "mitigation_strategies", "new_initiatives", "initiative_progress",
            "business_model_adjustments",
            "customer_feedback", "market_trends", "regulatory_changes", "noteworthy_events",
        ),
    ),
    SectionSchema(
        id="self", title="Self Assessment",
        model=SelfAssessment, mask_width=16,
        fields=(
            FieldSpec("financial_rating", RATING),
            FieldSpec("market_rating", RATING),
            FieldSpec("product_rating", RATING),
            FieldSpec("team_rating", RATING),
            FieldSpec("operational_rating", RATING),
            FieldSpec("overall_rating", RATING),
            FieldSpec("priorities", SEQUENCE),
            FieldSpec("incubator_support"),
            FieldSpec("assessment_text"),
            FieldSpec("assessment_score"),
        ),
    ),
    SectionSchema(
        id="attachements", title="Attachments",
        model=Attachment, mask_width=8,
        fields=_text(
            "financial_statements", "pitch_deck", "product_roadmap",
            "performance_dashboard", "org_chart",
        ),
    ),
]

SECTIONS: Dict[str, SectionSchema] = {s.id: s for s in _SCHEMAS}


def get_section(section_id: str) -> SectionSchema:
    """Schema for a wire section id; unknown ids are invalid input."""
    schema = SECTIONS.get(section_id)
    if schema is None:
        raise InvalidInput(f"unknown section '{section_id}'")
    return schema

