"""
Startup Dashboard - Database Module

SQLAlchemy engine, session factory and declarative models.

Sync sessions only; each request runs on its own worker thread and gets
its own session through get_db():

    from database import get_db, SessionLocal
    @router.get("/items")
    def get_items(db: Session = Depends(get_db)):
        return db.query(Item).all()

Section tables are append-only: every write inserts a new row with the
next version for its (company, quarter). Bit i of is_visible/is_editable
refers to field i of the section as declared in sections.py.
"""

import os
import secrets
import logging
from datetime import datetime

from sqlalchemy import (
    create_engine, Column, Integer, String, Text, DateTime, Boolean,
    ForeignKey, UniqueConstraint, event,
)
from sqlalchemy.orm import sessionmaker, relationship, declarative_base, declared_attr, backref

from config import get_settings

logger = logging.getLogger(__name__)

# =============================================================================
# ENGINE
# =============================================================================

DATABASE_URL = get_settings().database_url

if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        pool_pre_ping=True,
        echo=os.getenv("DB_ECHO", "false").lower() == "true"
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Enable foreign keys and WAL for SQLite connections."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
else:
    engine = create_engine(
        DATABASE_URL,
        pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "20")),
        pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "30")),
        pool_pre_ping=True,
        echo=os.getenv("DB_ECHO", "false").lower() == "true"
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    Database session dependency (FastAPI).

    Usage:
        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            return db.query(Item).all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all tables. Managed databases use the Alembic migrations instead."""
    Base.metadata.create_all(bind=engine)


def generate_secret_code() -> str:
    """12 lowercase hex digits from 6 random bytes."""
    return secrets.token_hex(6)


# ============== Core Models ==============

class Company(Base):
    """A startup. Members link to it through users.startup_id."""
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    contact_name = Column(String, nullable=False)
    contact_email = Column(String, unique=True, index=True, nullable=False)
    secret_code = Column(String(12), unique=True, nullable=False, default=generate_secret_code)
    sector = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    quarters = relationship(
        "Quarter", back_populates="company",
        cascade="all, delete-orphan", order_by="Quarter.id"
    )
    members = relationship("User", back_populates="startup")


class User(Base):
    """Account for startup members (user), reviewers (vc) and staff (admin, moderator)."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    position = Column(String, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, default="user", index=True)  # user, vc, admin, moderator
    approved = Column(Boolean, default=False)  # only meaningful for vc
    backup_code = Column(String(12), nullable=True)
    totp_secret = Column(String, nullable=True)
    startup_id = Column(Integer, ForeignKey("companies.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    startup = relationship("Company", back_populates="members")


class Quarter(Base):
    """A (label, year) marker under which sections accumulate versions."""
    __tablename__ = "quarters"
    __table_args__ = (
        UniqueConstraint("company_id", "quarter", "year", name="uq_quarters_company_quarter_year"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    quarter = Column(String(2), nullable=False)  # Q1..Q4
    year = Column(Integer, nullable=False)
    date = Column(DateTime, default=datetime.utcnow)

    company = relationship("Company", back_populates="quarters")


class PasswordResetToken(Base):
    """One-shot tokens issued by the forgot-password flow."""
    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class ActivityLog(Base):
    """Persisted audit trail of privileged writes."""
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    user_email = Column(String, index=True)
    action_type = Column(String, index=True)  # "company_create", "section_edit", ...
    action_details = Column(Text, nullable=True)  # JSON-encoded details
    ip_address = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


# ============== Section Models ==============

class SectionMixin:
    """Columns shared by every versioned section table."""

    id = Column(Integer, primary_key=True, index=True)
    version = Column(Integer, nullable=False, default=1)
    is_visible = Column(Integer, nullable=False)
    is_editable = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    @declared_attr
    def company_id(cls):
        return Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)

    @declared_attr
    def quarter_id(cls):
        return Column(Integer, ForeignKey("quarters.id", ondelete="CASCADE"), nullable=False, index=True)

    @declared_attr
    def quarter(cls):
        return relationship(
            "Quarter",
            backref=backref(f"{cls.__tablename__}_rows", cascade="all, delete-orphan"),
        )

    @declared_attr
    def __table_args__(cls):
        return (
            UniqueConstraint(
                "company_id", "quarter_id", "version",
                name=f"uq_{cls.__tablename__}_company_quarter_version",
            ),
        )


class FinancialHealth(SectionMixin, Base):
    __tablename__ = "financial_health"

    cash_balance = Column(Text, default="")
    burn_rate = Column(Text, default="")
    cash_runway = Column(Text, default="")
    burn_rate_change = Column(Text, default="")
    quarterly_revenue = Column(Text, default="")
    revenue_growth = Column(Text, default="")
    gross_margin = Column(Text, default="")
    net_margin = Column(Text, default="")
    profitability_timeline = Column(Text, default="")

    revenue_breakdowns = relationship(
        "RevenueBreakdown", back_populates="parent",
        cascade="all, delete-orphan", order_by="RevenueBreakdown.id", lazy="selectin"
    )


class RevenueBreakdown(Base):
    __tablename__ = "revenue_breakdowns"

    id = Column(Integer, primary_key=True, index=True)
    financial_health_id = Column(
        Integer, ForeignKey("financial_health.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product = Column(Text, default="")
    revenue = Column(Text, default="")
    percentage = Column(Text, default="")

    parent = relationship("FinancialHealth", back_populates="revenue_breakdowns")


class MarketTraction(SectionMixin, Base):
    __tablename__ = "market_traction"

    new_customers = Column(Text, default="")
    total_customers = Column(Text, default="")
    customer_growth = Column(Text, default="")
    retention_rate = Column(Text, default="")
    churn_rate = Column(Text, default="")
    pipeline_value = Column(Text, default="")
    conversion_rate = Column(Text, default="")
    sales_cycle = Column(Text, default="")
    sales_process_changes = Column(Text, default="")
    market_share = Column(Text, default="")
    market_share_change = Column(Text, default="")
    market_trends = Column(Text, default="")


class UnitEconomics(SectionMixin, Base):
    __tablename__ = "unit_economics"

    cac = Column(Text, default="")
    cac_change = Column(Text, default="")
    ltv = Column(Text, default="")
    ltv_ratio = Column(Text, default="")
    cac_payback = Column(Text, default="")
    arpu = Column(Text, default="")

    marketing_breakdowns = relationship(
        "MarketingBreakdown", back_populates="parent",
        cascade="all, delete-orphan", order_by="MarketingBreakdown.id", lazy="selectin"
    )


class MarketingBreakdown(Base):
    __tablename__ = "marketing_breakdowns"

    id = Column(Integer, primary_key=True, index=True)
    unit_economics_id = Column(
        Integer, ForeignKey("unit_economics.id", ondelete="CASCADE"), nullable=False, index=True
    )
    channel = Column(Text, default="")
    spend = Column(Text, default="")
    budget = Column(Text, default="")
    cac = Column(Text, default="")

    parent = relationship("UnitEconomics", back_populates="marketing_breakdowns")


class ProductDevelopment(SectionMixin, Base):
    __tablename__ = "product_development"

    milestones_achieved = Column(Text, default="")
    milestones_missed = Column(Text, default="")
    roadmap = Column(Text, default="")
    active_users = Column(Text, default="")
    engagement_metrics = Column(Text, default="")
    nps = Column(Text, default="")
    feature_adoption = Column(Text, default="")
    technical_challenges = Column(Text, default="")
    technical_debt = Column(Text, default="")
    product_bottlenecks = Column(Text, default="")


class TeamPerformance(SectionMixin, Base):
    __tablename__ = "team_performance"

    team_size = Column(Text, default="")
    new_hires = Column(Text, default="")
    turnover = Column(Text, default="")
    vacant_positions = Column(Text, default="")
    leadership_alignment = Column(Text, default="")
    team_strengths = Column(Text, default="")
    skill_gaps = Column(Text, default="")
    development_initiatives = Column(Text, default="")


class FundraisingStatus(SectionMixin, Base):
    __tablename__ = "fundraising_status"

    last_round = Column(Text, default="")
    current_investors = Column(Text, default="")
    investor_relations = Column(Text, default="")
    next_round = Column(Text, default="")
    target_amount = Column(Text, default="")
    investor_pipeline = Column(Text, default="")
    valuation_expectations = Column(Text, default="")


class CompetitiveLandscape(SectionMixin, Base):
    __tablename__ = "competitive_landscape"

    new_competitors = Column(Text, default="")
    competitor_strategies = Column(Text, default="")
    market_shifts = Column(Text, default="")
    differentiators = Column(Text, default="")
    threats = Column(Text, default="")
    defensive_strategies = Column(Text, default="")


class OperationalEfficiency(SectionMixin, Base):
    __tablename__ = "operational_efficiency"

    operational_changes = Column(Text, default="")
    impact_metrics = Column(Text, default="")
    optimization_areas = Column(Text, default="")
    operational_bottlenecks = Column(Text, default="")
    infrastructure_capacity = Column(Text, default="")
    scaling_plans = Column(Text, default="")


class RiskManagement(SectionMixin, Base):
    __tablename__ = "risk_management"

    regulatory_changes = Column(Text, default="")
    compliance_status = Column(Text, default="")
    regulatory_concerns = Column(Text, default="")
    security_audits = Column(Text, default="")
    data_protection = Column(Text, default="")
    security_incidents = Column(Text, default="")
    key_dependencies = Column(Text, default="")
    contingency_plans = Column(Text, default="")
    strategic_risks = Column(Text, default="")
    operational_risks = Column(Text, default="")
    financial_risks = Column(Text, default="")
    legal_risks = Column(Text, default="")
    regulatory_risks = Column(Text, default="")
    mitigation_plans = Column(Text, default="")


class AdditionalInfo(SectionMixin, Base):
    __tablename__ = "additional_info"

    growth_challenges = Column(Text, default="")
    support_needed = Column(Text, default="")
    policy_changes = Column(Text, default="")
    policy_impact = Column(Text, default="")
    mitigation_strategies = Column(Text, default="")
    new_initiatives = Column(Text, default="")
    initiative_progress = Column(Text, default="")
    business_model_adjustments = Column(Text, default="")
    customer_feedback = Column(Text, default="")
    market_trends = Column(Text, default="")
    regulatory_changes = Column(Text, default="")
    noteworthy_events = Column(Text, default="")


class SelfAssessment(SectionMixin, Base):
    __tablename__ = "self_assessment"

    financial_rating = Column(Integer, nullable=True)  # 1-10
    market_rating = Column(Integer, nullable=True)
    product_rating = Column(Integer, nullable=True)
    team_rating = Column(Integer, nullable=True)
    operational_rating = Column(Integer, nullable=True)
    overall_rating = Column(Integer, nullable=True)
    priorities = Column(Text, default="")  # "|"-joined
    incubator_support = Column(Text, default="")
    assessment_text = Column(Text, default="")
    assessment_score = Column(Text, default="")


class Attachment(SectionMixin, Base):
    """URIs only; file storage lives elsewhere."""
    __tablename__ = "attachments"

    financial_statements = Column(Text, default="")
    pitch_deck = Column(Text, default="")
    product_roadmap = Column(Text, default="")
    performance_dashboard = Column(Text, default="")
    org_chart = Column(Text, default="")
