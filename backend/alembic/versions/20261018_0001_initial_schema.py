"""Initial schema for Startup Dashboard

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Baseline covering every table declared in database.py:

Accounts:
- users: members, VCs, administrators and moderators
- password_reset_tokens: one-shot reset tokens
- activity_logs: persisted audit trail of privileged writes

Companies:
- companies: startup records with their join code
- quarters: (company, label, year) reporting periods

Sections (append-only, unique per company/quarter/version):
- financial_health, revenue_breakdowns
- market_traction
- unit_economics, marketing_breakdowns
- product_development, team_performance, fundraising_status
- competitive_landscape, operational_efficiency, risk_management
- additional_info, self_assessment, attachments
"""
from typing import Sequence, Union

from alembic import op

from database import Base

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables, skipping any that already exist."""
    Base.metadata.create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind(), checkfirst=True)
