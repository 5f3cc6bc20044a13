"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "companies" in existing_tables:
        return

    op.create_table(
        "companies",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("business_number", sa.String(20), nullable=True, unique=True),
        sa.Column("ceo_name", sa.String(100), nullable=True),
        sa.Column("address", sa.String(300), nullable=True),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "contracts",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("company_id", sa.String(50), sa.ForeignKey("companies.id"), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("contract_type", sa.String(20), nullable=False),
        sa.Column("employer_name", sa.String(200), nullable=False),
        sa.Column("employer_ceo", sa.String(100), nullable=False),
        sa.Column("employer_address", sa.String(300), nullable=False),
        sa.Column("employer_phone", sa.String(30), nullable=False),
        sa.Column("worker_name", sa.String(100), nullable=False),
        sa.Column("worker_birth", sa.String(20), nullable=False),
        sa.Column("worker_phone", sa.String(30), nullable=False),
        sa.Column("worker_address", sa.String(300), nullable=False),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=True),
        sa.Column("work_days", sa.JSON, nullable=False),
        sa.Column("work_start", sa.String(5), nullable=False),
        sa.Column("work_end", sa.String(5), nullable=False),
        sa.Column("break_time", sa.Integer, nullable=False, server_default="0"),
        sa.Column("hourly_wage", sa.Integer, nullable=False),
        sa.Column("pay_day", sa.Integer, nullable=False),
        sa.Column("special_terms", sa.Text, nullable=True),
        sa.Column("employer_sign", sa.Text, nullable=True),
        sa.Column("worker_sign", sa.Text, nullable=True),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pdf_hash", sa.String(64), nullable=True),
        sa.Column("solana_tx_id", sa.String(100), nullable=True),
        sa.Column("pending_tx_id", sa.String(100), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_contracts_company_id", "contracts", ["company_id"])
    op.create_index("ix_contracts_status", "contracts", ["status"])


def downgrade() -> None:
    op.drop_index("ix_contracts_status", table_name="contracts")
    op.drop_index("ix_contracts_company_id", table_name="contracts")
    op.drop_table("contracts")
    op.drop_table("companies")
