"""create salescrm tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "crm_user",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("password_hash", sa.String(length=128), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("ref_id", sa.String(length=128), nullable=False),
        sa.Column("contact_no", sa.String(length=32), nullable=True),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("joining_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("manager_id", sa.Uuid(), nullable=True),
        sa.Column("team_id", sa.Uuid(), nullable=True),
        sa.Column("bank_details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["manager_id"], ["crm_user.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("contact_no"),
    )
    op.create_index("ix_crm_user_manager_role", "crm_user", ["manager_id", "role"], unique=False)
    op.create_index("ix_crm_user_team", "crm_user", ["team_id"], unique=False)

    op.create_table(
        "crm_team",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("team_lead_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["team_lead_id"], ["crm_user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sa.UniqueConstraint("team_lead_id"),
    )

    op.create_table(
        "crm_prospect",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_name", sa.Text(), nullable=False),
        sa.Column("client_name", sa.Text(), nullable=False),
        sa.Column("email_id", sa.String(length=320), nullable=True),
        sa.Column("contact_no", sa.String(length=32), nullable=True),
        sa.Column("reminder_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("activity", sa.String(length=64), nullable=False, server_default="New"),
        sa.Column("sales_executive_id", sa.Uuid(), nullable=False),
        sa.Column("team_lead_id", sa.Uuid(), nullable=False),
        sa.Column("is_untouched", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_update", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_prospect_owner", "crm_prospect", ["sales_executive_id", "last_update"], unique=False)
    op.create_index("ix_crm_prospect_team_lead", "crm_prospect", ["team_lead_id"], unique=False)
    op.create_index("ix_crm_prospect_untouched", "crm_prospect", ["is_untouched", "created_at"], unique=False)

    op.create_table(
        "crm_sale",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_name", sa.Text(), nullable=False),
        sa.Column("client_name", sa.Text(), nullable=False),
        sa.Column("email_id", sa.String(length=320), nullable=True),
        sa.Column("contact_no", sa.String(length=32), nullable=True),
        sa.Column("services", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("sale_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sales_executive_id", sa.Uuid(), nullable=False),
        sa.Column("team_lead_id", sa.Uuid(), nullable=False),
        sa.Column("prospect_id", sa.Uuid(), nullable=True),
        sa.Column("is_transferred_to_finance", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("transferred_to_finance_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["prospect_id"], ["crm_prospect.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_sale_owner", "crm_sale", ["sales_executive_id", "sale_date"], unique=False)
    op.create_index("ix_crm_sale_team_lead", "crm_sale", ["team_lead_id"], unique=False)

    op.create_table(
        "crm_call_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_name", sa.Text(), nullable=False),
        sa.Column("client_name", sa.Text(), nullable=False),
        sa.Column("email_id", sa.String(length=320), nullable=True),
        sa.Column("contact_no", sa.String(length=32), nullable=True),
        sa.Column("activity", sa.String(length=64), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("call_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sales_executive_id", sa.Uuid(), nullable=False),
        sa.Column("prospect_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["prospect_id"], ["crm_prospect.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_call_log_owner", "crm_call_log", ["sales_executive_id", "call_date"], unique=False)

    op.create_table(
        "crm_payout",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("team_lead_id", sa.Uuid(), nullable=True),
        sa.Column("manager_id", sa.Uuid(), nullable=True),
        sa.Column("month", sa.String(length=32), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("duration", sa.String(length=64), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("payout_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_payout_user", "crm_payout", ["user_id", "payout_date"], unique=False)
    op.create_index("ix_crm_payout_team_lead", "crm_payout", ["team_lead_id"], unique=False)

    op.create_table(
        "crm_transfer_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("transfer_type", sa.String(length=32), nullable=False),
        sa.Column("transferred_by_id", sa.Uuid(), nullable=False),
        sa.Column("transferred_from_id", sa.Uuid(), nullable=True),
        sa.Column("transferred_to_id", sa.Uuid(), nullable=True),
        sa.Column("data_type", sa.String(length=16), nullable=False),
        sa.Column("data_ids", sa.JSON(), nullable=False),
        sa.Column("data_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("company_name", sa.Text(), nullable=True),
        sa.Column("client_name", sa.Text(), nullable=True),
        sa.Column("transfer_date", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_crm_transfer_log_type_date",
        "crm_transfer_log",
        ["transfer_type", "transfer_date"],
        unique=False,
    )
    op.create_index("ix_crm_transfer_log_by", "crm_transfer_log", ["transferred_by_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_crm_transfer_log_by", table_name="crm_transfer_log")
    op.drop_index("ix_crm_transfer_log_type_date", table_name="crm_transfer_log")
    op.drop_table("crm_transfer_log")
    op.drop_index("ix_crm_payout_team_lead", table_name="crm_payout")
    op.drop_index("ix_crm_payout_user", table_name="crm_payout")
    op.drop_table("crm_payout")
    op.drop_index("ix_crm_call_log_owner", table_name="crm_call_log")
    op.drop_table("crm_call_log")
    op.drop_index("ix_crm_sale_team_lead", table_name="crm_sale")
    op.drop_index("ix_crm_sale_owner", table_name="crm_sale")
    op.drop_table("crm_sale")
    op.drop_index("ix_crm_prospect_untouched", table_name="crm_prospect")
    op.drop_index("ix_crm_prospect_team_lead", table_name="crm_prospect")
    op.drop_index("ix_crm_prospect_owner", table_name="crm_prospect")
    op.drop_table("crm_prospect")
    op.drop_table("crm_team")
    op.drop_index("ix_crm_user_team", table_name="crm_user")
    op.drop_index("ix_crm_user_manager_role", table_name="crm_user")
    op.drop_table("crm_user")
