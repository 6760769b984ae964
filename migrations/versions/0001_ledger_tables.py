"""ledger tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19 10:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

OPEN_ONLY = sa.text("status IN ('pending', 'partial')")


def upgrade():
    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("paid_by", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("split_method", sa.String(16), nullable=False),
        sa.Column("split_params", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default="false"),
    )
    op.create_index("ix_expenses_id", "expenses", ["id"])
    op.create_index("ix_expenses_group_id", "expenses", ["group_id"])

    op.create_table(
        "expense_splits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("expense_id", sa.Integer(), sa.ForeignKey("expenses.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("percentage", sa.Numeric(6, 3), nullable=True),
    )
    op.create_index("ix_expense_splits_id", "expense_splits", ["id"])

    op.create_table(
        "balances",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("debtor_id", sa.Integer(), nullable=False),
        sa.Column("creditor_id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_balances_id", "balances", ["id"])
    op.create_index("ix_balances_group_id", "balances", ["group_id"])
    op.create_index(
        "uq_balances_open_pair",
        "balances",
        ["debtor_id", "creditor_id", "group_id"],
        unique=True,
        postgresql_where=OPEN_ONLY,
        sqlite_where=OPEN_ONLY,
    )

    op.create_table(
        "balance_contributions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("balance_id", sa.Integer(), sa.ForeignKey("balances.id"), nullable=False),
        sa.Column("expense_id", sa.Integer(), sa.ForeignKey("expenses.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
    )
    op.create_index("ix_balance_contributions_id", "balance_contributions", ["id"])
    op.create_index("ix_balance_contributions_balance_id", "balance_contributions", ["balance_id"])
    op.create_index("ix_balance_contributions_expense_id", "balance_contributions", ["expense_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("debtor_id", sa.Integer(), nullable=False),
        sa.Column("creditor_id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("method", sa.String(16), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_group_id", "payments", ["group_id"])


def downgrade():
    op.drop_table("payments")
    op.drop_table("balance_contributions")
    op.drop_index("uq_balances_open_pair", table_name="balances")
    op.drop_table("balances")
    op.drop_table("expense_splits")
    op.drop_table("expenses")
