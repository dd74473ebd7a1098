"""Initial schema

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18 00:00:01

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261018_000001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

U64 = sa.Numeric(20, 0)


def upgrade() -> None:
    # Create sales table
    op.create_table(
        "sales",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("mint", sa.String(255), nullable=False),
        sa.Column("vault", sa.String(255), nullable=False),
        sa.Column("account_data", sa.LargeBinary(321), nullable=False),
        sa.Column("charity_address", sa.String(64), nullable=False),
        sa.Column("sale_address", sa.String(64), nullable=False),
        sa.Column("current_tranche_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_funds_raised", U64, nullable=False, server_default="0"),
        sa.Column("total_tokens_sold", U64, nullable=False, server_default="0"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create purchases table
    op.create_table(
        "purchases",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sale_id", sa.Uuid(), nullable=False),
        sa.Column("buyer", sa.String(64), nullable=False),
        sa.Column("amount", U64, nullable=False),
        sa.Column("tokens_purchased", U64, nullable=False),
        sa.Column("transfer_amount", U64, nullable=False),
        sa.Column("burn_amount", U64, nullable=False),
        sa.Column("spent", U64, nullable=False),
        sa.Column("unspent_remainder", U64, nullable=False),
        sa.Column("charity_share", U64, nullable=False),
        sa.Column("sale_share", U64, nullable=False),
        sa.Column("tranche_index_before", sa.Integer(), nullable=False),
        sa.Column("tranche_index_after", sa.Integer(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create indexes for purchases
    op.create_index("ix_purchases_sale_id", "purchases", ["sale_id"])
    op.create_index("ix_purchases_buyer", "purchases", ["buyer"])
    op.create_index("idx_purchases_sale_created", "purchases", ["sale_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_purchases_sale_created", table_name="purchases")
    op.drop_index("ix_purchases_buyer", table_name="purchases")
    op.drop_index("ix_purchases_sale_id", table_name="purchases")
    op.drop_table("purchases")
    op.drop_table("sales")
