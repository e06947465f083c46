"""Initial schema: sellers, tickets, win percentages and draw results.

Revision ID: 0001
Revises:
Create Date: 2025-01-06
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: str | None = None
branch_labels = None
depends_on = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "sellers",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("user_name", sa.String(length=100), nullable=False),
        sa.Column("priority", sa.Boolean(), nullable=False),
        sa.Column("blocked", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_sellers")),
        sa.UniqueConstraint("user_name", name=op.f("uq_sellers_user_name")),
    )
    op.create_index(op.f("ix_sellers_id"), "sellers", ["id"], unique=False)

    op.create_table(
        "tickets",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("seller_id", ID_TYPE, nullable=False),
        sa.Column("draw_times", sa.JSON(), nullable=False),
        sa.Column("ticket_numbers", sa.JSON(), nullable=False),
        sa.Column("total_quantity", sa.Integer(), nullable=False),
        sa.Column("total_points", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["seller_id"],
            ["sellers.id"],
            name=op.f("fk_tickets_seller_id_sellers"),
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tickets")),
    )
    op.create_index(op.f("ix_tickets_seller_id"), "tickets", ["seller_id"], unique=False)
    op.create_index("ix_tickets_created_at", "tickets", ["created_at"], unique=False)

    op.create_table(
        "win_percentages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("percentage", sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_win_percentages")),
    )

    op.create_table(
        "draw_results",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("draw_date", sa.Date(), nullable=False),
        sa.Column("draw_slot", sa.String(length=8), nullable=False),
        sa.Column("winning_numbers", sa.JSON(), nullable=False),
        sa.Column("total_points", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("win_percentage", sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column("budget", sa.Integer(), nullable=False),
        sa.Column("strategy", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_draw_results")),
        sa.UniqueConstraint("draw_date", "draw_slot", name="uq_draw_results_date_slot"),
    )


def downgrade() -> None:
    op.drop_table("draw_results")
    op.drop_table("win_percentages")
    op.drop_index("ix_tickets_created_at", table_name="tickets")
    op.drop_index(op.f("ix_tickets_seller_id"), table_name="tickets")
    op.drop_table("tickets")
    op.drop_index(op.f("ix_sellers_id"), table_name="sellers")
    op.drop_table("sellers")
