"""Create inventory item and item history tables.

Revision ID: 0001_inventory_items
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_inventory_items"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "inventory_item",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("primary_code", sa.String(), nullable=False),
        sa.Column("secondary_code", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("unit_value", sa.String(length=64), nullable=False),
        sa.Column("legacy_requested_qty", sa.Integer(), nullable=False),
        sa.Column("legacy_stock_qty", sa.Integer(), nullable=False),
        sa.Column("contexts", sa.Text(), nullable=False),
        sa.Column("derived_total", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_inventory_item")),
    )
    op.create_index(
        op.f("ix_inventory_item_primary_code"), "inventory_item", ["primary_code"], unique=False
    )
    op.create_index(
        op.f("ix_inventory_item_secondary_code"),
        "inventory_item",
        ["secondary_code"],
        unique=False,
    )

    op.create_table(
        "item_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("item_id", sa.String(length=32), nullable=False),
        sa.Column("field", sa.String(), nullable=False),
        sa.Column("before", sa.Text(), nullable=True),
        sa.Column("after", sa.Text(), nullable=True),
        sa.Column("origin", sa.String(length=16), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_item_history")),
    )
    op.create_index(op.f("ix_item_history_item_id"), "item_history", ["item_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_item_history_item_id"), table_name="item_history")
    op.drop_table("item_history")
    op.drop_index(op.f("ix_inventory_item_secondary_code"), table_name="inventory_item")
    op.drop_index(op.f("ix_inventory_item_primary_code"), table_name="inventory_item")
    op.drop_table("inventory_item")
