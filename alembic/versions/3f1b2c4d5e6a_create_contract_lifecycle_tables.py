"""create buildings rooms contracts room_tenants bills

Revision ID: 3f1b2c4d5e6a
Revises:
Create Date: 2025-01-06 00:00:00.000000

"""

from __future__ import annotations

from typing import Sequence

import sqlalchemy as sa
from alembic import op


revision: str = "3f1b2c4d5e6a"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "buildings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("bill_due_day", sa.SmallInteger(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("bill_due_day BETWEEN 1 AND 31", name="ck_buildings_bill_due_day"),
    )

    op.create_table(
        "building_managers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("building_id", sa.Integer(), sa.ForeignKey("buildings.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.UniqueConstraint("building_id", "user_id", name="uq_building_managers_building_user"),
    )
    op.create_index("ix_building_managers_user_id", "building_managers", ["user_id"])

    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("building_id", sa.Integer(), sa.ForeignKey("buildings.id"), nullable=False),
        sa.Column("room_number", sa.String(length=32), nullable=False),
        sa.Column("max_tenants", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("status", sa.String(length=16), server_default=sa.text("'available'"), nullable=False),
        sa.Column("current_contract_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("status IN ('available', 'occupied')", name="ck_rooms_status"),
        sa.CheckConstraint(
            "(status = 'occupied') = (current_contract_id IS NOT NULL)",
            name="ck_rooms_status_matches_contract",
        ),
    )
    op.create_index("ix_rooms_building_id", "rooms", ["building_id"])

    op.create_table(
        "contracts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id"), nullable=False),
        sa.Column("tenant_user_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("duration_months", sa.Integer(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("rent_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("deposit_amount", sa.Numeric(14, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("penalty_rate", sa.Numeric(5, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("payment_cycle_months", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("status", sa.String(length=32), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("file_key", sa.String(length=512), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("end_date > start_date", name="ck_contracts_period"),
        sa.CheckConstraint("duration_months >= 1", name="ck_contracts_duration"),
        sa.CheckConstraint(
            "payment_cycle_months BETWEEN 1 AND duration_months",
            name="ck_contracts_payment_cycle",
        ),
    )
    op.create_index("ix_contracts_room_id_status", "contracts", ["room_id", "status"])
    op.create_index("ix_contracts_tenant_user_id", "contracts", ["tenant_user_id"])
    op.create_index("ix_contracts_status_end_date", "contracts", ["status", "end_date"])

    # Second line of defence behind the room row lock: blocking periods of one room never overlap.
    op.execute(
        """
        ALTER TABLE contracts
        ADD CONSTRAINT ex_contracts_room_blocking_period
        EXCLUDE USING gist (
            room_id WITH =,
            daterange(start_date, end_date, '[]') WITH &&
        )
        WHERE (deleted_at IS NULL AND status IN ('active', 'pending', 'pending_transaction'))
        """
    )

    op.create_foreign_key(
        "fk_rooms_current_contract_id",
        "rooms",
        "contracts",
        ["current_contract_id"],
        ["id"],
    )

    op.create_table(
        "room_tenants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id"), nullable=False),
        sa.Column("tenant_user_id", sa.Integer(), nullable=False),
        sa.Column("contract_id", sa.Integer(), sa.ForeignKey("contracts.id"), nullable=True),
        sa.Column("is_current", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("moved_in_at", sa.Date(), nullable=False),
        sa.Column("moved_out_at", sa.Date(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "uq_room_tenants_current",
        "room_tenants",
        ["room_id", "tenant_user_id"],
        unique=True,
        postgresql_where=sa.text("is_current"),
    )
    op.create_index("ix_room_tenants_room_id_is_current", "room_tenants", ["room_id", "is_current"])

    op.create_table(
        "bills",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("contract_id", sa.Integer(), sa.ForeignKey("contracts.id"), nullable=False),
        sa.Column("bill_number", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=32), server_default=sa.text("'draft'"), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_bills_contract_id_status", "bills", ["contract_id", "status"])


def downgrade() -> None:
    op.drop_index("ix_bills_contract_id_status", table_name="bills")
    op.drop_table("bills")

    op.drop_index("ix_room_tenants_room_id_is_current", table_name="room_tenants")
    op.drop_index("uq_room_tenants_current", table_name="room_tenants")
    op.drop_table("room_tenants")

    op.drop_constraint("fk_rooms_current_contract_id", "rooms", type_="foreignkey")
    op.execute("ALTER TABLE contracts DROP CONSTRAINT IF EXISTS ex_contracts_room_blocking_period")
    op.drop_index("ix_contracts_status_end_date", table_name="contracts")
    op.drop_index("ix_contracts_tenant_user_id", table_name="contracts")
    op.drop_index("ix_contracts_room_id_status", table_name="contracts")
    op.drop_table("contracts")

    op.drop_index("ix_rooms_building_id", table_name="rooms")
    op.drop_table("rooms")

    op.drop_index("ix_building_managers_user_id", table_name="building_managers")
    op.drop_table("building_managers")

    op.drop_table("buildings")
