"""initial schema

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "barbershops",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("slug", sa.String(length=128), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=False),
        sa.Column(
            "timezone",
            sa.String(length=64),
            nullable=False,
            server_default="America/Sao_Paulo",
        ),
        *_timestamps(),
        sa.UniqueConstraint("phone", name="uq_barbershops_phone"),
    )
    op.create_index("ix_barbershops_slug", "barbershops", ["slug"], unique=True)

    op.create_table(
        "barbers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("barbershop_id", sa.String(length=36), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["barbershop_id"], ["barbershops.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_barbers_barbershop_id", "barbers", ["barbershop_id"], unique=False)

    op.create_table(
        "services",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("duration_min", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("barbershop_id", sa.String(length=36), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["barbershop_id"], ["barbershops.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_services_barbershop_id", "services", ["barbershop_id"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("barbershop_id", sa.String(length=36), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["barbershop_id"], ["barbershops.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("barbershop_id", "phone", name="uq_customers_shop_phone"),
    )
    op.create_index("ix_customers_barbershop_id", "customers", ["barbershop_id"], unique=False)
    op.create_index("ix_customers_phone", "customers", ["phone"], unique=False)

    op.create_table(
        "appointments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("barbershop_id", sa.String(length=36), nullable=False),
        sa.Column("barber_id", sa.String(length=36), nullable=False),
        sa.Column("service_id", sa.String(length=36), nullable=False),
        sa.Column("customer_id", sa.String(length=36), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="scheduled"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["barbershop_id"], ["barbershops.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["barber_id"], ["barbers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_appointments_customer_id", "appointments", ["customer_id"], unique=False)
    op.create_index("ix_appointments_start_time", "appointments", ["start_time"], unique=False)
    op.create_index(
        "ix_appointments_shop_status", "appointments", ["barbershop_id", "status"], unique=False
    )
    op.create_index(
        "ux_appointments_barber_slot",
        "appointments",
        ["barber_id", "start_time"],
        unique=True,
        sqlite_where=sa.text("status != 'canceled'"),
        postgresql_where=sa.text("status != 'canceled'"),
    )

    op.create_table(
        "booking_tokens",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("barbershop_id", sa.String(length=36), nullable=False),
        sa.Column("barber_id", sa.String(length=36), nullable=True),
        sa.Column("customer_phone", sa.String(length=32), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("single_use", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("validation_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["barbershop_id"], ["barbershops.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["barber_id"], ["barbers.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_booking_tokens_token_hash", "booking_tokens", ["token_hash"], unique=True)
    op.create_index(
        "ix_booking_tokens_barbershop_id", "booking_tokens", ["barbershop_id"], unique=False
    )
    op.create_index("ix_booking_tokens_expires_at", "booking_tokens", ["expires_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_booking_tokens_expires_at", table_name="booking_tokens")
    op.drop_index("ix_booking_tokens_barbershop_id", table_name="booking_tokens")
    op.drop_index("ix_booking_tokens_token_hash", table_name="booking_tokens")
    op.drop_table("booking_tokens")
    op.drop_index("ux_appointments_barber_slot", table_name="appointments")
    op.drop_index("ix_appointments_shop_status", table_name="appointments")
    op.drop_index("ix_appointments_start_time", table_name="appointments")
    op.drop_index("ix_appointments_customer_id", table_name="appointments")
    op.drop_table("appointments")
    op.drop_index("ix_customers_phone", table_name="customers")
    op.drop_index("ix_customers_barbershop_id", table_name="customers")
    op.drop_table("customers")
    op.drop_index("ix_services_barbershop_id", table_name="services")
    op.drop_table("services")
    op.drop_index("ix_barbers_barbershop_id", table_name="barbers")
    op.drop_table("barbers")
    op.drop_index("ix_barbershops_slug", table_name="barbershops")
    op.drop_table("barbershops")
