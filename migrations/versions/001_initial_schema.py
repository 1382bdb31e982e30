"""Initial schema: users, providers, bookings, off_hours.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(length=7), nullable=False, server_default="user"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "providers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("years_of_experience", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("area_of_expertise", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index(op.f("ix_providers_user_id"), "providers", ["user_id"], unique=True)

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("provider_id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), nullable=False),
        sa.Column("appt_date_and_time", sa.DateTime(), nullable=False),
        sa.Column("is_unavailable", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("status", sa.String(length=6), nullable=False, server_default="Booked"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["provider_id"], ["providers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["patient_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bookings_provider_id"), "bookings", ["provider_id"], unique=False)
    op.create_index(op.f("ix_bookings_patient_id"), "bookings", ["patient_id"], unique=False)
    op.create_index(op.f("ix_bookings_appt_date_and_time"), "bookings", ["appt_date_and_time"], unique=False)
    # One active booking per (provider, instant); cancelled rows do not count.
    op.create_index(
        "uq_bookings_active_slot",
        "bookings",
        ["provider_id", "appt_date_and_time"],
        unique=True,
        postgresql_where=sa.text("status = 'Booked'"),
        sqlite_where=sa.text("status = 'Booked'"),
    )

    op.create_table(
        "off_hours",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=True),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("is_for_all_dentist", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("start_date <= end_date", name="ck_off_hours_range"),
    )
    op.create_index(op.f("ix_off_hours_owner_id"), "off_hours", ["owner_id"], unique=False)
    op.create_index(op.f("ix_off_hours_start_date"), "off_hours", ["start_date"], unique=False)
    op.create_index(op.f("ix_off_hours_end_date"), "off_hours", ["end_date"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_off_hours_end_date"), table_name="off_hours")
    op.drop_index(op.f("ix_off_hours_start_date"), table_name="off_hours")
    op.drop_index(op.f("ix_off_hours_owner_id"), table_name="off_hours")
    op.drop_table("off_hours")
    op.drop_index("uq_bookings_active_slot", table_name="bookings")
    op.drop_index(op.f("ix_bookings_appt_date_and_time"), table_name="bookings")
    op.drop_index(op.f("ix_bookings_patient_id"), table_name="bookings")
    op.drop_index(op.f("ix_bookings_provider_id"), table_name="bookings")
    op.drop_table("bookings")
    op.drop_index(op.f("ix_providers_user_id"), table_name="providers")
    op.drop_table("providers")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
