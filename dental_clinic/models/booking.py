from datetime import datetime
from enum import Enum

from pydantic import field_validator
from sqlalchemy import Column, Index, text
from sqlmodel import Field, SQLModel

from dental_clinic.models.common import enum_type, to_naive_utc, utc_naive_now


class BookingStatus(str, Enum):
    BOOKED = "Booked"
    CANCEL = "Cancel"


class Booking(SQLModel, table=True):
    """A patient reservation, or an unavailable marker when ``is_unavailable`` is set."""

    __tablename__ = "bookings"
    __table_args__ = (
        # At most one active booking per (provider, instant), markers included.
        Index(
            "uq_bookings_active_slot",
            "provider_id",
            "appt_date_and_time",
            unique=True,
            postgresql_where=text("status = 'Booked'"),
            sqlite_where=text("status = 'Booked'"),
        ),
    )
    id: int | None = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="providers.id", index=True)
    patient_id: int = Field(foreign_key="users.id", index=True)
    appt_date_and_time: datetime = Field(index=True)
    is_unavailable: bool = False
    status: BookingStatus = Field(
        default=BookingStatus.BOOKED,
        sa_column=Column(enum_type(BookingStatus), nullable=False, default=BookingStatus.BOOKED),
    )
    created_at: datetime = Field(default_factory=utc_naive_now)


class BookingCreate(SQLModel):
    provider_id: int
    appt_date_and_time: datetime
    is_unavailable: bool = False
    patient_id: int | None = None  # defaults to the acting user

    @field_validator("appt_date_and_time")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class BookingUpdate(SQLModel):
    appt_date_and_time: datetime | None = None
    status: BookingStatus | None = None
    is_unavailable: bool | None = None

    @field_validator("appt_date_and_time")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v) if v is not None else None


class BookingPublic(SQLModel):
    id: int
    provider_id: int
    patient_id: int
    appt_date_and_time: datetime
    is_unavailable: bool
    status: BookingStatus
    created_at: datetime
