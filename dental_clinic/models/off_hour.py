from datetime import datetime

from pydantic import field_validator
from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

from dental_clinic.models.common import to_naive_utc, utc_naive_now


class OffHour(SQLModel, table=True):
    """A blackout range for one provider's account, or for every provider when ``is_for_all_dentist``."""

    __tablename__ = "off_hours"
    __table_args__ = (CheckConstraint("start_date <= end_date", name="ck_off_hours_range"),)
    id: int | None = Field(default=None, primary_key=True)
    owner_id: int | None = Field(default=None, foreign_key="users.id", index=True)
    start_date: datetime = Field(index=True)
    end_date: datetime = Field(index=True)
    description: str | None = None
    is_for_all_dentist: bool = False
    created_at: datetime = Field(default_factory=utc_naive_now)

    def covers(self, instant: datetime) -> bool:
        return self.start_date <= instant <= self.end_date


class OffHourCreate(SQLModel):
    owner_id: int | None = None  # defaults to the acting user; ignored when global
    start_date: datetime
    end_date: datetime
    description: str | None = None
    is_for_all_dentist: bool = False

    @field_validator("start_date", "end_date")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class OffHourUpdate(SQLModel):
    start_date: datetime | None = None
    end_date: datetime | None = None
    description: str | None = None
    is_for_all_dentist: bool | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v) if v is not None else None


class OffHourPublic(SQLModel):
    id: int
    owner_id: int | None = None
    start_date: datetime
    end_date: datetime
    description: str | None = None
    is_for_all_dentist: bool
    created_at: datetime
