from datetime import datetime
from enum import Enum

from pydantic import field_validator
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from dental_clinic.models.common import utc_naive_now


class Specialty(str, Enum):
    ORTHODONTICS = "Orthodontics"
    PEDIATRIC_DENTISTRY = "Pediatric Dentistry"
    ENDODONTICS = "Endodontics"
    PROSTHODONTICS = "Prosthodontics"
    PERIODONTICS = "Periodontics"
    ORAL_SURGERY = "Oral Surgery"
    GENERAL_DENTISTRY = "General Dentistry"


class Provider(SQLModel, table=True):
    """A dentist. ``user_id`` links the provider to the account that acts for it."""

    __tablename__ = "providers"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", unique=True, index=True)
    name: str = Field(unique=True, max_length=50)
    years_of_experience: int = Field(default=0, ge=0)
    area_of_expertise: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    created_at: datetime = Field(default_factory=utc_naive_now)


def _clean_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Please add a name")
    return v


class ProviderCreate(SQLModel):
    user_id: int
    name: str = Field(min_length=1, max_length=50)
    years_of_experience: int = Field(ge=0)
    area_of_expertise: list[Specialty] = Field(min_length=1)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        return _clean_name(v)

    @field_validator("area_of_expertise")
    @classmethod
    def _dedupe(cls, v: list[Specialty]) -> list[Specialty]:
        return list(dict.fromkeys(v))


class ProviderUpdate(SQLModel):
    name: str | None = Field(default=None, min_length=1, max_length=50)
    years_of_experience: int | None = Field(default=None, ge=0)
    area_of_expertise: list[Specialty] | None = Field(default=None, min_length=1)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str | None) -> str | None:
        return _clean_name(v) if v is not None else None

    @field_validator("area_of_expertise")
    @classmethod
    def _dedupe(cls, v: list[Specialty] | None) -> list[Specialty] | None:
        return list(dict.fromkeys(v)) if v is not None else None


class ProviderPublic(SQLModel):
    id: int
    user_id: int
    name: str
    years_of_experience: int
    area_of_expertise: list[str]
    created_at: datetime
