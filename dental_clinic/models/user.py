from enum import Enum

from sqlalchemy import Column
from sqlmodel import Field, SQLModel

from dental_clinic.models.common import enum_type


class Role(str, Enum):
    USER = "user"
    DENTIST = "dentist"
    ADMIN = "admin"


class User(SQLModel, table=True):
    """Account record. Owned by the account service; read-only here."""

    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    full_name: str | None = None
    role: Role = Field(
        default=Role.USER,
        sa_column=Column(enum_type(Role), nullable=False, default=Role.USER),
    )
