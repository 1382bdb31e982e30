from dental_clinic.models.user import Role, User
from dental_clinic.models.provider import Provider, ProviderCreate, ProviderPublic, ProviderUpdate, Specialty
from dental_clinic.models.booking import (
    Booking,
    BookingCreate,
    BookingPublic,
    BookingStatus,
    BookingUpdate,
)
from dental_clinic.models.off_hour import OffHour, OffHourCreate, OffHourPublic, OffHourUpdate

__all__ = [
    "Role",
    "User",
    "Provider",
    "ProviderCreate",
    "ProviderPublic",
    "ProviderUpdate",
    "Specialty",
    "Booking",
    "BookingCreate",
    "BookingPublic",
    "BookingStatus",
    "BookingUpdate",
    "OffHour",
    "OffHourCreate",
    "OffHourPublic",
    "OffHourUpdate",
]
