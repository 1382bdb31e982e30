from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from dental_clinic.core.config import settings
from dental_clinic.models.booking import Booking, BookingStatus
from dental_clinic.models.common import to_naive_utc
from dental_clinic.models.off_hour import OffHour
from dental_clinic.models.provider import Provider
from dental_clinic.services import store


@dataclass
class SlotAvailability:
    available: bool
    conflicting_booking: Booking | None = None
    covering_off_hour: OffHour | None = None


def _slot_times_for_date(d: date) -> list[datetime]:
    """Generate slot start times as naive UTC for the given date (business hours from settings)."""
    slots: list[datetime] = []
    start = datetime(d.year, d.month, d.day, settings.business_start_hour, 0, 0)
    end = datetime(d.year, d.month, d.day, settings.business_end_hour, 0, 0)
    delta = timedelta(minutes=settings.slot_duration_minutes)
    current = start
    while current < end:
        slots.append(current)
        current += delta
    return slots


async def get_active_booking(session: AsyncSession, provider_id: int, instant: datetime) -> Booking | None:
    """The Booked record (patient booking or marker) holding the slot, if any."""
    bookings = await store.find_bookings(
        session, provider_id=provider_id, instant=instant, status=BookingStatus.BOOKED
    )
    return bookings[0] if bookings else None


async def is_slot_available(session: AsyncSession, provider: Provider, instant: datetime) -> SlotAvailability:
    """Side-effect free; does not guard against a concurrent insert (the active-slot index does)."""
    instant = to_naive_utc(instant)
    booking = await get_active_booking(session, provider.id, instant)
    if booking is not None:
        return SlotAvailability(available=False, conflicting_booking=booking)
    off_hours = await store.find_off_hours(
        session, owner_id=provider.user_id, include_global=True, covering=instant
    )
    if off_hours:
        return SlotAvailability(available=False, covering_off_hour=off_hours[0])
    return SlotAvailability(available=True)


async def get_available_slots_for_date(
    session: AsyncSession, provider: Provider, d: date
) -> list[tuple[datetime, bool]]:
    """Returns list of (slot_start_utc, available) for one provider's business day."""
    slots = _slot_times_for_date(d)
    if not slots:
        return []
    start_inclusive = slots[0]
    end_inclusive = slots[-1]
    booked = {
        b.appt_date_and_time
        for b in await store.find_bookings(
            session,
            provider_id=provider.id,
            start=start_inclusive,
            end=end_inclusive,
            status=BookingStatus.BOOKED,
        )
    }
    off_hours = await store.find_off_hours(
        session,
        owner_id=provider.user_id,
        include_global=True,
        overlapping=(start_inclusive, end_inclusive),
    )
    out: list[tuple[datetime, bool]] = []
    for s in slots:
        blocked = s in booked or any(o.covers(s) for o in off_hours)
        out.append((s, not blocked))
    return out
