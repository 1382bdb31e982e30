"""Entity store: the only place that talks to the database.

Every call is a suspension point. Single-record writes run inside a
SAVEPOINT so a rejected insert/update leaves the rest of the unit of work
intact. SQLAlchemy failures surface as ``StorageError``; violations of the
active-slot index surface as ``UniqueConstraintError``.
"""
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dental_clinic.core.errors import StorageError, UniqueConstraintError
from dental_clinic.models.booking import Booking, BookingStatus
from dental_clinic.models.off_hour import OffHour
from dental_clinic.models.provider import Provider
from dental_clinic.models.user import User

logger = logging.getLogger(__name__)

ACTIVE_SLOT_INDEX = "uq_bookings_active_slot"


def _is_active_slot_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", "") or ""
    if constraint_name:
        return constraint_name == ACTIVE_SLOT_INDEX
    text = str(orig) if orig is not None else str(exc)
    # sqlite reports the columns rather than the index name
    return ACTIVE_SLOT_INDEX in text or "bookings.provider_id, bookings.appt_date_and_time" in text


def _storage_error(action: str, exc: SQLAlchemyError, **context: Any) -> StorageError:
    logger.error("Store %s failed (%s): %s", action, context, exc)
    return StorageError()


# Lookups


async def find_user(session: AsyncSession, user_id: int) -> User | None:
    try:
        return await session.get(User, user_id)
    except SQLAlchemyError as e:
        raise _storage_error("find_user", e, user_id=user_id) from e


async def find_provider(session: AsyncSession, provider_id: int) -> Provider | None:
    try:
        return await session.get(Provider, provider_id)
    except SQLAlchemyError as e:
        raise _storage_error("find_provider", e, provider_id=provider_id) from e


async def find_provider_by_user(session: AsyncSession, user_id: int) -> Provider | None:
    try:
        result = await session.execute(select(Provider).where(Provider.user_id == user_id))
        return result.scalar_one_or_none()
    except SQLAlchemyError as e:
        raise _storage_error("find_provider_by_user", e, user_id=user_id) from e


async def find_providers(session: AsyncSession) -> list[Provider]:
    try:
        result = await session.execute(select(Provider).order_by(Provider.created_at.desc(), Provider.id.desc()))
        return list(result.scalars().all())
    except SQLAlchemyError as e:
        raise _storage_error("find_providers", e) from e


async def find_booking(session: AsyncSession, booking_id: int) -> Booking | None:
    try:
        return await session.get(Booking, booking_id)
    except SQLAlchemyError as e:
        raise _storage_error("find_booking", e, booking_id=booking_id) from e


async def find_bookings(
    session: AsyncSession,
    *,
    provider_id: int | None = None,
    provider_ids: Sequence[int] | None = None,
    patient_id: int | None = None,
    instant: datetime | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    status: BookingStatus | None = None,
    is_unavailable: bool | None = None,
    exclude_id: int | None = None,
) -> list[Booking]:
    """Range/filter query. ``start``/``end`` are both inclusive."""
    q = select(Booking)
    if provider_id is not None:
        q = q.where(Booking.provider_id == provider_id)
    if provider_ids is not None:
        q = q.where(Booking.provider_id.in_(list(provider_ids)))
    if patient_id is not None:
        q = q.where(Booking.patient_id == patient_id)
    if instant is not None:
        q = q.where(Booking.appt_date_and_time == instant)
    if start is not None:
        q = q.where(Booking.appt_date_and_time >= start)
    if end is not None:
        q = q.where(Booking.appt_date_and_time <= end)
    if status is not None:
        q = q.where(Booking.status == status)
    if is_unavailable is not None:
        q = q.where(Booking.is_unavailable == is_unavailable)
    if exclude_id is not None:
        q = q.where(Booking.id != exclude_id)
    q = q.order_by(Booking.appt_date_and_time, Booking.id)
    try:
        result = await session.execute(q)
        return list(result.scalars().all())
    except SQLAlchemyError as e:
        raise _storage_error("find_bookings", e, provider_id=provider_id, instant=instant) from e


async def find_off_hour(session: AsyncSession, off_hour_id: int) -> OffHour | None:
    try:
        return await session.get(OffHour, off_hour_id)
    except SQLAlchemyError as e:
        raise _storage_error("find_off_hour", e, off_hour_id=off_hour_id) from e


async def find_off_hours(
    session: AsyncSession,
    *,
    owner_id: int | None = None,
    include_global: bool = False,
    covering: datetime | None = None,
    overlapping: tuple[datetime, datetime] | None = None,
) -> list[OffHour]:
    """``owner_id`` with ``include_global`` selects the owner's ranges plus clinic-wide ones."""
    q = select(OffHour)
    if owner_id is not None:
        if include_global:
            q = q.where(or_(OffHour.owner_id == owner_id, OffHour.is_for_all_dentist.is_(True)))
        else:
            q = q.where(OffHour.owner_id == owner_id)
    elif include_global:
        q = q.where(OffHour.is_for_all_dentist.is_(True))
    if covering is not None:
        q = q.where(OffHour.start_date <= covering, OffHour.end_date >= covering)
    if overlapping is not None:
        lo, hi = overlapping
        q = q.where(OffHour.start_date <= hi, OffHour.end_date >= lo)
    q = q.order_by(OffHour.start_date, OffHour.id)
    try:
        result = await session.execute(q)
        return list(result.scalars().all())
    except SQLAlchemyError as e:
        raise _storage_error("find_off_hours", e, owner_id=owner_id, covering=covering) from e


# Writes


async def _write(
    session: AsyncSession, obj: Any, action: str, patch: dict[str, Any] | None = None, **context: Any
) -> Any:
    # begin_nested() flushes pending state first, so the patch must land inside the savepoint
    try:
        async with session.begin_nested():
            for key, value in (patch or {}).items():
                setattr(obj, key, value)
            session.add(obj)
            await session.flush()
    except IntegrityError as e:
        logger.info("Unique constraint rejected %s (%s): %s", action, context, e.orig)
        if isinstance(obj, Booking) and _is_active_slot_violation(e):
            raise UniqueConstraintError() from e
        raise UniqueConstraintError("Record conflicts with an existing one") from e
    except SQLAlchemyError as e:
        raise _storage_error(action, e, **context) from e
    await session.refresh(obj)
    return obj


async def insert_booking(session: AsyncSession, booking: Booking) -> Booking:
    return await _write(
        session,
        booking,
        "insert_booking",
        provider_id=booking.provider_id,
        instant=booking.appt_date_and_time,
        patient_id=booking.patient_id,
    )


async def update_booking(session: AsyncSession, booking: Booking, patch: dict[str, Any]) -> Booking:
    return await _write(
        session,
        booking,
        "update_booking",
        patch,
        booking_id=booking.id,
        provider_id=patch.get("provider_id", booking.provider_id),
        instant=patch.get("appt_date_and_time", booking.appt_date_and_time),
    )


async def cancel_booking(session: AsyncSession, booking_id: int) -> bool:
    """Atomic Booked -> Cancel transition. Returns False if the record was not Booked (idempotent)."""
    stmt = (
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == BookingStatus.BOOKED)
        .values(status=BookingStatus.CANCEL)
        .execution_options(synchronize_session="evaluate")
    )
    try:
        async with session.begin_nested():
            result = await session.execute(stmt)
    except SQLAlchemyError as e:
        raise _storage_error("cancel_booking", e, booking_id=booking_id) from e
    return (result.rowcount or 0) > 0


async def delete_booking(session: AsyncSession, booking: Booking) -> None:
    try:
        await session.delete(booking)
        await session.flush()
    except SQLAlchemyError as e:
        raise _storage_error("delete_booking", e, booking_id=booking.id) from e


async def delete_bookings_for_provider(session: AsyncSession, provider_id: int) -> int:
    try:
        result = await session.execute(
            delete(Booking)
            .where(Booking.provider_id == provider_id)
            .execution_options(synchronize_session="evaluate")
        )
    except SQLAlchemyError as e:
        raise _storage_error("delete_bookings_for_provider", e, provider_id=provider_id) from e
    return result.rowcount or 0


async def insert_off_hour(session: AsyncSession, off_hour: OffHour) -> OffHour:
    return await _write(
        session,
        off_hour,
        "insert_off_hour",
        owner_id=off_hour.owner_id,
        start=off_hour.start_date,
        end=off_hour.end_date,
    )


async def update_off_hour(session: AsyncSession, off_hour: OffHour, patch: dict[str, Any]) -> OffHour:
    return await _write(session, off_hour, "update_off_hour", patch, off_hour_id=off_hour.id)


async def update_provider(session: AsyncSession, provider: Provider, patch: dict[str, Any]) -> Provider:
    return await _write(session, provider, "update_provider", patch, provider_id=provider.id)


async def delete_off_hour(session: AsyncSession, off_hour: OffHour) -> None:
    try:
        await session.delete(off_hour)
        await session.flush()
    except SQLAlchemyError as e:
        raise _storage_error("delete_off_hour", e, off_hour_id=off_hour.id) from e


async def insert_provider(session: AsyncSession, provider: Provider) -> Provider:
    return await _write(session, provider, "insert_provider", user_id=provider.user_id, name=provider.name)


async def delete_provider(session: AsyncSession, provider: Provider) -> None:
    try:
        await session.delete(provider)
        await session.flush()
    except SQLAlchemyError as e:
        raise _storage_error("delete_provider", e, provider_id=provider.id) from e
