import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from dental_clinic.core.errors import (
    ConflictError,
    NotFoundError,
    UniqueConstraintError,
    ValidationError,
)
from dental_clinic.models.booking import Booking, BookingCreate, BookingStatus, BookingUpdate
from dental_clinic.models.provider import Provider
from dental_clinic.models.user import Role
from dental_clinic.services import store
from dental_clinic.services.audit import log_storage_failure
from dental_clinic.services.policy import Action, Actor, require
from dental_clinic.services.slot_service import SlotAvailability, get_active_booking, is_slot_available

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "This slot is already booked with the dentist."
SLOT_OFF_MESSAGE = "The dentist is not available at this time."
SLOT_BLOCKED_MESSAGE = "This slot is already marked unavailable."


def _unavailable_message(availability: SlotAvailability) -> str:
    if availability.conflicting_booking is not None:
        return SLOT_TAKEN_MESSAGE
    return SLOT_OFF_MESSAGE


async def _displace_patient_bookings(
    session: AsyncSession, provider_id: int, instant: datetime, *, exclude_id: int | None = None
) -> int:
    """Cancel every active patient booking at the slot so a marker can take it."""
    bookings = await store.find_bookings(
        session,
        provider_id=provider_id,
        instant=instant,
        status=BookingStatus.BOOKED,
        is_unavailable=False,
        exclude_id=exclude_id,
    )
    cancelled = 0
    for b in bookings:
        if await store.cancel_booking(session, b.id):
            cancelled += 1
    if bookings:
        logger.info(
            "Displaced bookings at provider=%s instant=%s: matched=%d cancelled=%d",
            provider_id,
            instant.isoformat(),
            len(bookings),
            cancelled,
        )
    return cancelled


async def _get_provider_for(session: AsyncSession, booking: Booking) -> Provider:
    provider = await store.find_provider(session, booking.provider_id)
    if provider is None:
        raise NotFoundError(f"No dentist with the id of {booking.provider_id}")
    return provider


async def _load_booking(session: AsyncSession, actor: Actor, booking_id: int, action: Action) -> tuple[Booking, Provider]:
    booking = await store.find_booking(session, booking_id)
    if booking is None:
        raise NotFoundError(f"No booking with the id of {booking_id}")
    provider = await _get_provider_for(session, booking)
    require(
        actor,
        action,
        is_owner=booking.patient_id == actor.id,
        is_provider_of_record=provider.user_id == actor.id,
        message=f"User {actor.id} is not authorized to access booking {booking_id}",
    )
    return booking, provider


async def create_booking(session: AsyncSession, actor: Actor, data: BookingCreate) -> Booking:
    """Reserve a slot, or block it with an unavailable marker (displacing any patient booking there)."""
    instant = data.appt_date_and_time
    with log_storage_failure(
        logger, "create_booking", actor, provider_id=data.provider_id, instant=instant.isoformat()
    ):
        provider = await store.find_provider(session, data.provider_id)
        if provider is None:
            raise ValidationError(f"No dentist with the id of {data.provider_id}")
        is_provider_of_record = provider.user_id == actor.id
        patient_id = data.patient_id if data.patient_id is not None else actor.id

        if data.is_unavailable:
            require(
                actor,
                Action.CREATE_UNAVAILABLE_MARKER,
                is_provider_of_record=is_provider_of_record,
                message="Only the dentist or an admin can mark a slot unavailable",
            )
        else:
            require(
                actor,
                Action.CREATE_BOOKING,
                is_owner=patient_id == actor.id,
                is_provider_of_record=is_provider_of_record,
            )
        if patient_id != actor.id and await store.find_user(session, patient_id) is None:
            raise NotFoundError(f"No user found with the ID {patient_id}")

        if data.is_unavailable:
            holder = await get_active_booking(session, provider.id, instant)
            if holder is not None and holder.is_unavailable:
                raise ConflictError(SLOT_BLOCKED_MESSAGE)
            await _displace_patient_bookings(session, provider.id, instant)
        else:
            availability = await is_slot_available(session, provider, instant)
            if not availability.available:
                raise ConflictError(_unavailable_message(availability))
            # dentists and admins booking on someone's behalf are not held to one active booking
            if actor.role == Role.USER:
                active = await store.find_bookings(
                    session, patient_id=actor.id, status=BookingStatus.BOOKED, is_unavailable=False
                )
                if active:
                    raise ConflictError(f"The user with ID {actor.id} already has an active appointment")

        booking = Booking(
            provider_id=provider.id,
            patient_id=patient_id,
            appt_date_and_time=instant,
            is_unavailable=data.is_unavailable,
            status=BookingStatus.BOOKED,
        )
        try:
            booking = await store.insert_booking(session, booking)
        except UniqueConstraintError as e:
            raise ConflictError(SLOT_TAKEN_MESSAGE) from e
    logger.info(
        "Booking %s created: provider=%s instant=%s patient=%s unavailable=%s by actor=%s",
        booking.id,
        provider.id,
        instant.isoformat(),
        patient_id,
        booking.is_unavailable,
        actor.id,
    )
    return booking


async def update_booking(session: AsyncSession, actor: Actor, booking_id: int, patch: BookingUpdate) -> Booking:
    """Apply a patch. Cancel is terminal: Cancel -> Cancel is a no-op, Cancel -> Booked is rejected."""
    with log_storage_failure(logger, "update_booking", actor, booking_id=booking_id):
        booking, provider = await _load_booking(session, actor, booking_id, Action.UPDATE_BOOKING)
        changes = {
            k: v
            for k, v in patch.model_dump(exclude_unset=True, exclude_none=True).items()
            if getattr(booking, k) != v
        }
        if not changes:
            return booking

        if booking.status == BookingStatus.CANCEL and changes.get("status") == BookingStatus.BOOKED:
            raise ValidationError("A cancelled booking cannot be re-booked; create a new booking instead")
        if changes.get("is_unavailable"):
            require(
                actor,
                Action.CREATE_UNAVAILABLE_MARKER,
                is_provider_of_record=provider.user_id == actor.id,
                message="Only the dentist or an admin can mark a slot unavailable",
            )

        target_instant = changes.get("appt_date_and_time", booking.appt_date_and_time)
        target_unavailable = changes.get("is_unavailable", booking.is_unavailable)
        target_status = changes.get("status", booking.status)

        if target_status == BookingStatus.BOOKED:
            if target_unavailable:
                holder = await get_active_booking(session, provider.id, target_instant)
                if holder is not None and holder.id != booking.id and holder.is_unavailable:
                    raise ConflictError(SLOT_BLOCKED_MESSAGE)
                await _displace_patient_bookings(session, provider.id, target_instant, exclude_id=booking.id)
            elif target_instant != booking.appt_date_and_time:
                availability = await is_slot_available(session, provider, target_instant)
                if not availability.available:
                    raise ConflictError(_unavailable_message(availability))

        try:
            booking = await store.update_booking(session, booking, changes)
        except UniqueConstraintError as e:
            raise ConflictError(SLOT_TAKEN_MESSAGE) from e
    logger.info("Booking %s updated by actor=%s: %s", booking.id, actor.id, sorted(changes))
    return booking


async def cancel_booking(session: AsyncSession, actor: Actor, booking_id: int) -> Booking:
    return await update_booking(session, actor, booking_id, BookingUpdate(status=BookingStatus.CANCEL))


async def delete_booking(session: AsyncSession, actor: Actor, booking_id: int) -> None:
    with log_storage_failure(logger, "delete_booking", actor, booking_id=booking_id):
        booking, _ = await _load_booking(session, actor, booking_id, Action.DELETE_BOOKING)
        await store.delete_booking(session, booking)
    logger.info("Booking %s deleted by actor=%s", booking_id, actor.id)


async def get_booking(session: AsyncSession, actor: Actor, booking_id: int) -> Booking:
    booking, _ = await _load_booking(session, actor, booking_id, Action.VIEW_BOOKING)
    return booking


async def list_bookings(
    session: AsyncSession, actor: Actor, provider_id: int | None = None
) -> list[Booking]:
    """Admins see everything; everyone else sees their own bookings, and dentists also their schedule."""
    if actor.is_admin:
        return await store.find_bookings(session, provider_id=provider_id)
    bookings = await store.find_bookings(session, patient_id=actor.id, provider_id=provider_id)
    if actor.role == Role.DENTIST:
        own = await store.find_provider_by_user(session, actor.id)
        if own is not None and provider_id in (None, own.id):
            seen = {b.id for b in bookings}
            bookings += [b for b in await store.find_bookings(session, provider_id=own.id) if b.id not in seen]
            bookings.sort(key=lambda b: (b.appt_date_and_time, b.id))
    return bookings
