import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from dental_clinic.core.errors import NotFoundError, StorageError, ValidationError
from dental_clinic.models.booking import BookingStatus
from dental_clinic.models.common import utc_naive_now
from dental_clinic.models.off_hour import OffHour, OffHourCreate, OffHourUpdate
from dental_clinic.services import store
from dental_clinic.services.audit import log_storage_failure
from dental_clinic.services.policy import Action, Actor, require

logger = logging.getLogger(__name__)


@dataclass
class CascadeResult:
    matched: int = 0
    cancelled: int = 0
    failed: int = 0


def _validate_range(start: datetime, end: datetime, now: datetime | None = None) -> None:
    if start > end:
        raise ValidationError("Date is invalid: start date must not be after end date")
    if now is not None and start < now:
        raise ValidationError("Date is invalid: start date must not be in the past")


async def cascade_off_hour(session: AsyncSession, off_hour: OffHour) -> CascadeResult:
    """Cancel every active patient booking inside the off-hour's range and scope.

    Best-effort: each booking is cancelled with its own conditional update; a
    failure on one record is logged and the cascade moves on.
    """
    result = CascadeResult()
    provider_id: int | None = None
    if not off_hour.is_for_all_dentist:
        provider = await store.find_provider_by_user(session, off_hour.owner_id)
        if provider is None:
            logger.info("Off-hour %s: owner %s has no dentist record, nothing to cascade", off_hour.id, off_hour.owner_id)
            return result
        provider_id = provider.id

    bookings = await store.find_bookings(
        session,
        provider_id=provider_id,
        start=off_hour.start_date,
        end=off_hour.end_date,
        status=BookingStatus.BOOKED,
        is_unavailable=False,
    )
    result.matched = len(bookings)
    for b in bookings:
        try:
            if await store.cancel_booking(session, b.id):
                result.cancelled += 1
        except StorageError:
            result.failed += 1
            logger.warning(
                "Off-hour %s: could not cancel booking %s (provider=%s instant=%s)",
                off_hour.id,
                b.id,
                b.provider_id,
                b.appt_date_and_time.isoformat(),
            )
    logger.info(
        "Off-hour %s cascade [%s, %s] scope=%s: matched=%d cancelled=%d failed=%d",
        off_hour.id,
        off_hour.start_date.isoformat(),
        off_hour.end_date.isoformat(),
        "all" if provider_id is None else f"provider {provider_id}",
        result.matched,
        result.cancelled,
        result.failed,
    )
    return result


async def create_off_hour(
    session: AsyncSession, actor: Actor, data: OffHourCreate, now: datetime | None = None
) -> OffHour:
    if data.is_for_all_dentist:
        require(actor, Action.CREATE_GLOBAL_OFF_HOUR, message="Only an admin can block time for every dentist")
        owner_id = None
    else:
        owner_id = data.owner_id if data.owner_id is not None else actor.id
        require(actor, Action.MANAGE_OFF_HOUR, is_owner=owner_id == actor.id)

    _validate_range(data.start_date, data.end_date, now=now or utc_naive_now())

    with log_storage_failure(
        logger,
        "create_off_hour",
        actor,
        owner_id=owner_id,
        start=data.start_date.isoformat(),
        end=data.end_date.isoformat(),
    ):
        if owner_id is not None and await store.find_user(session, owner_id) is None:
            raise NotFoundError(f"No user found with the ID {owner_id}")

        off_hour = await store.insert_off_hour(
            session,
            OffHour(
                owner_id=owner_id,
                start_date=data.start_date,
                end_date=data.end_date,
                description=data.description,
                is_for_all_dentist=data.is_for_all_dentist,
            ),
        )
        logger.info(
            "Off-hour %s created by actor=%s (owner=%s global=%s)",
            off_hour.id,
            actor.id,
            owner_id,
            off_hour.is_for_all_dentist,
        )
        await cascade_off_hour(session, off_hour)
    return off_hour


async def _load_for_change(session: AsyncSession, actor: Actor, off_hour_id: int) -> OffHour:
    off_hour = await store.find_off_hour(session, off_hour_id)
    if off_hour is None:
        raise NotFoundError(f"No offHour with the id of {off_hour_id}")
    require(
        actor,
        Action.MANAGE_OFF_HOUR,
        is_owner=off_hour.owner_id is not None and off_hour.owner_id == actor.id,
        message=f"User {actor.id} is not authorized to change offHour {off_hour_id}",
    )
    return off_hour


async def update_off_hour(
    session: AsyncSession, actor: Actor, off_hour_id: int, patch: OffHourUpdate
) -> OffHour:
    """Patch an off-hour and cascade over its (possibly widened) range again."""
    with log_storage_failure(logger, "update_off_hour", actor, off_hour_id=off_hour_id):
        off_hour = await _load_for_change(session, actor, off_hour_id)
        changes = {
            k: v
            for k, v in patch.model_dump(exclude_unset=True, exclude_none=True).items()
            if getattr(off_hour, k) != v
        }
        if not changes:
            return off_hour
        if changes.get("is_for_all_dentist"):
            require(actor, Action.CREATE_GLOBAL_OFF_HOUR, message="Only an admin can block time for every dentist")
        if changes.get("is_for_all_dentist") is False and off_hour.owner_id is None:
            raise ValidationError("An off-hour without an owner must stay clinic-wide")
        _validate_range(
            changes.get("start_date", off_hour.start_date),
            changes.get("end_date", off_hour.end_date),
        )
        off_hour = await store.update_off_hour(session, off_hour, changes)
        logger.info("Off-hour %s updated by actor=%s: %s", off_hour.id, actor.id, sorted(changes))
        await cascade_off_hour(session, off_hour)
    return off_hour


async def delete_off_hour(session: AsyncSession, actor: Actor, off_hour_id: int) -> None:
    """Remove the range. Bookings it cancelled stay cancelled."""
    with log_storage_failure(logger, "delete_off_hour", actor, off_hour_id=off_hour_id):
        off_hour = await _load_for_change(session, actor, off_hour_id)
        await store.delete_off_hour(session, off_hour)
    logger.info("Off-hour %s deleted by actor=%s", off_hour_id, actor.id)


async def get_off_hour(session: AsyncSession, off_hour_id: int) -> OffHour:
    off_hour = await store.find_off_hour(session, off_hour_id)
    if off_hour is None:
        raise NotFoundError(f"No offHour found with ID {off_hour_id}")
    return off_hour


async def list_off_hours(session: AsyncSession, owner_id: int | None = None) -> list[OffHour]:
    return await store.find_off_hours(session, owner_id=owner_id)
