from datetime import timedelta

import pytest

from dental_clinic.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from dental_clinic.models.booking import BookingCreate, BookingStatus, BookingUpdate
from dental_clinic.models.off_hour import OffHour
from dental_clinic.models.user import Role
from dental_clinic.services import booking_service, store
from dental_clinic.services.slot_service import SlotAvailability

from tests.conftest import SLOT, actor_for

pytestmark = pytest.mark.asyncio


def book(provider, instant=SLOT, **kwargs) -> BookingCreate:
    return BookingCreate(provider_id=provider.id, appt_date_and_time=instant, **kwargs)


async def active_at(session, provider, instant=SLOT):
    return await store.find_bookings(session, provider_id=provider.id, instant=instant, status=BookingStatus.BOOKED)


# create


async def test_patient_books_free_slot(session, dentist_x, patient_a):
    _, provider = dentist_x
    booking = await booking_service.create_booking(session, patient_a, book(provider))

    assert booking.id is not None
    assert booking.patient_id == patient_a.id
    assert booking.provider_id == provider.id
    assert booking.status == BookingStatus.BOOKED
    assert booking.is_unavailable is False


async def test_unknown_provider_is_a_validation_error(session, patient_a):
    with pytest.raises(ValidationError):
        await booking_service.create_booking(
            session, patient_a, BookingCreate(provider_id=999, appt_date_and_time=SLOT)
        )


async def test_double_booking_then_displacement_scenario(session, dentist_x, patient_a, patient_b):
    dentist, provider = dentist_x
    booking_a = await booking_service.create_booking(session, patient_a, book(provider))

    with pytest.raises(ConflictError):
        await booking_service.create_booking(session, patient_b, book(provider))

    marker = await booking_service.create_booking(session, dentist, book(provider, is_unavailable=True))

    await session.refresh(booking_a)
    assert booking_a.status == BookingStatus.CANCEL
    assert marker.status == BookingStatus.BOOKED
    assert marker.is_unavailable is True
    active = await active_at(session, provider)
    assert [b.id for b in active] == [marker.id]


async def test_marker_on_marker_is_rejected(session, dentist_x, admin):
    dentist, provider = dentist_x
    await booking_service.create_booking(session, dentist, book(provider, is_unavailable=True))
    with pytest.raises(ConflictError, match="already marked unavailable"):
        await booking_service.create_booking(session, admin, book(provider, is_unavailable=True))


async def test_patient_cannot_create_marker(session, dentist_x, patient_a):
    _, provider = dentist_x
    with pytest.raises(AuthorizationError):
        await booking_service.create_booking(session, patient_a, book(provider, is_unavailable=True))


async def test_dentist_cannot_block_another_dentists_slot(session, factory, dentist_x):
    dentist, _ = dentist_x
    other = await factory.provider(name="Dr. Y")
    with pytest.raises(AuthorizationError):
        await booking_service.create_booking(session, dentist, book(other, is_unavailable=True))


async def test_admin_can_block_any_slot(session, dentist_x, admin):
    _, provider = dentist_x
    marker = await booking_service.create_booking(session, admin, book(provider, is_unavailable=True))
    assert marker.is_unavailable is True


async def test_one_active_booking_per_patient(session, factory, dentist_x, patient_a):
    _, provider = dentist_x
    other = await factory.provider(name="Dr. Y")
    first = await booking_service.create_booking(session, patient_a, book(provider))

    with pytest.raises(ConflictError, match="already has an active appointment"):
        await booking_service.create_booking(session, patient_a, book(other, SLOT + timedelta(days=1)))

    await booking_service.cancel_booking(session, patient_a, first.id)
    second = await booking_service.create_booking(session, patient_a, book(other, SLOT + timedelta(days=1)))
    assert second.status == BookingStatus.BOOKED


async def test_admin_booking_on_behalf_bypasses_one_active_limit(session, dentist_x, admin, patient_a):
    _, provider = dentist_x
    await booking_service.create_booking(session, patient_a, book(provider))
    extra = await booking_service.create_booking(
        session, admin, book(provider, SLOT + timedelta(hours=1), patient_id=patient_a.id)
    )
    assert extra.patient_id == patient_a.id


async def test_dentist_books_patient_into_own_schedule(session, dentist_x, patient_a):
    dentist, provider = dentist_x
    booking = await booking_service.create_booking(session, dentist, book(provider, patient_id=patient_a.id))
    assert booking.patient_id == patient_a.id


async def test_dentist_cannot_book_patient_with_another_dentist(session, factory, dentist_x, patient_a):
    dentist, _ = dentist_x
    other = await factory.provider(name="Dr. Y")
    with pytest.raises(AuthorizationError):
        await booking_service.create_booking(session, dentist, book(other, patient_id=patient_a.id))


async def test_patient_cannot_book_for_someone_else(session, dentist_x, patient_a, patient_b):
    _, provider = dentist_x
    with pytest.raises(AuthorizationError):
        await booking_service.create_booking(session, patient_a, book(provider, patient_id=patient_b.id))


async def test_booking_for_unknown_patient(session, dentist_x, admin):
    _, provider = dentist_x
    with pytest.raises(NotFoundError):
        await booking_service.create_booking(session, admin, book(provider, patient_id=424242))


async def test_off_hour_blocks_patient_booking_but_not_marker(session, dentist_x, patient_a):
    dentist, provider = dentist_x
    await store.insert_off_hour(
        session, OffHour(owner_id=dentist.id, start_date=SLOT, end_date=SLOT + timedelta(hours=3))
    )
    with pytest.raises(ConflictError, match="not available"):
        await booking_service.create_booking(session, patient_a, book(provider))

    marker = await booking_service.create_booking(session, dentist, book(provider, is_unavailable=True))
    assert marker.status == BookingStatus.BOOKED


# update


async def test_update_missing_booking(session, patient_a):
    with pytest.raises(NotFoundError):
        await booking_service.update_booking(session, patient_a, 999, BookingUpdate(status=BookingStatus.CANCEL))


async def test_stranger_cannot_update_or_delete(session, factory, dentist_x, patient_a, patient_b):
    _, provider = dentist_x
    outsider = actor_for(await factory.user(Role.DENTIST))
    booking = await booking_service.create_booking(session, patient_a, book(provider))

    for actor in (patient_b, outsider):
        with pytest.raises(AuthorizationError):
            await booking_service.update_booking(
                session, actor, booking.id, BookingUpdate(status=BookingStatus.CANCEL)
            )
        with pytest.raises(AuthorizationError):
            await booking_service.delete_booking(session, actor, booking.id)


async def test_cancel_is_idempotent(session, dentist_x, patient_a):
    _, provider = dentist_x
    booking = await booking_service.create_booking(session, patient_a, book(provider))

    first = await booking_service.cancel_booking(session, patient_a, booking.id)
    again = await booking_service.cancel_booking(session, patient_a, booking.id)

    assert first.status == BookingStatus.CANCEL
    assert again.id == first.id
    assert again.status == BookingStatus.CANCEL


async def test_cancelled_booking_cannot_be_rebooked(session, dentist_x, patient_a):
    _, provider = dentist_x
    booking = await booking_service.create_booking(session, patient_a, book(provider))
    await booking_service.cancel_booking(session, patient_a, booking.id)

    with pytest.raises(ValidationError):
        await booking_service.update_booking(
            session, patient_a, booking.id, BookingUpdate(status=BookingStatus.BOOKED)
        )


async def test_provider_of_record_can_cancel(session, dentist_x, patient_a):
    dentist, provider = dentist_x
    booking = await booking_service.create_booking(session, patient_a, book(provider))
    updated = await booking_service.cancel_booking(session, dentist, booking.id)
    assert updated.status == BookingStatus.CANCEL


async def test_patient_cannot_flag_booking_unavailable(session, dentist_x, patient_a):
    _, provider = dentist_x
    booking = await booking_service.create_booking(session, patient_a, book(provider))
    with pytest.raises(AuthorizationError):
        await booking_service.update_booking(session, patient_a, booking.id, BookingUpdate(is_unavailable=True))


async def test_flagging_unavailable_keeps_the_record_booked(session, dentist_x, patient_a):
    dentist, provider = dentist_x
    booking = await booking_service.create_booking(session, patient_a, book(provider))

    updated = await booking_service.update_booking(session, dentist, booking.id, BookingUpdate(is_unavailable=True))

    assert updated.is_unavailable is True
    assert updated.status == BookingStatus.BOOKED


async def test_moving_marker_onto_booked_slot_displaces_it(session, dentist_x, patient_a, admin):
    dentist, provider = dentist_x
    booking_a = await booking_service.create_booking(session, patient_a, book(provider))
    later = await booking_service.create_booking(
        session, admin, book(provider, SLOT + timedelta(minutes=30), patient_id=dentist.id)
    )

    moved = await booking_service.update_booking(
        session, dentist, later.id, BookingUpdate(appt_date_and_time=SLOT, is_unavailable=True)
    )

    await session.refresh(booking_a)
    assert booking_a.status == BookingStatus.CANCEL
    assert moved.appt_date_and_time == SLOT
    assert [b.id for b in await active_at(session, provider)] == [moved.id]


async def test_moving_to_taken_slot_conflicts(session, dentist_x, patient_a, patient_b):
    _, provider = dentist_x
    await booking_service.create_booking(session, patient_a, book(provider))
    booking_b = await booking_service.create_booking(session, patient_b, book(provider, SLOT + timedelta(hours=1)))

    with pytest.raises(ConflictError):
        await booking_service.update_booking(
            session, patient_b, booking_b.id, BookingUpdate(appt_date_and_time=SLOT)
        )


async def test_moving_into_off_hour_conflicts(session, dentist_x, patient_a):
    dentist, provider = dentist_x
    booking = await booking_service.create_booking(session, patient_a, book(provider))
    await store.insert_off_hour(
        session,
        OffHour(owner_id=dentist.id, start_date=SLOT + timedelta(days=1), end_date=SLOT + timedelta(days=2)),
    )
    with pytest.raises(ConflictError):
        await booking_service.update_booking(
            session, patient_a, booking.id, BookingUpdate(appt_date_and_time=SLOT + timedelta(days=1))
        )


async def test_moving_to_free_slot(session, dentist_x, patient_a, patient_b):
    _, provider = dentist_x
    booking = await booking_service.create_booking(session, patient_a, book(provider))
    moved = await booking_service.update_booking(
        session, patient_a, booking.id, BookingUpdate(appt_date_and_time=SLOT + timedelta(hours=2))
    )
    assert moved.appt_date_and_time == SLOT + timedelta(hours=2)
    # the old slot is free again
    freed = await booking_service.create_booking(session, patient_b, book(provider))
    assert freed.appt_date_and_time == SLOT


# lost races: the active-slot index is the last line of defence


@pytest.fixture
def stale_availability(monkeypatch):
    """Make the availability check answer "free" as if a concurrent booking had not landed yet."""

    async def always_free(session, provider, instant):
        return SlotAvailability(available=True)

    monkeypatch.setattr(booking_service, "is_slot_available", always_free)


async def test_create_losing_race_is_a_conflict(session, dentist_x, patient_a, patient_b, stale_availability):
    _, provider = dentist_x
    winner = await booking_service.create_booking(session, patient_a, book(provider))

    with pytest.raises(ConflictError) as exc_info:
        await booking_service.create_booking(session, patient_b, book(provider))
    assert exc_info.value.message == booking_service.SLOT_TAKEN_MESSAGE

    assert [b.id for b in await active_at(session, provider)] == [winner.id]
    # the unit of work is still usable
    later = await booking_service.create_booking(session, patient_b, book(provider, SLOT + timedelta(hours=1)))
    assert later.status == BookingStatus.BOOKED


async def test_move_losing_race_is_a_conflict(session, dentist_x, patient_a, patient_b, stale_availability):
    _, provider = dentist_x
    winner = await booking_service.create_booking(session, patient_a, book(provider))
    mover = await booking_service.create_booking(session, patient_b, book(provider, SLOT + timedelta(hours=1)))
    mover_id = mover.id

    with pytest.raises(ConflictError):
        await booking_service.update_booking(session, patient_b, mover_id, BookingUpdate(appt_date_and_time=SLOT))

    assert [b.id for b in await active_at(session, provider)] == [winner.id]
    await session.refresh(mover)
    assert mover.appt_date_and_time == SLOT + timedelta(hours=1)
    moved = await booking_service.update_booking(
        session, patient_b, mover_id, BookingUpdate(appt_date_and_time=SLOT + timedelta(hours=2))
    )
    assert moved.appt_date_and_time == SLOT + timedelta(hours=2)


# delete


async def test_owner_deletes_booking(session, dentist_x, patient_a):
    _, provider = dentist_x
    booking = await booking_service.create_booking(session, patient_a, book(provider))
    await booking_service.delete_booking(session, patient_a, booking.id)
    assert await store.find_booking(session, booking.id) is None


async def test_delete_missing_booking(session, admin):
    with pytest.raises(NotFoundError):
        await booking_service.delete_booking(session, admin, 12345)


# listing


async def test_list_bookings_scopes_by_role(session, factory, dentist_x, patient_a, patient_b, admin):
    dentist, provider = dentist_x
    other = await factory.provider(name="Dr. Y")
    a = await booking_service.create_booking(session, patient_a, book(provider))
    b = await booking_service.create_booking(session, patient_b, book(other))

    assert [x.id for x in await booking_service.list_bookings(session, patient_a)] == [a.id]
    assert [x.id for x in await booking_service.list_bookings(session, dentist)] == [a.id]
    assert {x.id for x in await booking_service.list_bookings(session, admin)} == {a.id, b.id}
    assert [x.id for x in await booking_service.list_bookings(session, admin, provider_id=other.id)] == [b.id]


async def test_get_booking_requires_access(session, dentist_x, patient_a, patient_b):
    _, provider = dentist_x
    booking = await booking_service.create_booking(session, patient_a, book(provider))
    assert (await booking_service.get_booking(session, patient_a, booking.id)).id == booking.id
    with pytest.raises(AuthorizationError):
        await booking_service.get_booking(session, patient_b, booking.id)
