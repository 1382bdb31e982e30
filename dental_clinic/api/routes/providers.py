from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dental_clinic.api.deps import get_current_actor, get_session
from dental_clinic.api.schemas.booking import BookAppointmentRequest, MarkUnavailableRequest
from dental_clinic.api.schemas.slots import AvailableSlotsResponse, SlotInfo
from dental_clinic.core.config import settings
from dental_clinic.models.booking import BookingCreate, BookingPublic
from dental_clinic.models.provider import ProviderCreate, ProviderPublic, ProviderUpdate
from dental_clinic.services import booking_service, provider_service
from dental_clinic.services.policy import Actor
from dental_clinic.services.slot_service import get_available_slots_for_date

router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("", response_model=list[ProviderPublic])
async def list_providers(session: AsyncSession = Depends(get_session)):
    return await provider_service.list_providers(session)


@router.post("", response_model=ProviderPublic, status_code=status.HTTP_201_CREATED)
async def create_provider(
    body: ProviderCreate,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
):
    return await provider_service.create_provider(session, actor, body)


@router.get("/{provider_id}", response_model=ProviderPublic)
async def get_provider(provider_id: int, session: AsyncSession = Depends(get_session)):
    return await provider_service.get_provider(session, provider_id)


@router.put("/{provider_id}", response_model=ProviderPublic)
async def update_provider(
    provider_id: int,
    body: ProviderUpdate,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
):
    return await provider_service.update_provider(session, actor, provider_id, body)


@router.delete("/{provider_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_provider(
    provider_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> None:
    await provider_service.delete_provider(session, actor, provider_id)


@router.get("/{provider_id}/slots", response_model=AvailableSlotsResponse)
async def available_slots(
    provider_id: int,
    date_param: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
) -> AvailableSlotsResponse:
    """Return the provider's slots for the given date (UTC), each with start_utc, end_utc and available."""
    provider = await provider_service.get_provider(session, provider_id)
    slots_with_availability = await get_available_slots_for_date(session, provider, date_param)
    slot_infos = [
        SlotInfo(
            start_utc=s,
            end_utc=s + timedelta(minutes=settings.slot_duration_minutes),
            available=avail,
        )
        for s, avail in slots_with_availability
    ]
    return AvailableSlotsResponse(
        provider_id=provider_id,
        date=date_param.isoformat(),
        slots=slot_infos,
    )


@router.post("/{provider_id}/bookings", response_model=BookingPublic, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    provider_id: int,
    body: BookAppointmentRequest,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
):
    data = BookingCreate(
        provider_id=provider_id,
        appt_date_and_time=body.appt_date_and_time,
        patient_id=body.patient_id,
    )
    return await booking_service.create_booking(session, actor, data)


@router.post("/{provider_id}/unavailable", response_model=BookingPublic, status_code=status.HTTP_201_CREATED)
async def mark_unavailable(
    provider_id: int,
    body: MarkUnavailableRequest,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
):
    data = BookingCreate(
        provider_id=provider_id,
        appt_date_and_time=body.appt_date_and_time,
        is_unavailable=True,
    )
    return await booking_service.create_booking(session, actor, data)
