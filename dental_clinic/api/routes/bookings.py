from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dental_clinic.api.deps import get_current_actor, get_session
from dental_clinic.models.booking import BookingPublic, BookingUpdate
from dental_clinic.services import booking_service
from dental_clinic.services.policy import Actor

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("", response_model=list[BookingPublic])
async def list_bookings(
    provider_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
):
    return await booking_service.list_bookings(session, actor, provider_id=provider_id)


@router.get("/{booking_id}", response_model=BookingPublic)
async def get_booking(
    booking_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
):
    return await booking_service.get_booking(session, actor, booking_id)


@router.put("/{booking_id}", response_model=BookingPublic)
async def update_booking(
    booking_id: int,
    body: BookingUpdate,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
):
    return await booking_service.update_booking(session, actor, booking_id, body)


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    booking_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> None:
    await booking_service.delete_booking(session, actor, booking_id)
