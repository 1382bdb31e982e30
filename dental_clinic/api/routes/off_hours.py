from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dental_clinic.api.deps import get_current_actor, get_session
from dental_clinic.models.off_hour import OffHourCreate, OffHourPublic, OffHourUpdate
from dental_clinic.services import off_hour_service
from dental_clinic.services.policy import Actor

router = APIRouter(prefix="/off-hours", tags=["off-hours"])


@router.get("", response_model=list[OffHourPublic])
async def list_off_hours(
    owner_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
):
    return await off_hour_service.list_off_hours(session, owner_id=owner_id)


@router.post("", response_model=OffHourPublic, status_code=status.HTTP_201_CREATED)
async def create_off_hour(
    body: OffHourCreate,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
):
    return await off_hour_service.create_off_hour(session, actor, body)


@router.get("/{off_hour_id}", response_model=OffHourPublic)
async def get_off_hour(
    off_hour_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
):
    return await off_hour_service.get_off_hour(session, off_hour_id)


@router.put("/{off_hour_id}", response_model=OffHourPublic)
async def update_off_hour(
    off_hour_id: int,
    body: OffHourUpdate,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
):
    return await off_hour_service.update_off_hour(session, actor, off_hour_id, body)


@router.delete("/{off_hour_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_off_hour(
    off_hour_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> None:
    await off_hour_service.delete_off_hour(session, actor, off_hour_id)
