from datetime import datetime

from pydantic import BaseModel


class SlotInfo(BaseModel):
    start_utc: datetime
    end_utc: datetime
    available: bool


class AvailableSlotsResponse(BaseModel):
    provider_id: int
    date: str  # YYYY-MM-DD
    slots: list[SlotInfo]
