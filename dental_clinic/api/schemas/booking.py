from datetime import datetime

from pydantic import BaseModel


class BookAppointmentRequest(BaseModel):
    appt_date_and_time: datetime
    patient_id: int | None = None  # dentist/admin booking on a patient's behalf


class MarkUnavailableRequest(BaseModel):
    appt_date_and_time: datetime
