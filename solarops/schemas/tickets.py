import uuid
from datetime import date, datetime, time
from typing import List, Literal, Optional

from pydantic import BaseModel, model_validator


TicketType = Literal["site_survey", "installation", "inspection", "service", "detach", "reset"]


class TicketCreate(BaseModel):
    customer_id: uuid.UUID
    ticket_type: TicketType
    problem_code: Optional[str] = None
    priority: Optional[str] = "normal"
    scheduled_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    technician_ids: Optional[List[uuid.UUID]] = None
    notes: Optional[str] = None

    @model_validator(mode='after')
    def window_order(self):
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class TechnicianRef(BaseModel):
    id: uuid.UUID
    full_name: str

    class Config:
        from_attributes = True


class TicketResponse(BaseModel):
    id: uuid.UUID
    customer_id: uuid.UUID
    ticket_type: str
    problem_code: Optional[str] = None
    ticket_status: str
    priority: Optional[str] = None
    scheduled_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    pv_installer_id: Optional[uuid.UUID] = None
    in_transit_at: Optional[datetime] = None
    arrived_at: Optional[datetime] = None
    begin_ticket_at: Optional[datetime] = None
    work_performed: Optional[str] = None
    departing_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    close_reason: Optional[str] = None
    notes: Optional[str] = None
    technicians: List[TechnicianRef] = []

    class Config:
        from_attributes = True


class ProgressRequest(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    close_reason: Optional[str] = None


class WorkPerformedUpdate(BaseModel):
    work_performed: Optional[str] = None


class TechniciansUpdate(BaseModel):
    technician_ids: List[uuid.UUID]
