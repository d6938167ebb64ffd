from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel

MilestoneName = Literal["m1", "m2", "manager_override"]


class ApprovePaymentRequest(BaseModel):
    milestone: MilestoneName
    period_end: Optional[date] = None


class MarkEligibleRequest(BaseModel):
    milestone: MilestoneName
    eligibility_date: Optional[date] = None


class ClockRequest(BaseModel):
    customer_id: Optional[str] = None
    ticket_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
