import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class CustomerBase(BaseModel):
    full_name: str
    customer_code: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[str] = None
    system_size_kw: Optional[float] = None
    panel_quantity: Optional[int] = None
    battery_quantity: Optional[int] = 0
    contract_price: Optional[float] = None
    sales_rep_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = True

    @field_validator('customer_code', 'address', 'phone', 'email', 'notes', 'status', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator('system_size_kw', 'panel_quantity', 'battery_quantity', 'contract_price')
    @classmethod
    def non_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError("must not be negative")
        return v


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(CustomerBase):
    full_name: Optional[str] = None


class CustomerResponse(CustomerBase):
    id: uuid.UUID
    job_source: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TimelineUpdate(BaseModel):
    site_survey_status: Optional[str] = None
    site_survey_date: Optional[datetime] = None
    engineering_status: Optional[str] = None
    utility_status: Optional[str] = None
    permit_status: Optional[str] = None
    material_order_status: Optional[str] = None
    installation_status: Optional[str] = None
    installation_date: Optional[datetime] = None
    inspection_status: Optional[str] = None
    city_inspection_status: Optional[str] = None
    city_inspection_date: Optional[datetime] = None
    pto_submitted_date: Optional[date] = None
    pto_approved_date: Optional[date] = None
    system_activated_date: Optional[date] = None


class TimelineResponse(TimelineUpdate):
    customer_id: uuid.UUID
    derived_status: str
