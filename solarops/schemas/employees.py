import uuid
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, field_validator


class EmployeeResponse(BaseModel):
    id: uuid.UUID
    email: str
    full_name: str
    custom_id: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    role_category: Optional[str] = None
    status: Optional[str] = None
    reporting_manager_id: Optional[uuid.UUID] = None
    hourly_rate: Optional[float] = None
    is_salary: Optional[bool] = None
    per_watt_rate: Optional[float] = None
    battery_pay_rates: Optional[Dict[str, float]] = None
    ppw_redline: Optional[float] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EmployeePayUpdate(BaseModel):
    hourly_rate: Optional[float] = None
    is_salary: Optional[bool] = None
    per_watt_rate: Optional[float] = None
    battery_pay_rates: Optional[Dict[str, float]] = None
    ppw_redline: Optional[float] = None

    @field_validator('hourly_rate', 'per_watt_rate', 'ppw_redline')
    @classmethod
    def non_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator('battery_pay_rates')
    @classmethod
    def battery_buckets(cls, v):
        if v is None:
            return v
        allowed = {"1", "2", "3", "4", "4+"}
        unknown = set(v) - allowed
        if unknown:
            raise ValueError(f"unknown battery buckets: {', '.join(sorted(unknown))}")
        return v
