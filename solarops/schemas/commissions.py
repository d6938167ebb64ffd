import uuid
from datetime import date
from typing import Optional

from pydantic import BaseModel, model_validator


class CommissionCreate(BaseModel):
    customer_id: uuid.UUID
    total_commission: float
    m1_payment_amount: float = 0
    m2_payment_amount: float = 0
    sales_rep_id: Optional[uuid.UUID] = None
    sales_manager_id: Optional[uuid.UUID] = None
    sales_manager_override_amount: Optional[float] = None

    @model_validator(mode='after')
    def milestones_within_total(self):
        if self.m1_payment_amount < 0 or self.m2_payment_amount < 0:
            raise ValueError("milestone amounts must not be negative")
        if self.m1_payment_amount + self.m2_payment_amount > self.total_commission + 0.005:
            raise ValueError("m1 + m2 exceeds total_commission")
        return self


class CommissionResponse(BaseModel):
    id: uuid.UUID
    customer_id: uuid.UUID
    sales_rep_id: Optional[uuid.UUID] = None
    sales_manager_id: Optional[uuid.UUID] = None
    total_commission: float
    m1_payment_amount: float
    m1_payment_status: str
    m1_eligibility_date: Optional[date] = None
    m1_paid_date: Optional[date] = None
    m1_payroll_period_end: Optional[date] = None
    m2_payment_amount: float
    m2_payment_status: str
    m2_eligibility_date: Optional[date] = None
    m2_paid_date: Optional[date] = None
    m2_payroll_period_end: Optional[date] = None
    sales_manager_override_amount: Optional[float] = None
    manager_override_payment_status: str
    manager_override_eligibility_date: Optional[date] = None
    manager_override_paid_date: Optional[date] = None
    manager_override_payroll_period_end: Optional[date] = None

    class Config:
        from_attributes = True
