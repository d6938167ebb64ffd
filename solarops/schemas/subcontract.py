import uuid
from datetime import date, datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, field_validator


class AdderSchema(BaseModel):
    name: str
    amount: float
    type: Literal["fixed", "per_watt", "per_panel"] = "fixed"


class ContractorBase(BaseModel):
    name: str
    company_name: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    default_ppw: Optional[float] = None
    default_price_per_panel: Optional[float] = None
    adders: Optional[List[AdderSchema]] = None


class ContractorCreate(ContractorBase):
    pass


class ContractorUpdate(ContractorBase):
    name: Optional[str] = None


class ContractorResponse(ContractorBase):
    id: uuid.UUID

    class Config:
        from_attributes = True


class SubcontractJobBase(BaseModel):
    full_name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    contractor_id: Optional[uuid.UUID] = None
    contractor_name: Optional[str] = None
    contractor_job_ref: Optional[str] = None
    subcontract_status: Optional[str] = None
    system_size_kw: Optional[float] = None
    panel_quantity: Optional[int] = None
    labor_cost: Optional[float] = 0
    material_cost: Optional[float] = 0
    adders: Optional[List[AdderSchema]] = None
    scheduled_date: Optional[date] = None

    @field_validator('system_size_kw', 'panel_quantity', 'labor_cost', 'material_cost')
    @classmethod
    def non_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError("must not be negative")
        return v


class NewInstallJobCreate(SubcontractJobBase):
    job_type: Literal["new_install"] = "new_install"
    price_per_watt: Optional[float] = None


class DetachResetJobCreate(SubcontractJobBase):
    job_type: Literal["detach_reset"] = "detach_reset"
    price_per_panel: Optional[float] = None
    detach_date: Optional[date] = None
    reset_date: Optional[date] = None


SubcontractJobCreate = Union[NewInstallJobCreate, DetachResetJobCreate]


class SubcontractJobUpdate(BaseModel):
    full_name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    contractor_id: Optional[uuid.UUID] = None
    contractor_name: Optional[str] = None
    contractor_job_ref: Optional[str] = None
    system_size_kw: Optional[float] = None
    panel_quantity: Optional[int] = None
    labor_cost: Optional[float] = None
    material_cost: Optional[float] = None
    adders: Optional[List[AdderSchema]] = None
    scheduled_date: Optional[date] = None
    price_per_watt: Optional[float] = None
    price_per_panel: Optional[float] = None
    detach_date: Optional[date] = None
    reset_date: Optional[date] = None
    invoice_sent_date: Optional[date] = None
    invoice_paid_date: Optional[date] = None
    payment_type: Optional[Literal["CHECK", "ACH", "WIRE"]] = None
    check_number: Optional[str] = None


class StatusUpdate(BaseModel):
    status: str


class SubcontractJobResponse(BaseModel):
    id: uuid.UUID
    job_type: str
    job_source: str
    full_name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    contractor_id: Optional[uuid.UUID] = None
    contractor_name: Optional[str] = None
    contractor_job_ref: Optional[str] = None
    subcontract_status: Optional[str] = None
    system_size_kw: Optional[float] = None
    panel_quantity: Optional[int] = None
    price_per_watt: Optional[float] = None
    price_per_panel: Optional[float] = None
    detach_date: Optional[date] = None
    reset_date: Optional[date] = None
    labor_cost: Optional[float] = None
    material_cost: Optional[float] = None
    adders: Optional[List[AdderSchema]] = None
    gross_amount: Optional[float] = None
    net_revenue: Optional[float] = None
    scheduled_date: Optional[date] = None
    invoice_number: Optional[str] = None
    invoice_sent_date: Optional[date] = None
    invoice_paid_date: Optional[date] = None
    payment_type: Optional[str] = None
    check_number: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
