import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Column,
    String,
    DateTime,
    Date,
    Time,
    Boolean,
    ForeignKey,
    Table,
    Integer,
    Float,
    Numeric,
    JSON,
    UniqueConstraint,
    Text,
    Index,
    Uuid,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)


# Association table for many-to-many SchedulingTicket<->AppUser (assigned technicians)
ticket_technicians = Table(
    "ticket_technicians",
    Base.metadata,
    Column("ticket_id", Uuid(as_uuid=True), ForeignKey("scheduling.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid(as_uuid=True), ForeignKey("app_users.id", ondelete="CASCADE"), primary_key=True),
    UniqueConstraint("ticket_id", "user_id", name="uq_ticket_technician"),
)


class AppUser(Base):
    __tablename__ = "app_users"

    id: Mapped[uuid.UUID] = uuid_pk()
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    custom_id: Mapped[Optional[str]] = mapped_column(String(50))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    role: Mapped[Optional[str]] = mapped_column(String(50))
    role_category: Mapped[str] = mapped_column(String(50), default="employee")  # admin|management|field_tech|sales_rep|sales_manager|employee
    status: Mapped[str] = mapped_column(String(20), default="active")  # active|inactive
    reporting_manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("app_users.id", ondelete="SET NULL"))
    # Pay fields (edited by admins only)
    hourly_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    is_salary: Mapped[bool] = mapped_column(Boolean, default=False)
    per_watt_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 4))
    battery_pay_rates: Mapped[Optional[dict]] = mapped_column(JSON)  # {"1": 100, "2": 150, "3": 200, "4+": 300}
    ppw_redline: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 4))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    @property
    def is_active(self) -> bool:
        return (self.status or "active") == "active"


class Contractor(Base):
    __tablename__ = "contractors"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_name: Mapped[Optional[str]] = mapped_column(String(255))
    address: Mapped[Optional[str]] = mapped_column(String(500))
    phone_number: Mapped[Optional[str]] = mapped_column(String(50))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    default_ppw: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 4))
    default_price_per_panel: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    adders: Mapped[Optional[list]] = mapped_column(JSON)  # catalog of {name, amount, type}
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Job(Base):
    """
    A customer project or a subcontracted job.
    One table, one row per job; `job_kind` selects the variant.
    """
    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = uuid_pk()
    job_kind: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(500))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    # System specs, shared by every variant
    system_size_kw: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3))
    panel_quantity: Mapped[Optional[int]] = mapped_column(Integer)
    battery_quantity: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __mapper_args__ = {
        "polymorphic_on": "job_kind",
        "polymorphic_abstract": True,
    }

    @property
    def job_source(self) -> str:
        return "crm"


class CrmCustomer(Job):
    customer_code: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    status: Mapped[Optional[str]] = mapped_column(String(100))
    contract_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    sales_rep_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("app_users.id", ondelete="SET NULL"), index=True)

    sales_rep = relationship("AppUser", foreign_keys=[sales_rep_id])

    __mapper_args__ = {"polymorphic_identity": "crm"}


class SubcontractJob(Job):
    contractor_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("contractors.id", ondelete="SET NULL"), index=True)
    contractor_name: Mapped[Optional[str]] = mapped_column(String(255))
    contractor_job_ref: Mapped[Optional[str]] = mapped_column(String(100))
    subcontract_status: Mapped[Optional[str]] = mapped_column(String(50))
    labor_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), default=0)
    material_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), default=0)  # expenses
    adders: Mapped[Optional[list]] = mapped_column(JSON)  # [{name, amount, type}]
    # Denormalized totals, recomputed on every save
    gross_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    net_revenue: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    scheduled_date: Mapped[Optional[date]] = mapped_column(Date)
    invoice_number: Mapped[Optional[str]] = mapped_column(String(50), unique=True)
    invoice_sent_date: Mapped[Optional[date]] = mapped_column(Date)
    invoice_paid_date: Mapped[Optional[date]] = mapped_column(Date)
    payment_type: Mapped[Optional[str]] = mapped_column(String(20))  # CHECK|ACH|WIRE
    check_number: Mapped[Optional[str]] = mapped_column(String(50))

    contractor = relationship("Contractor")

    __mapper_args__ = {"polymorphic_abstract": True}

    @property
    def job_source(self) -> str:
        return "subcontract"


class SubcontractNewInstall(SubcontractJob):
    price_per_watt: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 4))

    __mapper_args__ = {"polymorphic_identity": "subcontract_new_install"}

    @property
    def job_type(self) -> str:
        return "new_install"


class SubcontractDetachReset(SubcontractJob):
    price_per_panel: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    detach_date: Mapped[Optional[date]] = mapped_column(Date)
    reset_date: Mapped[Optional[date]] = mapped_column(Date)

    __mapper_args__ = {"polymorphic_identity": "subcontract_detach_reset"}

    @property
    def job_type(self) -> str:
        return "detach_reset"


class SchedulingTicket(Base):
    """One scheduled field visit"""
    __tablename__ = "scheduling"

    id: Mapped[uuid.UUID] = uuid_pk()
    customer_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    ticket_type: Mapped[str] = mapped_column(String(30), nullable=False)  # site_survey|installation|inspection|service|detach|reset
    problem_code: Mapped[Optional[str]] = mapped_column(String(50))
    ticket_status: Mapped[str] = mapped_column(String(20), default="scheduled")  # scheduled|in_progress|completed|cancelled
    priority: Mapped[Optional[str]] = mapped_column(String(20), default="normal")
    scheduled_date: Mapped[Optional[date]] = mapped_column(Date, index=True)
    start_time: Mapped[Optional[time]] = mapped_column(Time(timezone=False))
    end_time: Mapped[Optional[time]] = mapped_column(Time(timezone=False))
    pv_installer_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("app_users.id", ondelete="SET NULL"), index=True)
    # Progress steps (advisory order)
    in_transit_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    arrived_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    begin_ticket_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    work_performed: Mapped[Optional[str]] = mapped_column(Text)
    departing_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    close_reason: Mapped[Optional[str]] = mapped_column(String(100))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    customer = relationship("Job")
    technicians = relationship("AppUser", secondary=ticket_technicians)

    __table_args__ = (
        Index("idx_scheduling_type_closed", "ticket_type", "closed_at"),
    )


class TimeClockEntry(Base):
    """Clock-in/out pair for one employee"""
    __tablename__ = "time_clock"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("app_users.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("customers.id", ondelete="SET NULL"), index=True)
    ticket_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("scheduling.id", ondelete="SET NULL"))
    clock_in_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    clock_out_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    clock_in_latitude: Mapped[Optional[float]] = mapped_column(Numeric(10, 7))
    clock_in_longitude: Mapped[Optional[float]] = mapped_column(Numeric(10, 7))
    clock_out_latitude: Mapped[Optional[float]] = mapped_column(Numeric(10, 7))
    clock_out_longitude: Mapped[Optional[float]] = mapped_column(Numeric(10, 7))
    total_hours: Mapped[Optional[float]] = mapped_column(Float)  # wall-clock delta, set at clock-out
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_time_clock_user_in", "user_id", "clock_in_time"),
    )


class SalesCommission(Base):
    """Commission for one sale, paid out in two milestones plus a manager override"""
    __tablename__ = "sales_commissions"

    id: Mapped[uuid.UUID] = uuid_pk()
    customer_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), unique=True, nullable=False)
    sales_rep_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("app_users.id", ondelete="SET NULL"), index=True)
    sales_manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("app_users.id", ondelete="SET NULL"), index=True)
    total_commission: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)

    m1_payment_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    m1_payment_status: Mapped[str] = mapped_column(String(20), default="pending")  # pending|eligible|paid
    m1_eligibility_date: Mapped[Optional[date]] = mapped_column(Date)
    m1_paid_date: Mapped[Optional[date]] = mapped_column(Date)
    m1_payroll_period_end: Mapped[Optional[date]] = mapped_column(Date, index=True)

    m2_payment_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    m2_payment_status: Mapped[str] = mapped_column(String(20), default="pending")
    m2_eligibility_date: Mapped[Optional[date]] = mapped_column(Date)
    m2_paid_date: Mapped[Optional[date]] = mapped_column(Date)
    m2_payroll_period_end: Mapped[Optional[date]] = mapped_column(Date, index=True)

    sales_manager_override_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    manager_override_payment_status: Mapped[str] = mapped_column(String(20), default="pending")
    manager_override_eligibility_date: Mapped[Optional[date]] = mapped_column(Date)
    manager_override_paid_date: Mapped[Optional[date]] = mapped_column(Date)
    manager_override_payroll_period_end: Mapped[Optional[date]] = mapped_column(Date, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    customer = relationship("Job")


class ProjectTimeline(Base):
    __tablename__ = "project_timeline"

    id: Mapped[uuid.UUID] = uuid_pk()
    customer_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), unique=True, nullable=False)
    site_survey_status: Mapped[Optional[str]] = mapped_column(String(50))
    site_survey_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    engineering_status: Mapped[Optional[str]] = mapped_column(String(50))
    utility_status: Mapped[Optional[str]] = mapped_column(String(50))
    permit_status: Mapped[Optional[str]] = mapped_column(String(50))
    material_order_status: Mapped[Optional[str]] = mapped_column(String(50))
    installation_status: Mapped[Optional[str]] = mapped_column(String(50))
    installation_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    inspection_status: Mapped[Optional[str]] = mapped_column(String(50))
    city_inspection_status: Mapped[Optional[str]] = mapped_column(String(50))
    city_inspection_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    pto_submitted_date: Mapped[Optional[date]] = mapped_column(Date)
    pto_approved_date: Mapped[Optional[date]] = mapped_column(Date)
    system_activated_date: Mapped[Optional[date]] = mapped_column(Date)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class PhotoChecklistMixin:
    """Columns shared by every per-phase photo checklist table"""

    id: Mapped[uuid.UUID] = uuid_pk()
    checked_photos: Mapped[Optional[list]] = mapped_column(JSON, default=list)  # item ids
    photo_urls: Mapped[Optional[dict]] = mapped_column(JSON, default=dict)  # item id -> [url]
    extra: Mapped[Optional[dict]] = mapped_column(JSON, default=dict)  # inverter type, serial numbers
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class SiteSurveyPhotos(PhotoChecklistMixin, Base):
    __tablename__ = "site_survey_photos"
    ticket_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("scheduling.id", ondelete="CASCADE"), unique=True, nullable=False)


class InstallationPhotos(PhotoChecklistMixin, Base):
    __tablename__ = "installation_photos"
    ticket_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("scheduling.id", ondelete="CASCADE"), unique=True, nullable=False)


class InspectionPhotos(PhotoChecklistMixin, Base):
    __tablename__ = "inspection_photos"
    ticket_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("scheduling.id", ondelete="CASCADE"), unique=True, nullable=False)


class DetachPhotos(PhotoChecklistMixin, Base):
    __tablename__ = "detach_photos"
    ticket_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("scheduling.id", ondelete="CASCADE"), unique=True, nullable=False)


class ResetPhotos(PhotoChecklistMixin, Base):
    __tablename__ = "reset_photos"
    ticket_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("scheduling.id", ondelete="CASCADE"), unique=True, nullable=False)


class ServicePhotos(PhotoChecklistMixin, Base):
    __tablename__ = "service_photos"
    ticket_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("scheduling.id", ondelete="CASCADE"), unique=True, nullable=False)


class AuditLog(Base):
    """Append-only audit log for payroll approvals, pay edits and ticket progress"""
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # commission|ticket|app_user|subcontract_job
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # APPROVE_PAYMENT|MARK_ELIGIBLE|PROGRESS_SET|PROGRESS_CLEARED|PAY_UPDATE|STATUS_CHANGE
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("app_users.id", ondelete="SET NULL"), index=True)
    actor_role: Mapped[Optional[str]] = mapped_column(String(50))
    source: Mapped[Optional[str]] = mapped_column(String(50))
    changes_json: Mapped[Optional[dict]] = mapped_column(JSON)
    timestamp_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    context: Mapped[Optional[dict]] = mapped_column(JSON)
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
    )


PHOTO_CHECKLIST_MODELS = {
    "site_survey": SiteSurveyPhotos,
    "installation": InstallationPhotos,
    "inspection": InspectionPhotos,
    "detach": DetachPhotos,
    "reset": ResetPhotos,
    "service": ServicePhotos,
}
