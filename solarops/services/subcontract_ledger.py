"""
Subcontract job ledger.
Revenue and cost roll-up for new-install and detach/reset jobs, plus the invoice view.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from ..config import settings
from .errors import ValidationError
from .piece_rate import WATTS_PER_KW
from .time_tally import ZERO, money, to_decimal

JOB_NEW_INSTALL = "new_install"
JOB_DETACH_RESET = "detach_reset"

ADDER_FIXED = "fixed"
ADDER_PER_WATT = "per_watt"
ADDER_PER_PANEL = "per_panel"
ADDER_TYPES = (ADDER_FIXED, ADDER_PER_WATT, ADDER_PER_PANEL)

STATUS_INVOICE_SENT = "invoice_sent"
STATUS_PAID = "paid"

STATUS_OPTIONS = {
    JOB_NEW_INSTALL: [
        "install_scheduled",
        "pending_install_date",
        "install_rescheduled",
        "install_complete",
        STATUS_INVOICE_SENT,
        STATUS_PAID,
    ],
    JOB_DETACH_RESET: [
        "detach_scheduled",
        "detach_complete",
        "reset_complete",
        STATUS_INVOICE_SENT,
        STATUS_PAID,
    ],
}

PAYMENT_TYPES = ("CHECK", "ACH", "WIRE")


@dataclass(frozen=True)
class Adder:
    name: str
    amount: Decimal
    type: str = ADDER_FIXED

    @classmethod
    def from_dict(cls, data: dict) -> "Adder":
        kind = (data.get("type") or ADDER_FIXED).strip()
        if kind not in ADDER_TYPES:
            raise ValidationError(f"Unknown adder type: {kind}")
        return cls(name=data.get("name") or "", amount=to_decimal(data.get("amount")), type=kind)

    def as_dict(self) -> dict:
        return {"name": self.name, "amount": float(self.amount), "type": self.type}


def adder_value(adder: Adder, system_size_kw=None, panel_qty=None) -> Decimal:
    if adder.type == ADDER_PER_WATT:
        return adder.amount * to_decimal(system_size_kw)
    if adder.type == ADDER_PER_PANEL:
        return adder.amount * to_decimal(panel_qty)
    return adder.amount


def parse_adders(raw: Optional[Iterable]) -> List[Adder]:
    return [a if isinstance(a, Adder) else Adder.from_dict(a) for a in (raw or [])]


def adders_total(adders: Iterable[Adder], system_size_kw=None, panel_qty=None) -> Decimal:
    return sum((adder_value(a, system_size_kw, panel_qty) for a in adders), ZERO)


def gross_for_new_install(system_size_kw, price_per_watt) -> Decimal:
    # Contracted price is per watt; per-kW price = ppw x 1000
    price_per_kw = to_decimal(price_per_watt) * WATTS_PER_KW
    return to_decimal(system_size_kw) * price_per_kw


def gross_for_detach_reset(panel_qty, price_per_panel) -> Decimal:
    return to_decimal(panel_qty) * to_decimal(price_per_panel)


@dataclass(frozen=True)
class LedgerTotals:
    gross: Decimal
    adders_total: Decimal
    labor: Decimal
    expenses: Decimal

    @property
    def net(self) -> Decimal:
        return self.gross + self.adders_total - self.labor - self.expenses

    def as_dict(self) -> dict:
        return {
            "gross": float(self.gross),
            "adders_total": float(self.adders_total),
            "labor": float(self.labor),
            "expenses": float(self.expenses),
            "net": float(self.net),
        }


def ledger_for(job) -> LedgerTotals:
    adders = parse_adders(job.adders)
    if job.job_type == JOB_NEW_INSTALL:
        gross = gross_for_new_install(job.system_size_kw, job.price_per_watt)
    else:
        gross = gross_for_detach_reset(job.panel_quantity, job.price_per_panel)
    return LedgerTotals(
        gross=gross,
        adders_total=adders_total(adders, job.system_size_kw, job.panel_quantity),
        labor=to_decimal(job.labor_cost),
        expenses=to_decimal(job.material_cost),
    )


def apply_contractor_defaults(job, contractor) -> None:
    """Fill blank job prices from the contractor's defaults."""
    if contractor is None:
        return
    if job.job_type == JOB_NEW_INSTALL:
        if job.price_per_watt is None and contractor.default_ppw is not None:
            job.price_per_watt = contractor.default_ppw
    elif job.price_per_panel is None and contractor.default_price_per_panel is not None:
        job.price_per_panel = contractor.default_price_per_panel
    if not job.contractor_name:
        job.contractor_name = contractor.company_name or contractor.name


def recompute(job) -> LedgerTotals:
    """Refresh the denormalized gross/net columns from their inputs."""
    totals = ledger_for(job)
    job.gross_amount = money(totals.gross)
    job.net_revenue = money(totals.net)
    return totals


def apply_status(job, status: str, today: date) -> None:
    options = STATUS_OPTIONS[job.job_type]
    if status not in options:
        raise ValidationError(f"Invalid status '{status}' for {job.job_type} job")
    job.subcontract_status = status
    if status == STATUS_INVOICE_SENT and job.invoice_sent_date is None:
        job.invoice_sent_date = today
    if status == STATUS_PAID and job.invoice_paid_date is None:
        job.invoice_paid_date = today


def next_invoice_number(today: date, sequence: int, prefix: str = "INV") -> str:
    return f"{prefix}-{today.strftime('%Y%m%d')}-{sequence:04d}"


def invoice_sequence(number: Optional[str]) -> int:
    """Trailing sequence of an issued number, 0 for none."""
    if not number:
        return 0
    tail = number.rsplit("-", 1)[-1]
    return int(tail) if tail.isdigit() else 0


# Invoice view

@dataclass
class InvoiceLineItem:
    description: str
    amount: Decimal
    quantity: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None

    def as_dict(self) -> dict:
        return {
            "description": self.description,
            "quantity": float(self.quantity) if self.quantity is not None else None,
            "unit_price": float(self.unit_price) if self.unit_price is not None else None,
            "amount": float(self.amount),
        }


@dataclass
class Invoice:
    invoice_number: str
    invoice_date: date
    due_date: Optional[date]
    bill_to: dict
    bill_from: dict
    line_items: List[InvoiceLineItem] = field(default_factory=list)
    notes: Optional[str] = None
    payment_info: Optional[dict] = None

    @property
    def subtotal(self) -> Decimal:
        return money(sum((i.amount for i in self.line_items), ZERO))

    @property
    def total(self) -> Decimal:
        return self.subtotal

    def as_dict(self) -> dict:
        return {
            "invoice_number": self.invoice_number,
            "invoice_date": self.invoice_date.isoformat(),
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "bill_to": self.bill_to,
            "bill_from": self.bill_from,
            "line_items": [i.as_dict() for i in self.line_items],
            "subtotal": float(self.subtotal),
            "total": float(self.total),
            "notes": self.notes,
            "payment_info": self.payment_info,
        }


def _bill_from() -> dict:
    return {
        "name": settings.company_name,
        "address": settings.company_address,
        "phone": settings.company_phone,
        "email": settings.company_email,
    }


def build_invoice(job) -> Invoice:
    """Invoice for a job that has been given an invoice number."""
    if not job.invoice_number:
        raise ValidationError("Job has no invoice number")
    invoice_date = job.invoice_sent_date or job.created_at.date()
    due_date = job.invoice_sent_date + timedelta(days=settings.invoice_due_days) if job.invoice_sent_date else None

    items = []
    if job.job_type == JOB_NEW_INSTALL:
        watts = to_decimal(job.system_size_kw) * WATTS_PER_KW
        items.append(
            InvoiceLineItem(
                description=f"Solar Installation ({to_decimal(job.system_size_kw).normalize():f} kW)",
                quantity=watts,
                unit_price=to_decimal(job.price_per_watt),
                amount=money(gross_for_new_install(job.system_size_kw, job.price_per_watt)),
            )
        )
    else:
        items.append(
            InvoiceLineItem(
                description=f"Detach & Reset Service ({job.panel_quantity or 0} panels)",
                quantity=to_decimal(job.panel_quantity),
                unit_price=to_decimal(job.price_per_panel),
                amount=money(gross_for_detach_reset(job.panel_quantity, job.price_per_panel)),
            )
        )
    for adder in parse_adders(job.adders):
        items.append(
            InvoiceLineItem(
                description=adder.name or "Adder",
                amount=money(adder_value(adder, job.system_size_kw, job.panel_quantity)),
            )
        )

    payment_info = None
    if job.invoice_paid_date:
        payment_info = {
            "method": job.payment_type,
            "check_number": job.check_number,
            "paid_date": job.invoice_paid_date.isoformat(),
        }

    return Invoice(
        invoice_number=job.invoice_number,
        invoice_date=invoice_date,
        due_date=due_date,
        bill_to={"name": job.full_name, "address": job.address, "phone": job.phone, "email": job.email},
        bill_from=_bill_from(),
        line_items=items,
        notes=job.notes,
        payment_info=payment_info,
    )
