"""
Piece-rate pay for installers.
Each completed install pays either the battery flat rate or the per-watt rate, never both.
"""
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from .time_tally import ZERO, money, to_decimal

WATTS_PER_KW = Decimal("1000")
BATTERY_CATCH_ALL = "4+"

KIND_BATTERY = "battery"
KIND_PER_WATT = "per_watt"
KIND_NONE = "none"


def battery_rate_for(quantity: int, rates: Optional[dict]) -> Decimal:
    if not rates or not quantity or quantity <= 0:
        return ZERO
    key = str(min(int(quantity), 4))
    value = rates.get(key)
    if not value:
        value = rates.get(BATTERY_CATCH_ALL)
    return to_decimal(value or 0)


def kw_to_watts(system_size_kw) -> Decimal:
    return to_decimal(system_size_kw) * WATTS_PER_KW


@dataclass(frozen=True)
class PieceRates:
    per_watt_rate: Decimal = ZERO
    battery_pay_rates: Optional[dict] = None

    @classmethod
    def from_employee(cls, employee) -> "PieceRates":
        return cls(
            per_watt_rate=to_decimal(getattr(employee, "per_watt_rate", None)),
            battery_pay_rates=getattr(employee, "battery_pay_rates", None) or None,
        )


@dataclass(frozen=True)
class InstallJob:
    ticket_id: Optional[uuid.UUID]
    customer_name: Optional[str]
    system_size_kw: Optional[Decimal]
    battery_quantity: Optional[int]
    closed_at: Optional[datetime] = None
    scheduled_date: Optional[date] = None


@dataclass
class PieceRateLine:
    job: InstallJob
    kind: str
    amount: Decimal
    watts: Decimal
    estimated: bool = False

    def as_dict(self) -> dict:
        return {
            "ticket_id": str(self.job.ticket_id) if self.job.ticket_id else None,
            "customer_name": self.job.customer_name,
            "closed_at": self.job.closed_at.isoformat() if self.job.closed_at else None,
            "scheduled_date": self.job.scheduled_date.isoformat() if self.job.scheduled_date else None,
            "system_size_kw": float(self.job.system_size_kw) if self.job.system_size_kw is not None else None,
            "battery_quantity": self.job.battery_quantity or 0,
            "kind": self.kind,
            "amount": float(self.amount),
            "watts": float(self.watts),
            "estimated": self.estimated,
        }


def piece_rate_for_job(job: InstallJob, rates: PieceRates, estimated: bool = False) -> PieceRateLine:
    watts = kw_to_watts(job.system_size_kw)
    batteries = job.battery_quantity or 0
    if batteries > 0:
        return PieceRateLine(job, KIND_BATTERY, money(battery_rate_for(batteries, rates.battery_pay_rates)), watts, estimated)
    if rates.per_watt_rate > 0:
        return PieceRateLine(job, KIND_PER_WATT, money(watts * rates.per_watt_rate), watts, estimated)
    return PieceRateLine(job, KIND_NONE, ZERO, watts, estimated)


@dataclass
class PieceRatePay:
    lines: List[PieceRateLine] = field(default_factory=list)
    estimates: List[PieceRateLine] = field(default_factory=list)

    @property
    def battery_pay(self) -> Decimal:
        return sum((l.amount for l in self.lines if l.kind == KIND_BATTERY), ZERO)

    @property
    def per_watt_pay(self) -> Decimal:
        return sum((l.amount for l in self.lines if l.kind == KIND_PER_WATT), ZERO)

    @property
    def total(self) -> Decimal:
        return self.battery_pay + self.per_watt_pay

    @property
    def total_watts(self) -> Decimal:
        return sum((l.watts for l in self.lines if l.kind == KIND_PER_WATT), ZERO)

    @property
    def total_batteries(self) -> int:
        return sum((l.job.battery_quantity or 0) for l in self.lines if l.kind == KIND_BATTERY)

    @property
    def estimated_total(self) -> Decimal:
        return sum((l.amount for l in self.estimates), ZERO)


def piece_rate_pay(jobs: Iterable[InstallJob], rates: PieceRates, pending: Iterable[InstallJob] = ()) -> PieceRatePay:
    """
    jobs: installs closed within the period; these count toward pay.
    pending: installs scheduled in the period but not closed yet; reported as estimates only.
    """
    return PieceRatePay(
        lines=[piece_rate_for_job(j, rates) for j in jobs],
        estimates=[piece_rate_for_job(j, rates, estimated=True) for j in pending],
    )
