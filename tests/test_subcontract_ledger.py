from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from solarops.documents.invoice_pdf import format_currency, format_date
from solarops.models.models import Contractor, SubcontractDetachReset, SubcontractNewInstall
from solarops.services.errors import ValidationError
from solarops.services.subcontract_ledger import (
    Adder,
    adder_value,
    apply_contractor_defaults,
    apply_status,
    build_invoice,
    gross_for_new_install,
    invoice_sequence,
    ledger_for,
    next_invoice_number,
    parse_adders,
    recompute,
)


def new_install(**kwargs):
    data = dict(
        full_name="Morgan Lee",
        system_size_kw=Decimal("10"),
        price_per_watt=Decimal("2.80"),
        adders=[
            {"name": "Trenching", "amount": 500, "type": "fixed"},
            {"name": "Critter guard", "amount": 0.05, "type": "per_watt"},
        ],
        labor_cost=Decimal("1200"),
        material_cost=Decimal("300"),
        created_at=datetime(2025, 1, 2, tzinfo=timezone.utc),
    )
    data.update(kwargs)
    return SubcontractNewInstall(**data)


def detach_reset(**kwargs):
    data = dict(
        full_name="Sam Ortiz",
        panel_quantity=24,
        price_per_panel=Decimal("85"),
        adders=[{"name": "Per panel haul", "amount": 5, "type": "per_panel"}],
        labor_cost=Decimal("600"),
        material_cost=Decimal("0"),
        created_at=datetime(2025, 1, 2, tzinfo=timezone.utc),
    )
    data.update(kwargs)
    return SubcontractDetachReset(**data)


def test_new_install_ledger():
    totals = ledger_for(new_install())
    assert totals.gross == Decimal("28000")
    assert totals.adders_total == Decimal("500.5")
    assert totals.net == Decimal("27000.5")
    assert totals.net == totals.gross + totals.adders_total - totals.labor - totals.expenses


def test_detach_reset_ledger():
    totals = ledger_for(detach_reset())
    assert totals.gross == Decimal("2040")
    assert totals.adders_total == Decimal("120")
    assert totals.net == Decimal("1560")


def test_recompute_stores_rounded_totals():
    job = new_install()
    recompute(job)
    assert job.gross_amount == Decimal("28000.00")
    assert job.net_revenue == Decimal("27000.50")


def test_gross_is_zero_without_price():
    assert gross_for_new_install(Decimal("10"), None) == Decimal("0")


def test_adder_types():
    assert adder_value(Adder("a", Decimal("100")), Decimal("10"), 20) == Decimal("100")
    assert adder_value(Adder("b", Decimal("0.05"), "per_watt"), Decimal("10"), 20) == Decimal("0.50")
    assert adder_value(Adder("c", Decimal("5"), "per_panel"), Decimal("10"), 20) == Decimal("100")


def test_unknown_adder_type_rejected():
    with pytest.raises(ValidationError):
        parse_adders([{"name": "x", "amount": 1, "type": "per_day"}])


def test_status_options_per_job_type():
    job = new_install()
    with pytest.raises(ValidationError):
        apply_status(job, "detach_complete", date(2025, 1, 5))
    apply_status(job, "install_complete", date(2025, 1, 5))
    assert job.subcontract_status == "install_complete"


def test_invoice_sent_and_paid_fill_dates_once():
    job = detach_reset()
    apply_status(job, "invoice_sent", date(2025, 2, 1))
    assert job.invoice_sent_date == date(2025, 2, 1)
    apply_status(job, "paid", date(2025, 2, 20))
    assert job.invoice_paid_date == date(2025, 2, 20)
    apply_status(job, "invoice_sent", date(2025, 3, 1))
    assert job.invoice_sent_date == date(2025, 2, 1)


def test_contractor_defaults_fill_blank_prices():
    contractor = Contractor(name="Ray", company_name="Sunline Partners", default_ppw=Decimal("2.60"), default_price_per_panel=Decimal("90"))
    job = new_install(price_per_watt=None)
    apply_contractor_defaults(job, contractor)
    assert job.price_per_watt == Decimal("2.60")
    assert job.contractor_name == "Sunline Partners"

    priced = detach_reset(price_per_panel=Decimal("70"))
    apply_contractor_defaults(priced, contractor)
    assert priced.price_per_panel == Decimal("70")


def test_invoice_number_format():
    assert next_invoice_number(date(2025, 1, 7), 3) == "INV-20250107-0003"


def test_invoice_sequence_reads_suffix():
    assert invoice_sequence("INV-20250107-0012") == 12
    assert invoice_sequence(None) == 0
    assert invoice_sequence("INV-20250107-draft") == 0


def test_invoice_for_new_install():
    job = new_install(
        invoice_number="INV-20250201-0001",
        invoice_sent_date=date(2025, 2, 1),
        invoice_paid_date=date(2025, 2, 25),
        payment_type="CHECK",
        check_number="1042",
    )
    invoice = build_invoice(job)
    assert invoice.due_date == date(2025, 3, 3)
    assert [i.description for i in invoice.line_items] == ["Solar Installation (10 kW)", "Trenching", "Critter guard"]
    assert invoice.total == Decimal("28500.50")
    assert invoice.payment_info == {"method": "CHECK", "check_number": "1042", "paid_date": "2025-02-25"}
    assert invoice.as_dict()["total"] == 28500.5


def test_invoice_requires_number():
    with pytest.raises(ValidationError):
        build_invoice(detach_reset())


def test_invoice_without_sent_date_uses_created_date():
    invoice = build_invoice(detach_reset(invoice_number="INV-20250102-0001"))
    assert invoice.invoice_date == date(2025, 1, 2)
    assert invoice.due_date is None
    assert invoice.payment_info is None


def test_invoice_pdf_currency_format():
    assert format_currency(Decimal("28500.5")) == "$28,500.50"
    assert format_currency(Decimal("-12")) == "-$12.00"
    assert format_date(date(2025, 3, 3)) == "March 03, 2025"
