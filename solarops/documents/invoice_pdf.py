"""
Invoice PDF rendering.
"""
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from ..services.subcontract_ledger import Invoice

BRAND_COLOR = colors.HexColor("#1f4e79")


def format_currency(amount) -> str:
    value = float(amount or 0)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_date(d) -> str:
    return d.strftime("%B %d, %Y") if d else ""


def _party_block(title: str, party: dict, style) -> Paragraph:
    lines = [f"<b>{title}</b>"]
    for key in ("name", "address", "phone", "email"):
        if party.get(key):
            lines.append(escape(str(party[key])))
    return Paragraph("<br/>".join(lines), style)


def render_invoice_pdf(invoice: Invoice) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        rightMargin=54,
        leftMargin=54,
        topMargin=54,
        bottomMargin=54,
        title=f"Invoice {invoice.invoice_number}",
    )
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "InvoiceTitle",
        parent=styles["Heading1"],
        fontSize=26,
        textColor=BRAND_COLOR,
        fontName="Helvetica-Bold",
        spaceAfter=6,
    )
    body_style = ParagraphStyle("InvoiceBody", parent=styles["Normal"], fontSize=10, leading=14)
    small_style = ParagraphStyle("InvoiceSmall", parent=body_style, fontSize=9, textColor=colors.HexColor("#555555"))

    story = [Paragraph("INVOICE", title_style)]

    meta = [f"<b>Invoice #:</b> {escape(invoice.invoice_number)}", f"<b>Date:</b> {format_date(invoice.invoice_date)}"]
    if invoice.due_date:
        meta.append(f"<b>Due:</b> {format_date(invoice.due_date)}")
    story.append(Paragraph("<br/>".join(meta), body_style))
    story.append(Spacer(1, 0.25 * inch))

    parties = Table(
        [[_party_block("Bill From", invoice.bill_from, body_style), _party_block("Bill To", invoice.bill_to, body_style)]],
        colWidths=[3.4 * inch, 3.4 * inch],
    )
    parties.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
    story.append(parties)
    story.append(Spacer(1, 0.3 * inch))

    rows = [["Description", "Qty", "Unit Price", "Amount"]]
    for item in invoice.line_items:
        rows.append([
            Paragraph(escape(item.description), body_style),
            f"{float(item.quantity):,.0f}" if item.quantity is not None else "",
            format_currency(item.unit_price) if item.unit_price is not None else "",
            format_currency(item.amount),
        ])
    rows.append(["", "", "Subtotal", format_currency(invoice.subtotal)])
    rows.append(["", "", "Total", format_currency(invoice.total)])

    items = Table(rows, colWidths=[3.6 * inch, 0.8 * inch, 1.2 * inch, 1.2 * inch])
    items.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), BRAND_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("LINEBELOW", (0, 0), (-1, -3), 0.25, colors.HexColor("#cccccc")),
        ("FONTNAME", (2, -1), (-1, -1), "Helvetica-Bold"),
        ("LINEABOVE", (2, -1), (-1, -1), 1, BRAND_COLOR),
    ]))
    story.append(items)

    if invoice.payment_info:
        info = invoice.payment_info
        lines = ["<b>Payment Received</b>"]
        if info.get("method"):
            lines.append(f"Method: {escape(str(info['method']))}")
        if info.get("check_number"):
            lines.append(f"Check #: {escape(str(info['check_number']))}")
        if info.get("paid_date"):
            lines.append(f"Paid: {escape(str(info['paid_date']))}")
        story.append(Spacer(1, 0.3 * inch))
        story.append(Paragraph("<br/>".join(lines), body_style))

    if invoice.notes:
        story.append(Spacer(1, 0.3 * inch))
        story.append(Paragraph(f"<b>Notes</b><br/>{escape(invoice.notes)}", small_style))

    doc.build(story)
    return buffer.getvalue()
