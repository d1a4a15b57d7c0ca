"""
PDF Invoice Generation Service
Creates printable invoices with shop and customer details, line items,
discount and GST breakdown. Also builds the plain-text share message.
"""
from io import BytesIO
from datetime import datetime
from urllib.parse import quote

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import inch
from reportlab.lib import colors
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER
from xml.sax.saxutils import escape

from clinicdesk.schemas.invoice import Invoice
from clinicdesk.schemas.settings import ShopSettings
from clinicdesk.services import customer_service, invoice_service, settings_service
from clinicdesk.services.record_store import RecordStore, CUSTOMERS

# Built-in PDF fonts have no rupee glyph
PDF_CURRENCY = "Rs."
TEXT_CURRENCY = "₹"


def generate_invoice_pdf(store: RecordStore, invoice_id: str) -> BytesIO:
    """
    Generate PDF for an invoice

    Args:
        store: Record Store holding the invoice and shop settings
        invoice_id: ID of the invoice to generate PDF for

    Returns:
        BytesIO buffer containing PDF data
    """
    invoice = invoice_service.get_invoice(store, invoice_id)
    shop = settings_service.get_settings(store)
    customer = None
    if invoice.customer_id and store.find(CUSTOMERS, invoice.customer_id):
        customer = customer_service.get_customer(store, invoice.customer_id)

    # Create PDF buffer
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, topMargin=0.5*inch, bottomMargin=0.5*inch)

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'CustomTitle',
        parent=styles['Heading1'],
        fontSize=24,
        textColor=colors.HexColor('#1a56db'),
        alignment=TA_CENTER,
        spaceAfter=12
    )

    heading_style = ParagraphStyle(
        'CustomHeading',
        parent=styles['Heading2'],
        fontSize=14,
        textColor=colors.HexColor('#1f2937'),
        spaceAfter=6
    )

    normal_style = ParagraphStyle(
        'CustomNormal',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#374151')
    )

    def money(value) -> str:
        return f"{PDF_CURRENCY} {value:.2f}"

    elements.append(Paragraph("TAX INVOICE", title_style))
    elements.append(Spacer(1, 0.3*inch))

    # Shop and invoice info
    shop_lines = [f"<b>{escape(shop.shop_name or 'Medical Shop')}</b>"]
    shop_lines += [escape(v) for v in (shop.address, shop.contact, shop.email) if v]
    if shop.gst:
        shop_lines.append(f"GSTIN: {escape(shop.gst)}")

    invoice_lines = [
        f"<b>Invoice #:</b> {escape(invoice.invoice_number)}",
        f"<b>Date:</b> {invoice.created_at.strftime('%d %b %Y, %I:%M %p') if invoice.created_at else '-'}",
        f"<b>Status:</b> {invoice.payment_status.upper()}",
        f"<b>Payment:</b> {escape(invoice.payment_method)}",
    ]
    if invoice.due_date:
        invoice_lines.append(f"<b>Due:</b> {invoice.due_date.strftime('%d %b %Y')}")

    info_table = Table(
        [[Paragraph("<br/>".join(shop_lines), normal_style), Paragraph("<br/>".join(invoice_lines), normal_style)]],
        colWidths=[3.5*inch, 3*inch],
    )
    info_table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('TOPPADDING', (0, 0), (-1, -1), 6),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 0.3*inch))

    # Customer Information
    elements.append(Paragraph("<b>Bill To:</b>", heading_style))
    customer_info = f"<b>{escape(invoice.customer_name)}</b>"
    if customer and customer.mobile:
        customer_info += f"<br/>Phone: {escape(customer.mobile)}"
    if customer and customer.address:
        customer_info += f"<br/>{escape(customer.address)}"
    elements.append(Paragraph(customer_info, normal_style))
    elements.append(Spacer(1, 0.3*inch))

    # Items
    items_data = [[
        Paragraph("<b>Item</b>", normal_style),
        Paragraph("<b>Batch / Exp</b>", normal_style),
        Paragraph("<b>Qty</b>", normal_style),
        Paragraph("<b>Rate</b>", normal_style),
        Paragraph("<b>Amount</b>", normal_style),
    ]]
    for line in invoice.items:
        batch = escape(line.batch_no or "-")
        if line.exp_date:
            batch += f" / {line.exp_date.strftime('%m/%Y')}"
        items_data.append([
            Paragraph(escape(line.name), normal_style),
            Paragraph(batch, normal_style),
            Paragraph(f"{line.quantity} {escape(line.unit)}", normal_style),
            Paragraph(money(line.price), normal_style),
            Paragraph(money(line.total), normal_style),
        ])

    items_table = Table(items_data, colWidths=[2.2*inch, 1.3*inch, 0.9*inch, 1*inch, 1.1*inch])
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f3f4f6')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.HexColor('#1f2937')),
        ('ALIGN', (2, 0), (-1, -1), 'RIGHT'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 10),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ('TOPPADDING', (0, 0), (-1, 0), 8),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#fafafa')]),
        ('TOPPADDING', (0, 1), (-1, -1), 6),
        ('BOTTOMPADDING', (0, 1), (-1, -1), 6),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 0.2*inch))

    # Totals with discount and GST breakdown
    total_rows = [("Subtotal:", money(invoice.subtotal))]
    if invoice.discount > 0:
        total_rows.append(("Discount:", f"- {money(invoice.discount)}"))
    total_rows.append((f"GST ({invoice.gst_rate.normalize():f}%):", money(invoice.gst_amount)))
    total_data = [
        ['', '', Paragraph(f"<b>{label}</b>", normal_style), Paragraph(value, normal_style)]
        for label, value in total_rows
    ]
    total_data.append(['', '', Paragraph("<b>TOTAL:</b>", heading_style),
                       Paragraph(f"<b>{money(invoice.total)}</b>", heading_style)])
    last = len(total_data) - 1

    total_table = Table(total_data, colWidths=[2.2*inch, 1.3*inch, 1.9*inch, 1.1*inch])
    total_table.setStyle(TableStyle([
        ('ALIGN', (2, 0), (-1, -1), 'RIGHT'),
        ('LINEABOVE', (2, last), (-1, last), 1, colors.black),
        ('TOPPADDING', (0, 0), (-1, -1), 4),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
    ]))
    elements.append(total_table)
    elements.append(Spacer(1, 0.5*inch))

    if invoice.notes:
        elements.append(Paragraph("<b>Notes:</b>", heading_style))
        elements.append(Paragraph(escape(invoice.notes), normal_style))
        elements.append(Spacer(1, 0.3*inch))

    # Footer
    footer_style = ParagraphStyle(
        'Footer',
        parent=styles['Normal'],
        fontSize=8,
        textColor=colors.grey,
        alignment=TA_CENTER
    )
    elements.append(Spacer(1, 0.5*inch))
    elements.append(Paragraph("Thank you for your business!", footer_style))
    elements.append(Paragraph(f"Invoice generated on {datetime.now().strftime('%d %b %Y at %I:%M %p')}", footer_style))

    doc.build(elements)

    buffer.seek(0)
    return buffer


def format_invoice_message(invoice: Invoice, shop: ShopSettings) -> str:
    """
    Format invoice details as a chat message (WhatsApp markup).

    Args:
        invoice: Committed invoice
        shop: Shop settings for the header and contact line

    Returns:
        Formatted message string
    """
    items_list = "\n".join(
        f"{line.name} - {line.quantity} {line.unit} @ {TEXT_CURRENCY}{line.price} = {TEXT_CURRENCY}{line.total}"
        for line in invoice.items
    )
    discount_line = f"Discount: -{TEXT_CURRENCY}{invoice.discount}\n" if invoice.discount > 0 else ""
    date_text = invoice.created_at.strftime('%d %b %Y') if invoice.created_at else ""

    message = f"""
*{shop.shop_name or 'Invoice'}*
Invoice No: {invoice.invoice_number}
Date: {date_text}

*Items:*
{items_list}

*Total Details:*
Subtotal: {TEXT_CURRENCY}{invoice.subtotal}
{discount_line}GST ({invoice.gst_rate.normalize():f}%): {TEXT_CURRENCY}{invoice.gst_amount}
*Total: {TEXT_CURRENCY}{invoice.total}*

Thank you for your business!
{f'Contact: {shop.contact}' if shop.contact else ''}
""".strip()

    return message


def whatsapp_share_url(message: str, phone_number: str = "") -> str:
    """wa.me link that opens a chat (or the contact picker) with the message prefilled."""
    digits = "".join(ch for ch in phone_number if ch.isdigit())
    return f"https://wa.me/{digits}?text={quote(message, safe='')}"
