"""Stored invoices: search, documents, payment status and returns."""
from datetime import date
from typing import List
import csv
import io

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from clinicdesk.api.deps import get_store
from clinicdesk.schemas.invoice import Invoice, PaymentStatus, PaymentStatusUpdate, ReturnRequest, ReturnSummary
from clinicdesk.services import invoice_service, pdf_service, settings_service
from clinicdesk.services.record_store import RecordStore, CUSTOMERS

router = APIRouter()


@router.get("", response_model=List[Invoice])
def list_invoices(
    search: str | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    payment_status: PaymentStatus | None = Query(None),
    customer_id: str | None = Query(None),
    store: RecordStore = Depends(get_store),
):
    return invoice_service.search_invoices(store, search, start_date, end_date, payment_status, customer_id)


@router.get("/today")
def todays_stats(store: RecordStore = Depends(get_store)):
    return invoice_service.todays_stats(store)


@router.get("/export")
def export_invoices_csv(store: RecordStore = Depends(get_store)):
    """Download invoices as CSV, one row per invoice."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([
        "Invoice No", "Date", "Customer", "Items", "Subtotal", "Discount",
        "GST", "Total", "Payment Status", "Payment Method",
    ])

    for inv in invoice_service.list_invoices(store):
        writer.writerow([
            inv.invoice_number,
            inv.created_at.strftime("%Y-%m-%d %H:%M") if inv.created_at else "",
            inv.customer_name,
            sum(line.quantity for line in inv.items),
            f"{inv.subtotal:.2f}",
            f"{inv.discount:.2f}",
            f"{inv.gst_amount:.2f}",
            f"{inv.total:.2f}",
            inv.payment_status,
            inv.payment_method,
        ])

    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=invoices_{date.today()}.csv"}
    )


@router.get("/{invoice_id}", response_model=Invoice)
def get_invoice(invoice_id: str, store: RecordStore = Depends(get_store)):
    return invoice_service.get_invoice(store, invoice_id)


@router.get("/{invoice_id}/pdf")
def download_invoice_pdf(invoice_id: str, store: RecordStore = Depends(get_store)):
    invoice = invoice_service.get_invoice(store, invoice_id)
    buffer = pdf_service.generate_invoice_pdf(store, invoice_id)
    return StreamingResponse(
        buffer,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={invoice.invoice_number}.pdf"}
    )


@router.get("/{invoice_id}/message")
def invoice_message(invoice_id: str, store: RecordStore = Depends(get_store)):
    """Shareable text for the invoice plus a wa.me link (to the customer's number when known)."""
    invoice = invoice_service.get_invoice(store, invoice_id)
    message = pdf_service.format_invoice_message(invoice, settings_service.get_settings(store))
    customer = store.find(CUSTOMERS, invoice.customer_id) if invoice.customer_id else None
    phone = customer.get("mobile", "") if customer else ""
    return {"message": message, "share_url": pdf_service.whatsapp_share_url(message, phone)}


@router.patch("/{invoice_id}/status", response_model=Invoice)
def update_payment_status(invoice_id: str, data: PaymentStatusUpdate, store: RecordStore = Depends(get_store)):
    if data.payment_status == "paid":
        return invoice_service.mark_paid(store, invoice_id)
    return invoice_service.mark_unpaid(store, invoice_id, data.due_date)


@router.post("/{invoice_id}/returns", response_model=ReturnSummary)
def process_return(invoice_id: str, data: ReturnRequest, store: RecordStore = Depends(get_store)):
    return invoice_service.process_return(store, invoice_id, data.items)
