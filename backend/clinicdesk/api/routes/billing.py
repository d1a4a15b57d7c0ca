"""
Billing counter: the in-progress invoice.

There is one draft per running server. Each mutation returns the recomputed
draft; commit turns it into a stored invoice and starts a fresh one.
"""
from fastapi import APIRouter, Depends, status

from clinicdesk.api.deps import get_invoice_builder
from clinicdesk.schemas.invoice import (
    DraftCustomer,
    DraftDiscount,
    DraftLineAdd,
    DraftLineQuantity,
    Invoice,
    InvoiceCommit,
    InvoiceDraft,
)
from clinicdesk.services.invoice_service import InvoiceBuilder

router = APIRouter()


@router.get("/draft", response_model=InvoiceDraft)
def get_draft(builder: InvoiceBuilder = Depends(get_invoice_builder)):
    return builder.compute_totals()


@router.put("/draft/customer", response_model=InvoiceDraft)
def set_customer(data: DraftCustomer, builder: InvoiceBuilder = Depends(get_invoice_builder)):
    return builder.set_customer(data.customer_id)


@router.post("/draft/items", response_model=InvoiceDraft)
def add_line(data: DraftLineAdd, builder: InvoiceBuilder = Depends(get_invoice_builder)):
    return builder.add_line(data.item_id, data.quantity)


@router.patch("/draft/items/{item_id}", response_model=InvoiceDraft)
def set_quantity(item_id: str, data: DraftLineQuantity, builder: InvoiceBuilder = Depends(get_invoice_builder)):
    return builder.set_quantity(item_id, data.quantity)


@router.delete("/draft/items/{item_id}", response_model=InvoiceDraft)
def remove_line(item_id: str, builder: InvoiceBuilder = Depends(get_invoice_builder)):
    return builder.remove_line(item_id)


@router.put("/draft/discount", response_model=InvoiceDraft)
def set_discount(data: DraftDiscount, builder: InvoiceBuilder = Depends(get_invoice_builder)):
    return builder.set_discount(data.amount, data.is_percentage)


@router.delete("/draft", response_model=InvoiceDraft)
def clear_draft(builder: InvoiceBuilder = Depends(get_invoice_builder)):
    return builder.clear()


@router.post("/draft/commit", response_model=Invoice, status_code=status.HTTP_201_CREATED)
def commit_draft(data: InvoiceCommit, builder: InvoiceBuilder = Depends(get_invoice_builder)):
    return builder.commit(
        payment_method=data.payment_method,
        notes=data.notes,
        payment_status=data.payment_status,
        due_date=data.due_date,
    )
