from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Literal
from datetime import date, datetime
from decimal import Decimal

from clinicdesk.core.money import to_money

PaymentStatus = Literal["paid", "unpaid"]

WALK_IN_CUSTOMER = "Walk-in Customer"


class InvoiceLine(BaseModel):
    """One item on an invoice. Price and total are snapshots taken at sale time."""
    item_id: str
    name: str
    category: str = ""
    price: Decimal
    quantity: int
    unit: str = ""
    total: Decimal
    batch_no: str = ""
    exp_date: Optional[date] = None

    @field_validator("price", "total", mode="before")
    @classmethod
    def quantize(cls, v):
        return to_money(v)

    @field_validator("exp_date", mode="before")
    @classmethod
    def blank_date_is_none(cls, v):
        return v or None


class Invoice(BaseModel):
    id: str
    invoice_number: str
    customer_id: Optional[str] = None
    customer_name: str = WALK_IN_CUSTOMER
    items: List[InvoiceLine] = []
    subtotal: Decimal = Decimal("0.00")
    discount: Decimal = Decimal("0.00")
    gst_rate: Decimal = Decimal("18")
    gst_amount: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    payment_status: PaymentStatus = "paid"
    payment_method: str = "cash"
    notes: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    due_date: Optional[date] = None

    @field_validator("subtotal", "discount", "gst_amount", "total", mode="before")
    @classmethod
    def quantize(cls, v):
        return to_money(v)


class InvoiceDraft(BaseModel):
    """The in-progress invoice. Empty and Building share this shape."""
    items: List[InvoiceLine] = []
    customer_id: Optional[str] = None
    customer_name: str = WALK_IN_CUSTOMER
    # What the operator entered; percentage discounts are re-derived on every recompute
    discount_value: Decimal = Decimal("0")
    discount_is_percentage: bool = False
    subtotal: Decimal = Decimal("0.00")
    discount: Decimal = Decimal("0.00")
    gst_rate: Decimal = Decimal("18")
    gst_amount: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")


class DraftLineAdd(BaseModel):
    item_id: str
    quantity: int = 1


class DraftLineQuantity(BaseModel):
    quantity: int


class DraftDiscount(BaseModel):
    amount: Decimal
    is_percentage: bool = False


class DraftCustomer(BaseModel):
    customer_id: Optional[str] = None


class InvoiceCommit(BaseModel):
    payment_method: str = "cash"
    notes: str = ""
    payment_status: PaymentStatus = "paid"
    due_date: Optional[date] = None


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus
    due_date: Optional[date] = None


class ReturnItem(BaseModel):
    item_id: str
    quantity: int = Field(gt=0)


class ReturnRequest(BaseModel):
    items: List[ReturnItem]


class ReturnSummary(BaseModel):
    original_invoice_id: str
    items: List[InvoiceLine]
    return_amount: Decimal
    return_date: datetime
