"""Billing: the draft invoice builder, invoice numbering, payment status and returns."""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from clinicdesk.core.exceptions import (
    EmptyInvoice,
    InsufficientStock,
    InvalidDiscount,
    NotFound,
    ValidationError,
)
from clinicdesk.core.money import ZERO, money_sum, percent_of, to_money
from clinicdesk.schemas.invoice import (
    Invoice,
    InvoiceDraft,
    InvoiceLine,
    ReturnItem,
    ReturnSummary,
    WALK_IN_CUSTOMER,
)
from clinicdesk.services import customer_service, inventory_service, settings_service
from clinicdesk.services.record_store import RecordStore, INVOICES

logger = logging.getLogger(__name__)

INVOICE_PREFIX = "INV"


def calculate_gst(base_amount, gst_rate=Decimal("18")) -> dict:
    """Calculate the GST breakdown for a (discounted) taxable amount.

    Args:
        base_amount: Amount before tax
        gst_rate: GST rate in percent (18 means 18%)

    Returns:
        dict with base_amount, gst_rate, gst_amount, total_amount
    """
    base = to_money(base_amount)
    rate = Decimal(str(gst_rate))
    gst_amt = percent_of(base, rate)
    total = base + gst_amt

    return {
        "base_amount": base,
        "gst_rate": rate,
        "gst_amount": gst_amt,
        "total_amount": total
    }


def generate_invoice_number(store: RecordStore, now: datetime | None = None) -> str:
    """INV + YY + MM + 4-digit sequence, restarting every calendar month."""
    now = now or datetime.now()
    prefix = f"{INVOICE_PREFIX}{now:%y%m}"
    sequences = []
    for invoice in store.get(INVOICES):
        number = invoice.get("invoice_number") or ""
        suffix = number[len(prefix):]
        if number.startswith(prefix) and suffix.isdigit():
            sequences.append(int(suffix))
    return f"{prefix}{max(sequences, default=0) + 1:04d}"


class InvoiceBuilder:
    """
    Accumulates one in-progress invoice and commits it to the Record Store.

    The draft object is owned by the caller (the API keeps one per process)
    and mutated in place, so a builder can be rebuilt around it for every
    request. Every mutation either succeeds completely or leaves the draft
    untouched.
    """

    def __init__(self, store: RecordStore, draft: InvoiceDraft | None = None):
        self.store = store
        self.draft = draft if draft is not None else InvoiceDraft()

    def _gst_rate(self) -> Decimal:
        return settings_service.get_settings(self.store).gst_rate

    def _find_line(self, item_id: str) -> Optional[InvoiceLine]:
        return next((line for line in self.draft.items if line.item_id == item_id), None)

    def set_customer(self, customer_id: str | None) -> InvoiceDraft:
        if customer_id is None:
            self.draft.customer_id = None
            self.draft.customer_name = WALK_IN_CUSTOMER
        else:
            customer = customer_service.get_customer(self.store, customer_id)
            self.draft.customer_id = customer.id
            self.draft.customer_name = customer.name
        return self.draft

    def add_line(self, item_id: str, quantity: int) -> InvoiceDraft:
        """Add quantity of an item, merging with an existing line for the same item."""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError("Quantity must be a positive whole number")

        item = inventory_service.get_item(self.store, item_id)
        existing = self._find_line(item_id)
        combined = quantity + (existing.quantity if existing else 0)
        if combined > item.stock:
            raise InsufficientStock(item.name, item.stock, combined)

        if existing:
            existing.quantity = combined
            existing.total = to_money(existing.price * combined)
        else:
            self.draft.items.append(InvoiceLine(
                item_id=item.id,
                name=item.name,
                category=item.category,
                price=item.sell_price,
                quantity=quantity,
                unit=item.unit,
                total=to_money(item.sell_price * quantity),
                batch_no=item.batch_no,
                exp_date=item.exp_date,
            ))

        return self.compute_totals()

    def remove_line(self, item_id: str) -> InvoiceDraft:
        self.draft.items = [line for line in self.draft.items if line.item_id != item_id]
        return self.compute_totals()

    def set_quantity(self, item_id: str, quantity: int) -> InvoiceDraft:
        line = self._find_line(item_id)
        if line is None:
            raise NotFound("Invoice line", item_id)
        if quantity <= 0:
            return self.remove_line(item_id)

        item = inventory_service.get_item(self.store, item_id)
        if quantity > item.stock:
            raise InsufficientStock(item.name, item.stock, quantity)

        line.quantity = quantity
        line.total = to_money(line.price * quantity)
        return self.compute_totals()

    def set_discount(self, amount, is_percentage: bool = False) -> InvoiceDraft:
        amount = Decimal(str(amount))
        if is_percentage:
            if amount < 0 or amount > 100:
                raise InvalidDiscount("Percentage discount must be between 0 and 100")
        elif amount < 0 or amount > self.draft.subtotal:
            raise InvalidDiscount("Discount cannot be negative or exceed subtotal")

        self.draft.discount_value = amount
        self.draft.discount_is_percentage = is_percentage
        return self.compute_totals()

    def compute_totals(self) -> InvoiceDraft:
        """
        subtotal = sum of line totals
        taxable  = subtotal - discount
        gst      = taxable * rate / 100
        total    = taxable + gst

        Each figure is rounded to 2 places before it feeds the next, so the
        stored total always equals the sum of the displayed parts.
        """
        draft = self.draft
        draft.gst_rate = self._gst_rate()
        draft.subtotal = money_sum(line.total for line in draft.items)
        if draft.discount_is_percentage:
            draft.discount = percent_of(draft.subtotal, draft.discount_value)
        else:
            # A flat discount never outgrows a subtotal that shrank after it was set
            draft.discount = min(to_money(draft.discount_value), draft.subtotal)

        breakdown = calculate_gst(draft.subtotal - draft.discount, draft.gst_rate)
        draft.gst_amount = breakdown["gst_amount"]
        draft.total = breakdown["total_amount"]
        return draft

    def clear(self) -> InvoiceDraft:
        fresh = InvoiceDraft()
        for name in InvoiceDraft.model_fields:
            setattr(self.draft, name, getattr(fresh, name))
        return self.compute_totals()

    def commit(
        self,
        payment_method: str = "cash",
        notes: str = "",
        payment_status: str = "paid",
        due_date: date | None = None,
    ) -> Invoice:
        """
        Persist the draft as an invoice, decrement stock and add to the
        customer's spend, all in one store transaction.

        Stock is re-checked against live inventory inside the transaction; any
        failure rolls back every write and leaves the draft as it was.
        """
        if not self.draft.items:
            raise EmptyInvoice("Cannot generate invoice without items")
        draft = self.compute_totals()

        with self.store.transaction():
            for line in draft.items:
                item = inventory_service.get_item(self.store, line.item_id)
                if line.quantity > item.stock:
                    raise InsufficientStock(item.name, item.stock, line.quantity)

            record = self.store.insert(INVOICES, {
                "invoice_number": generate_invoice_number(self.store),
                "customer_id": draft.customer_id,
                "customer_name": draft.customer_name,
                "items": [line.model_dump(mode="json") for line in draft.items],
                "subtotal": str(draft.subtotal),
                "discount": str(draft.discount),
                "gst_rate": str(draft.gst_rate),
                "gst_amount": str(draft.gst_amount),
                "total": str(draft.total),
                "payment_status": payment_status,
                "payment_method": payment_method,
                "notes": notes,
                "due_date": due_date.isoformat() if due_date else None,
            })
            invoice = Invoice.model_validate(record)

            for line in draft.items:
                inventory_service.adjust_stock(self.store, line.item_id, line.quantity, "subtract")

            if draft.customer_id:
                customer_service.add_to_total_spent(self.store, draft.customer_id, invoice.total)

        logger.info(
            f"[BILLING] Committed {invoice.invoice_number}: {len(invoice.items)} line(s), "
            f"total {invoice.total} ({invoice.customer_name})"
        )
        self.clear()
        return invoice


# ============================================================================
# STORED INVOICES
# ============================================================================

def list_invoices(store: RecordStore) -> List[Invoice]:
    return [Invoice.model_validate(r) for r in store.get(INVOICES)]


def get_invoice(store: RecordStore, invoice_id: str) -> Invoice:
    record = store.find(INVOICES, invoice_id)
    if record is None:
        raise NotFound("Invoice", invoice_id)
    return Invoice.model_validate(record)


def update_payment_status(store: RecordStore, invoice_id: str, status: str, due_date: date | None = None) -> Invoice:
    get_invoice(store, invoice_id)
    patch = {"payment_status": status}
    if due_date is not None:
        patch["due_date"] = due_date.isoformat()
    return Invoice.model_validate(store.update(INVOICES, invoice_id, patch))


def mark_paid(store: RecordStore, invoice_id: str) -> Invoice:
    return update_payment_status(store, invoice_id, "paid")


def mark_unpaid(store: RecordStore, invoice_id: str, due_date: date | None = None) -> Invoice:
    return update_payment_status(store, invoice_id, "unpaid", due_date)


def process_return(store: RecordStore, invoice_id: str, items: List[ReturnItem]) -> ReturnSummary:
    """Put returned quantities back into stock. Nothing is written unless every item is valid."""
    invoice = get_invoice(store, invoice_id)
    sold = {line.item_id: line for line in invoice.items}

    returned = []
    for item in items:
        original = sold.get(item.item_id)
        if original is None:
            raise NotFound("Invoice line", item.item_id)
        if item.quantity > original.quantity:
            raise ValidationError("Return quantity cannot exceed original quantity")
        returned.append(original.model_copy(update={
            "quantity": item.quantity,
            "total": to_money(original.price * item.quantity),
        }))

    with store.transaction():
        for line in returned:
            inventory_service.adjust_stock(store, line.item_id, line.quantity, "add")

    summary = ReturnSummary(
        original_invoice_id=invoice.id,
        items=returned,
        return_amount=money_sum(line.total for line in returned),
        return_date=datetime.now(),
    )
    logger.info(f"[BILLING] Return against {invoice.invoice_number}: {summary.return_amount}")
    return summary


def search_invoices(
    store: RecordStore,
    query: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    payment_status: str | None = None,
    customer_id: str | None = None,
) -> List[Invoice]:
    invoices = list_invoices(store)

    if query:
        term = query.lower()
        invoices = [
            inv for inv in invoices
            if term in inv.invoice_number.lower()
            or term in inv.customer_name.lower()
            or any(term in line.name.lower() for line in inv.items)
        ]
    if start_date:
        invoices = [inv for inv in invoices if inv.created_at and inv.created_at.date() >= start_date]
    if end_date:
        # End date is inclusive of the whole day
        invoices = [inv for inv in invoices if inv.created_at and inv.created_at.date() <= end_date]
    if payment_status:
        invoices = [inv for inv in invoices if inv.payment_status == payment_status]
    if customer_id:
        invoices = [inv for inv in invoices if inv.customer_id == customer_id]

    return invoices


def todays_stats(store: RecordStore, today: date | None = None) -> dict:
    today = today or date.today()
    todays = [inv for inv in list_invoices(store) if inv.created_at and inv.created_at.date() == today]
    total_sales = money_sum(inv.total for inv in todays)
    return {
        "total_sales": total_sales,
        "total_invoices": len(todays),
        "paid_invoices": sum(1 for inv in todays if inv.payment_status == "paid"),
        "unpaid_invoices": sum(1 for inv in todays if inv.payment_status == "unpaid"),
        "average_invoice_value": to_money(total_sales / len(todays)) if todays else ZERO,
    }
