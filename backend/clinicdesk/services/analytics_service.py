"""
Analytics: dashboard counters and the five business reports.

Everything is computed on demand from the Record Store collections; nothing
here writes. Each method takes an optional today so reports are reproducible.
Reports over a period include the whole end day.
"""
import calendar
import logging
from collections import Counter, defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import List

from clinicdesk.core.money import ZERO, money_sum, to_money
from clinicdesk.services import customer_service, inventory_service, invoice_service
from clinicdesk.services.record_store import RecordStore

logger = logging.getLogger(__name__)

TOP_N = 10
INSIGHT_PRIORITY = {"critical": 4, "high": 3, "medium": 2, "low": 1}
SALES_TREND_THRESHOLD = Decimal("10")
INACTIVE_AFTER_MONTHS = 3


def months_before(day: date, months: int) -> date:
    """Same day-of-month `months` earlier, clamped to the end of shorter months."""
    month_index = day.year * 12 + day.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def date_range(months: int = 1, today: date | None = None) -> dict:
    """Preset report period ending today. Unknown presets fall back to one month."""
    today = today or date.today()
    if months not in (1, 3, 6, 12):
        months = 1
    return {"start_date": months_before(today, months), "end_date": today}


def _pct(part: Decimal, whole: Decimal) -> Decimal:
    return to_money(part / whole * 100) if whole > 0 else ZERO


def _in_period(moment, start: date, end: date) -> bool:
    return moment is not None and start <= moment.date() <= end


class AnalyticsAggregator:
    """Read-only reports over one store."""

    def __init__(self, store: RecordStore):
        self.store = store

    def _invoices_between(self, start: date, end: date):
        return [inv for inv in invoice_service.list_invoices(self.store) if _in_period(inv.created_at, start, end)]

    def dashboard_stats(self, today: date | None = None) -> dict:
        today = today or date.today()
        inventory = inventory_service.list_items(self.store)
        invoices = invoice_service.list_invoices(self.store)
        visits = customer_service.list_visits(self.store)

        return {
            "total_items": len(inventory),
            "low_stock_items": sum(1 for i in inventory if inventory_service.is_low_stock(i)),
            "expired_items": sum(1 for i in inventory if inventory_service.is_expired(i, today)),
            "near_expiry_items": sum(1 for i in inventory if inventory_service.is_near_expiry(i, today)),
            "todays_sales": money_sum(inv.total for inv in invoices if _in_period(inv.created_at, today, today)),
            "total_customers": len(customer_service.list_customers(self.store)),
            "todays_visits": sum(1 for v in visits if v.date.date() == today),
            "upcoming_visits": sum(
                1 for v in visits if v.next_visit_date is not None and v.next_visit_date.date() >= today
            ),
            "total_invoices": len(invoices),
            "total_visits": len(visits),
        }

    def sales_report(self, start_date: date, end_date: date) -> dict:
        invoices = self._invoices_between(start_date, end_date)
        total_sales = money_sum(inv.total for inv in invoices)

        item_sales = {}
        daily = {}
        for inv in invoices:
            for line in inv.items:
                entry = item_sales.setdefault(line.item_id, {
                    "item_id": line.item_id,
                    "name": line.name,
                    "category": line.category,
                    "total_quantity": 0,
                    "total_revenue": ZERO,
                    "invoice_count": 0,
                })
                entry["total_quantity"] += line.quantity
                entry["total_revenue"] += line.total
                entry["invoice_count"] += 1

            day = daily.setdefault(inv.created_at.date(), {"date": inv.created_at.date(), "sales": ZERO, "invoices": 0})
            day["sales"] += inv.total
            day["invoices"] += 1

        top_items = sorted(item_sales.values(), key=lambda e: e["total_revenue"], reverse=True)[:TOP_N]

        return {
            "period": {"start_date": start_date, "end_date": end_date},
            "summary": {
                "total_sales": total_sales,
                "total_invoices": len(invoices),
                "total_discount": money_sum(inv.discount for inv in invoices),
                "total_gst": money_sum(inv.gst_amount for inv in invoices),
                "average_invoice_value": to_money(total_sales / len(invoices)) if invoices else ZERO,
                "paid_amount": money_sum(inv.total for inv in invoices if inv.payment_status == "paid"),
                "unpaid_amount": money_sum(inv.total for inv in invoices if inv.payment_status == "unpaid"),
            },
            "top_selling_items": top_items,
            "daily_sales": [daily[d] for d in sorted(daily)],
            "invoices": invoices,
        }

    def inventory_report(self, today: date | None = None) -> dict:
        today = today or date.today()
        inventory = inventory_service.list_items(self.store)

        total_value = money_sum(i.buy_price * i.stock for i in inventory)
        total_selling_value = money_sum(i.sell_price * i.stock for i in inventory)
        potential_profit = total_selling_value - total_value

        categories = {}
        for item in inventory:
            cat = categories.setdefault(item.category, {
                "category": item.category,
                "item_count": 0,
                "total_stock": 0,
                "total_value": ZERO,
                "low_stock_items": 0,
                "expired_items": 0,
                "near_expiry_items": 0,
            })
            cat["item_count"] += 1
            cat["total_stock"] += item.stock
            cat["total_value"] = to_money(cat["total_value"] + item.buy_price * item.stock)
            if inventory_service.is_low_stock(item):
                cat["low_stock_items"] += 1
            if inventory_service.is_expired(item, today):
                cat["expired_items"] += 1
            elif inventory_service.is_near_expiry(item, today):
                cat["near_expiry_items"] += 1

        return {
            "summary": {
                "total_items": len(inventory),
                "total_value": total_value,
                "total_selling_value": total_selling_value,
                "potential_profit": potential_profit,
                "profit_margin": _pct(potential_profit, total_value),
            },
            "category_stats": list(categories.values()),
            "alerts": {
                "low_stock_items": [i for i in inventory if inventory_service.is_low_stock(i)],
                "expired_items": [i for i in inventory if inventory_service.is_expired(i, today)],
                "near_expiry_items": [i for i in inventory if inventory_service.is_near_expiry(i, today)],
            },
            "top_value_items": sorted(inventory, key=lambda i: i.sell_price * i.stock, reverse=True)[:TOP_N],
        }

    def customer_report(self) -> dict:
        customers = customer_service.list_customers(self.store)
        invoices = invoice_service.list_invoices(self.store)
        total_visits = len(customer_service.list_visits(self.store))
        total_revenue = money_sum(inv.total for inv in invoices)

        type_stats = {}
        for customer in customers:
            stat = type_stats.setdefault(customer.type, {
                "type": customer.type, "count": 0, "total_spent": ZERO, "average_spent": ZERO,
            })
            stat["count"] += 1
            stat["total_spent"] += customer.total_spent
        for stat in type_stats.values():
            stat["average_spent"] = to_money(stat["total_spent"] / stat["count"])

        acquisition = Counter(c.created_at.strftime("%Y-%m") for c in customers if c.created_at)

        return {
            "summary": {
                "total_customers": len(customers),
                "total_revenue": total_revenue,
                "average_customer_value": to_money(total_revenue / len(customers)) if customers else ZERO,
                "total_visits": total_visits,
                "average_visits_per_customer": to_money(Decimal(total_visits) / len(customers)) if customers else ZERO,
            },
            "type_stats": list(type_stats.values()),
            "top_customers": sorted(customers, key=lambda c: c.total_spent, reverse=True)[:TOP_N],
            "monthly_acquisition": dict(sorted(acquisition.items())),
        }

    def pnl_report(self, start_date: date, end_date: date) -> dict:
        """
        Profit and loss for the period.

        COGS prices each sold line at the item's current buy price; lines
        whose item has since been deleted from inventory are left out of
        both COGS and the per-item breakdown.
        """
        invoices = self._invoices_between(start_date, end_date)
        buy_prices = {i.id: i.buy_price for i in inventory_service.list_items(self.store)}

        total_revenue = money_sum(inv.total for inv in invoices)
        total_discount = money_sum(inv.discount for inv in invoices)
        net_revenue = total_revenue - total_discount

        item_profits = {}
        total_cogs = ZERO
        for inv in invoices:
            for line in inv.items:
                if line.item_id not in buy_prices:
                    continue
                cost = to_money(buy_prices[line.item_id] * line.quantity)
                total_cogs += cost
                entry = item_profits.setdefault(line.item_id, {
                    "item_id": line.item_id,
                    "name": line.name,
                    "category": line.category,
                    "total_revenue": ZERO,
                    "total_cost": ZERO,
                    "total_profit": ZERO,
                    "quantity_sold": 0,
                    "profit_margin": ZERO,
                })
                entry["total_revenue"] += line.total
                entry["total_cost"] += cost
                entry["quantity_sold"] += line.quantity

        for entry in item_profits.values():
            entry["total_profit"] = entry["total_revenue"] - entry["total_cost"]
            entry["profit_margin"] = _pct(entry["total_profit"], entry["total_revenue"])

        # Not tracked yet; kept so the report shape is stable
        operating_expenses = {key: ZERO for key in ("rent", "utilities", "salaries", "marketing", "other")}
        total_operating = money_sum(operating_expenses.values())

        gross_profit = net_revenue - total_cogs
        net_profit = gross_profit - total_operating

        return {
            "period": {"start_date": start_date, "end_date": end_date},
            "revenue": {
                "total_revenue": total_revenue,
                "total_discount": total_discount,
                "net_revenue": net_revenue,
            },
            "costs": {
                "total_cogs": total_cogs,
                "operating_expenses": operating_expenses,
                "total_operating_expenses": total_operating,
            },
            "profit": {
                "gross_profit": gross_profit,
                "gross_profit_margin": _pct(gross_profit, net_revenue),
                "net_profit": net_profit,
                "net_profit_margin": _pct(net_profit, net_revenue),
            },
            "item_profits": sorted(item_profits.values(), key=lambda e: e["total_profit"], reverse=True)[:TOP_N],
            "summary": {
                "total_invoices": len(invoices),
                "average_invoice_value": to_money(total_revenue / len(invoices)) if invoices else ZERO,
            },
        }

    def visit_report(self, start_date: date, end_date: date) -> dict:
        visits = [v for v in customer_service.list_visits(self.store) if _in_period(v.date, start_date, end_date)]
        names = {c.id: c.name for c in customer_service.list_customers(self.store)}

        per_customer = Counter(v.customer_id for v in visits)
        daily = Counter(v.date.date() for v in visits)

        frequent = [
            {"customer": names.get(customer_id, "Unknown"), "customer_id": customer_id, "visit_count": count}
            for customer_id, count in per_customer.most_common(TOP_N)
        ]

        return {
            "period": {"start_date": start_date, "end_date": end_date},
            "summary": {
                "total_visits": len(visits),
                "unique_customers": len(per_customer),
                "average_visits_per_customer": (
                    to_money(Decimal(len(visits)) / len(per_customer)) if per_customer else ZERO
                ),
            },
            "type_stats": dict(Counter(v.type for v in visits)),
            "daily_visits": [{"date": d, "count": daily[d]} for d in sorted(daily)],
            "frequent_customers": frequent,
            "visits": visits,
        }

    def business_insights(self, today: date | None = None) -> List[dict]:
        """Alerts for the dashboard, most urgent first."""
        today = today or date.today()
        inventory = inventory_service.list_items(self.store)
        invoices = invoice_service.list_invoices(self.store)
        insights = []

        low_stock = sum(1 for i in inventory if inventory_service.is_low_stock(i))
        if low_stock:
            insights.append({
                "type": "warning",
                "title": "Low Stock Alert",
                "message": f"{low_stock} items are running low on stock",
                "action": "Review inventory and reorder items",
                "priority": "high",
            })

        expired = sum(1 for i in inventory if inventory_service.is_expired(i, today))
        if expired:
            insights.append({
                "type": "error",
                "title": "Expired Items",
                "message": f"{expired} items have expired",
                "action": "Remove expired items from inventory",
                "priority": "critical",
            })

        # Last 30 days against the 30 days before that
        recent_start = today - timedelta(days=30)
        previous_start = today - timedelta(days=60)
        sales = defaultdict(lambda: ZERO)
        for inv in invoices:
            if inv.created_at is None:
                continue
            day = inv.created_at.date()
            if day >= recent_start:
                sales["current"] += inv.total
            elif day >= previous_start:
                sales["previous"] += inv.total

        if sales["previous"] > 0:
            growth = (sales["current"] - sales["previous"]) / sales["previous"] * 100
            if growth > SALES_TREND_THRESHOLD:
                insights.append({
                    "type": "success",
                    "title": "Sales Growth",
                    "message": f"Sales increased by {growth:.1f}% compared to last month",
                    "action": "Continue current strategies",
                    "priority": "low",
                })
            elif growth < -SALES_TREND_THRESHOLD:
                insights.append({
                    "type": "warning",
                    "title": "Sales Decline",
                    "message": f"Sales decreased by {abs(growth):.1f}% compared to last month",
                    "action": "Review sales strategies and customer engagement",
                    "priority": "medium",
                })

        inactive_before = months_before(today, INACTIVE_AFTER_MONTHS)
        inactive = sum(
            1 for c in customer_service.list_customers(self.store)
            if c.last_visit is None or c.last_visit.date() < inactive_before
        )
        if inactive:
            insights.append({
                "type": "info",
                "title": "Inactive Customers",
                "message": f"{inactive} customers haven't visited in {INACTIVE_AFTER_MONTHS}+ months",
                "action": "Consider reaching out with special offers or reminders",
                "priority": "medium",
            })

        insights.sort(key=lambda i: INSIGHT_PRIORITY[i["priority"]], reverse=True)
        logger.debug(f"[ANALYTICS] {len(insights)} insight(s) for {today}")
        return insights
