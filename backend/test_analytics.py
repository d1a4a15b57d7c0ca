from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from clinicdesk.core.money import ZERO
from clinicdesk.schemas.customer import VisitCreate
from clinicdesk.services import customer_service, inventory_service
from clinicdesk.services.analytics_service import AnalyticsAggregator, date_range, months_before
from clinicdesk.services.record_store import INVOICES

TODAY = date(2024, 3, 15)


def invoice_record(number, created_at, lines, total, discount="0.00", gst="0.00", status="paid", customer_id=None):
    return {
        "id": number.lower(),
        "invoice_number": number,
        "customer_id": customer_id,
        "customer_name": "Walk-in Customer",
        "items": [
            {"item_id": item_id, "name": name, "category": "Medicine", "price": price,
             "quantity": qty, "total": str(Decimal(price) * qty)}
            for item_id, name, price, qty in lines
        ],
        "subtotal": total,
        "discount": discount,
        "gst_amount": gst,
        "total": total,
        "payment_status": status,
        "created_at": created_at.isoformat(),
    }


@pytest.fixture
def analytics(store):
    return AnalyticsAggregator(store)


def test_empty_store_reports_zeros(analytics):
    stats = analytics.dashboard_stats(TODAY)
    assert all(value == 0 for value in stats.values())

    sales = analytics.sales_report(TODAY - timedelta(days=30), TODAY)
    assert sales["summary"]["total_sales"] == ZERO
    assert sales["summary"]["average_invoice_value"] == ZERO
    assert sales["top_selling_items"] == []

    pnl = analytics.pnl_report(TODAY - timedelta(days=30), TODAY)
    assert pnl["profit"]["gross_profit_margin"] == ZERO
    assert pnl["costs"]["total_operating_expenses"] == ZERO

    assert analytics.inventory_report(TODAY)["summary"]["profit_margin"] == ZERO
    assert analytics.customer_report()["summary"]["average_customer_value"] == ZERO
    assert analytics.visit_report(TODAY, TODAY)["summary"]["average_visits_per_customer"] == ZERO
    assert analytics.business_insights(TODAY) == []


def test_dashboard_stats(store, analytics, make_item, make_customer):
    make_item(name="Expired", stock=100, exp_date=TODAY - timedelta(days=1))
    make_item(name="Expiring", stock=100, exp_date=TODAY + timedelta(days=10))
    make_item(name="Low", stock=2)
    make_item(name="Fine", stock=100, exp_date=TODAY + timedelta(days=365))

    store.put(INVOICES, [
        invoice_record("INV24030001", datetime(2024, 3, 15, 9, 30), [("x", "Low", "100.00", 1)], "118.00"),
        invoice_record("INV24030002", datetime(2024, 3, 14, 18, 0), [("x", "Low", "100.00", 1)], "50.00"),
    ])
    customer = make_customer()
    customer_service.add_visit(store, VisitCreate(
        customer_id=customer.id,
        date=datetime(2024, 3, 15, 11, 0),
        next_visit_date=datetime(2024, 3, 22, 11, 0),
    ))

    stats = analytics.dashboard_stats(TODAY)
    assert stats["total_items"] == 4
    assert stats["low_stock_items"] == 1
    assert stats["expired_items"] == 1
    assert stats["near_expiry_items"] == 1
    assert stats["todays_sales"] == Decimal("118.00")
    assert stats["total_customers"] == 1
    assert stats["todays_visits"] == 1
    assert stats["upcoming_visits"] == 1
    assert stats["total_invoices"] == 2
    assert stats["total_visits"] == 1


def test_sales_report_includes_whole_end_day(store, analytics):
    store.put(INVOICES, [
        invoice_record("INV24030001", datetime(2024, 3, 1, 10, 0),
                       [("a", "Aspirin", "10.00", 2), ("b", "Bandage", "50.00", 1)], "70.00",
                       discount="5.00", gst="9.00"),
        invoice_record("INV24030002", datetime(2024, 3, 10, 23, 30),
                       [("b", "Bandage", "50.00", 2)], "100.00", status="unpaid"),
        invoice_record("INV24030003", datetime(2024, 3, 11, 0, 5), [("a", "Aspirin", "10.00", 1)], "10.00"),
    ])

    report = analytics.sales_report(date(2024, 3, 1), date(2024, 3, 10))
    summary = report["summary"]
    assert summary["total_invoices"] == 2
    assert summary["total_sales"] == Decimal("170.00")
    assert summary["total_discount"] == Decimal("5.00")
    assert summary["total_gst"] == Decimal("9.00")
    assert summary["average_invoice_value"] == Decimal("85.00")
    assert summary["paid_amount"] == Decimal("70.00")
    assert summary["unpaid_amount"] == Decimal("100.00")

    top = report["top_selling_items"]
    assert [t["name"] for t in top] == ["Bandage", "Aspirin"]
    assert top[0]["total_quantity"] == 3
    assert top[0]["invoice_count"] == 2
    assert [d["date"] for d in report["daily_sales"]] == [date(2024, 3, 1), date(2024, 3, 10)]


def test_pnl_uses_current_buy_price_and_skips_deleted_items(store, analytics, make_item):
    item = make_item(name="Aspirin", buy_price=Decimal("60.00"), sell_price=Decimal("100.00"))
    store.put(INVOICES, [
        invoice_record("INV24030001", datetime(2024, 3, 5, 12, 0),
                       [(item.id, "Aspirin", "100.00", 2), ("gone", "Old Stock", "50.00", 1)], "250.00"),
    ])

    report = analytics.pnl_report(date(2024, 3, 1), date(2024, 3, 31))
    assert report["revenue"]["net_revenue"] == Decimal("250.00")
    assert report["costs"]["total_cogs"] == Decimal("120.00")
    assert report["profit"]["gross_profit"] == Decimal("130.00")
    assert report["profit"]["gross_profit_margin"] == Decimal("52.00")
    assert report["profit"]["net_profit"] == Decimal("130.00")

    assert len(report["item_profits"]) == 1
    assert report["item_profits"][0]["total_profit"] == Decimal("80.00")
    assert report["item_profits"][0]["profit_margin"] == Decimal("40.00")


def test_inventory_report(analytics, make_item):
    make_item(name="A", category="Medicine", buy_price=Decimal("10"), sell_price=Decimal("15"), stock=10)
    make_item(name="B", category="Supplies", buy_price=Decimal("5"), sell_price=Decimal("8"), stock=20)

    report = analytics.inventory_report(TODAY)
    assert report["summary"]["total_value"] == Decimal("200.00")
    assert report["summary"]["total_selling_value"] == Decimal("310.00")
    assert report["summary"]["potential_profit"] == Decimal("110.00")
    assert report["summary"]["profit_margin"] == Decimal("55.00")
    assert {c["category"] for c in report["category_stats"]} == {"Medicine", "Supplies"}
    assert report["top_value_items"][0].name == "B"


def test_customer_report(store, analytics, make_customer):
    vip = make_customer(name="Asha", type="vip")
    make_customer(name="Ravi")
    customer_service.add_to_total_spent(store, vip.id, Decimal("300.00"))

    report = analytics.customer_report()
    by_type = {t["type"]: t for t in report["type_stats"]}
    assert by_type["vip"]["average_spent"] == Decimal("300.00")
    assert by_type["regular"]["count"] == 1
    assert report["top_customers"][0].name == "Asha"
    assert report["monthly_acquisition"] == {datetime.now().strftime("%Y-%m"): 2}


def test_visit_report(store, analytics, make_customer):
    asha = make_customer(name="Asha")
    ravi = make_customer(name="Ravi")
    for customer, day, kind in [(asha, 1, "consultation"), (asha, 5, "follow-up"), (ravi, 5, "consultation")]:
        customer_service.add_visit(store, VisitCreate(customer_id=customer.id, date=datetime(2024, 3, day, 10), type=kind))

    report = analytics.visit_report(date(2024, 3, 1), date(2024, 3, 31))
    assert report["summary"]["total_visits"] == 3
    assert report["summary"]["unique_customers"] == 2
    assert report["summary"]["average_visits_per_customer"] == Decimal("1.50")
    assert report["type_stats"] == {"consultation": 2, "follow-up": 1}
    assert report["daily_visits"] == [{"date": date(2024, 3, 1), "count": 1}, {"date": date(2024, 3, 5), "count": 2}]
    assert report["frequent_customers"][0] == {"customer": "Asha", "customer_id": asha.id, "visit_count": 2}


def test_business_insights_sorted_by_priority(store, analytics, make_item, make_customer):
    make_item(name="Expired", stock=100, exp_date=TODAY - timedelta(days=3))
    make_item(name="Low", stock=1)
    make_customer(name="Never Visited")
    store.put(INVOICES, [
        invoice_record("INV24010001", datetime(2024, 1, 30, 10), [("x", "X", "1000.00", 1)], "1000.00"),
        invoice_record("INV24030001", datetime(2024, 3, 10, 10), [("x", "X", "100.00", 1)], "100.00"),
    ])

    insights = analytics.business_insights(TODAY)
    assert [i["title"] for i in insights[:2]] == ["Expired Items", "Low Stock Alert"]
    assert {i["title"] for i in insights[2:]} == {"Sales Decline", "Inactive Customers"}
    assert "90.0%" in next(i for i in insights if i["title"] == "Sales Decline")["message"]


def test_months_before_clamps_month_end():
    assert months_before(date(2024, 3, 31), 1) == date(2024, 2, 29)
    assert months_before(date(2024, 1, 15), 3) == date(2023, 10, 15)


def test_date_range_presets():
    assert date_range(3, TODAY) == {"start_date": date(2023, 12, 15), "end_date": TODAY}
    assert date_range(12, TODAY)["start_date"] == date(2023, 3, 15)
    assert date_range(7, TODAY)["start_date"] == date(2024, 2, 15)


def test_low_stock_counts_agree_with_inventory_service(store, analytics, make_item):
    make_item(stock=10, low_stock_threshold=10)
    low = [i for i in inventory_service.list_items(store) if inventory_service.is_low_stock(i)]
    assert analytics.dashboard_stats(TODAY)["low_stock_items"] == len(low) == 1


def test_item_expiring_today_counts_as_near_expiry(analytics, make_item):
    item = make_item(name="Eye Drops", stock=100, exp_date=TODAY)

    stats = analytics.dashboard_stats(TODAY)
    assert stats["expired_items"] == 0
    assert stats["near_expiry_items"] == 1
    assert inventory_service.item_status(item, TODAY) == "near-expiry"
    assert [i.name for i in analytics.inventory_report(TODAY)["alerts"]["near_expiry_items"]] == ["Eye Drops"]
