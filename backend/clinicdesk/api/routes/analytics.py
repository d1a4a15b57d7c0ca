"""
Analytics API: dashboard counters and reports.

Period reports take start_date/end_date; when either is missing the period
defaults to the `months` preset (1, 3, 6 or 12) ending today.
"""
from datetime import date

from fastapi import APIRouter, Depends, Query

from clinicdesk.api.deps import get_analytics
from clinicdesk.services.analytics_service import AnalyticsAggregator, date_range

router = APIRouter()


def _period(start_date: date | None, end_date: date | None, months: int) -> tuple[date, date]:
    preset = date_range(months)
    return start_date or preset["start_date"], end_date or preset["end_date"]


@router.get("/dashboard")
def get_dashboard(analytics: AnalyticsAggregator = Depends(get_analytics)):
    """Counters for the dashboard cards."""
    return analytics.dashboard_stats()


@router.get("/date-range")
def get_date_range(months: int = Query(1, description="1, 3, 6 or 12")):
    return date_range(months)


@router.get("/sales")
def get_sales_report(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    months: int = Query(1),
    analytics: AnalyticsAggregator = Depends(get_analytics),
):
    return analytics.sales_report(*_period(start_date, end_date, months))


@router.get("/inventory")
def get_inventory_report(analytics: AnalyticsAggregator = Depends(get_analytics)):
    return analytics.inventory_report()


@router.get("/customers")
def get_customer_report(analytics: AnalyticsAggregator = Depends(get_analytics)):
    return analytics.customer_report()


@router.get("/pnl")
def get_pnl_report(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    months: int = Query(1),
    analytics: AnalyticsAggregator = Depends(get_analytics),
):
    """Profit and loss. COGS uses current buy prices."""
    return analytics.pnl_report(*_period(start_date, end_date, months))


@router.get("/visits")
def get_visit_report(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    months: int = Query(1),
    analytics: AnalyticsAggregator = Depends(get_analytics),
):
    return analytics.visit_report(*_period(start_date, end_date, months))


@router.get("/insights")
def get_business_insights(analytics: AnalyticsAggregator = Depends(get_analytics)):
    return analytics.business_insights()
