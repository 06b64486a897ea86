"""Ledger analytics package."""

from expense_tracker.analytics.aggregator import (
    average_daily,
    budget_usage,
    category_breakdown,
    coerce_decimal,
    daily_breakdown,
    days_spanned,
    filter_period,
    net_balance,
    period_spending,
    spending_statistics,
    top_category,
    totals_by_type,
    usage_for,
)

__all__ = [
    "average_daily",
    "budget_usage",
    "category_breakdown",
    "coerce_decimal",
    "daily_breakdown",
    "days_spanned",
    "filter_period",
    "net_balance",
    "period_spending",
    "spending_statistics",
    "top_category",
    "totals_by_type",
    "usage_for",
]
