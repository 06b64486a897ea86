"""
Ledger Aggregation

DESIGN DECISION: Every number the ledger shows is DERIVED here, from a
list of entries, with no I/O.

The same functions feed:
1. The budget's cached current_spending (recomputed on every mutation)
2. The analytics screen (category, daily and headline statistics)
3. The advice trigger (budget usage and exceedance)

Because recomputation runs after every create/update/delete, these
functions must be deterministic: the same entries always give the same
result, whatever order the calls happen in.

Amounts are Decimal throughout. Percentages of a whole are truncated,
never rounded up, so a breakdown can never add up to more than 100.
"""

from datetime import date, datetime, timedelta
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Union

from expense_tracker.models.analytics import (
    BudgetUsage,
    CategoryTotal,
    DailyTotal,
    SpendingStatistics,
    TypeTotals,
)
from expense_tracker.models.ledger import (
    Budget,
    Entry,
    EntryType,
    normalize_category,
)


ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")
DAY_LABEL_FORMAT = "%b %d"
DEFAULT_WINDOW_DAYS = 7


def coerce_decimal(value) -> Decimal:
    """Normalize numeric values to Decimal (None counts as zero)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _percent_share(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= 0:
        return ZERO
    return (part / whole * HUNDRED).quantize(CENT, rounding=ROUND_DOWN)


# =============================================================================
# TOTALS
# =============================================================================

def totals_by_type(entries: Iterable[Entry]) -> TypeTotals:
    """Sum entry amounts grouped by type. Empty input gives zeroes."""
    income = ZERO
    expense = ZERO
    for entry in entries:
        if entry.type == EntryType.INCOME:
            income += entry.amount
        else:
            expense += entry.amount
    return TypeTotals(income=income, expense=expense)


def net_balance(entries: Iterable[Entry]) -> Decimal:
    """Total income minus total expense."""
    return totals_by_type(entries).net


def filter_period(entries: Iterable[Entry], period_key: str) -> list[Entry]:
    """Entries dated inside a YYYY-MM period."""
    return [entry for entry in entries if entry.period_key == period_key]


def period_spending(entries: Iterable[Entry], period_key: str) -> Decimal:
    """
    Expense total of one period.

    This is the value Budget.current_spending must always equal.
    """
    return totals_by_type(filter_period(entries, period_key)).expense


# =============================================================================
# BREAKDOWNS
# =============================================================================

def category_breakdown(entries: Iterable[Entry]) -> list[CategoryTotal]:
    """
    Expense totals per category, largest first.

    Income entries are left out entirely, so percentages are shares
    of total expense. Blank categories are grouped as 'Uncategorized'.
    When there is no expense every percentage is 0.
    """
    totals: dict[str, Decimal] = {}
    for entry in entries:
        if entry.type != EntryType.EXPENSE:
            continue
        category = normalize_category(entry.category)
        totals[category] = totals.get(category, ZERO) + entry.amount

    total_expense = sum(totals.values(), ZERO)

    rows = [
        CategoryTotal(
            category=category,
            total=total,
            percent_of_total=_percent_share(total, total_expense),
        )
        for category, total in totals.items()
    ]
    # Ties are broken by name so output never depends on input order
    rows.sort(key=lambda row: (-row.total, row.category))
    return rows


def daily_breakdown(
    entries: Iterable[Entry],
    reference_date: Union[date, datetime],
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> list[DailyTotal]:
    """
    Expense totals for the trailing window ending at reference_date.

    Buckets are in chronological order and zero-filled: a day without
    entries is a 0 bucket, never a missing one. Entries outside the
    window are ignored.
    """
    if window_days <= 0:
        return []

    end = _as_date(reference_date)
    days = [end - timedelta(days=offset) for offset in range(window_days - 1, -1, -1)]
    totals = {day: ZERO for day in days}

    for entry in entries:
        if entry.type != EntryType.EXPENSE:
            continue
        day = _as_date(entry.date)
        if day in totals:
            totals[day] += entry.amount

    return [
        DailyTotal(
            day=day,
            label=day.strftime(DAY_LABEL_FORMAT),
            total=totals[day],
        )
        for day in days
    ]


# =============================================================================
# BUDGET USAGE AND STATISTICS
# =============================================================================

def budget_usage(total_expense, monthly_budget) -> BudgetUsage:
    """
    How much of a budget has been used.

    percent_used is rounded half-up and capped at 100; exceeded says
    whether spending is strictly above the budget; remaining may be
    negative. A non-positive budget reports 0 percent.
    """
    total_expense = coerce_decimal(total_expense)
    monthly_budget = coerce_decimal(monthly_budget)

    percent_used = 0
    if monthly_budget > 0:
        percent = (total_expense / monthly_budget * HUNDRED).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
        percent_used = max(0, min(100, int(percent)))

    return BudgetUsage(
        percent_used=percent_used,
        remaining=monthly_budget - total_expense,
        exceeded=total_expense > monthly_budget,
    )


def usage_for(budget: Optional[Budget]) -> Optional[BudgetUsage]:
    """Budget usage from a budget's cached spending, None when unset."""
    if budget is None:
        return None
    return budget_usage(budget.current_spending, budget.monthly_budget)


def days_spanned(entries: Iterable[Entry]) -> int:
    """Whole days between the first and last entry, inclusive."""
    dates = [entry.date for entry in entries]
    if not dates:
        return 0
    return (max(dates) - min(dates)).days + 1


def average_daily(entries: Iterable[Entry]) -> Decimal:
    """
    Average expense per day over the days the expenses span.

    Empty input (or no expenses) gives 0.
    """
    expenses = [entry for entry in entries if entry.type == EntryType.EXPENSE]
    days = days_spanned(expenses)
    if days <= 0:
        return ZERO
    total = totals_by_type(expenses).expense
    return (total / Decimal(days)).quantize(CENT, rounding=ROUND_HALF_UP)


def top_category(entries: Iterable[Entry]) -> Optional[CategoryTotal]:
    """Category with the largest expense total."""
    breakdown = category_breakdown(entries)
    return breakdown[0] if breakdown else None


def spending_statistics(entries: Iterable[Entry]) -> SpendingStatistics:
    """Total spent, daily average and top category in one pass over a list."""
    entries = list(entries)
    return SpendingStatistics(
        total_spent=totals_by_type(entries).expense,
        average_daily=average_daily(entries),
        top_category=top_category(entries),
    )
