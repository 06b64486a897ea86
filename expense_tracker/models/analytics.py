"""
Analytics Value Objects

Results of the ledger aggregation functions. They are frozen so a
snapshot handed to one consumer can be shared with every other
consumer without copying.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TypeTotals(BaseModel):
    """Sum of entry amounts grouped by entry type."""
    model_config = ConfigDict(frozen=True)

    income: Decimal = Field(default=Decimal("0"))
    expense: Decimal = Field(default=Decimal("0"))

    @property
    def net(self) -> Decimal:
        """Income minus expense."""
        return self.income - self.expense


class CategoryTotal(BaseModel):
    """One row of the category breakdown."""
    model_config = ConfigDict(frozen=True)

    category: str
    total: Decimal
    percent_of_total: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=100,
        description="Share of total expense, truncated to two decimals"
    )


class DailyTotal(BaseModel):
    """One zero-filled bucket of the daily breakdown."""
    model_config = ConfigDict(frozen=True)

    day: date
    label: str = Field(
        ...,
        description="Display label, e.g. 'Mar 05'"
    )
    total: Decimal = Field(default=Decimal("0"))


class BudgetUsage(BaseModel):
    """
    How much of a monthly budget has been used.

    percent_used is capped at 100 for display. Whether the budget
    was actually overrun is carried separately by exceeded.
    """
    model_config = ConfigDict(frozen=True)

    percent_used: int = Field(ge=0, le=100)
    remaining: Decimal
    exceeded: bool


class SpendingStatistics(BaseModel):
    """Headline numbers for the analytics screen."""
    model_config = ConfigDict(frozen=True)

    total_spent: Decimal = Field(default=Decimal("0"))
    average_daily: Decimal = Field(default=Decimal("0"))
    top_category: Optional[CategoryTotal] = None
