"""Pure rollups behind the dashboard charts and the insights card.

Nothing here touches the database: every function takes an iterable of
``TransactionRecord`` and returns fresh values, so re-running on the same
input yields identical output.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from amounts import coerce_cents, round_cents
from models import TransactionType
from periods import current_month, previous_month_approx

OTHER_CATEGORY = "Other"
NO_DATA_CATEGORY = "No data"
DEFAULT_TOP_CATEGORIES = 8
BUDGET_ALERT_THRESHOLD_PCT = Decimal("20")
SAVINGS_RATE = Decimal("0.15")
DAYS_PER_MONTH = 30


@dataclass(frozen=True)
class TransactionRecord:
    id: Optional[object]
    amount_cents: int
    type: TransactionType
    category: Optional[str]
    transaction_date: date
    description: Optional[str] = None

    @classmethod
    def from_row(cls, row: object) -> "TransactionRecord":
        # Stored amounts that are not numeric count as 0 instead of failing
        # the whole aggregate.
        return cls(
            id=getattr(row, "id", None),
            amount_cents=coerce_cents(getattr(row, "amount_cents", 0)),
            type=TransactionType(getattr(row, "type")),
            category=getattr(row, "category", None),
            transaction_date=getattr(row, "transaction_date"),
            description=getattr(row, "description", None),
        )


@dataclass(frozen=True)
class PeriodBucket:
    year: int
    month: int
    income_cents: int
    expense_cents: int

    @property
    def key(self) -> tuple[int, int]:
        return (self.year, self.month)

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    amount_cents: int


@dataclass(frozen=True)
class DailyTotal:
    day: date
    amount_cents: int

    @property
    def label(self) -> str:
        return self.day.isoformat()


@dataclass(frozen=True)
class InsightSnapshot:
    monthly_spending_trend_pct: float
    top_category: str
    savings_opportunity_cents: int
    budget_alert: bool
    next_month_prediction_cents: int
    current_month_expense_cents: int
    last_month_expense_cents: int


def category_label(category: Optional[str]) -> str:
    if category is None:
        return OTHER_CATEGORY
    label = category.strip()
    return label or OTHER_CATEGORY


def totals_by_type(transactions: Iterable[TransactionRecord]) -> tuple[int, int]:
    income = 0
    expense = 0
    for txn in transactions:
        if txn.type == TransactionType.income:
            income += txn.amount_cents
        else:
            expense += txn.amount_cents
    return income, expense


def aggregate_by_month(
    transactions: Iterable[TransactionRecord],
) -> list[PeriodBucket]:
    """Income vs. expense per calendar month, oldest month first."""
    totals: dict[tuple[int, int], list[int]] = {}
    for txn in transactions:
        key = (txn.transaction_date.year, txn.transaction_date.month)
        bucket = totals.setdefault(key, [0, 0])
        if txn.type == TransactionType.income:
            bucket[0] += txn.amount_cents
        else:
            bucket[1] += txn.amount_cents

    return [
        PeriodBucket(
            year=year, month=month, income_cents=income, expense_cents=expense
        )
        for (year, month), (income, expense) in sorted(totals.items())
    ]


def aggregate_by_category(
    transactions: Iterable[TransactionRecord],
    limit: Optional[int] = DEFAULT_TOP_CATEGORIES,
) -> list[CategoryTotal]:
    """Expense totals per category, largest first.

    Equal totals keep the order in which their category was first seen.
    ``limit=None`` returns every category.
    """
    totals: dict[str, int] = {}
    for txn in transactions:
        if txn.type != TransactionType.expense:
            continue
        label = category_label(txn.category)
        totals[label] = totals.get(label, 0) + txn.amount_cents

    # sorted() is stable with reverse=True, ties stay in insertion order
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    if limit is not None:
        ranked = ranked[: max(limit, 0)]
    return [CategoryTotal(category=name, amount_cents=total) for name, total in ranked]


def aggregate_by_day(transactions: Iterable[TransactionRecord]) -> list[DailyTotal]:
    totals: dict[date, int] = {}
    for txn in transactions:
        if txn.type != TransactionType.expense:
            continue
        totals[txn.transaction_date] = (
            totals.get(txn.transaction_date, 0) + txn.amount_cents
        )
    return [
        DailyTotal(day=day, amount_cents=total)
        for day, total in sorted(totals.items())
    ]


def monthly_trend_pct(current_cents: int, last_cents: int) -> Decimal:
    if last_cents <= 0:
        return Decimal(0)
    return Decimal(current_cents - last_cents) * 100 / Decimal(last_cents)


def savings_opportunity_cents(current_cents: int) -> int:
    daily_average = Decimal(current_cents) / DAYS_PER_MONTH
    return max(0, round_cents(daily_average * SAVINGS_RATE))


def predict_next_month_cents(current_cents: int, trend_pct: Decimal) -> int:
    return round_cents(Decimal(current_cents) * (1 + trend_pct / 100))


def goal_progress_pct(current_cents: int, target_cents: int) -> float:
    if target_cents <= 0:
        return 0.0
    return current_cents / target_cents * 100


def score_insights(
    transactions: Iterable[TransactionRecord], today: date
) -> Optional[InsightSnapshot]:
    """Heuristic spending signals for the insights card.

    Returns ``None`` when there are no transactions at all, which callers
    render as "add more transactions" rather than a card full of zeros.
    """
    records = list(transactions)
    if not records:
        return None

    this_month = current_month(today)
    last_month = previous_month_approx(today)
    expenses = [txn for txn in records if txn.type == TransactionType.expense]

    current_cents = sum(
        txn.amount_cents
        for txn in expenses
        if this_month.contains(txn.transaction_date)
    )
    last_cents = sum(
        txn.amount_cents
        for txn in expenses
        if last_month.contains(txn.transaction_date)
    )

    trend = monthly_trend_pct(current_cents, last_cents)
    top = aggregate_by_category(expenses, limit=1)

    return InsightSnapshot(
        monthly_spending_trend_pct=float(trend),
        top_category=top[0].category if top else NO_DATA_CATEGORY,
        savings_opportunity_cents=savings_opportunity_cents(current_cents),
        budget_alert=trend > BUDGET_ALERT_THRESHOLD_PCT,
        next_month_prediction_cents=predict_next_month_cents(current_cents, trend),
        current_month_expense_cents=current_cents,
        last_month_expense_cents=last_cents,
    )
