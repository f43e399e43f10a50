from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from models import AccountType, GoalStatus, TransactionType


class ChartType(str, Enum):
    monthly = "monthly"
    category = "category"
    trend = "trend"


class TransactionIn(BaseModel):
    transaction_date: date
    type: TransactionType
    # either integer cents or a user-entered amount such as "12,50"
    amount_cents: Optional[int] = Field(default=None, ge=0)
    amount: Optional[Union[Decimal, str]] = None
    category: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=200)
    bank_account_id: Optional[int] = None


class BankAccountIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    bank_name: Optional[str] = Field(default=None, max_length=100)
    account_type: AccountType = AccountType.checking
    description: Optional[str] = Field(default=None, max_length=200)
    initial_balance: Union[Decimal, str] = "0"


class BankAccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    bank_name: Optional[str]
    account_type: AccountType
    description: Optional[str]
    current_balance_cents: int


class GoalIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    target_amount: Union[Decimal, str]
    current_amount: Union[Decimal, str] = "0"
    target_date: Optional[date] = None
    status: GoalStatus = GoalStatus.in_progress


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    transaction_date: date
    type: TransactionType
    amount_cents: int
    category: Optional[str]
    description: Optional[str]


class ChartPointOut(BaseModel):
    name: str
    value_cents: int
    income_cents: Optional[int] = None
    expense_cents: Optional[int] = None


class ChartOut(BaseModel):
    chart_type: ChartType
    start: date
    end: date
    points: list[ChartPointOut] = Field(default_factory=list)


class InsightSnapshotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    monthly_spending_trend_pct: float
    top_category: str
    savings_opportunity_cents: int
    budget_alert: bool
    next_month_prediction_cents: int
    current_month_expense_cents: int
    last_month_expense_cents: int


class InsightsOut(BaseModel):
    available: bool
    generated_at: datetime
    snapshot: Optional[InsightSnapshotOut] = None


class DashboardSummaryOut(BaseModel):
    total_balance_cents: int
    accounts_count: int
    month_income_cents: int
    month_expense_cents: int
    recent_transactions: list[TransactionOut] = Field(default_factory=list)


class GoalProgressOut(BaseModel):
    id: int
    title: str
    status: GoalStatus
    current_amount_cents: int
    target_amount_cents: int
    progress_pct: float
    target_date: Optional[date] = None
