from __future__ import annotations

import logging
from datetime import date
from typing import Literal, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from amounts import parse_amount
from analytics import (
    InsightSnapshot,
    TransactionRecord,
    aggregate_by_category,
    aggregate_by_day,
    aggregate_by_month,
    goal_progress_pct,
    score_insights,
    totals_by_type,
)
from config import Settings, get_settings
from models import BankAccount, Goal, Transaction, TransactionType
from periods import Period, month_start, trailing_days, trailing_months
from schemas import (
    BankAccountIn,
    ChartOut,
    ChartPointOut,
    ChartType,
    DashboardSummaryOut,
    GoalIn,
    GoalProgressOut,
    TransactionIn,
    TransactionOut,
)

logger = logging.getLogger(__name__)

SortOrder = Literal["asc", "desc"]


class FetchError(RuntimeError):
    pass


class TransactionFetchError(FetchError):
    pass


class TransactionFetcher:
    def __init__(self, session: Session) -> None:
        self.session = session

    def fetch_transactions(
        self,
        user_id: int,
        date_from: date,
        date_to: Optional[date] = None,
        type_filter: Optional[TransactionType] = None,
        order: Optional[SortOrder] = None,
        limit: Optional[int] = None,
    ) -> list[TransactionRecord]:
        stmt = select(Transaction).where(
            Transaction.user_id == user_id,
            Transaction.transaction_date >= date_from,
        )
        if date_to is not None:
            stmt = stmt.where(Transaction.transaction_date <= date_to)
        if type_filter is not None:
            stmt = stmt.where(Transaction.type == type_filter)
        if order == "asc":
            stmt = stmt.order_by(
                Transaction.transaction_date.asc(), Transaction.id.asc()
            )
        elif order == "desc":
            stmt = stmt.order_by(
                Transaction.transaction_date.desc(), Transaction.id.desc()
            )
        elif order is not None:
            raise ValueError(f"Unsupported order: {order}")
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            rows = self.session.scalars(stmt).all()
        except SQLAlchemyError as exc:
            logger.warning(
                f"fetch_failed: user_id={user_id} date_from={date_from} error={exc}"
            )
            raise TransactionFetchError(
                f"Failed to fetch transactions for user {user_id}"
            ) from exc
        return [TransactionRecord.from_row(row) for row in rows]


CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Alimentação", ("supermercado", "restaurante", "comida")),
    ("Transporte", ("uber", "gasolina", "transporte")),
    ("Moradia", ("aluguel", "condomínio", "casa")),
    ("Saúde", ("farmácia", "médico", "hospital")),
)


def suggest_category(description: Optional[str]) -> Optional[str]:
    """First category whose keyword appears in the description, if any."""
    text = (description or "").lower()
    if not text.strip():
        return None
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return None


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    @staticmethod
    def _amount_cents(data: TransactionIn) -> int:
        if data.amount is not None:
            return parse_amount(data.amount)
        if data.amount_cents is not None:
            return data.amount_cents
        raise ValueError("Amount is required")

    def create(self, data: TransactionIn) -> Transaction:
        if data.bank_account_id is not None:
            account = self.session.get(BankAccount, data.bank_account_id)
            if not account or account.user_id != self.user_id:
                raise ValueError("Bank account not found")
        amount_cents = self._amount_cents(data)
        description = (data.description or "").strip() or None
        category = (data.category or "").strip() or suggest_category(description)
        txn = Transaction(
            user_id=self.user_id,
            bank_account_id=data.bank_account_id,
            transaction_date=data.transaction_date,
            type=data.type,
            amount_cents=amount_cents,
            category=category,
            description=description,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: user_id={self.user_id} id={txn.id} type={txn.type.value}"
        )
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.session.get(Transaction, transaction_id)
        if not txn or txn.user_id != self.user_id:
            raise ValueError("Transaction not found")
        self.session.delete(txn)
        self.session.commit()

    def list(
        self,
        type_filter: Optional[TransactionType] = None,
        limit: Optional[int] = None,
    ) -> list[TransactionRecord]:
        """Newest first, optionally only one transaction type."""
        return TransactionFetcher(self.session).fetch_transactions(
            self.user_id,
            date.min,
            type_filter=type_filter,
            order="desc",
            limit=limit,
        )

    def recent(self, limit: int = 5) -> list[TransactionRecord]:
        return self.list(limit=limit)


class AccountService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list(self) -> list[BankAccount]:
        stmt = (
            select(BankAccount)
            .where(BankAccount.user_id == self.user_id)
            .order_by(BankAccount.created_at.desc(), BankAccount.id.desc())
        )
        try:
            return list(self.session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            logger.warning(f"accounts_failed: user_id={self.user_id} error={exc}")
            raise FetchError(
                f"Failed to load bank accounts for user {self.user_id}"
            ) from exc

    def create(self, data: BankAccountIn) -> BankAccount:
        name = data.name.strip()
        if not name:
            raise ValueError("Account name is required")
        account = BankAccount(
            user_id=self.user_id,
            name=name,
            bank_name=(data.bank_name or "").strip() or None,
            account_type=data.account_type,
            description=(data.description or "").strip() or None,
            current_balance_cents=parse_amount(
                data.initial_balance, allow_negative=True
            ),
        )
        self.session.add(account)
        self.session.commit()
        self.session.refresh(account)
        logger.info(f"account_created: user_id={self.user_id} id={account.id}")
        return account


class ChartService:
    def __init__(
        self,
        session: Session,
        user_id: int,
        *,
        fetcher: Optional[TransactionFetcher] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id
        self.fetcher = fetcher or TransactionFetcher(session)
        self.settings = settings or get_settings()

    def monthly_period(self, today: date) -> Period:
        return trailing_days(today, self.settings.monthly_window_days, "monthly")

    def category_period(self, today: date) -> Period:
        return trailing_days(today, self.settings.category_window_days, "category")

    def trend_period(self, today: date) -> Period:
        return trailing_days(today, self.settings.trend_window_days, "trend")

    def monthly(self, today: date) -> ChartOut:
        period = self.monthly_period(today)
        records = self.fetcher.fetch_transactions(
            self.user_id, period.start, date_to=period.end
        )
        points = [
            ChartPointOut(
                name=bucket.label,
                value_cents=bucket.expense_cents,
                income_cents=bucket.income_cents,
                expense_cents=bucket.expense_cents,
            )
            for bucket in aggregate_by_month(records)
        ]
        return ChartOut(
            chart_type=ChartType.monthly,
            start=period.start,
            end=period.end,
            points=points,
        )

    def by_category(self, today: date) -> ChartOut:
        period = self.category_period(today)
        records = self.fetcher.fetch_transactions(
            self.user_id,
            period.start,
            date_to=period.end,
            type_filter=TransactionType.expense,
        )
        totals = aggregate_by_category(records, limit=self.settings.top_categories)
        return ChartOut(
            chart_type=ChartType.category,
            start=period.start,
            end=period.end,
            points=[
                ChartPointOut(name=item.category, value_cents=item.amount_cents)
                for item in totals
            ],
        )

    def trend(self, today: date) -> ChartOut:
        period = self.trend_period(today)
        records = self.fetcher.fetch_transactions(
            self.user_id,
            period.start,
            date_to=period.end,
            type_filter=TransactionType.expense,
            order="asc",
        )
        return ChartOut(
            chart_type=ChartType.trend,
            start=period.start,
            end=period.end,
            points=[
                ChartPointOut(name=item.label, value_cents=item.amount_cents)
                for item in aggregate_by_day(records)
            ],
        )

    def chart(self, chart_type: ChartType, today: date) -> ChartOut:
        if chart_type == ChartType.monthly:
            return self.monthly(today)
        if chart_type == ChartType.category:
            return self.by_category(today)
        if chart_type == ChartType.trend:
            return self.trend(today)
        raise ValueError(f"Unsupported chart type: {chart_type}")


class InsightsService:
    def __init__(
        self,
        session: Session,
        user_id: int,
        *,
        fetcher: Optional[TransactionFetcher] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id
        self.fetcher = fetcher or TransactionFetcher(session)
        self.settings = settings or get_settings()

    def window(self, today: date) -> Period:
        return trailing_months(today, self.settings.insight_window_months, "insights")

    def generate(self, today: date) -> Optional[InsightSnapshot]:
        period = self.window(today)
        try:
            records = self.fetcher.fetch_transactions(self.user_id, period.start)
        except TransactionFetchError:
            logger.exception(f"insights_unavailable: user_id={self.user_id}")
            return None

        snapshot = score_insights(records, today)
        if snapshot is None:
            logger.info(
                f"insights_empty: user_id={self.user_id} since={period.start.isoformat()}"
            )
        return snapshot


class DashboardService:
    def __init__(
        self,
        session: Session,
        user_id: int,
        *,
        fetcher: Optional[TransactionFetcher] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id
        self.fetcher = fetcher or TransactionFetcher(session)

    def _account_totals(self) -> tuple[int, int]:
        stmt = select(
            func.coalesce(func.sum(BankAccount.current_balance_cents), 0),
            func.count(BankAccount.id),
        ).where(BankAccount.user_id == self.user_id)
        try:
            balance, count = self.session.execute(stmt).one()
        except SQLAlchemyError as exc:
            logger.warning(f"accounts_failed: user_id={self.user_id} error={exc}")
            raise FetchError(
                f"Failed to load bank accounts for user {self.user_id}"
            ) from exc
        return int(balance or 0), int(count or 0)

    def summary(self, today: date, *, recent_limit: int = 5) -> DashboardSummaryOut:
        balance, accounts_count = self._account_totals()
        records = self.fetcher.fetch_transactions(self.user_id, month_start(today))
        income, expense = totals_by_type(records)
        recent = TransactionService(self.session, self.user_id).recent(recent_limit)
        return DashboardSummaryOut(
            total_balance_cents=balance,
            accounts_count=accounts_count,
            month_income_cents=income,
            month_expense_cents=expense,
            recent_transactions=[TransactionOut.model_validate(t) for t in recent],
        )


class GoalService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    @staticmethod
    def _to_progress(goal: Goal) -> GoalProgressOut:
        return GoalProgressOut(
            id=goal.id,
            title=goal.title,
            status=goal.status,
            current_amount_cents=goal.current_amount_cents,
            target_amount_cents=goal.target_amount_cents,
            progress_pct=goal_progress_pct(
                goal.current_amount_cents, goal.target_amount_cents
            ),
            target_date=goal.target_date,
        )

    def get(self, goal_id: int) -> GoalProgressOut:
        return self._to_progress(self._owned(goal_id))

    def _owned(self, goal_id: int) -> Goal:
        goal = self.session.get(Goal, goal_id)
        if not goal or goal.user_id != self.user_id:
            raise ValueError("Goal not found")
        return goal

    def progress(self) -> list[GoalProgressOut]:
        stmt = (
            select(Goal)
            .where(Goal.user_id == self.user_id)
            .order_by(Goal.created_at.desc(), Goal.id.desc())
        )
        try:
            goals = self.session.scalars(stmt).all()
        except SQLAlchemyError as exc:
            logger.warning(f"goals_failed: user_id={self.user_id} error={exc}")
            raise FetchError(f"Failed to load goals for user {self.user_id}") from exc
        return [self._to_progress(goal) for goal in goals]

    def create(self, data: GoalIn) -> GoalProgressOut:
        goal = Goal(user_id=self.user_id)
        self._apply(goal, data)
        self.session.add(goal)
        self.session.commit()
        self.session.refresh(goal)
        logger.info(f"goal_created: user_id={self.user_id} id={goal.id}")
        return self._to_progress(goal)

    def update(self, goal_id: int, data: GoalIn) -> GoalProgressOut:
        goal = self._owned(goal_id)
        self._apply(goal, data)
        self.session.commit()
        self.session.refresh(goal)
        return self._to_progress(goal)

    def delete(self, goal_id: int) -> None:
        goal = self._owned(goal_id)
        self.session.delete(goal)
        self.session.commit()

    @staticmethod
    def _apply(goal: Goal, data: GoalIn) -> None:
        title = data.title.strip()
        if not title:
            raise ValueError("Goal title is required")
        target_cents = parse_amount(data.target_amount)
        current_cents = parse_amount(data.current_amount)
        goal.title = title
        goal.target_amount_cents = target_cents
        goal.current_amount_cents = current_cents
        goal.target_date = data.target_date
        goal.status = data.status
