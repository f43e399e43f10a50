from datetime import date

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session

from database import Base
from models import (
    AccountType,
    BankAccount,
    Goal,
    GoalStatus,
    Transaction,
    TransactionType,
)
from schemas import BankAccountIn, ChartType, GoalIn, TransactionIn
from services import (
    AccountService,
    ChartService,
    DashboardService,
    FetchError,
    GoalService,
    InsightsService,
    TransactionFetchError,
    TransactionFetcher,
    TransactionService,
    suggest_category,
)

TODAY = date(2025, 3, 15)


def _engine():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return engine


def _add(
    session: Session,
    user_id: int,
    on: date,
    txn_type: TransactionType,
    amount_cents: int,
    category=None,
) -> Transaction:
    txn = Transaction(
        user_id=user_id,
        transaction_date=on,
        type=txn_type,
        amount_cents=amount_cents,
        category=category,
    )
    session.add(txn)
    session.flush()
    return txn


def test_fetcher_filters_by_owner_dates_and_type() -> None:
    with Session(_engine()) as session:
        _add(session, 1, date(2025, 3, 1), TransactionType.expense, 100, "Food")
        _add(session, 1, date(2025, 2, 1), TransactionType.income, 200)
        _add(session, 1, date(2024, 12, 1), TransactionType.expense, 300)
        _add(session, 2, date(2025, 3, 2), TransactionType.expense, 400)

        fetcher = TransactionFetcher(session)

        rows = fetcher.fetch_transactions(1, date(2025, 1, 1))
        assert sorted(r.amount_cents for r in rows) == [100, 200]

        rows = fetcher.fetch_transactions(
            1, date(2025, 1, 1), type_filter=TransactionType.expense
        )
        assert [r.amount_cents for r in rows] == [100]

        rows = fetcher.fetch_transactions(1, date(2024, 12, 1), date_to=date(2025, 2, 1))
        assert sorted(r.amount_cents for r in rows) == [200, 300]


def test_fetcher_orders_by_date() -> None:
    with Session(_engine()) as session:
        _add(session, 1, date(2025, 3, 3), TransactionType.expense, 3)
        _add(session, 1, date(2025, 3, 1), TransactionType.expense, 1)
        _add(session, 1, date(2025, 3, 2), TransactionType.expense, 2)

        fetcher = TransactionFetcher(session)
        asc = fetcher.fetch_transactions(1, date(2025, 1, 1), order="asc")
        desc = fetcher.fetch_transactions(1, date(2025, 1, 1), order="desc", limit=2)

        assert [r.amount_cents for r in asc] == [1, 2, 3]
        assert [r.amount_cents for r in desc] == [3, 2]

        with pytest.raises(ValueError, match="Unsupported order"):
            fetcher.fetch_transactions(1, date(2025, 1, 1), order="sideways")  # type: ignore[arg-type]


def test_fetch_failure_is_wrapped() -> None:
    engine = _engine()
    Base.metadata.drop_all(engine)
    with Session(engine) as session:
        with pytest.raises(TransactionFetchError) as info:
            TransactionFetcher(session).fetch_transactions(1, date(2025, 1, 1))
        assert info.value.__cause__ is not None


def test_monthly_chart_uses_six_month_window() -> None:
    with Session(_engine()) as session:
        _add(session, 1, date(2025, 3, 1), TransactionType.expense, 100)
        _add(session, 1, date(2025, 3, 2), TransactionType.income, 1000)
        _add(session, 1, date(2025, 1, 10), TransactionType.expense, 50)
        _add(session, 1, date(2024, 6, 1), TransactionType.expense, 9999)

        chart = ChartService(session, 1).chart(ChartType.monthly, TODAY)

        assert chart.start == date(2024, 9, 16)
        assert [p.name for p in chart.points] == ["2025-01", "2025-03"]
        assert chart.points[1].income_cents == 1000
        assert chart.points[1].expense_cents == 100
        assert chart.points[1].value_cents == 100


def test_category_chart_only_counts_recent_expenses() -> None:
    with Session(_engine()) as session:
        _add(session, 1, date(2025, 3, 10), TransactionType.expense, 500, "Food")
        _add(session, 1, date(2025, 3, 11), TransactionType.expense, 700, None)
        _add(session, 1, date(2025, 3, 11), TransactionType.income, 10000, "Salary")
        _add(session, 1, date(2025, 1, 1), TransactionType.expense, 9000, "Old")

        chart = ChartService(session, 1).chart(ChartType.category, TODAY)

        assert [(p.name, p.value_cents) for p in chart.points] == [
            ("Other", 700),
            ("Food", 500),
        ]


def test_trend_chart_is_daily_expense_series() -> None:
    with Session(_engine()) as session:
        _add(session, 1, date(2025, 3, 2), TransactionType.expense, 100)
        _add(session, 1, date(2025, 1, 5), TransactionType.expense, 40)
        _add(session, 1, date(2025, 3, 2), TransactionType.expense, 60)
        _add(session, 1, date(2025, 3, 3), TransactionType.income, 5000)

        chart = ChartService(session, 1).chart(ChartType.trend, TODAY)

        assert [(p.name, p.value_cents) for p in chart.points] == [
            ("2025-01-05", 40),
            ("2025-03-02", 160),
        ]


def test_chart_fetch_failure_propagates() -> None:
    engine = _engine()
    Base.metadata.drop_all(engine)
    with Session(engine) as session:
        with pytest.raises(TransactionFetchError):
            ChartService(session, 1).chart(ChartType.trend, TODAY)


def test_insights_service_returns_snapshot_for_user() -> None:
    with Session(_engine()) as session:
        _add(session, 1, date(2025, 2, 10), TransactionType.expense, 10000, "Food")
        _add(session, 1, date(2025, 3, 3), TransactionType.expense, 15000, "Food")
        _add(session, 2, date(2025, 3, 3), TransactionType.expense, 99999, "Rent")
        _add(session, 1, date(2024, 11, 30), TransactionType.expense, 99999, "Rent")

        snapshot = InsightsService(session, 1).generate(TODAY)

        assert snapshot is not None
        assert snapshot.top_category == "Food"
        assert snapshot.monthly_spending_trend_pct == 50.0
        assert snapshot.budget_alert is True


def test_insights_service_empty_and_failure_give_no_snapshot() -> None:
    engine = _engine()
    with Session(engine) as session:
        assert InsightsService(session, 1).generate(TODAY) is None

    Base.metadata.drop_all(engine)
    with Session(engine) as session:
        assert InsightsService(session, 1).generate(TODAY) is None


def test_dashboard_summary() -> None:
    with Session(_engine()) as session:
        session.add_all(
            [
                BankAccount(user_id=1, name="Conta", current_balance_cents=150000),
                BankAccount(user_id=1, name="Cartao", current_balance_cents=-20000),
                BankAccount(user_id=2, name="Other", current_balance_cents=777),
            ]
        )
        _add(session, 1, date(2025, 3, 1), TransactionType.income, 500000)
        _add(session, 1, date(2025, 3, 5), TransactionType.expense, 12000)
        _add(session, 1, date(2025, 2, 27), TransactionType.expense, 3000)
        session.commit()

        summary = DashboardService(session, 1).summary(TODAY, recent_limit=2)

        assert summary.total_balance_cents == 130000
        assert summary.accounts_count == 2
        assert summary.month_income_cents == 500000
        assert summary.month_expense_cents == 12000
        assert [t.transaction_date for t in summary.recent_transactions] == [
            date(2025, 3, 5),
            date(2025, 3, 1),
        ]


def test_dashboard_failure_raises_fetch_error() -> None:
    engine = _engine()
    Base.metadata.drop_all(engine)
    with Session(engine) as session:
        with pytest.raises(FetchError):
            DashboardService(session, 1).summary(TODAY)


def test_transaction_create_normalizes_and_checks_account() -> None:
    with Session(_engine()) as session:
        other_account = BankAccount(user_id=2, name="Not mine")
        session.add(other_account)
        session.commit()

        service = TransactionService(session, 1)
        txn = service.create(
            TransactionIn(
                transaction_date=date(2025, 3, 1),
                type=TransactionType.expense,
                amount_cents=1299,
                category="  ",
                description=" Lunch ",
            )
        )
        assert txn.category is None
        assert txn.description == "Lunch"
        assert txn.user_id == 1

        with pytest.raises(ValueError, match="Bank account not found"):
            service.create(
                TransactionIn(
                    transaction_date=date(2025, 3, 1),
                    type=TransactionType.expense,
                    amount_cents=1,
                    bank_account_id=other_account.id,
                )
            )


def test_transaction_delete_is_scoped_to_owner() -> None:
    with Session(_engine()) as session:
        txn_id = _add(session, 1, date(2025, 3, 1), TransactionType.expense, 100).id
        session.commit()

        with pytest.raises(ValueError, match="Transaction not found"):
            TransactionService(session, 2).delete(txn_id)

        TransactionService(session, 1).delete(txn_id)
        assert session.get(Transaction, txn_id) is None


def test_goal_progress() -> None:
    with Session(_engine()) as session:
        session.add_all(
            [
                Goal(
                    user_id=1,
                    title="Viagem",
                    target_amount_cents=100000,
                    current_amount_cents=25000,
                ),
                Goal(
                    user_id=1,
                    title="Sem meta",
                    target_amount_cents=0,
                    current_amount_cents=500,
                ),
            ]
        )
        session.commit()

        service = GoalService(session, 1)
        by_title = {g.title: g for g in service.progress()}

        assert by_title["Viagem"].progress_pct == 25.0
        assert by_title["Sem meta"].progress_pct == 0.0
        with pytest.raises(ValueError, match="Goal not found"):
            GoalService(session, 2).get(by_title["Viagem"].id)


def test_goal_progress_failure_raises_fetch_error() -> None:
    engine = _engine()
    Base.metadata.drop_all(engine)
    with Session(engine) as session:
        with pytest.raises(FetchError) as info:
            GoalService(session, 1).progress()
        assert info.value.__cause__ is not None


def test_goal_create_update_delete() -> None:
    with Session(_engine()) as session:
        service = GoalService(session, 1)
        created = service.create(
            GoalIn(title=" Reserva ", target_amount="2.000,00", current_amount="500")
        )
        assert created.title == "Reserva"
        assert created.target_amount_cents == 200000
        assert created.progress_pct == 25.0
        assert created.status == GoalStatus.in_progress

        updated = service.update(
            created.id,
            GoalIn(
                title="Reserva",
                target_amount="0",
                current_amount="750",
                target_date=date(2025, 12, 31),
                status=GoalStatus.paused,
            ),
        )
        assert updated.progress_pct == 0.0
        assert updated.status == GoalStatus.paused
        assert updated.target_date == date(2025, 12, 31)

        with pytest.raises(ValueError, match="Invalid amount"):
            service.update(created.id, GoalIn(title="Reserva", target_amount="abc"))
        with pytest.raises(ValueError, match="Goal not found"):
            GoalService(session, 2).update(
                created.id, GoalIn(title="Mine", target_amount="1")
            )
        with pytest.raises(ValueError, match="Goal not found"):
            GoalService(session, 2).delete(created.id)

        service.delete(created.id)
        assert service.progress() == []


def test_charts_ignore_transactions_dated_after_today() -> None:
    with Session(_engine()) as session:
        _add(session, 1, date(2025, 3, 10), TransactionType.expense, 500, "Food")
        _add(session, 1, date(2025, 3, 20), TransactionType.expense, 9000, "Rent")
        _add(session, 1, date(2025, 4, 2), TransactionType.income, 7000)

        service = ChartService(session, 1)
        monthly = service.chart(ChartType.monthly, TODAY)
        category = service.chart(ChartType.category, TODAY)
        trend = service.chart(ChartType.trend, TODAY)

        assert [(p.name, p.value_cents, p.income_cents) for p in monthly.points] == [
            ("2025-03", 500, 0)
        ]
        assert [(p.name, p.value_cents) for p in category.points] == [("Food", 500)]
        assert [(p.name, p.value_cents) for p in trend.points] == [("2025-03-10", 500)]


def test_fetcher_counts_malformed_stored_amount_as_zero() -> None:
    with Session(_engine()) as session:
        _add(session, 1, date(2025, 3, 2), TransactionType.expense, 1250)
        session.execute(
            text(
                "INSERT INTO transactions "
                "(user_id, transaction_date, type, amount_cents, created_at, updated_at) "
                "VALUES (1, '2025-03-01', 'expense', 'abc', "
                "'2025-03-01 00:00:00', '2025-03-01 00:00:00')"
            )
        )

        rows = TransactionFetcher(session).fetch_transactions(
            1, date(2025, 1, 1), order="asc"
        )

        assert [r.amount_cents for r in rows] == [0, 1250]
        chart = ChartService(session, 1).chart(ChartType.trend, TODAY)
        assert [(p.name, p.value_cents) for p in chart.points] == [
            ("2025-03-01", 0),
            ("2025-03-02", 1250),
        ]


def test_suggest_category_matches_keywords() -> None:
    assert suggest_category("Compra no Supermercado") == "Alimentação"
    assert suggest_category("uber para o trabalho") == "Transporte"
    assert suggest_category("Aluguel de março") == "Moradia"
    assert suggest_category("Farmácia") == "Saúde"
    assert suggest_category("Cinema") is None
    assert suggest_category("") is None
    assert suggest_category(None) is None


def test_transaction_create_parses_amount_and_suggests_category() -> None:
    with Session(_engine()) as session:
        service = TransactionService(session, 1)
        txn = service.create(
            TransactionIn(
                transaction_date=date(2025, 3, 1),
                type=TransactionType.expense,
                amount="1.234,56",
                description="Gasolina",
            )
        )
        assert txn.amount_cents == 123456
        assert txn.category == "Transporte"

        kept = service.create(
            TransactionIn(
                transaction_date=date(2025, 3, 1),
                type=TransactionType.expense,
                amount_cents=100,
                category="Lazer",
                description="restaurante",
            )
        )
        assert kept.category == "Lazer"

        with pytest.raises(ValueError, match="Invalid amount"):
            service.create(
                TransactionIn(
                    transaction_date=date(2025, 3, 1),
                    type=TransactionType.expense,
                    amount="1e30",
                )
            )
        with pytest.raises(ValueError, match="Amount is required"):
            service.create(
                TransactionIn(
                    transaction_date=date(2025, 3, 1),
                    type=TransactionType.expense,
                )
            )


def test_transaction_list_filters_by_type() -> None:
    with Session(_engine()) as session:
        _add(session, 1, date(2025, 3, 1), TransactionType.expense, 100)
        _add(session, 1, date(2025, 3, 3), TransactionType.income, 200)
        _add(session, 1, date(2025, 3, 2), TransactionType.expense, 300)
        _add(session, 2, date(2025, 3, 4), TransactionType.expense, 400)

        service = TransactionService(session, 1)

        assert [r.amount_cents for r in service.list()] == [200, 300, 100]
        assert [
            r.amount_cents for r in service.list(type_filter=TransactionType.expense)
        ] == [300, 100]
        assert [r.amount_cents for r in service.list(limit=1)] == [200]


def test_account_create_and_list() -> None:
    with Session(_engine()) as session:
        service = AccountService(session, 1)
        checking = service.create(
            BankAccountIn(name=" Conta ", bank_name="Banco", initial_balance="1.500,00")
        )
        card = service.create(
            BankAccountIn(
                name="Cartao",
                account_type=AccountType.credit_card,
                description="  ",
                initial_balance="-200",
            )
        )
        AccountService(session, 2).create(BankAccountIn(name="Other"))

        assert checking.name == "Conta"
        assert checking.current_balance_cents == 150000
        assert card.current_balance_cents == -20000
        assert card.description is None
        assert [a.id for a in service.list()] == [card.id, checking.id]

        with pytest.raises(ValueError, match="Invalid amount"):
            service.create(BankAccountIn(name="Bad", initial_balance="abc"))
        with pytest.raises(ValueError, match="Account name is required"):
            service.create(BankAccountIn(name="   "))

        summary = DashboardService(session, 1).summary(TODAY)
        assert summary.total_balance_cents == 130000
        assert summary.accounts_count == 2


def test_account_list_failure_raises_fetch_error() -> None:
    engine = _engine()
    Base.metadata.drop_all(engine)
    with Session(engine) as session:
        with pytest.raises(FetchError):
            AccountService(session, 1).list()
