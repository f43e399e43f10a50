import logging
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from sqlalchemy.orm import Session

from database import get_db, init_db
from models import TransactionType
from periods import today_local
from schemas import (
    BankAccountIn,
    BankAccountOut,
    ChartOut,
    ChartType,
    DashboardSummaryOut,
    GoalIn,
    GoalProgressOut,
    InsightSnapshotOut,
    InsightsOut,
    TransactionIn,
    TransactionOut,
)
from services import (
    AccountService,
    ChartService,
    DashboardService,
    FetchError,
    GoalService,
    InsightsService,
    TransactionService,
    suggest_category,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _load_app_version() -> str:
    try:
        import tomllib
    except Exception:
        return "unknown"
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except Exception:
        return "unknown"


APP_VERSION = _load_app_version()

app = FastAPI(title="Finance Tracker", version=APP_VERSION)


@app.on_event("startup")
def startup_event():
    init_db()
    logger.info(f"startup: version={APP_VERSION}")


def user_id_param(user_id: int = Query(..., gt=0)) -> int:
    return user_id


def today_param(today: Optional[date] = None) -> date:
    return today or today_local()


@app.get("/api/charts/{chart_type}", response_model=ChartOut)
def api_chart(
    chart_type: ChartType,
    user_id: int = Depends(user_id_param),
    today: date = Depends(today_param),
    db: Session = Depends(get_db),
):
    try:
        return ChartService(db, user_id).chart(chart_type, today)
    except FetchError as exc:
        raise HTTPException(status_code=503, detail="Charts unavailable") from exc


@app.get("/api/insights", response_model=InsightsOut)
def api_insights(
    user_id: int = Depends(user_id_param),
    today: date = Depends(today_param),
    db: Session = Depends(get_db),
):
    snapshot = InsightsService(db, user_id).generate(today)
    return InsightsOut(
        available=snapshot is not None,
        generated_at=datetime.now(timezone.utc),
        snapshot=(
            InsightSnapshotOut.model_validate(snapshot) if snapshot is not None else None
        ),
    )


@app.get("/api/dashboard", response_model=DashboardSummaryOut)
def api_dashboard(
    user_id: int = Depends(user_id_param),
    today: date = Depends(today_param),
    db: Session = Depends(get_db),
):
    try:
        return DashboardService(db, user_id).summary(today)
    except FetchError as exc:
        raise HTTPException(status_code=503, detail="Dashboard unavailable") from exc


@app.get("/api/goals", response_model=list[GoalProgressOut])
def api_goals(user_id: int = Depends(user_id_param), db: Session = Depends(get_db)):
    try:
        return GoalService(db, user_id).progress()
    except FetchError as exc:
        raise HTTPException(status_code=503, detail="Goals unavailable") from exc


@app.get("/api/goals/{goal_id}", response_model=GoalProgressOut)
def api_goal(
    goal_id: int,
    user_id: int = Depends(user_id_param),
    db: Session = Depends(get_db),
):
    try:
        return GoalService(db, user_id).get(goal_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.post("/api/transactions", response_model=TransactionOut, status_code=201)
def api_create_transaction(
    payload: TransactionIn,
    user_id: int = Depends(user_id_param),
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db, user_id).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return TransactionOut.model_validate(txn)


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def api_delete_transaction(
    transaction_id: int,
    user_id: int = Depends(user_id_param),
    db: Session = Depends(get_db),
):
    try:
        TransactionService(db, user_id).delete(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.get("/api/transactions", response_model=list[TransactionOut])
def api_transactions(
    txn_type: Optional[TransactionType] = Query(default=None, alias="type"),
    limit: Optional[int] = Query(default=None, gt=0),
    user_id: int = Depends(user_id_param),
    db: Session = Depends(get_db),
):
    try:
        records = TransactionService(db, user_id).list(
            type_filter=txn_type, limit=limit
        )
    except FetchError as exc:
        raise HTTPException(status_code=503, detail="Transactions unavailable") from exc
    return [TransactionOut.model_validate(record) for record in records]


@app.get("/api/transactions/suggest-category")
def api_suggest_category(description: str = ""):
    return {"category": suggest_category(description)}


@app.get("/api/accounts", response_model=list[BankAccountOut])
def api_accounts(user_id: int = Depends(user_id_param), db: Session = Depends(get_db)):
    try:
        return AccountService(db, user_id).list()
    except FetchError as exc:
        raise HTTPException(status_code=503, detail="Accounts unavailable") from exc


@app.post("/api/accounts", response_model=BankAccountOut, status_code=201)
def api_create_account(
    payload: BankAccountIn,
    user_id: int = Depends(user_id_param),
    db: Session = Depends(get_db),
):
    try:
        return AccountService(db, user_id).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.post("/api/goals", response_model=GoalProgressOut, status_code=201)
def api_create_goal(
    payload: GoalIn,
    user_id: int = Depends(user_id_param),
    db: Session = Depends(get_db),
):
    try:
        return GoalService(db, user_id).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.put("/api/goals/{goal_id}", response_model=GoalProgressOut)
def api_update_goal(
    goal_id: int,
    payload: GoalIn,
    user_id: int = Depends(user_id_param),
    db: Session = Depends(get_db),
):
    service = GoalService(db, user_id)
    try:
        service.get(goal_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    try:
        return service.update(goal_id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.delete("/api/goals/{goal_id}", status_code=204)
def api_delete_goal(
    goal_id: int,
    user_id: int = Depends(user_id_param),
    db: Session = Depends(get_db),
):
    try:
        GoalService(db, user_id).delete(goal_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
