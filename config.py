import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        monthly_window_days: int,
        category_window_days: int,
        trend_window_days: int,
        insight_window_months: int,
        top_categories: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.monthly_window_days = monthly_window_days
        self.category_window_days = category_window_days
        self.trend_window_days = trend_window_days
        self.insight_window_months = insight_window_months
        self.top_categories = top_categories


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "finance.db"
    database_url = os.getenv("FINANCE_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FINANCE_TIMEZONE", "America/Sao_Paulo")
    monthly_window_days = int(os.getenv("FINANCE_MONTHLY_WINDOW_DAYS", "180"))
    category_window_days = int(os.getenv("FINANCE_CATEGORY_WINDOW_DAYS", "30"))
    trend_window_days = int(os.getenv("FINANCE_TREND_WINDOW_DAYS", "90"))
    insight_window_months = int(os.getenv("FINANCE_INSIGHT_WINDOW_MONTHS", "3"))
    top_categories = int(os.getenv("FINANCE_TOP_CATEGORIES", "8"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        monthly_window_days=monthly_window_days,
        category_window_days=category_window_days,
        trend_window_days=trend_window_days,
        insight_window_months=insight_window_months,
        top_categories=top_categories,
    )
