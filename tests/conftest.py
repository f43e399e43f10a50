import os
import tempfile

os.environ.setdefault("FINANCE_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault(
    "FINANCE_DATA_DIR", os.path.join(tempfile.gettempdir(), "finance-tracker-tests")
)
