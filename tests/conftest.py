import pytest

from categorizer import RuleTable
from engine import BudgetSession
from models import Transaction
from storage import SAMPLE_TRANSACTIONS, MemoryStore


def txn(description, amount, category=None, date="2025-10-01"):
    return Transaction(date=date, description=description, amount=amount, category=category)


@pytest.fixture
def rules():
    return RuleTable.default()


@pytest.fixture
def sample_transactions():
    return [Transaction(**row) for row in SAMPLE_TRANSACTIONS]


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def session(store):
    return BudgetSession(store)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep tests away from any developer .env or local snapshot."""
    for var in ("BUDGET_STORE", "BUDGET_STORE_DIR", "DATABASE_URL", "S3_BUCKET", "S3_PREFIX", "BUDGET_COACH_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
