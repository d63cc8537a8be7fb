"""Pytest configuration for the stock ledger test suite."""

import os
import tempfile
from datetime import date, datetime

# Configure the application before any stock_ledger module reads the environment
_TEST_ROOT = tempfile.mkdtemp(prefix="stock-ledger-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_ROOT, 'stock_ledger.db')}"
os.environ["CACHE_DRIVER"] = "memory"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["STOCK_IMPORT_CHUNK_SIZE"] = "500"
os.environ["STOCK_IMPORT_DISK"] = "local"
os.environ["STOCK_IMPORT_LOCAL_ROOT"] = os.path.join(_TEST_ROOT, "storage")
os.environ["LOG_PATH"] = os.path.join(_TEST_ROOT, "stock_ledger.log")
os.environ["LOG_LEVEL"] = "WARNING"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import stock_ledger.models  # noqa: E402,F401
from stock_ledger import dependencies  # noqa: E402
from stock_ledger.celery_app import celery_app  # noqa: E402
from stock_ledger.database import Base, SessionLocal, engine  # noqa: E402
from stock_ledger.models.company import Company  # noqa: E402
from stock_ledger.models.enums import StockImportStatus  # noqa: E402
from stock_ledger.models.stock_import import StockImport  # noqa: E402
from stock_ledger.models.stock_price import StockPrice  # noqa: E402
from stock_ledger.models.user import User  # noqa: E402
from stock_ledger.services.auth_service import hash_password, issue_api_token  # noqa: E402
from stock_ledger.services.file_storage import LocalFileStorage  # noqa: E402
from stock_ledger.services.price import Price  # noqa: E402
from stock_ledger.utils.clock import FrozenClock  # noqa: E402

PASSWORD = "secret-password"


@pytest.fixture(autouse=True)
def database():
    """Fresh schema for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    dependencies._memory_cache.clear()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 5, 10, 12, 0, 0))


@pytest.fixture
def storage():
    return LocalFileStorage()


@pytest.fixture
def make_company(db):
    counter = {"value": 0}

    def _make_company(symbol=None, name=None, updated_at=None):
        counter["value"] += 1
        symbol = symbol or f"CMP{counter['value']}"
        company = Company(
            name=name or f"Company {symbol}",
            symbol=symbol,
            slug=symbol.lower(),
            updated_at=updated_at or datetime(2024, 1, 1, 0, 0, 0),
        )
        db.add(company)
        db.commit()
        return company

    return _make_company


@pytest.fixture
def company(make_company):
    return make_company("ACME", "Acme Corp")


@pytest.fixture
def add_prices(db):
    """Insert {date or "YYYY-MM-DD": "price"} rows for a company."""

    def _add_prices(company, prices):
        for traded_on, price in prices.items():
            if isinstance(traded_on, str):
                traded_on = date.fromisoformat(traded_on)
            db.add(StockPrice(company_id=company.id, traded_on=traded_on, price=Price.from_string(price)))
        db.commit()

    return _add_prices


@pytest.fixture
def make_import(db, storage):
    """Store file content and create a StockImport pointing at it."""
    counter = {"value": 0}

    def _make_import(company, content=b"", filename="prices.csv", status=StockImportStatus.QUEUED, **fields):
        counter["value"] += 1
        stored_path = f"imports/test-{counter['value']}{os.path.splitext(filename)[1]}"
        storage.store(content, stored_path)

        stock_import = StockImport(
            company_id=company.id,
            original_filename=filename,
            stored_path=stored_path,
            disk="local",
            status=status,
            **fields,
        )
        db.add(stock_import)
        db.commit()
        return stock_import

    return _make_import


@pytest.fixture
def api_user(db):
    user = User(name="Analyst", email="analyst@example.com", password_hash=hash_password(PASSWORD))
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def auth_headers(db, api_user):
    _, token = issue_api_token(db, api_user, "tests")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client():
    from stock_ledger.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def eager_celery():
    """Run tasks inline without re-raising task errors into the caller."""
    previous = (celery_app.conf.task_always_eager, celery_app.conf.task_eager_propagates)
    celery_app.conf.task_always_eager = True
    celery_app.conf.task_eager_propagates = False
    yield celery_app
    celery_app.conf.task_always_eager, celery_app.conf.task_eager_propagates = previous


@pytest.fixture
def make_csv():
    def _make_csv(rows, header="date,stock_price"):
        lines = [header] + [",".join(str(value) for value in row) for row in rows]
        return ("\n".join(lines) + "\n").encode()

    return _make_csv
