"""Shared pytest fixtures for ledgerkit tests."""

import tempfile
import os
from datetime import date
from decimal import Decimal
import pytest

from ledgerkit.config import LedgerConfig
from ledgerkit.database.factories import create_sqlite_database
from ledgerkit.domain.engine import LedgerEngine
from ledgerkit.domain.entities import EntryDraft, LineItem
from ledgerkit.domain.events import EventBus

# (code, name, type, opening balance) of the sample chart of accounts
SAMPLE_CHART = [
    ("1000", "Cash", "asset", Decimal("0")),
    ("1010", "Checking", "asset", Decimal("50000")),
    ("2000", "Credit Card", "liability", Decimal("0")),
    ("3000", "Owner Equity", "equity", Decimal("50000")),
    ("4000", "Sales", "revenue", Decimal("0")),
    ("6000", "Rent Expense", "expense", Decimal("0")),
    ("6400", "Travel", "expense", Decimal("0")),
]


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def config():
    """Default ledger configuration."""
    return LedgerConfig()


@pytest.fixture
def events():
    """Event bus that records every emitted event."""
    bus = EventBus()
    bus.received = []
    bus.subscribe("*", bus.received.append)
    return bus


@pytest.fixture
def engine(temp_db, config, events):
    """Create a LedgerEngine over the temporary database."""
    engine = LedgerEngine(temp_db, config, events)
    yield engine
    engine.stop_scheduler(timeout=5)


@pytest.fixture
def ledger(engine):
    """LedgerService of the test engine."""
    return engine.ledger


@pytest.fixture
def scheduler(engine):
    """RecurrenceScheduler of the test engine."""
    return engine.scheduler


@pytest.fixture
def reconciliation(engine):
    """ReconciliationMatcher of the test engine."""
    return engine.reconciliation


@pytest.fixture
def categorization(engine):
    """CategorizationEngine of the test engine."""
    return engine.categorization


@pytest.fixture
def accounts(ledger):
    """Create the sample chart of accounts, keyed by code."""
    created = {}
    for code, name, account_type, opening_balance in SAMPLE_CHART:
        created[code] = ledger.create_account(
            code=code, name=name, account_type=account_type, opening_balance=opening_balance
        )
    return created


@pytest.fixture
def post_entry(ledger):
    """Post a balanced two-line entry: debit one account, credit another."""

    def _post(debit_account, credit_account, amount, entry_date=None, description="Test entry", **kwargs):
        draft = EntryDraft(
            date=entry_date or date.today(),
            description=description,
            line_items=(
                LineItem.debit(debit_account.id, Decimal(amount)),
                LineItem.credit(credit_account.id, Decimal(amount)),
            ),
            **kwargs,
        )
        result = ledger.create_entry(draft, post=True)
        assert result.ok, result.validation
        return result.entry

    return _post


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
