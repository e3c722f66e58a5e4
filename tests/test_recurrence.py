"""Tests for recurring templates and the recurrence scheduler."""

import threading
import pytest
from datetime import date, timedelta
from decimal import Decimal

from ledgerkit.domain.entities import EntryStatus, Frequency
from ledgerkit.domain.errors import NotFoundError, StorageError, ValidationError
from ledgerkit.domain.events import EventTypes
from ledgerkit.domain.recurrence import MAX_SWEEP_WAIT, next_due_date


class TestNextDueDate:
    """Tests for next_due_date."""

    def test_monthly_does_not_drift(self):
        due = date(2024, 1, 1)
        dates = []
        for _ in range(12):
            due = next_due_date(due, "monthly", anchor_day=1)
            dates.append(due)

        assert dates[0] == date(2024, 2, 1)
        assert dates[-1] == date(2025, 1, 1)
        assert all(d.day == 1 for d in dates)

    def test_month_end_clamps_and_recovers(self):
        february = next_due_date(date(2024, 1, 31), Frequency.MONTHLY, anchor_day=31)
        march = next_due_date(february, Frequency.MONTHLY, anchor_day=31)

        assert february == date(2024, 2, 29)
        assert march == date(2024, 3, 31)

    @pytest.mark.parametrize(
        "frequency, interval, expected",
        [
            ("daily", 1, date(2024, 1, 16)),
            ("daily", 10, date(2024, 1, 25)),
            ("weekly", 2, date(2024, 1, 29)),
            ("monthly", 3, date(2024, 4, 15)),
            ("quarterly", 1, date(2024, 4, 15)),
            ("yearly", 1, date(2025, 1, 15)),
        ],
    )
    def test_frequencies(self, frequency, interval, expected):
        assert next_due_date(date(2024, 1, 15), frequency, interval, anchor_day=15) == expected

    def test_yearly_leap_day(self):
        assert next_due_date(date(2024, 2, 29), "yearly", anchor_day=29) == date(2025, 2, 28)


@pytest.fixture
def rent_template(scheduler, accounts):
    """Monthly rent, debiting Rent Expense and crediting Checking."""
    result = scheduler.create_template(
        name="Office rent",
        description="Office rent",
        amount=Decimal("1500"),
        account_id=accounts["6000"].id,
        offset_account_id=accounts["1010"].id,
        frequency="monthly",
        start_date=date(2024, 1, 31),
        category="Occupancy",
        auto_execute=True,
    )
    assert result.ok, result.validation
    return result.template


def test_create_template(rent_template):
    """Test a new template is first due on its start date."""
    assert rent_template.next_due_date == date(2024, 1, 31)
    assert rent_template.frequency is Frequency.MONTHLY
    assert rent_template.interval == 1
    assert rent_template.currency == "USD"
    assert rent_template.is_active


def test_create_template_invalid(scheduler, accounts):
    """Test invalid templates return errors instead of being stored."""
    result = scheduler.create_template(
        name="",
        description="Broken",
        amount=Decimal("-1"),
        account_id=accounts["6000"].id,
        offset_account_id=999,
        frequency="hourly",
        start_date=date(2024, 1, 1),
    )

    assert not result.ok
    assert result.validation.error_codes() == {
        "NAME_REQUIRED",
        "INVALID_AMOUNT",
        "INVALID_FREQUENCY",
        "ACCOUNT_NOT_FOUND",
    }
    assert scheduler.list_templates() == []


def test_execute_posts_and_advances(scheduler, ledger, accounts, rent_template):
    """Test executing posts the occurrence and moves the due date."""
    result = scheduler.execute(rent_template.id)

    assert result.ok
    entry = result.entry
    assert entry.status is EntryStatus.POSTED
    assert entry.date == date(2024, 1, 31)
    assert entry.description == "Recurring: Office rent"
    assert entry.reference == f"RT-{rent_template.id}"
    assert entry.tags == ("Occupancy",)
    assert entry.posted_by == "scheduler"
    assert result.template.next_due_date == date(2024, 2, 29)
    assert result.template.last_executed_at is not None
    assert ledger.get_account(accounts["6000"].id).current_balance == Decimal("1500")

    following = scheduler.execute(rent_template.id)
    assert following.template.next_due_date == date(2024, 3, 31)


def test_execute_past_end_date_deactivates(scheduler, accounts):
    """Test the template ends once the next occurrence falls after end_date."""
    template = scheduler.create_template(
        name="Deposit",
        description="Deposit instalment",
        amount=Decimal("100"),
        account_id=accounts["1000"].id,
        offset_account_id=accounts["3000"].id,
        frequency="weekly",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 10),
    ).template

    first = scheduler.execute(template.id)
    second = scheduler.execute(template.id)

    assert first.template.is_active
    assert second.ok
    assert not second.template.is_active
    with pytest.raises(ValidationError, match="inactive"):
        scheduler.execute(template.id)


def test_execute_failure_keeps_due_date(scheduler, ledger, accounts, rent_template):
    """Test a failed occurrence is reported and not skipped."""
    ledger.deactivate_account(accounts["1010"].id)

    result = scheduler.execute(rent_template.id)

    assert not result.ok
    assert "inactive" in result.error
    assert scheduler.get_template(rent_template.id).next_due_date == date(2024, 1, 31)


def _fail_once(original):
    calls = []

    def wrapper(*args, **kwargs):
        if not calls:
            calls.append(1)
            raise StorageError("Database operation failed: disk I/O error")
        return original(*args, **kwargs)

    return wrapper


def test_execute_rolls_back_entry_when_advance_fails(
    monkeypatch, scheduler, ledger, accounts, rent_template
):
    """Test a failed due date update leaves no posted entry behind."""
    monkeypatch.setattr(
        scheduler.db, "update_template_schedule", _fail_once(scheduler.db.update_template_schedule)
    )

    result = scheduler.execute(rent_template.id)

    assert not result.ok
    assert "disk I/O error" in result.error
    assert ledger.search_entries() == []
    assert ledger.get_account(accounts["6000"].id).current_balance == Decimal("0")
    assert scheduler.get_template(rent_template.id).next_due_date == date(2024, 1, 31)


def test_execute_rolls_back_due_date_when_posting_fails(
    monkeypatch, scheduler, ledger, accounts, rent_template
):
    """Test a failed balance update keeps the occurrence due."""
    monkeypatch.setattr(ledger.propagator, "apply", _fail_once(ledger.propagator.apply))

    result = scheduler.execute(rent_template.id)

    assert not result.ok
    assert ledger.search_entries() == []
    assert ledger.get_account(accounts["1010"].id).current_balance == Decimal("50000")
    assert scheduler.get_template(rent_template.id).next_due_date == date(2024, 1, 31)


def test_sweep_retries_after_storage_failure(monkeypatch, scheduler, ledger, accounts, rent_template):
    """Test a storage failure is reported and the next sweep posts exactly once."""
    monkeypatch.setattr(
        scheduler.db, "update_template_schedule", _fail_once(scheduler.db.update_template_schedule)
    )

    failed = scheduler.sweep(today=date(2024, 2, 1))
    retried = scheduler.sweep(today=date(2024, 2, 1))

    assert len(failed.failed) == 1
    assert failed.executed == ()
    assert len(retried.executed) == 1
    entries = ledger.search_entries()
    assert [e.date for e in entries] == [date(2024, 1, 31)]
    assert ledger.get_account(accounts["6000"].id).current_balance == Decimal("1500")
    assert scheduler.get_template(rent_template.id).next_due_date == date(2024, 2, 29)


def test_sweep_continues_past_template_errors(monkeypatch, scheduler, ledger, accounts, rent_template):
    """Test one template raising doesn't stop the others from running."""
    travel = scheduler.create_template(
        name="Train pass",
        description="Train pass",
        amount=Decimal("80"),
        account_id=accounts["6400"].id,
        offset_account_id=accounts["1000"].id,
        frequency="monthly",
        start_date=date(2024, 1, 15),
        auto_execute=True,
    ).template
    original = scheduler.execute

    def execute(template_id, posted_by=None):
        if template_id == rent_template.id:
            raise StorageError("Timed out waiting for the lock on account 1")
        return original(template_id, posted_by)

    monkeypatch.setattr(scheduler, "execute", execute)

    result = scheduler.sweep(today=date(2024, 2, 1))

    assert [r.template.id for r in result.failed] == [rent_template.id]
    assert "Timed out" in result.failed[0].error
    assert [r.template.id for r in result.executed] == [travel.id]


def test_execute_unknown_template(scheduler):
    """Test executing a missing template raises NotFoundError."""
    with pytest.raises(NotFoundError):
        scheduler.execute(999)


def test_skip_advances_without_posting(scheduler, ledger, rent_template):
    """Test skipping an occurrence."""
    skipped = scheduler.skip(rent_template.id)

    assert skipped.next_due_date == date(2024, 2, 29)
    assert ledger.search_entries() == []


def test_deactivate(scheduler, rent_template):
    """Test deactivated templates are no longer due."""
    scheduler.deactivate(rent_template.id)

    assert scheduler.due_templates(as_of=date(2030, 1, 1)) == []


def test_due_templates_horizon(scheduler, rent_template):
    """Test the horizon extends the due window."""
    assert scheduler.due_templates(as_of=date(2024, 1, 25)) == []
    assert [t.id for t in scheduler.due_templates(as_of=date(2024, 1, 25), horizon_days=7)] == [rent_template.id]


def test_sweep_executes_auto_templates(scheduler, rent_template):
    """Test the sweep posts due auto-execute templates once per sweep."""
    result = scheduler.sweep(today=date(2024, 3, 1))

    assert len(result.executed) == 1
    assert result.failed == ()
    assert scheduler.get_template(rent_template.id).next_due_date == date(2024, 2, 29)

    second = scheduler.sweep(today=date(2024, 3, 1))
    assert len(second.executed) == 1
    assert scheduler.get_template(rent_template.id).next_due_date == date(2024, 3, 31)


def test_sweep_announces_manual_templates(scheduler, accounts, events):
    """Test templates needing a human are pending with a template.due event."""
    template = scheduler.create_template(
        name="Insurance",
        description="Insurance premium",
        amount=Decimal("300"),
        account_id=accounts["6000"].id,
        offset_account_id=accounts["1010"].id,
        frequency="quarterly",
        start_date=date(2024, 4, 5),
    ).template
    events.received.clear()

    result = scheduler.sweep(today=date(2024, 4, 1))

    assert result.executed == ()
    assert [t.id for t in result.pending] == [template.id]
    due_events = [e for e in events.received if e.name == EventTypes.TEMPLATE_DUE]
    assert len(due_events) == 1
    assert due_events[0].payload["due_date"] == date(2024, 4, 5)
    assert due_events[0].payload["name"] == "Insurance"


def test_sweep_reports_failures(scheduler, ledger, accounts, rent_template):
    """Test failing templates are listed and keep their due date."""
    ledger.deactivate_account(accounts["6000"].id)

    result = scheduler.sweep(today=date(2024, 2, 1))

    assert len(result.failed) == 1
    assert result.failed[0].template.id == rent_template.id
    assert scheduler.get_template(rent_template.id).next_due_date == date(2024, 1, 31)


def test_sweep_interval(scheduler, accounts, rent_template):
    """Test the sweep runs at the finest active frequency, whatever the interval."""
    assert scheduler.sweep_interval() == timedelta(days=28)

    scheduler.create_template(
        name="Coffee",
        description="Coffee beans",
        amount=Decimal("12"),
        account_id=accounts["6400"].id,
        offset_account_id=accounts["1000"].id,
        frequency="weekly",
        interval=2,
        start_date=date(2024, 1, 1),
    )

    assert scheduler.sweep_interval() == timedelta(weeks=1)


def test_sweep_interval_without_templates(scheduler):
    """Test the default sweep interval is one day."""
    assert scheduler.sweep_interval() == timedelta(days=1)


def test_run_stops_when_signalled(scheduler, accounts, rent_template):
    """Test the scheduler loop sweeps and exits once the stop event is set."""
    stop = threading.Event()
    sweeps = []

    def today():
        sweeps.append(1)
        stop.set()
        return date(2024, 2, 1)

    scheduler.run(stop, today=today)

    assert sweeps == [1]
    assert scheduler.get_template(rent_template.id).next_due_date == date(2024, 2, 29)


class _RecordingStop(threading.Event):
    """Stop event that records each wait and stops the loop right away."""

    def __init__(self):
        super().__init__()
        self.timeouts = []

    def wait(self, timeout=None):
        self.timeouts.append(timeout)
        self.set()
        return True


def test_run_waits_at_most_a_day(scheduler, accounts):
    """Test a coarse template doesn't stretch the pause between sweeps."""
    scheduler.create_template(
        name="Licence",
        description="Software licence",
        amount=Decimal("900"),
        account_id=accounts["6400"].id,
        offset_account_id=accounts["1010"].id,
        frequency="yearly",
        interval=2,
        start_date=date(2024, 6, 1),
        auto_execute=True,
    )
    stop = _RecordingStop()

    scheduler.run(stop, today=lambda: date(2024, 1, 1))

    assert scheduler.sweep_interval() == timedelta(days=365)
    assert stop.timeouts == [MAX_SWEEP_WAIT.total_seconds()]
    assert MAX_SWEEP_WAIT == timedelta(days=1)


def test_engine_background_scheduler(engine):
    """Test the engine starts and stops its scheduler thread."""
    engine.start_scheduler()
    engine.stop_scheduler(timeout=5)

    assert engine._scheduler_thread is None
