"""Tests for the recurring transaction CLI commands."""

from datetime import date
from decimal import Decimal

import pytest

from ledgerkit.cli.main import cli


def _invoke(cli_runner, temp_db, *args):
    return cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "recurring", *args])


@pytest.fixture
def rent_template(scheduler, accounts):
    """Auto-executing monthly rent, first due 2024-01-31."""
    return scheduler.create_template(
        name="Rent",
        description="Office rent",
        amount=Decimal("1500"),
        account_id=accounts["6000"].id,
        offset_account_id=accounts["1010"].id,
        frequency="monthly",
        start_date=date(2024, 1, 31),
        auto_execute=True,
    ).template


def test_add_template(cli_runner, temp_db, accounts):
    """Test creating a template via CLI."""
    result = _invoke(
        cli_runner,
        temp_db,
        "add",
        "Rent",
        "--description",
        "Office rent",
        "--amount",
        "1500",
        "--debit",
        "6000",
        "--credit",
        "1010",
        "--frequency",
        "monthly",
        "--start",
        "2024-01-31",
        "--auto",
    )

    assert result.exit_code == 0
    assert "Created recurring template 'Rent' (ID:" in result.output
    assert "first due 2024-01-31" in result.output


def test_add_template_invalid(cli_runner, temp_db, accounts):
    """Test validation errors are listed."""
    result = _invoke(
        cli_runner,
        temp_db,
        "add",
        "Rent",
        "--description",
        "Office rent",
        "--amount",
        "0",
        "--debit",
        "6000",
        "--credit",
        "1010",
        "--frequency",
        "monthly",
    )

    assert result.exit_code == 1
    assert "Recurring template failed validation" in result.output
    assert "amount:" in result.output


def test_add_template_unknown_account(cli_runner, temp_db, accounts):
    """Test an unknown account is rejected before validation."""
    result = _invoke(
        cli_runner,
        temp_db,
        "add",
        "Rent",
        "--description",
        "Office rent",
        "--amount",
        "1500",
        "--debit",
        "9999",
        "--credit",
        "1010",
        "--frequency",
        "monthly",
    )

    assert result.exit_code == 1
    assert "Account 9999 not found" in result.output


def test_list_templates(cli_runner, temp_db, rent_template):
    """Test listing templates."""
    result = _invoke(cli_runner, temp_db, "list")

    assert result.exit_code == 0
    assert "Recurring templates:" in result.output
    assert "Rent" in result.output
    assert "next 2024-01-31 [auto]" in result.output


def test_list_templates_empty(cli_runner, temp_db):
    """Test listing with no templates."""
    result = _invoke(cli_runner, temp_db, "list")

    assert result.exit_code == 0
    assert "No recurring templates found." in result.output


def test_due_templates(cli_runner, temp_db, rent_template):
    """Test the horizon option widens the due window."""
    none_due = _invoke(cli_runner, temp_db, "due", "--as-of", "2024-01-25")
    assert "No recurring templates are due." in none_due.output

    due = _invoke(cli_runner, temp_db, "due", "--as-of", "2024-01-25", "--horizon", "7")
    assert due.exit_code == 0
    assert "Rent" in due.output


def test_execute_template(cli_runner, temp_db, rent_template):
    """Test executing posts an entry and reports the next due date."""
    result = _invoke(cli_runner, temp_db, "execute", str(rent_template.id))

    assert result.exit_code == 0
    assert "Posted entry JE-000001 for 'Rent'" in result.output
    assert "Next due 2024-02-29" in result.output


def test_execute_failure(cli_runner, temp_db, ledger, accounts, rent_template):
    """Test a failed occurrence exits with its error."""
    ledger.deactivate_account(accounts["1010"].id)

    result = _invoke(cli_runner, temp_db, "execute", str(rent_template.id))

    assert result.exit_code == 1
    assert "inactive" in result.output


def test_execute_unknown_template(cli_runner, temp_db):
    """Test executing a missing template."""
    result = _invoke(cli_runner, temp_db, "execute", "999")

    assert result.exit_code == 1
    assert "Recurring template 999 not found" in result.output


def test_skip_template(cli_runner, temp_db, rent_template):
    """Test skipping an occurrence."""
    result = _invoke(cli_runner, temp_db, "skip", str(rent_template.id))

    assert result.exit_code == 0
    assert "Skipped occurrence of 'Rent', next due 2024-02-29" in result.output


def test_deactivate_template(cli_runner, temp_db, rent_template):
    """Test deactivating a template."""
    result = _invoke(cli_runner, temp_db, "deactivate", str(rent_template.id))

    assert result.exit_code == 0
    assert "Deactivated recurring template 'Rent'" in result.output

    listed = _invoke(cli_runner, temp_db, "list", "--active-only")
    assert "No recurring templates found." in listed.output


def test_sweep(cli_runner, temp_db, rent_template):
    """Test the sweep executes due auto templates."""
    result = _invoke(cli_runner, temp_db, "sweep", "--today", "2024-03-01")

    assert result.exit_code == 0
    assert "Executed 'Rent' as JE-000001" in result.output
    assert "Sweep complete: 1 executed, 0 failed, 0 pending" in result.output


def test_sweep_reports_failures(cli_runner, temp_db, ledger, accounts, rent_template):
    """Test failed templates make the sweep exit with an error."""
    ledger.deactivate_account(accounts["6000"].id)

    result = _invoke(cli_runner, temp_db, "sweep", "--today", "2024-02-01")

    assert result.exit_code == 1
    assert "Failed 'Rent'" in result.output
    assert "1 failed" in result.output
