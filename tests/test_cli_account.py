"""Tests for the account CLI commands."""

from datetime import date

from ledgerkit.cli.main import cli
from ledgerkit.database.factories import create_sqlite_database


def test_create_account(cli_runner, temp_db):
    """Test creating an account via CLI."""
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "account", "create", "1000", "Cash", "--type", "asset"]
    )

    assert result.exit_code == 0
    assert "Created account 1000 'Cash' (ID:" in result.output

    db = create_sqlite_database(temp_db.database_path)
    db.connect()
    try:
        account = db.get_account_by_code("1000")
        assert account.name == "Cash"
        assert account.currency == "USD"
    finally:
        db.disconnect()


def test_create_account_with_parent(cli_runner, temp_db, accounts):
    """Test a parent can be given by code."""
    result = cli_runner.invoke(
        cli,
        [
            "--db-path",
            temp_db.database_path,
            "account",
            "create",
            "1020",
            "Savings",
            "--type",
            "asset",
            "--parent",
            "1000",
            "--opening-balance",
            "2,500.00",
        ],
    )

    assert result.exit_code == 0
    shown = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "show", "1020"])
    assert "Parent:           1000 - Cash" in shown.output
    assert "Opening balance:  2,500.00" in shown.output


def test_create_duplicate_account(cli_runner, temp_db, accounts):
    """Test a duplicate code is reported as an error."""
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "account", "create", "1000", "Petty cash", "--type", "asset"]
    )

    assert result.exit_code == 1
    assert "already exists" in result.output


def test_create_account_bad_opening_balance(cli_runner, temp_db):
    """Test an unparseable opening balance is rejected."""
    result = cli_runner.invoke(
        cli,
        [
            "--db-path",
            temp_db.database_path,
            "account",
            "create",
            "1000",
            "Cash",
            "--type",
            "asset",
            "--opening-balance",
            "lots",
        ],
    )

    assert result.exit_code == 1
    assert "Invalid opening balance" in result.output


def test_list_accounts_empty(cli_runner, temp_db):
    """Test listing with no accounts."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "list"])

    assert result.exit_code == 0
    assert "No accounts found." in result.output


def test_list_accounts(cli_runner, temp_db, accounts, ledger):
    """Test listing shows every account and marks inactive ones."""
    ledger.deactivate_account(accounts["6400"].id)

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "list"])

    assert result.exit_code == 0
    assert "Accounts:" in result.output
    assert "Checking" in result.output
    assert "Travel" in result.output
    assert "(inactive)" in result.output


def test_list_accounts_filters(cli_runner, temp_db, accounts, ledger):
    """Test --type and --active-only narrow the list."""
    ledger.deactivate_account(accounts["6400"].id)

    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "account", "list", "--type", "expense", "--active-only"]
    )

    assert result.exit_code == 0
    assert "Rent Expense" in result.output
    assert "Travel" not in result.output
    assert "Checking" not in result.output


def test_show_account(cli_runner, temp_db, accounts, post_entry):
    """Test showing an account with its recent entries."""
    post_entry(accounts["6000"], accounts["1010"], "1500", entry_date=date(2024, 5, 1), description="May rent")

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "show", "1010"])

    assert result.exit_code == 0
    assert "1010 - Checking" in result.output
    assert "Current balance:  48,500.00" in result.output
    assert "Last transaction: 2024-05-01" in result.output
    assert "May rent" in result.output


def test_show_unknown_account(cli_runner, temp_db):
    """Test an unknown account code exits with an error."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "show", "9999"])

    assert result.exit_code == 1
    assert "Account 9999 not found" in result.output


def test_check_balances(cli_runner, temp_db, accounts, post_entry):
    """Test stored balances agree with the posted entries."""
    post_entry(accounts["6000"], accounts["1010"], "1500", entry_date=date(2024, 5, 1))

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "check"])

    assert result.exit_code == 0
    assert "MISMATCH" not in result.output
    assert "All 7 account balance(s) match their entries." in result.output


def test_check_single_account(cli_runner, temp_db, accounts):
    """Test checking one account."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "check", "1010"])

    assert result.exit_code == 0
    assert "OK       1010" in result.output
    assert "All 1 account balance(s) match their entries." in result.output


def test_trial_balance(cli_runner, temp_db, accounts, post_entry):
    """Test the trial balance totals both columns."""
    post_entry(accounts["6000"], accounts["1010"], "1500", entry_date=date(2024, 5, 1))

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "trial-balance"])

    assert result.exit_code == 0
    assert "6000 Rent Expense" in result.output
    total = [line for line in result.output.splitlines() if line.startswith("Total")]
    assert len(total) == 1
    assert total[0].split()[1:] == ["50,000.00", "50,000.00"]


def test_deactivate_account(cli_runner, temp_db, accounts):
    """Test deactivating an account."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "deactivate", "6400"])

    assert result.exit_code == 0
    assert "Deactivated account 6400 'Travel'" in result.output


def test_delete_account(cli_runner, temp_db, accounts):
    """Test deleting an unused account."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "delete", "6400", "--yes"])

    assert result.exit_code == 0
    assert "Deleted account 6400 'Travel'" in result.output


def test_delete_account_cancelled(cli_runner, temp_db, accounts):
    """Test answering no to the prompt keeps the account."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "delete", "6400"], input="n\n")

    assert result.exit_code == 0
    assert "Deletion cancelled." in result.output


def test_delete_account_with_entries(cli_runner, temp_db, accounts, post_entry):
    """Test an account with entries can't be deleted."""
    post_entry(accounts["6000"], accounts["1010"], "1500", entry_date=date(2024, 5, 1))

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "delete", "6000", "--yes"])

    assert result.exit_code == 1
    assert "Deactivate it instead" in result.output
