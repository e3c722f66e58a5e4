"""Account management commands."""

import click
from ledgerkit.cli.account_resolution import resolve_account_or_exit
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.entities import ZERO, AccountType, EntryCriteria
from ledgerkit.utils.amount_parser import parse_amount

ACCOUNT_TYPES = [t.value for t in AccountType]


@click.group()
def account_group():
    """Manage the chart of accounts."""
    pass


@account_group.command("create")
@click.argument("code", metavar="CODE")
@click.argument("name", metavar="ACCOUNT_NAME")
@click.option(
    "--type",
    "account_type",
    type=click.Choice(ACCOUNT_TYPES, case_sensitive=False),
    required=True,
    help="Account type",
)
@click.option("--currency", help="ISO currency code (defaults to LEDGERKIT_DEFAULT_CURRENCY)")
@click.option("--parent", help="Parent account code or ID")
@click.option("--opening-balance", help="Opening balance (e.g., 1500.00)")
@click.pass_context
def create_account(
    ctx,
    code: str,
    name: str,
    account_type: str,
    currency: str | None,
    parent: str | None,
    opening_balance: str | None,
):
    """Create a new account.

    Examples:
        ledgerkit account create 1000 "Cash" --type asset
        ledgerkit account create 1010 "Checking" --type asset --parent 1000 --opening-balance 2500
        ledgerkit account create 4000 "Sales" --type revenue --currency EUR
    """
    ledger = ctx.obj["engine"].ledger

    parent_id = None
    if parent is not None:
        parent_id = resolve_account_or_exit(ctx, ledger, parent)

    balance = ZERO
    if opening_balance is not None:
        try:
            balance = parse_amount(opening_balance)
        except ValueError as e:
            click.echo(f"Error: Invalid opening balance: {e}", err=True)
            ctx.exit(1)

    try:
        account = ledger.create_account(
            code=code,
            name=name,
            account_type=account_type.lower(),
            currency=currency,
            parent_id=parent_id,
            opening_balance=balance,
        )
        click.echo(f"Created account {account.code} '{account.name}' (ID: {account.id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@account_group.command("list")
@click.option(
    "--type",
    "account_type",
    type=click.Choice(ACCOUNT_TYPES, case_sensitive=False),
    help="Only list accounts of this type",
)
@click.option("--active-only", is_flag=True, help="Hide inactive accounts")
@click.pass_context
def list_accounts(ctx, account_type: str | None, active_only: bool):
    """List accounts ordered by code."""
    ledger = ctx.obj["engine"].ledger

    accounts = ledger.list_accounts(
        account_type=AccountType(account_type.lower()) if account_type else None,
        include_inactive=not active_only,
    )
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 80)
    for acc in accounts:
        status = "" if acc.is_active else " (inactive)"
        click.echo(
            f"{acc.code:10s} | {acc.name:25s} | {acc.account_type.value:9s} | "
            f"{acc.current_balance:>14,.2f} {acc.currency}{status}"
        )


@account_group.command("show")
@click.argument("account", metavar="ACCOUNT")
@click.option("--limit", type=int, default=10, show_default=True, help="Number of recent entries to show")
@click.pass_context
def show_account(ctx, account: str, limit: int):
    """Show an account's balances and its most recent entries.

    ACCOUNT can be an account code or ID.

    Examples:
        ledgerkit account show 1000
        ledgerkit account show 1000 --limit 25
    """
    ledger = ctx.obj["engine"].ledger
    account_id = resolve_account_or_exit(ctx, ledger, account)
    acc = ledger.require_account(account_id)

    click.echo(f"\n{acc.code} - {acc.name}")
    click.echo("-" * 60)
    click.echo(f"Type:             {acc.account_type.value}")
    click.echo(f"Currency:         {acc.currency}")
    if acc.parent_id is not None:
        parent = ledger.get_account(acc.parent_id)
        click.echo(f"Parent:           {parent.code} - {parent.name}")
    click.echo(f"Status:           {'active' if acc.is_active else 'inactive'}")
    click.echo(f"Opening balance:  {acc.opening_balance:,.2f}")
    click.echo(f"Total debits:     {acc.debit_balance:,.2f}")
    click.echo(f"Total credits:    {acc.credit_balance:,.2f}")
    click.echo(f"Current balance:  {acc.current_balance:,.2f}")
    if acc.last_transaction_date is not None:
        click.echo(f"Last transaction: {acc.last_transaction_date.isoformat()}")

    entries = ledger.search_entries(EntryCriteria(account_id=account_id))
    if entries:
        click.echo("\nRecent entries:")
        for entry in entries[-limit:]:
            click.echo(
                f"  {entry.date.isoformat()} {entry.entry_number:14s} {entry.status.value:9s} "
                f"{entry.amount:>12,.2f}  {entry.description}"
            )


@account_group.command("check")
@click.argument("account", metavar="ACCOUNT", required=False)
@click.pass_context
def check_balances(ctx, account: str | None):
    """Check stored balances against a replay of the posted entries.

    Checks every account unless ACCOUNT (code or ID) is given. Exits with
    status 1 when any balance is off.

    Examples:
        ledgerkit account check
        ledgerkit account check 1000
    """
    ledger = ctx.obj["engine"].ledger

    if account is not None:
        account_ids = [resolve_account_or_exit(ctx, ledger, account)]
    else:
        account_ids = [acc.id for acc in ledger.list_accounts()]

    mismatches = 0
    for account_id in account_ids:
        acc = ledger.require_account(account_id)
        stored, recomputed = ledger.recompute_balance(account_id)
        if stored == recomputed:
            click.echo(f"OK       {acc.code:10s} {stored:>14,.2f}")
        else:
            mismatches += 1
            click.echo(f"MISMATCH {acc.code:10s} stored {stored:,.2f}, recomputed {recomputed:,.2f}")

    if mismatches:
        click.echo(f"Error: {mismatches} account balance(s) do not match their entries", err=True)
        ctx.exit(1)
    click.echo(f"\nAll {len(account_ids)} account balance(s) match their entries.")


@account_group.command("trial-balance")
@click.pass_context
def trial_balance(ctx):
    """Show every account's balance in debit and credit columns."""
    ledger = ctx.obj["engine"].ledger

    rows = ledger.trial_balance()
    if not rows:
        click.echo("No accounts found.")
        return

    click.echo(f"\n{'Account':40s} {'Debit':>14s} {'Credit':>14s}")
    click.echo("-" * 70)
    total_debit = sum(row.debit for row in rows)
    total_credit = sum(row.credit for row in rows)
    for row in rows:
        label = f"{row.account.code} {row.account.name}"
        click.echo(f"{label[:40]:40s} {row.debit:>14,.2f} {row.credit:>14,.2f}")
    click.echo("-" * 70)
    click.echo(f"{'Total':40s} {total_debit:>14,.2f} {total_credit:>14,.2f}")


@account_group.command("deactivate")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def deactivate_account(ctx, account: str) -> None:
    """Deactivate an account so new entries can't use it.

    ACCOUNT can be an account code or ID.
    """
    ledger = ctx.obj["engine"].ledger
    account_id = resolve_account_or_exit(ctx, ledger, account)

    try:
        acc = ledger.deactivate_account(account_id)
        click.echo(f"Deactivated account {acc.code} '{acc.name}'")
    except ValueError as e:
        handle_domain_error(ctx, e)


@account_group.command("delete")
@click.argument("account", metavar="ACCOUNT")
@click.option("--yes", is_flag=True, help="Don't ask for confirmation")
@click.pass_context
def delete_account(ctx, account: str, yes: bool) -> None:
    """Delete an account.

    ACCOUNT can be an account code or ID.

    The account can only be deleted if no journal entries or child accounts
    reference it. Deactivate it instead to keep its history.

    Examples:
        ledgerkit account delete 1000
        ledgerkit account delete 7 --yes
    """
    ledger = ctx.obj["engine"].ledger
    account_id = resolve_account_or_exit(ctx, ledger, account)
    acc = ledger.require_account(account_id)

    # Confirm deletion
    if not yes and not click.confirm(f"Are you sure you want to delete account {acc.code} '{acc.name}'?"):
        click.echo("Deletion cancelled.")
        return

    try:
        ledger.delete_account(account_id)
        click.echo(f"Deleted account {acc.code} '{acc.name}'")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
