"""Journal entry commands."""

import click
from ledgerkit.cli.account_resolution import resolve_account_or_exit
from ledgerkit.cli.date_filters import period_options, resolve_cli_date_range
from ledgerkit.cli.error_handling import echo_warnings, exit_if_invalid, handle_domain_error
from ledgerkit.domain.entities import EntryCriteria, EntryDraft, EntryStatus, JournalEntry, LineItem
from ledgerkit.domain.ledger import LedgerService
from ledgerkit.utils.amount_parser import parse_amount
from ledgerkit.utils.date_parser import parse_date

ENTRY_STATUSES = [s.value for s in EntryStatus]


def _parse_line(ctx, ledger: LedgerService, value: str, side: str) -> LineItem:
    """Turn an ``ACCOUNT:AMOUNT`` option value into a line item."""
    account, sep, amount_str = value.rpartition(":")
    if not sep or not account.strip():
        click.echo(f"Error: Invalid --{side} value '{value}': expected ACCOUNT:AMOUNT", err=True)
        ctx.exit(1)
    account_id = resolve_account_or_exit(ctx, ledger, account.strip())
    try:
        amount = parse_amount(amount_str)
    except ValueError as e:
        click.echo(f"Error: Invalid --{side} amount: {e}", err=True)
        ctx.exit(1)
    if side == "debit":
        return LineItem.debit(account_id, amount)
    return LineItem.credit(account_id, amount)


def _resolve_entry(ctx, ledger: LedgerService, entry: str) -> JournalEntry:
    """Find an entry by number, then by ID, or exit with a CLI error."""
    found = ledger.get_entry_by_number(entry)
    if found is None and entry.isdigit():
        found = ledger.get_entry(int(entry))
    if found is None:
        click.echo(f"Error: Journal entry '{entry}' not found", err=True)
        ctx.exit(1)
    return found


def _echo_entry(ledger: LedgerService, entry: JournalEntry) -> None:
    accounts = ledger.db.get_accounts(entry.account_ids())
    click.echo(f"\n{entry.entry_number} ({entry.status.value})")
    click.echo("-" * 70)
    click.echo(f"Date:        {entry.date.isoformat()}")
    click.echo(f"Description: {entry.description}")
    if entry.reference:
        click.echo(f"Reference:   {entry.reference}")
    if entry.tags:
        click.echo(f"Tags:        {', '.join(entry.tags)}")
    if entry.notes:
        click.echo(f"Notes:       {entry.notes}")
    if entry.posted_at is not None:
        click.echo(f"Posted:      {entry.posted_at:%Y-%m-%d %H:%M} by {entry.posted_by or 'unknown'}")
    if entry.void_reason:
        click.echo(f"Void reason: {entry.void_reason}")
    if entry.reconciled:
        click.echo("Reconciled:  yes")

    click.echo(f"\n{'Account':35s} {'Debit':>14s} {'Credit':>14s}")
    for line in entry.line_items:
        account = accounts.get(line.account_id)
        label = f"{account.code} {account.name}" if account else str(line.account_id)
        debit = f"{line.debit_amount:,.2f}" if line.debit_amount else ""
        credit = f"{line.credit_amount:,.2f}" if line.credit_amount else ""
        click.echo(f"{label[:35]:35s} {debit:>14s} {credit:>14s}")
    click.echo(f"{'Total ' + entry.currency:35s} {entry.total_debit:>14,.2f} {entry.total_credit:>14,.2f}")


@click.group()
def entry_group():
    """Manage journal entries."""
    pass


@entry_group.command("add")
@click.option("--date", "entry_date", default="today", show_default=True, help="Entry date (YYYY-MM-DD or relative like 'today', 'yesterday')")
@click.option("--description", required=True, help="Entry description")
@click.option("--debit", "debits", multiple=True, metavar="ACCOUNT:AMOUNT", help="Debit line (repeatable)")
@click.option("--credit", "credits", multiple=True, metavar="ACCOUNT:AMOUNT", help="Credit line (repeatable)")
@click.option("--number", help="Entry number (generated when omitted)")
@click.option("--reference", help="Reference (invoice number, cheque number, ...)")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.option("--notes", help="Notes")
@click.option("--post", is_flag=True, help="Post the entry right away")
@click.pass_context
def add_entry(
    ctx,
    entry_date: str,
    description: str,
    debits: tuple[str, ...],
    credits: tuple[str, ...],
    number: str | None,
    reference: str | None,
    tags: tuple[str, ...],
    notes: str | None,
    post: bool,
):
    """Add a journal entry.

    Entries are saved as drafts unless --post is given. Drafts may be
    unbalanced; they must balance before they can be posted.

    Examples:
        ledgerkit entry add --description "Office rent" --debit 6000:1500 --credit 1000:1500 --post
        ledgerkit entry add --date 2024-05-01 --description "Split bill" \\
            --debit 6100:40 --debit 6200:60 --credit 2000:100
    """
    ledger = ctx.obj["engine"].ledger

    try:
        parsed_date = parse_date(entry_date)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)

    line_items = tuple(_parse_line(ctx, ledger, value, "debit") for value in debits) + tuple(
        _parse_line(ctx, ledger, value, "credit") for value in credits
    )
    draft = EntryDraft(
        date=parsed_date,
        description=description,
        line_items=line_items,
        entry_number=number,
        reference=reference,
        tags=tags,
        notes=notes,
    )

    try:
        result = ledger.create_entry(draft, post=post, posted_by="cli")
    except ValueError as e:
        handle_domain_error(ctx, e)

    exit_if_invalid(ctx, result.validation, "Entry")
    echo_warnings(result.validation)
    state = "Posted" if post else "Created draft"
    click.echo(f"{state} entry {result.entry.entry_number} (ID: {result.entry.id})")


@entry_group.command("post")
@click.argument("entry", metavar="ENTRY")
@click.pass_context
def post_entry(ctx, entry: str):
    """Post a draft entry, updating account balances.

    ENTRY can be an entry number or ID.
    """
    ledger = ctx.obj["engine"].ledger
    found = _resolve_entry(ctx, ledger, entry)

    try:
        result = ledger.post_entry(found.id, posted_by="cli")
    except ValueError as e:
        handle_domain_error(ctx, e)

    exit_if_invalid(ctx, result.validation, f"Entry {found.entry_number}")
    echo_warnings(result.validation)
    click.echo(f"Posted entry {result.entry.entry_number}")
    for change in result.balance_changes:
        account = ledger.get_account(change.account_id)
        click.echo(f"  {account.code:10s} {change.previous_balance:>14,.2f} -> {change.new_balance:>14,.2f}")


@entry_group.command("void")
@click.argument("entry", metavar="ENTRY")
@click.option("--reason", help="Why the entry is voided")
@click.pass_context
def void_entry(ctx, entry: str, reason: str | None):
    """Void a posted entry.

    Voiding does not touch account balances; use 'entry reverse' to undo an
    entry's effect.
    """
    ledger = ctx.obj["engine"].ledger
    found = _resolve_entry(ctx, ledger, entry)

    try:
        voided = ledger.void_entry(found.id, reason=reason)
        click.echo(f"Voided entry {voided.entry_number}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@entry_group.command("reverse")
@click.argument("entry", metavar="ENTRY")
@click.option("--date", "reversal_date", help="Date of the reversing entry (defaults to today)")
@click.pass_context
def reverse_entry(ctx, entry: str, reversal_date: str | None):
    """Post a reversing entry for a posted entry.

    Examples:
        ledgerkit entry reverse JE-000012
        ledgerkit entry reverse JE-000012 --date "end of month"
    """
    ledger = ctx.obj["engine"].ledger
    found = _resolve_entry(ctx, ledger, entry)

    on = None
    if reversal_date is not None:
        try:
            on = parse_date(reversal_date)
        except ValueError as e:
            click.echo(f"Error: Invalid date format: {e}", err=True)
            ctx.exit(1)

    try:
        result = ledger.reverse_entry(found.id, on=on, posted_by="cli")
    except ValueError as e:
        handle_domain_error(ctx, e)

    exit_if_invalid(ctx, result.validation, f"Reversal of {found.entry_number}")
    echo_warnings(result.validation)
    click.echo(f"Reversed entry {found.entry_number} with {result.reversal.entry_number}")


@entry_group.command("list")
@click.option("--start-date", help="Start date (YYYY-MM-DD or relative like 'start of month')")
@click.option("--end-date", help="End date (YYYY-MM-DD or relative like 'today')")
@period_options
@click.option("--account", help="Only entries touching this account (code or ID)")
@click.option(
    "--status",
    "statuses",
    multiple=True,
    type=click.Choice(ENTRY_STATUSES, case_sensitive=False),
    help="Only entries in this status (repeatable)",
)
@click.option("--search", help="Text to find in entry number, description or reference")
@click.option("--min-amount", help="Minimum entry total")
@click.option("--max-amount", help="Maximum entry total")
@click.option("--unreconciled", is_flag=True, help="Only entries not yet reconciled")
@click.pass_context
def list_entries(
    ctx,
    start_date: str | None,
    end_date: str | None,
    period_flags: dict[str, bool],
    account: str | None,
    statuses: tuple[str, ...],
    search: str | None,
    min_amount: str | None,
    max_amount: str | None,
    unreconciled: bool,
):
    """List journal entries.

    Examples:
        ledgerkit entry list --this-month
        ledgerkit entry list --account 1000 --status posted
        ledgerkit entry list --search rent --min-amount 1000
    """
    ledger = ctx.obj["engine"].ledger

    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, period_flags=period_flags
    )

    account_id = None
    if account is not None:
        account_id = resolve_account_or_exit(ctx, ledger, account)

    bounds = {}
    for name, value in (("min_amount", min_amount), ("max_amount", max_amount)):
        if value is not None:
            try:
                bounds[name] = parse_amount(value)
            except ValueError as e:
                click.echo(f"Error: Invalid --{name.replace('_', '-')}: {e}", err=True)
                ctx.exit(1)

    entries = ledger.search_entries(
        EntryCriteria(
            start_date=start,
            end_date=end,
            statuses=tuple(EntryStatus(s.lower()) for s in statuses),
            account_id=account_id,
            text=search,
            reconciled=False if unreconciled else None,
            **bounds,
        )
    )
    if not entries:
        click.echo("No entries found.")
        return

    click.echo(f"\n{'Date':10s} {'Number':14s} {'Status':9s} {'Amount':>14s}  Description")
    click.echo("-" * 80)
    for entry in entries:
        marker = "R" if entry.reconciled else " "
        click.echo(
            f"{entry.date.isoformat():10s} {entry.entry_number:14s} {entry.status.value:9s} "
            f"{entry.amount:>14,.2f} {marker} {entry.description}"
        )
    click.echo(f"\n{len(entries)} entr{'ies' if len(entries) != 1 else 'y'}")


@entry_group.command("show")
@click.argument("entry", metavar="ENTRY")
@click.pass_context
def show_entry(ctx, entry: str):
    """Show an entry with its line items.

    ENTRY can be an entry number or ID.
    """
    ledger = ctx.obj["engine"].ledger
    found = _resolve_entry(ctx, ledger, entry)
    _echo_entry(ledger, found)


@entry_group.command("tag")
@click.argument("entry", metavar="ENTRY")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable); replaces existing tags")
@click.option("--notes", help="Notes")
@click.pass_context
def tag_entry(ctx, entry: str, tags: tuple[str, ...], notes: str | None):
    """Change an entry's tags or notes. Allowed in every status."""
    ledger = ctx.obj["engine"].ledger
    found = _resolve_entry(ctx, ledger, entry)

    if not tags and notes is None:
        click.echo("Error: Nothing to update. Give --tag or --notes.", err=True)
        ctx.exit(1)

    updated = ledger.update_entry_metadata(found.id, tags=tags or None, notes=notes)
    click.echo(f"Updated entry {updated.entry_number}")


@entry_group.command("delete")
@click.argument("entry", metavar="ENTRY")
@click.pass_context
def delete_entry(ctx, entry: str):
    """Delete a draft entry."""
    ledger = ctx.obj["engine"].ledger
    found = _resolve_entry(ctx, ledger, entry)

    try:
        ledger.delete_draft(found.id)
        click.echo(f"Deleted draft {found.entry_number}")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register entry commands with main CLI."""
    cli.add_command(entry_group, name="entry")
