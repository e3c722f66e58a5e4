"""Recurring transaction commands."""

import click
from ledgerkit.cli.account_resolution import resolve_account_or_exit
from ledgerkit.cli.error_handling import echo_warnings, exit_if_invalid, handle_domain_error
from ledgerkit.domain.entities import Frequency, RecurringTemplate
from ledgerkit.utils.amount_parser import parse_amount
from ledgerkit.utils.date_parser import parse_date

FREQUENCIES = [f.value for f in Frequency]


def _parse_date_option(ctx, value: str, option: str):
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {option}: {e}", err=True)
        ctx.exit(1)


def _template_line(template: RecurringTemplate) -> str:
    every = template.frequency.value if template.interval == 1 else f"every {template.interval} x {template.frequency.value}"
    flags = []
    if template.auto_execute:
        flags.append("auto")
    if not template.is_active:
        flags.append("inactive")
    suffix = f" [{', '.join(flags)}]" if flags else ""
    return (
        f"ID: {template.id:3d} | {template.name:20s} | {template.amount:>12,.2f} {template.currency} | "
        f"{every:12s} | next {template.next_due_date.isoformat()}{suffix}"
    )


@click.group()
def recurring_group():
    """Manage recurring transactions."""
    pass


@recurring_group.command("add")
@click.argument("name", metavar="NAME")
@click.option("--description", required=True, help="Description for generated entries")
@click.option("--amount", required=True, help="Amount of each occurrence")
@click.option("--debit", "debit_account", required=True, help="Account debited (code or ID)")
@click.option("--credit", "credit_account", required=True, help="Account credited (code or ID)")
@click.option(
    "--frequency",
    type=click.Choice(FREQUENCIES, case_sensitive=False),
    required=True,
    help="How often the transaction recurs",
)
@click.option("--interval", type=int, default=1, show_default=True, help="Number of frequency units between occurrences")
@click.option("--start", "start_date", default="today", show_default=True, help="First due date")
@click.option("--end", "end_date", help="Last date an occurrence may fall on")
@click.option("--category", help="Category, added to generated entries as a tag")
@click.option("--auto", "auto_execute", is_flag=True, help="Post occurrences automatically during sweeps")
@click.pass_context
def add_template(
    ctx,
    name: str,
    description: str,
    amount: str,
    debit_account: str,
    credit_account: str,
    frequency: str,
    interval: int,
    start_date: str,
    end_date: str | None,
    category: str | None,
    auto_execute: bool,
):
    """Add a recurring transaction template.

    Examples:
        ledgerkit recurring add "Rent" --description "Office rent" --amount 1500 \\
            --debit 6000 --credit 1000 --frequency monthly --start 2024-01-01 --auto
        ledgerkit recurring add "Insurance" --description "Fleet insurance" --amount 900 \\
            --debit 6300 --credit 2000 --frequency quarterly --end 2025-12-31
    """
    engine = ctx.obj["engine"]

    try:
        parsed_amount = parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    account_id = resolve_account_or_exit(ctx, engine.ledger, debit_account)
    offset_account_id = resolve_account_or_exit(ctx, engine.ledger, credit_account)
    start = _parse_date_option(ctx, start_date, "start date")
    end = _parse_date_option(ctx, end_date, "end date") if end_date else None

    result = engine.scheduler.create_template(
        name=name,
        description=description,
        amount=parsed_amount,
        account_id=account_id,
        offset_account_id=offset_account_id,
        frequency=frequency.lower(),
        start_date=start,
        interval=interval,
        end_date=end,
        category=category,
        auto_execute=auto_execute,
    )
    exit_if_invalid(ctx, result.validation, "Recurring template")
    echo_warnings(result.validation)
    click.echo(
        f"Created recurring template '{result.template.name}' (ID: {result.template.id}), "
        f"first due {result.template.next_due_date.isoformat()}"
    )


@recurring_group.command("list")
@click.option("--active-only", is_flag=True, help="Hide inactive templates")
@click.pass_context
def list_templates(ctx, active_only: bool):
    """List recurring templates ordered by next due date."""
    scheduler = ctx.obj["engine"].scheduler

    templates = scheduler.list_templates(active_only=active_only)
    if not templates:
        click.echo("No recurring templates found.")
        return

    click.echo("\nRecurring templates:")
    click.echo("-" * 100)
    for template in templates:
        click.echo(_template_line(template))


@recurring_group.command("due")
@click.option("--as-of", help="Reference date (defaults to today)")
@click.option("--horizon", type=int, default=0, show_default=True, help="Also include templates due within this many days")
@click.pass_context
def due_templates(ctx, as_of: str | None, horizon: int):
    """List active templates that are due.

    Examples:
        ledgerkit recurring due
        ledgerkit recurring due --horizon 7
    """
    scheduler = ctx.obj["engine"].scheduler
    reference = _parse_date_option(ctx, as_of, "date") if as_of else None

    templates = scheduler.due_templates(as_of=reference, horizon_days=horizon)
    if not templates:
        click.echo("No recurring templates are due.")
        return

    for template in templates:
        click.echo(_template_line(template))


@recurring_group.command("execute")
@click.argument("template_id", type=int)
@click.pass_context
def execute_template(ctx, template_id: int):
    """Post a template's current occurrence and advance its due date."""
    scheduler = ctx.obj["engine"].scheduler

    try:
        result = scheduler.execute(template_id, posted_by="cli")
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not result.ok:
        click.echo(f"Error: {result.error}", err=True)
        ctx.exit(1)
    echo_warnings(result.validation)
    click.echo(f"Posted entry {result.entry.entry_number} for '{result.template.name}'")
    if result.template.is_active:
        click.echo(f"Next due {result.template.next_due_date.isoformat()}")
    else:
        click.echo("Template has reached its end date and is now inactive")


@recurring_group.command("skip")
@click.argument("template_id", type=int)
@click.pass_context
def skip_template(ctx, template_id: int):
    """Skip a template's current occurrence without posting it."""
    scheduler = ctx.obj["engine"].scheduler

    try:
        template = scheduler.skip(template_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Skipped occurrence of '{template.name}', next due {template.next_due_date.isoformat()}")


@recurring_group.command("deactivate")
@click.argument("template_id", type=int)
@click.pass_context
def deactivate_template(ctx, template_id: int):
    """Stop a template from coming due again."""
    scheduler = ctx.obj["engine"].scheduler

    try:
        template = scheduler.deactivate(template_id)
        click.echo(f"Deactivated recurring template '{template.name}'")
    except ValueError as e:
        handle_domain_error(ctx, e)


@recurring_group.command("sweep")
@click.option("--today", "today_str", help="Run the sweep as of this date (defaults to today)")
@click.pass_context
def sweep_templates(ctx, today_str: str | None):
    """Execute due auto-execute templates and list the ones awaiting action.

    Examples:
        ledgerkit recurring sweep
        ledgerkit recurring sweep --today 2024-03-01
    """
    scheduler = ctx.obj["engine"].scheduler
    today = _parse_date_option(ctx, today_str, "date") if today_str else None

    result = scheduler.sweep(today)

    for execution in result.executed:
        click.echo(f"Executed '{execution.template.name}' as {execution.entry.entry_number}")
    for execution in result.failed:
        click.echo(f"Failed '{execution.template.name}': {execution.error}", err=True)
    for template in result.pending:
        click.echo(f"Pending '{template.name}' due {template.next_due_date.isoformat()}")

    click.echo(
        f"\nSweep complete: {len(result.executed)} executed, {len(result.failed)} failed, "
        f"{len(result.pending)} pending"
    )
    if result.failed:
        ctx.exit(1)


def register_commands(cli):
    """Register recurring commands with main CLI."""
    cli.add_command(recurring_group, name="recurring")
