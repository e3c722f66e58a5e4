"""Bank statement import and reconciliation commands."""

import click
from ledgerkit.cli.account_resolution import resolve_account_or_exit
from ledgerkit.cli.error_handling import exit_if_invalid, handle_domain_error
from ledgerkit.domain.entities import BankStatementLine
from ledgerkit.domain.statement_import import read_statement_csv


def _line_row(line: BankStatementLine) -> str:
    if line.reconciled:
        status = f"matched entry {line.matched_entry_id}"
    elif line.suggested_category:
        status = f"suggested {line.suggested_category} ({line.confidence:.0%})"
    else:
        status = "open"
    return (
        f"ID: {line.id:4d} | {line.date.isoformat()} | {line.description[:35]:35s} | "
        f"{line.amount:>12,.2f} | {status}"
    )


@click.group()
def statement_group():
    """Import and reconcile bank statements."""
    pass


@statement_group.command("import")
@click.argument("csv_file", type=click.Path(exists=True))
@click.option("--account", required=True, help="Bank (asset) account code or ID")
@click.pass_context
def import_statement(ctx, csv_file: str, account: str):
    """Import bank statement lines from a CSV file.

    The file needs date, description, amount and balance columns and may
    have a reference column. Separate money-in/money-out columns are
    accepted instead of a signed amount. Lines already imported are skipped.

    Examples:
        ledgerkit statement import may.csv --account 1010
    """
    engine = ctx.obj["engine"]
    account_id = resolve_account_or_exit(ctx, engine.ledger, account)

    try:
        rows, parse_errors = read_statement_csv(csv_file)
        created, import_errors = engine.reconciliation.import_lines(account_id, rows)
    except (ValueError, FileNotFoundError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    errors = parse_errors + import_errors
    click.echo("\nImport complete:")
    click.echo(f"  Imported: {len(created)} lines")
    if errors:
        click.echo(f"  Skipped: {len(errors)}")
        for error in errors:
            click.echo(f"    {error}", err=True)


@statement_group.command("list")
@click.option("--account", help="Only lines of this bank account (code or ID)")
@click.option("--unreconciled", is_flag=True, help="Only lines not yet reconciled")
@click.pass_context
def list_lines(ctx, account: str | None, unreconciled: bool):
    """List imported statement lines."""
    engine = ctx.obj["engine"]

    account_id = None
    if account is not None:
        account_id = resolve_account_or_exit(ctx, engine.ledger, account)

    lines = engine.reconciliation.list_lines(
        bank_account_id=account_id, reconciled=False if unreconciled else None
    )
    if not lines:
        click.echo("No statement lines found.")
        return

    for line in lines:
        click.echo(_line_row(line))


@statement_group.command("reconcile")
@click.option("--account", help="Only reconcile lines of this bank account (code or ID)")
@click.option("--categorize", is_flag=True, help="Suggest categories for lines left unmatched")
@click.pass_context
def reconcile_lines(ctx, account: str | None, categorize: bool):
    """Match open statement lines to journal entries.

    Exact matches (same amount, same day) are linked first. Lines matching a
    reconciliation rule at or above the acceptance threshold are booked
    automatically; weaker matches are recorded as suggestions to confirm
    with 'statement confirm'.

    Examples:
        ledgerkit statement reconcile
        ledgerkit statement reconcile --account 1010 --categorize
    """
    engine = ctx.obj["engine"]

    lines = None
    if account is not None:
        account_id = resolve_account_or_exit(ctx, engine.ledger, account)
        lines = engine.reconciliation.list_lines(bank_account_id=account_id, reconciled=False)

    result = engine.reconciliation.reconcile(lines)

    click.echo("\nReconciliation complete:")
    click.echo(f"  Exact matches: {len(result.exact_matches)}")
    click.echo(f"  Rule matches:  {len(result.rule_matches)}")
    click.echo(f"  Suggestions:   {len(result.suggestions)}")
    click.echo(f"  Unmatched:     {len(result.unmatched)}")
    for suggestion in result.suggestions:
        best = suggestion.best
        click.echo(
            f"    Line {suggestion.line.id}: '{suggestion.line.description}' -> {best.category} "
            f"via rule {best.rule_id} ({best.confidence:.0%})"
        )

    if categorize and result.unmatched:
        categorized = engine.categorization.categorize_lines(result.unmatched)
        for line, categorization in categorized:
            click.echo(
                f"    Line {line.id}: '{line.description}' looks like {categorization.category} "
                f"({categorization.confidence:.0%})"
            )

    if result.errors:
        click.echo(f"  Errors: {len(result.errors)}")
        for error in result.errors:
            click.echo(f"    {error}", err=True)
        ctx.exit(1)


@statement_group.command("confirm")
@click.argument("line_id", type=int)
@click.argument("rule_id", type=int)
@click.pass_context
def confirm_suggestion(ctx, line_id: int, rule_id: int):
    """Accept a rule for a statement line and book it."""
    reconciliation = ctx.obj["engine"].reconciliation

    try:
        line = reconciliation.confirm_suggestion(line_id, rule_id)
        click.echo(f"Reconciled line {line.id} with entry {line.matched_entry_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@statement_group.command("match")
@click.argument("line_id", type=int)
@click.argument("entry_id", type=int)
@click.pass_context
def match_line(ctx, line_id: int, entry_id: int):
    """Link a statement line to a posted entry by hand."""
    reconciliation = ctx.obj["engine"].reconciliation

    try:
        line = reconciliation.match_manually(line_id, entry_id)
        click.echo(f"Reconciled line {line.id} with entry {line.matched_entry_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@click.group()
def rule_group():
    """Manage reconciliation rules."""
    pass


@rule_group.command("add")
@click.argument("name", metavar="NAME")
@click.option("--pattern", required=True, help="Regular expression matched against statement descriptions")
@click.option("--account", required=True, help="Account the matched amount is booked to (code or ID)")
@click.option("--category", required=True, help="Category recorded on the match")
@click.option("--confidence", type=float, help="Confidence between 0 and 1 (defaults to LEDGERKIT_DEFAULT_RULE_CONFIDENCE)")
@click.option("--description", help="What the rule is for")
@click.pass_context
def add_rule(
    ctx,
    name: str,
    pattern: str,
    account: str,
    category: str,
    confidence: float | None,
    description: str | None,
):
    """Add a reconciliation rule.

    Examples:
        ledgerkit rule add "Uber rides" --pattern uber --account 6400 --category Travel --confidence 0.85
    """
    engine = ctx.obj["engine"]
    account_id = resolve_account_or_exit(ctx, engine.ledger, account)

    result = engine.reconciliation.create_rule(
        name=name,
        pattern=pattern,
        account_id=account_id,
        category=category,
        confidence=confidence,
        description=description,
    )
    exit_if_invalid(ctx, result.validation, "Rule")
    click.echo(f"Created reconciliation rule '{result.rule.name}' (ID: {result.rule.id})")


@rule_group.command("list")
@click.option("--active-only", is_flag=True, help="Hide disabled rules")
@click.pass_context
def list_rules(ctx, active_only: bool):
    """List reconciliation rules."""
    engine = ctx.obj["engine"]

    rules = engine.reconciliation.list_rules(active_only=active_only)
    if not rules:
        click.echo("No reconciliation rules found.")
        return

    for rule in rules:
        account = engine.ledger.get_account(rule.account_id)
        status = "" if rule.is_active else " (disabled)"
        click.echo(
            f"ID: {rule.id:3d} | {rule.name:20s} | /{rule.pattern}/ -> {account.code} {rule.category} | "
            f"{rule.confidence:.2f} | {rule.match_count} matches{status}"
        )


@rule_group.command("disable")
@click.argument("rule_id", type=int)
@click.pass_context
def disable_rule(ctx, rule_id: int):
    """Disable a reconciliation rule."""
    reconciliation = ctx.obj["engine"].reconciliation

    try:
        rule = reconciliation.set_rule_active(rule_id, False)
        click.echo(f"Disabled reconciliation rule '{rule.name}'")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register statement and rule commands with main CLI."""
    cli.add_command(statement_group, name="statement")
    cli.add_command(rule_group, name="rule")
