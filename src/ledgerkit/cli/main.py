"""Main CLI entry point."""

import click
from ledgerkit.config import load_config
from ledgerkit.database.factories import create_sqlite_database
from ledgerkit.domain.engine import LedgerEngine
from ledgerkit.logging_setup import configure_logging

# Import and register all commands at module level
from ledgerkit.cli.commands import (
    account,
    entry,
    recurring,
    statement,
    category,
    analytics,
)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides LEDGERKIT_DB_PATH environment variable)",
    envvar="LEDGERKIT_DB_PATH",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Logging level (overrides LEDGERKIT_LOG_LEVEL environment variable)",
    envvar="LEDGERKIT_LOG_LEVEL",
)
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str | None):
    """Ledgerkit - double-entry accounting ledger.

    Keep a chart of accounts and journal entries, schedule recurring
    transactions, reconcile bank statements and categorize spending.
    """
    ctx.ensure_object(dict)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        configure_logging(log_level)
        try:
            config = load_config()
        except ValueError as e:
            click.echo(f"Error: Invalid configuration: {e}", err=True)
            ctx.exit(1)

        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        engine = LedgerEngine(db, config)
        ctx.obj["db"] = db
        ctx.obj["engine"] = engine
        ctx.call_on_close(engine.close)


# Register all commands
account.register_commands(cli)
entry.register_commands(cli)
recurring.register_commands(cli)
statement.register_commands(cli)
category.register_commands(cli)
analytics.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
