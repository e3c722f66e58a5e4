"""Date range options shared by reporting commands."""

import functools
from datetime import date

import click

from ledgerkit.utils.date_parser import PERIODS, get_date_range, parse_date

PERIOD_LABELS = {
    "this-month": "current month",
    "this-quarter": "current quarter",
    "this-year": "current year",
    "last-month": "previous month",
    "last-quarter": "previous quarter",
    "last-year": "previous year",
}


def period_options(function):
    """Add one ``--<period>`` flag per reporting period to a command.

    The command receives the flags as a single ``period_flags`` dict keyed
    by period name.
    """

    @functools.wraps(function)
    def collect_periods(*args, **kwargs):
        kwargs["period_flags"] = {period: kwargs.pop(period.replace("-", "_")) for period in PERIODS}
        return function(*args, **kwargs)

    for period in reversed(PERIODS):
        collect_periods = click.option(
            f"--{period}", is_flag=True, help=f"Limit to the {PERIOD_LABELS[period]}"
        )(collect_periods)
    return collect_periods


def _selected_period(ctx: click.Context, period_flags: dict[str, bool], has_dates: bool) -> str | None:
    selected = [period for period, is_set in period_flags.items() if is_set]
    if len(selected) > 1:
        flags = ", ".join(f"--{period}" for period in selected)
        click.echo(f"Error: Only one period option can be given at a time (got {flags}).", err=True)
        ctx.exit(1)
    if selected and has_dates:
        click.echo(
            f"Error: --{selected[0]} cannot be combined with --start-date or --end-date.",
            err=True,
        )
        ctx.exit(1)
    return selected[0] if selected else None


def _parse_bound(ctx: click.Context, value: str | None, label: str) -> date | None:
    if not value:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


def resolve_cli_date_range(
    ctx: click.Context,
    *,
    start_date: str | None,
    end_date: str | None,
    period_flags: dict[str, bool],
    default_range: tuple[date, date] | None = None,
) -> tuple[date | None, date | None]:
    """Turn a period flag or explicit dates into a ``(start, end)`` pair.

    A period flag excludes explicit dates. Without either, ``default_range``
    applies; bounds that nothing sets come back as None.
    """
    period = _selected_period(ctx, period_flags, bool(start_date or end_date))
    if period is not None:
        return get_date_range(period)

    start = _parse_bound(ctx, start_date, "start date")
    end = _parse_bound(ctx, end_date, "end date")
    if start is None and end is None and default_range is not None:
        return default_range
    return start, end
