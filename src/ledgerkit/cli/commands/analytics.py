"""Financial analytics command."""

from datetime import date

import click
from ledgerkit.cli.date_filters import period_options, resolve_cli_date_range
from ledgerkit.cli.error_handling import echo_warnings, handle_domain_error
from ledgerkit.domain.entities import ValidationResult
from ledgerkit.utils.date_parser import get_date_range

# (label, attribute, kind) rows of the report; kind picks the number format
REPORT_SECTIONS = (
    (
        "Balance sheet",
        (
            ("Total assets", "total_assets", "money"),
            ("Total liabilities", "total_liabilities", "money"),
            ("Total equity", "total_equity", "money"),
            ("Working capital", "working_capital", "money"),
        ),
    ),
    (
        "Income",
        (
            ("Revenue", "total_revenue", "money"),
            ("Expenses", "total_expenses", "money"),
            ("Gross profit", "gross_profit", "money"),
            ("Net income", "net_income", "money"),
        ),
    ),
    (
        "Profitability",
        (
            ("Gross profit margin", "gross_profit_margin", "percent"),
            ("Net profit margin", "net_profit_margin", "percent"),
            ("Operating margin", "operating_margin", "percent"),
            ("Return on assets", "return_on_assets", "percent"),
            ("Return on equity", "return_on_equity", "percent"),
        ),
    ),
    (
        "Liquidity and leverage",
        (
            ("Current ratio", "current_ratio", "ratio"),
            ("Quick ratio", "quick_ratio", "ratio"),
            ("Asset turnover", "asset_turnover", "ratio"),
            ("Debt to equity", "debt_to_equity", "ratio"),
            ("Debt to assets", "debt_to_assets", "ratio"),
            ("Equity ratio", "equity_ratio", "ratio"),
        ),
    ),
    (
        "Cash flow",
        (
            ("Operating cash flow", "operating_cash_flow", "money"),
            ("Free cash flow", "free_cash_flow", "money"),
            ("Cash flow to debt", "cash_flow_to_debt", "ratio"),
        ),
    ),
    (
        "Growth vs previous period",
        (
            ("Revenue growth", "revenue_growth", "percent"),
            ("Expense growth", "expense_growth", "percent"),
            ("Profit growth", "profit_growth", "percent"),
        ),
    ),
)


def _format_value(value, kind: str) -> str:
    if kind == "money":
        return f"{value:,.2f}"
    if kind == "percent":
        return f"{value:.2f}%"
    return f"{value:.4f}"


@click.command("analytics")
@click.option("--start-date", help="Start date (YYYY-MM-DD or relative like 'start of year')")
@click.option("--end-date", help="End date (YYYY-MM-DD or relative like 'today')")
@period_options
@click.pass_context
def analytics(
    ctx,
    start_date: str | None,
    end_date: str | None,
    period_flags: dict[str, bool],
):
    """Show financial ratios for a period.

    Defaults to the current month. Balance sheet figures are as of the end
    date; revenue and expenses are the movement within the period.

    Examples:
        ledgerkit analytics --last-quarter
        ledgerkit analytics --start-date 2024-01-01 --end-date 2024-06-30
    """
    calculator = ctx.obj["engine"].analytics

    start, end = resolve_cli_date_range(
        ctx,
        start_date=start_date,
        end_date=end_date,
        period_flags=period_flags,
        default_range=get_date_range("this-month"),
    )
    if start is None:
        start = end.replace(day=1)
    if end is None:
        end = max(start, date.today())

    try:
        report = calculator.calculate(start, end)
    except ValueError as e:
        handle_domain_error(ctx, e)

    echo_warnings(ValidationResult(warnings=report.warnings))
    click.echo(f"\nFinancial analytics {report.period} ({report.currency})")
    for title, rows in REPORT_SECTIONS:
        click.echo(f"\n{title}")
        click.echo("-" * 50)
        for label, attribute, kind in rows:
            click.echo(f"  {label:28s} {_format_value(getattr(report, attribute), kind):>18s}")


def register_commands(cli):
    """Register analytics command with main CLI."""
    cli.add_command(analytics)
