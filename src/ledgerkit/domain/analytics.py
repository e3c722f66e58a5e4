"""Financial ratio calculations."""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, UTC
from decimal import Decimal
from typing import Iterable, Optional

from ledgerkit.config import LedgerConfig
from ledgerkit.database.base import Database
from ledgerkit.domain.balance import signed_delta
from ledgerkit.domain.entities import (
    ZERO,
    Account,
    AccountType,
    EntryCriteria,
    FinancialAnalytics,
    JournalEntry,
    ValidationIssue,
)
from ledgerkit.domain.errors import ValidationError
from ledgerkit.domain.ledger import APPLIED_STATUSES
from ledgerkit.domain.validation import format_errors, validate_date_range

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
RATIO_PLACES = Decimal("0.0001")
MONEY_PLACES = Decimal("0.01")


def ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Divide, returning 0 when the denominator is 0."""
    if denominator == 0:
        return ZERO
    return (numerator / denominator).quantize(RATIO_PLACES)


def percent(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Percentage of the denominator, 0 when the denominator is 0."""
    if denominator == 0:
        return ZERO
    return (numerator / denominator * HUNDRED).quantize(RATIO_PLACES)


def growth(current: Decimal, previous: Decimal) -> Decimal:
    """Percentage change against the previous value, 0 when it was 0."""
    if previous == 0:
        return ZERO
    return ((current - previous) / abs(previous) * HUNDRED).quantize(RATIO_PLACES)


def _movements(
    accounts: dict[int, Account], entries: Iterable[JournalEntry], start: Optional[date], end: date
) -> dict[int, Decimal]:
    """Signed balance movement per account from entries dated in [start, end]."""
    movement: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for entry in entries:
        if entry.date > end or (start is not None and entry.date < start):
            continue
        for line in entry.line_items:
            account = accounts.get(line.account_id)
            if account is None:
                continue
            movement[account.id] += signed_delta(account.account_type, line.debit_amount, line.credit_amount)
    return movement


def _total(accounts: Iterable[Account], amounts: dict[int, Decimal], account_type: AccountType) -> Decimal:
    return sum((amounts.get(a.id, ZERO) for a in accounts if a.account_type is account_type), ZERO)


class AnalyticsCalculator:
    """Computes financial ratios from the ledger.

    Balance sheet totals (assets, liabilities, equity) are snapshots as of
    the end date, rebuilt from opening balances plus every applied entry up
    to that date. Revenue and expenses are the movement within the period.
    Growth compares against the preceding period of the same length.
    Operating and free cash flow are approximated by gross profit.
    """

    def __init__(self, db: Database, config: Optional[LedgerConfig] = None):
        """Initialize analytics calculator.

        Args:
            db: Database instance
            config: Ledger configuration (for the reporting currency)
        """
        self.db = db
        self.config = config or LedgerConfig()

    def calculate(self, start_date: date, end_date: date) -> FinancialAnalytics:
        """Calculate financial analytics for a period.

        Args:
            start_date: First day of the period
            end_date: Last day of the period

        Returns:
            FinancialAnalytics; any ratio whose denominator is zero is 0

        Raises:
            ValidationError: If the date range is invalid
        """
        validation = validate_date_range(start_date, end_date)
        if not validation.is_valid:
            raise ValidationError("; ".join(format_errors(validation)))

        account_list = self.db.list_accounts()
        accounts = {a.id: a for a in account_list}
        entries = self.db.search_entries(EntryCriteria(end_date=end_date, statuses=APPLIED_STATUSES))

        period_days = (end_date - start_date).days + 1
        previous_end = start_date - timedelta(days=1)
        previous_start = previous_end - timedelta(days=period_days - 1)

        snapshot_movement = _movements(accounts, entries, None, end_date)
        snapshot = {a.id: a.opening_balance + snapshot_movement.get(a.id, ZERO) for a in account_list}
        current = _movements(accounts, entries, start_date, end_date)
        previous = _movements(accounts, entries, previous_start, previous_end)

        total_assets = _total(account_list, snapshot, AccountType.ASSET)
        total_liabilities = _total(account_list, snapshot, AccountType.LIABILITY)
        total_equity = _total(account_list, snapshot, AccountType.EQUITY)
        total_revenue = _total(account_list, current, AccountType.REVENUE)
        total_expenses = _total(account_list, current, AccountType.EXPENSE)
        previous_revenue = _total(account_list, previous, AccountType.REVENUE)
        previous_expenses = _total(account_list, previous, AccountType.EXPENSE)

        gross_profit = total_revenue - total_expenses
        net_income = gross_profit
        previous_profit = previous_revenue - previous_expenses

        warnings = list(validation.warnings)
        currencies = sorted({a.currency for a in account_list})
        if len(currencies) > 1:
            warnings.append(
                ValidationIssue(
                    field="currency",
                    message=f"Accounts use several currencies ({', '.join(currencies)}); totals are not converted",
                    code="MIXED_CURRENCY_WARNING",
                )
            )

        logger.debug("Calculated analytics for %s to %s over %d entries", start_date, end_date, len(entries))
        return FinancialAnalytics(
            start_date=start_date,
            end_date=end_date,
            currency=currencies[0] if len(currencies) == 1 else self.config.default_currency,
            total_assets=total_assets.quantize(MONEY_PLACES),
            total_liabilities=total_liabilities.quantize(MONEY_PLACES),
            total_equity=total_equity.quantize(MONEY_PLACES),
            total_revenue=total_revenue.quantize(MONEY_PLACES),
            total_expenses=total_expenses.quantize(MONEY_PLACES),
            gross_profit=gross_profit.quantize(MONEY_PLACES),
            net_income=net_income.quantize(MONEY_PLACES),
            gross_profit_margin=percent(gross_profit, total_revenue),
            net_profit_margin=percent(net_income, total_revenue),
            operating_margin=percent(gross_profit, total_revenue),
            return_on_assets=percent(net_income, total_assets),
            return_on_equity=percent(net_income, total_equity),
            current_ratio=ratio(total_assets, total_liabilities),
            quick_ratio=ratio(total_assets, total_liabilities),
            working_capital=(total_assets - total_liabilities).quantize(MONEY_PLACES),
            asset_turnover=ratio(total_revenue, total_assets),
            debt_to_equity=ratio(total_liabilities, total_equity),
            debt_to_assets=ratio(total_liabilities, total_assets),
            equity_ratio=ratio(total_equity, total_assets),
            operating_cash_flow=gross_profit.quantize(MONEY_PLACES),
            free_cash_flow=gross_profit.quantize(MONEY_PLACES),
            cash_flow_to_debt=ratio(gross_profit, total_liabilities),
            revenue_growth=growth(total_revenue, previous_revenue),
            expense_growth=growth(total_expenses, previous_expenses),
            profit_growth=growth(gross_profit, previous_profit),
            generated_at=datetime.now(UTC),
            warnings=tuple(warnings),
        )
