"""Balance propagation for posted journal entries."""

from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from ledgerkit.config import LedgerConfig
from ledgerkit.database.base import Database
from ledgerkit.domain.entities import (
    ZERO,
    Account,
    AccountType,
    BalanceChange,
    JournalEntry,
    LineItem,
    Posting,
    ValidationIssue,
)
from ledgerkit.domain.errors import InvalidTransitionError, NotFoundError, account_not_found


def signed_delta(account_type: AccountType, debit: Decimal, credit: Decimal) -> Decimal:
    """Return the balance effect of a debit/credit pair on an account type."""
    if account_type.is_debit_normal:
        return debit - credit
    return credit - debit


def replay_balance(account: Account, entries: Iterable[JournalEntry]) -> Decimal:
    """Recompute a balance from the opening balance and applied entries."""
    balance = account.opening_balance
    for entry in entries:
        if not entry.is_applied:
            continue
        for line in entry.line_items:
            if line.account_id == account.id:
                balance += signed_delta(account.account_type, line.debit_amount, line.credit_amount)
    return balance


class BalancePropagator:
    """Turns posted entries into account balance updates."""

    def __init__(self, db: Database, config: Optional[LedgerConfig] = None):
        """Initialize balance propagator.

        Args:
            db: Database instance
            config: Thresholds for balance warnings
        """
        self.db = db
        self.config = config or LedgerConfig()

    def plan(self, entry: JournalEntry, accounts: Optional[dict[int, Account]] = None) -> list[Posting]:
        """Aggregate an entry's line items into one posting per account.

        Args:
            entry: Entry whose lines to aggregate
            accounts: Accounts by ID; loaded from the database when omitted

        Returns:
            Postings in the order each account first appears in the entry

        Raises:
            NotFoundError: If a line references an unknown account
        """
        return self.plan_lines(entry.line_items, entry.date, accounts)

    def plan_lines(
        self,
        line_items: tuple[LineItem, ...],
        transaction_date: date,
        accounts: Optional[dict[int, Account]] = None,
    ) -> list[Posting]:
        """Aggregate line items into postings dated on the transaction date."""
        if accounts is None:
            accounts = self.db.get_accounts({line.account_id for line in line_items})

        totals: OrderedDict[int, list[Decimal]] = OrderedDict()
        for line in line_items:
            debit, credit = totals.setdefault(line.account_id, [ZERO, ZERO])
            totals[line.account_id] = [debit + (line.debit_amount or ZERO), credit + (line.credit_amount or ZERO)]

        postings = []
        for account_id, (debit, credit) in totals.items():
            account = accounts.get(account_id)
            if account is None:
                raise NotFoundError(account_not_found(account_id))
            postings.append(
                Posting(
                    account_id=account_id,
                    debit_amount=debit,
                    credit_amount=credit,
                    balance_delta=signed_delta(account.account_type, debit, credit),
                    transaction_date=transaction_date,
                )
            )
        return postings

    def apply(self, entry: JournalEntry) -> list[BalanceChange]:
        """Apply a posted entry to its accounts.

        Applying the same entry twice leaves balances unchanged; the second
        call returns no changes.

        Raises:
            InvalidTransitionError: If the entry has never been posted
        """
        if not entry.is_applied:
            raise InvalidTransitionError(
                f"Cannot apply entry '{entry.entry_number}': it has not been posted"
            )
        return self.db.apply_postings(entry.id, self.plan(entry))

    def balance_warnings(self, changes: Iterable[BalanceChange]) -> list[ValidationIssue]:
        """Data quality warnings for balances after an update."""
        changes = list(changes)
        accounts = self.db.get_accounts({c.account_id for c in changes})
        warnings = []
        for change in changes:
            account = accounts.get(change.account_id)
            if account is None:
                continue
            if change.new_balance < 0 and account.account_type in (AccountType.ASSET, AccountType.REVENUE):
                warnings.append(
                    ValidationIssue(
                        field=f"accounts[{account.code}]",
                        message=f"Account '{account.code}' has a negative balance ({change.new_balance:.2f})",
                        code="NEGATIVE_BALANCE_WARNING",
                    )
                )
            if account.account_type is AccountType.ASSET and change.new_balance < self.config.low_balance_threshold:
                warnings.append(
                    ValidationIssue(
                        field=f"accounts[{account.code}]",
                        message=f"Account '{account.code}' balance is low ({change.new_balance:.2f})",
                        code="LOW_BALANCE_WARNING",
                    )
                )
        return warnings
