"""Domain model entities for ledgerkit.

These are pure data classes representing ledger concepts, independent of
the database schema. Storage implementations convert to and from these
values so the bookkeeping rules never depend on a particular backend.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

ZERO = Decimal("0")


class AccountType(str, Enum):
    """Chart of accounts classification."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def is_debit_normal(self) -> bool:
        """Return True when debits increase the account's balance."""
        return self in (AccountType.ASSET, AccountType.EXPENSE)


class EntryStatus(str, Enum):
    """Journal entry lifecycle states."""

    DRAFT = "draft"
    POSTED = "posted"
    VOID = "void"
    REVERSED = "reversed"


class Frequency(str, Enum):
    """Recurring template frequency units."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


@dataclass(frozen=True)
class Account:
    """Ledger account domain entity."""

    id: int
    code: str
    name: str
    account_type: AccountType
    currency: str
    parent_id: Optional[int]
    opening_balance: Decimal
    current_balance: Decimal
    debit_balance: Decimal
    credit_balance: Decimal
    is_active: bool
    last_transaction_date: Optional[date]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class LineItem:
    """A single debit or credit line of a journal entry."""

    account_id: int
    debit_amount: Decimal = ZERO
    credit_amount: Decimal = ZERO
    description: Optional[str] = None
    tax_code: Optional[str] = None
    customer_id: Optional[str] = None
    supplier_id: Optional[str] = None
    department: Optional[str] = None
    id: Optional[int] = None

    @classmethod
    def debit(cls, account_id: int, amount: Decimal, **kwargs) -> "LineItem":
        return cls(account_id=account_id, debit_amount=Decimal(amount), **kwargs)

    @classmethod
    def credit(cls, account_id: int, amount: Decimal, **kwargs) -> "LineItem":
        return cls(account_id=account_id, credit_amount=Decimal(amount), **kwargs)

    def swapped(self) -> "LineItem":
        """Return a copy with debit and credit exchanged, without storage id."""
        return LineItem(
            account_id=self.account_id,
            debit_amount=self.credit_amount,
            credit_amount=self.debit_amount,
            description=self.description,
            tax_code=self.tax_code,
            customer_id=self.customer_id,
            supplier_id=self.supplier_id,
            department=self.department,
        )


def _total(lines: tuple[LineItem, ...], attr: str) -> Decimal:
    return sum((getattr(line, attr) or ZERO for line in lines), ZERO)


@dataclass(frozen=True)
class EntryDraft:
    """Caller input for creating or editing a journal entry."""

    date: Optional[date]
    description: Optional[str]
    line_items: tuple[LineItem, ...]
    entry_number: Optional[str] = None
    currency: Optional[str] = None
    reference: Optional[str] = None
    tags: tuple[str, ...] = ()
    notes: Optional[str] = None

    @property
    def total_debit(self) -> Decimal:
        return _total(self.line_items, "debit_amount")

    @property
    def total_credit(self) -> Decimal:
        return _total(self.line_items, "credit_amount")


@dataclass(frozen=True)
class JournalEntry:
    """Journal entry domain entity."""

    id: int
    entry_number: str
    date: date
    description: str
    status: EntryStatus
    currency: str
    line_items: tuple[LineItem, ...]
    reference: Optional[str]
    tags: tuple[str, ...]
    notes: Optional[str]
    reconciled: bool
    reversal_of_id: Optional[int]
    reversed_by_id: Optional[int]
    posted_at: Optional[datetime]
    posted_by: Optional[str]
    voided_at: Optional[datetime]
    void_reason: Optional[str]
    reversed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    @property
    def total_debit(self) -> Decimal:
        return _total(self.line_items, "debit_amount")

    @property
    def total_credit(self) -> Decimal:
        return _total(self.line_items, "credit_amount")

    @property
    def amount(self) -> Decimal:
        """Transaction amount used for matching (the debit side total)."""
        return self.total_debit

    @property
    def is_applied(self) -> bool:
        """True once the entry has been posted, whatever its later status."""
        return self.posted_at is not None

    def account_ids(self) -> set[int]:
        return {line.account_id for line in self.line_items}


@dataclass(frozen=True)
class RecurringTemplate:
    """Recurring transaction template."""

    id: int
    name: str
    description: str
    amount: Decimal
    currency: str
    frequency: Frequency
    interval: int
    start_date: date
    end_date: Optional[date]
    next_due_date: date
    account_id: int
    offset_account_id: int
    category: Optional[str]
    is_active: bool
    auto_execute: bool
    last_executed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class ReconciliationRule:
    """Pattern rule mapping a bank statement description to an account."""

    id: int
    name: str
    description: Optional[str]
    pattern: str
    account_id: int
    category: str
    confidence: float
    is_active: bool
    match_count: int
    last_matched_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class CategorizationRule:
    """Pattern rule mapping a description to a category and subcategory."""

    id: int
    name: str
    pattern: str
    category: str
    subcategory: Optional[str]
    confidence: float
    is_active: bool
    machine_generated: bool
    usage_count: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class BankStatementLine:
    """Imported bank statement line.

    A positive amount is money coming into the bank account, a negative
    amount money going out.
    """

    id: int
    bank_account_id: int
    date: date
    description: str
    amount: Decimal
    balance: Decimal
    reference: Optional[str]
    reconciled: bool
    matched_entry_id: Optional[int]
    matched_rule_id: Optional[int]
    suggested_category: Optional[str]
    confidence: Optional[float]
    created_at: datetime


# Search criteria


@dataclass(frozen=True)
class AccountCriteria:
    """Filters for account searches. Unset fields do not filter."""

    text: Optional[str] = None
    account_type: Optional[AccountType] = None
    is_active: Optional[bool] = None
    parent_id: Optional[int] = None
    min_balance: Optional[Decimal] = None
    max_balance: Optional[Decimal] = None


@dataclass(frozen=True)
class EntryCriteria:
    """Filters for journal entry searches. Unset fields do not filter.

    ``text`` matches entry number, description and reference. Amount bounds
    apply to the entry's total debit.
    """

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    statuses: tuple[EntryStatus, ...] = ()
    account_id: Optional[int] = None
    text: Optional[str] = None
    reconciled: Optional[bool] = None


# Balance propagation values


@dataclass(frozen=True)
class Posting:
    """Aggregated effect of one entry on one account."""

    account_id: int
    debit_amount: Decimal
    credit_amount: Decimal
    balance_delta: Decimal
    transaction_date: date


@dataclass(frozen=True)
class BalanceChange:
    """Account balance before and after a posting was applied."""

    account_id: int
    previous_balance: Decimal
    new_balance: Decimal


# Operation results


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation error or warning."""

    field: str
    message: str
    code: str


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validator: errors block, warnings only inform."""

    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error_codes(self) -> set[str]:
        return {issue.code for issue in self.errors}

    def warning_codes(self) -> set[str]:
        return {issue.code for issue in self.warnings}

    def merged(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult(
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )


@dataclass(frozen=True)
class EntryResult:
    """Result of creating or editing an entry."""

    entry: Optional[JournalEntry]
    validation: ValidationResult

    @property
    def ok(self) -> bool:
        return self.entry is not None and self.validation.is_valid


@dataclass(frozen=True)
class PostingResult:
    """Result of posting (or reversing) an entry."""

    entry: Optional[JournalEntry]
    validation: ValidationResult
    balance_changes: tuple[BalanceChange, ...] = ()
    reversal: Optional[JournalEntry] = None

    @property
    def ok(self) -> bool:
        return self.validation.is_valid and self.entry is not None


@dataclass(frozen=True)
class RuleResult:
    """Result of creating a reconciliation or categorization rule."""

    rule: Optional[Union[ReconciliationRule, CategorizationRule]]
    validation: ValidationResult

    @property
    def ok(self) -> bool:
        return self.rule is not None


@dataclass(frozen=True)
class TemplateResult:
    """Result of creating a recurring template."""

    template: Optional[RecurringTemplate]
    validation: ValidationResult

    @property
    def ok(self) -> bool:
        return self.template is not None


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of executing one occurrence of a recurring template."""

    template: RecurringTemplate
    entry: Optional[JournalEntry]
    validation: ValidationResult
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.entry is not None and self.error is None


@dataclass(frozen=True)
class SweepResult:
    """Outcome of one scheduler sweep."""

    executed: tuple[ExecutionResult, ...] = ()
    failed: tuple[ExecutionResult, ...] = ()
    pending: tuple[RecurringTemplate, ...] = ()


@dataclass(frozen=True)
class RuleMatch:
    """A reconciliation rule whose pattern matched a statement line."""

    rule_id: int
    rule_name: str
    account_id: int
    category: str
    confidence: float
    match_count: int


@dataclass(frozen=True)
class ReconciliationSuggestion:
    """Ranked rule matches for a line that could not be auto-reconciled."""

    line: BankStatementLine
    matches: tuple[RuleMatch, ...]

    @property
    def best(self) -> RuleMatch:
        return self.matches[0]

    @property
    def confidence(self) -> float:
        return self.best.confidence


@dataclass(frozen=True)
class ReconciliationResult:
    """Summary of a reconciliation batch."""

    reconciled_count: int = 0
    exact_matches: tuple[BankStatementLine, ...] = ()
    rule_matches: tuple[BankStatementLine, ...] = ()
    suggestions: tuple[ReconciliationSuggestion, ...] = ()
    unmatched: tuple[BankStatementLine, ...] = ()
    errors: tuple[str, ...] = ()
    cancelled: bool = False


@dataclass(frozen=True)
class CategorizationResult:
    """Category suggested for a description."""

    category: Optional[str] = None
    subcategory: Optional[str] = None
    confidence: float = 0.0
    rule_id: Optional[int] = None


@dataclass(frozen=True)
class LearningResult:
    """Rules touched by learning from one user correction."""

    keywords: tuple[str, ...] = ()
    created: tuple[CategorizationRule, ...] = ()
    boosted: tuple[CategorizationRule, ...] = ()


@dataclass(frozen=True)
class FinancialAnalytics:
    """Financial ratios derived from account balances.

    Margins, returns and growth figures are percentages. Balance sheet
    totals are snapshots as of ``end_date``; revenue and expenses are the
    movement inside ``[start_date, end_date]``.
    """

    start_date: date
    end_date: date
    currency: str
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    total_revenue: Decimal
    total_expenses: Decimal
    gross_profit: Decimal
    net_income: Decimal
    gross_profit_margin: Decimal
    net_profit_margin: Decimal
    operating_margin: Decimal
    return_on_assets: Decimal
    return_on_equity: Decimal
    current_ratio: Decimal
    quick_ratio: Decimal
    working_capital: Decimal
    asset_turnover: Decimal
    debt_to_equity: Decimal
    debt_to_assets: Decimal
    equity_ratio: Decimal
    operating_cash_flow: Decimal
    free_cash_flow: Decimal
    cash_flow_to_debt: Decimal
    revenue_growth: Decimal
    expense_growth: Decimal
    profit_growth: Decimal
    generated_at: datetime
    warnings: tuple[ValidationIssue, ...] = field(default=())

    @property
    def period(self) -> str:
        return f"{self.start_date.isoformat()} to {self.end_date.isoformat()}"
