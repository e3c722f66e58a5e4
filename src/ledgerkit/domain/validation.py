"""Pure validators for ledger data.

None of these functions mutate their input or touch storage. Business rule
violations are returned as ``ValidationResult`` values; callers decide
whether to block the operation.
"""

import re
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar, Union

from ledgerkit.config import LedgerConfig
from ledgerkit.domain.entities import (
    ZERO,
    Account,
    AccountType,
    EntryDraft,
    Frequency,
    JournalEntry,
    ValidationIssue,
    ValidationResult,
)

ACCOUNT_CODE_PATTERN = re.compile(r"^[A-Z0-9\-.]+$", re.IGNORECASE)
MAX_ACCOUNT_CODE_LENGTH = 50
MAX_ACCOUNT_NAME_LENGTH = 255
MAX_BALANCE = Decimal("999999999999.99")

# Error codes that stop a draft from being stored at all. Other errors
# (an unbalanced draft, for instance) only block posting.
DRAFT_BLOCKING_CODES = frozenset(
    {
        "LINE_ITEM_ACCOUNT_REQUIRED",
        "LINE_ITEM_ACCOUNT_NOT_FOUND",
        "LINE_ITEM_AMOUNT_REQUIRED",
        "INVALID_DEBIT_AMOUNT",
        "INVALID_CREDIT_AMOUNT",
        "BOTH_DEBIT_CREDIT",
        "ENTRY_DATE_REQUIRED",
        "ENTRY_DESCRIPTION_REQUIRED",
    }
)

T = TypeVar("T")


class _Collector:
    """Accumulates issues for a single validation run."""

    def __init__(self):
        self.errors: list[ValidationIssue] = []
        self.warnings: list[ValidationIssue] = []

    def error(self, field: str, message: str, code: str) -> None:
        self.errors.append(ValidationIssue(field=field, message=message, code=code))

    def warn(self, field: str, message: str, code: str) -> None:
        self.warnings.append(ValidationIssue(field=field, message=message, code=code))

    def result(self) -> ValidationResult:
        return ValidationResult(errors=tuple(self.errors), warnings=tuple(self.warnings))


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _is_amount(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, Decimal):
        return value.is_finite()
    try:
        return Decimal(str(value)).is_finite()
    except (InvalidOperation, ValueError):
        return False


def validate_journal_entry(
    entry: Union[EntryDraft, JournalEntry],
    accounts: Mapping[int, Account],
    *,
    today: Optional[date] = None,
    config: Optional[LedgerConfig] = None,
) -> ValidationResult:
    """Validate a journal entry against double-entry rules.

    Args:
        entry: Draft or stored entry to check
        accounts: Accounts by id that line items may reference
        today: Reference date for the date warnings (defaults to today)
        config: Thresholds (defaults to LedgerConfig())

    Returns:
        ValidationResult; an unbalanced entry is an error, unusual dates and
        very large totals are warnings
    """
    config = config or LedgerConfig()
    today = today or date.today()
    issues = _Collector()

    if _blank(entry.entry_number):
        issues.error("entry_number", "Entry number is required", "ENTRY_NUMBER_REQUIRED")
    if entry.date is None:
        issues.error("date", "Entry date is required", "ENTRY_DATE_REQUIRED")
    if _blank(entry.description):
        issues.error("description", "Entry description is required", "ENTRY_DESCRIPTION_REQUIRED")
    if not entry.line_items:
        issues.error("line_items", "At least one line item is required", "LINE_ITEMS_REQUIRED")

    total_debits = ZERO
    total_credits = ZERO
    for index, line in enumerate(entry.line_items):
        prefix = f"Line item {index + 1}"
        field = f"line_items[{index}]"

        if line.account_id is None:
            issues.error(f"{field}.account_id", f"{prefix}: Account is required", "LINE_ITEM_ACCOUNT_REQUIRED")
        else:
            account = accounts.get(line.account_id)
            if account is None:
                issues.error(
                    f"{field}.account_id",
                    f"{prefix}: Account {line.account_id} not found",
                    "LINE_ITEM_ACCOUNT_NOT_FOUND",
                )
            elif not account.is_active:
                issues.error(
                    f"{field}.account_id",
                    f"{prefix}: Account '{account.code}' is inactive",
                    "LINE_ITEM_ACCOUNT_INACTIVE",
                )
            elif entry.currency and account.currency != entry.currency:
                issues.warn(
                    f"{field}.account_id",
                    f"{prefix}: Account currency {account.currency} differs from entry currency {entry.currency}",
                    "CURRENCY_MISMATCH_WARNING",
                )

        debit = line.debit_amount
        credit = line.credit_amount
        if debit is None and credit is None:
            issues.error(field, f"{prefix}: Either debit or credit amount is required", "LINE_ITEM_AMOUNT_REQUIRED")
            continue

        debit_ok = debit is None or (_is_amount(debit) and Decimal(debit) >= 0)
        credit_ok = credit is None or (_is_amount(credit) and Decimal(credit) >= 0)
        if not debit_ok:
            issues.error(
                f"{field}.debit_amount",
                f"{prefix}: Debit amount must be a positive number",
                "INVALID_DEBIT_AMOUNT",
            )
        if not credit_ok:
            issues.error(
                f"{field}.credit_amount",
                f"{prefix}: Credit amount must be a positive number",
                "INVALID_CREDIT_AMOUNT",
            )
        if not (debit_ok and credit_ok):
            continue

        debit = Decimal(debit or 0)
        credit = Decimal(credit or 0)
        if debit > 0 and credit > 0:
            issues.error(field, f"{prefix}: Cannot have both debit and credit amounts", "BOTH_DEBIT_CREDIT")
        elif debit == 0 and credit == 0:
            issues.error(field, f"{prefix}: Either debit or credit amount is required", "LINE_ITEM_AMOUNT_REQUIRED")
        total_debits += debit
        total_credits += credit

    if entry.line_items:
        if abs(total_debits - total_credits) > config.balance_tolerance:
            issues.error(
                "line_items",
                f"Total debits ({total_debits:.2f}) must equal total credits ({total_credits:.2f})",
                "UNBALANCED_ENTRY",
            )
        if max(total_debits, total_credits) > config.large_transaction_threshold:
            issues.warn(
                "line_items",
                f"Large entry total ({max(total_debits, total_credits):.2f}) - please verify",
                "LARGE_AMOUNT_WARNING",
            )

    if entry.date is not None:
        window = timedelta(days=config.date_warning_days)
        upper = today + window
        lower = today - window
        if entry.date > upper:
            issues.warn("date", "Entry date is more than one year in the future", "FUTURE_DATE_WARNING")
        if entry.date < lower:
            issues.warn("date", "Entry date is more than one year in the past", "OLD_DATE_WARNING")

    return issues.result()


def validate_account_fields(
    code: Optional[str],
    name: Optional[str],
    account_type: Optional[Union[AccountType, str]],
    opening_balance: Optional[Decimal] = None,
) -> ValidationResult:
    """Validate fields for a new or renamed account."""
    issues = _Collector()

    if _blank(code):
        issues.error("code", "Account code is required", "ACCOUNT_CODE_REQUIRED")
    else:
        if not ACCOUNT_CODE_PATTERN.match(code):
            issues.error(
                "code",
                "Account code can only contain letters, numbers, hyphens, and periods",
                "ACCOUNT_CODE_FORMAT",
            )
        if len(code) > MAX_ACCOUNT_CODE_LENGTH:
            issues.error(
                "code",
                f"Account code cannot exceed {MAX_ACCOUNT_CODE_LENGTH} characters",
                "ACCOUNT_CODE_LENGTH",
            )

    if _blank(name):
        issues.error("name", "Account name is required", "ACCOUNT_NAME_REQUIRED")
    elif len(name) > MAX_ACCOUNT_NAME_LENGTH:
        issues.error(
            "name",
            f"Account name cannot exceed {MAX_ACCOUNT_NAME_LENGTH} characters",
            "ACCOUNT_NAME_LENGTH",
        )

    resolved_type = None
    if account_type is None:
        issues.error("account_type", "Account type is required", "ACCOUNT_TYPE_REQUIRED")
    else:
        try:
            resolved_type = AccountType(account_type)
        except ValueError:
            issues.error("account_type", "Invalid account type", "INVALID_ACCOUNT_TYPE")

    if opening_balance is not None:
        if not _is_amount(opening_balance):
            issues.error("opening_balance", "Opening balance must be a valid number", "INVALID_BALANCE")
        elif abs(Decimal(opening_balance)) > MAX_BALANCE:
            issues.error("opening_balance", "Balance amount is too large", "BALANCE_TOO_LARGE")
        elif Decimal(opening_balance) < 0 and resolved_type in (AccountType.ASSET, AccountType.REVENUE):
            issues.warn(
                "opening_balance",
                "Negative balance for asset/revenue account may indicate data entry error",
                "NEGATIVE_BALANCE_WARNING",
            )

    return issues.result()


def validate_recurring_template(
    name: Optional[str],
    description: Optional[str],
    amount: Optional[Decimal],
    currency: Optional[str],
    frequency: Optional[Union[Frequency, str]],
    interval: Optional[int],
    start_date: Optional[date],
    end_date: Optional[date],
    account_id: Optional[int],
    offset_account_id: Optional[int],
) -> ValidationResult:
    """Validate the fields of a recurring template."""
    issues = _Collector()

    if _blank(name):
        issues.error("name", "Recurring transaction name is required", "NAME_REQUIRED")
    if _blank(description):
        issues.error("description", "Description is required", "DESCRIPTION_REQUIRED")
    if amount is None or not _is_amount(amount) or Decimal(amount) <= 0:
        issues.error("amount", "Amount must be greater than 0", "INVALID_AMOUNT")
    if _blank(currency):
        issues.error("currency", "Currency is required", "CURRENCY_REQUIRED")

    try:
        Frequency(frequency)
    except ValueError:
        valid = ", ".join(f.value for f in Frequency)
        issues.error("frequency", f"Valid frequency is required ({valid})", "INVALID_FREQUENCY")

    if interval is None or isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
        issues.error("interval", "Interval must be at least 1", "INVALID_INTERVAL")

    if start_date is None:
        issues.error("start_date", "Start date is required", "START_DATE_REQUIRED")
    elif end_date is not None and end_date <= start_date:
        issues.error("end_date", "End date must be after start date", "INVALID_END_DATE")

    if account_id is None:
        issues.error("account_id", "Account is required", "ACCOUNT_REQUIRED")
    if offset_account_id is None:
        issues.error("offset_account_id", "Offset account is required", "OFFSET_ACCOUNT_REQUIRED")
    elif account_id is not None and account_id == offset_account_id:
        issues.error(
            "offset_account_id",
            "Offset account must differ from the target account",
            "SAME_ACCOUNT",
        )

    return issues.result()


def _check_pattern(issues: _Collector, pattern: Optional[str]) -> None:
    if _blank(pattern):
        issues.error("pattern", "Pattern is required", "PATTERN_REQUIRED")
        return
    try:
        re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        issues.error("pattern", f"Invalid regex pattern: {e}", "INVALID_PATTERN")


def _check_confidence(issues: _Collector, confidence: Optional[float]) -> None:
    if confidence is None:
        return
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)) or not 0 <= confidence <= 1:
        issues.error("confidence", "Confidence must be a number between 0 and 1", "INVALID_CONFIDENCE")


def validate_reconciliation_rule(
    name: Optional[str],
    pattern: Optional[str],
    account_id: Optional[int],
    category: Optional[str],
    confidence: Optional[float] = None,
) -> ValidationResult:
    """Validate a reconciliation rule, compiling its pattern."""
    issues = _Collector()
    if _blank(name):
        issues.error("name", "Rule name is required", "NAME_REQUIRED")
    _check_pattern(issues, pattern)
    if account_id is None:
        issues.error("account_id", "Account is required", "ACCOUNT_REQUIRED")
    if _blank(category):
        issues.error("category", "Category is required", "CATEGORY_REQUIRED")
    _check_confidence(issues, confidence)
    return issues.result()


def validate_categorization_rule(
    name: Optional[str],
    pattern: Optional[str],
    category: Optional[str],
    confidence: Optional[float] = None,
) -> ValidationResult:
    """Validate a categorization rule, compiling its pattern."""
    issues = _Collector()
    if _blank(name):
        issues.error("name", "Rule name is required", "NAME_REQUIRED")
    _check_pattern(issues, pattern)
    if _blank(category):
        issues.error("category", "Category is required", "CATEGORY_REQUIRED")
    _check_confidence(issues, confidence)
    return issues.result()


def validate_bank_statement_line(
    bank_account_id: Optional[int],
    line_date: Optional[date],
    description: Optional[str],
    amount: Optional[Decimal],
    balance: Optional[Decimal],
) -> ValidationResult:
    """Validate an imported bank statement line."""
    issues = _Collector()
    if bank_account_id is None:
        issues.error("bank_account_id", "Bank account is required", "BANK_ACCOUNT_REQUIRED")
    if line_date is None:
        issues.error("date", "Transaction date is required", "DATE_REQUIRED")
    if _blank(description):
        issues.error("description", "Description is required", "DESCRIPTION_REQUIRED")
    if amount is None:
        issues.error("amount", "Amount is required", "AMOUNT_REQUIRED")
    elif not _is_amount(amount):
        issues.error("amount", "Amount must be a number", "INVALID_AMOUNT")
    elif Decimal(amount) == 0:
        issues.warn("amount", "Zero amount statement line", "ZERO_AMOUNT_WARNING")
    if balance is None:
        issues.error("balance", "Balance is required", "BALANCE_REQUIRED")
    elif not _is_amount(balance):
        issues.error("balance", "Balance must be a number", "INVALID_BALANCE")
    return issues.result()


def validate_date_range(start_date: Optional[date], end_date: Optional[date]) -> ValidationResult:
    """Validate a reporting date range."""
    issues = _Collector()
    if start_date is None:
        issues.error("start_date", "Start date is required", "INVALID_START_DATE")
    if end_date is None:
        issues.error("end_date", "End date is required", "INVALID_END_DATE")
    if start_date is not None and end_date is not None:
        if start_date > end_date:
            issues.error("date_range", "Start date cannot be after end date", "INVALID_DATE_RANGE")
        elif (end_date - start_date).days > 365:
            issues.warn("date_range", "Date range spans more than one year", "LARGE_DATE_RANGE")
    return issues.result()


def validate_batch(
    items: Iterable[T], validator: Callable[[T], ValidationResult]
) -> tuple[list[T], list[tuple[T, ValidationResult]]]:
    """Split items into valid ones and invalid ones with their results."""
    valid: list[T] = []
    invalid: list[tuple[T, ValidationResult]] = []
    for item in items:
        result = validator(item)
        if result.is_valid:
            valid.append(item)
        else:
            invalid.append((item, result))
    return valid, invalid


def format_errors(result: ValidationResult) -> list[str]:
    """Render errors as ``field: message`` strings."""
    return [f"{issue.field}: {issue.message}" for issue in result.errors]


def format_warnings(result: ValidationResult) -> list[str]:
    """Render warnings as ``field: message`` strings."""
    return [f"{issue.field}: {issue.message}" for issue in result.warnings]
