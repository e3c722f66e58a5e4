"""Tests for the double-entry validator and field validators."""

import pytest
from datetime import date, datetime, timedelta, UTC
from decimal import Decimal

from ledgerkit.config import LedgerConfig
from ledgerkit.domain.entities import Account, AccountType, EntryDraft, LineItem
from ledgerkit.domain.validation import (
    format_errors,
    validate_account_fields,
    validate_bank_statement_line,
    validate_batch,
    validate_categorization_rule,
    validate_date_range,
    validate_journal_entry,
    validate_reconciliation_rule,
    validate_recurring_template,
)

TODAY = date(2024, 6, 15)


def _account(account_id, code, account_type=AccountType.ASSET, currency="USD", is_active=True):
    now = datetime.now(UTC)
    return Account(
        id=account_id,
        code=code,
        name=f"Account {code}",
        account_type=account_type,
        currency=currency,
        parent_id=None,
        opening_balance=Decimal("0"),
        current_balance=Decimal("0"),
        debit_balance=Decimal("0"),
        credit_balance=Decimal("0"),
        is_active=is_active,
        last_transaction_date=None,
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def chart():
    return {
        1: _account(1, "1000"),
        2: _account(2, "6000", AccountType.EXPENSE),
        3: _account(3, "9999", is_active=False),
        4: _account(4, "1100", currency="EUR"),
    }


def _draft(*line_items, entry_date=TODAY, description="Office supplies", entry_number="JE-000001", currency="USD"):
    return EntryDraft(
        date=entry_date,
        description=description,
        line_items=line_items,
        entry_number=entry_number,
        currency=currency,
    )


def _validate(draft, accounts, config=None):
    return validate_journal_entry(draft, accounts, today=TODAY, config=config)


class TestJournalEntryValidation:
    """Tests for validate_journal_entry."""

    def test_balanced_entry_is_valid(self, chart):
        draft = _draft(LineItem.debit(2, Decimal("100.00")), LineItem.credit(1, Decimal("100.00")))

        result = _validate(draft, chart)

        assert result.is_valid
        assert result.warnings == ()

    def test_unbalanced_entry(self, chart):
        draft = _draft(LineItem.debit(2, Decimal("100.00")), LineItem.credit(1, Decimal("90.00")))

        result = _validate(draft, chart)

        assert "UNBALANCED_ENTRY" in result.error_codes()
        assert "Total debits (100.00) must equal total credits (90.00)" in format_errors(result)[0]

    def test_difference_within_tolerance_is_balanced(self, chart):
        draft = _draft(LineItem.debit(2, Decimal("100.00")), LineItem.credit(1, Decimal("99.99")))

        assert _validate(draft, chart).is_valid

    def test_difference_above_tolerance(self, chart):
        draft = _draft(LineItem.debit(2, Decimal("100.00")), LineItem.credit(1, Decimal("99.98")))

        assert "UNBALANCED_ENTRY" in _validate(draft, chart).error_codes()

    def test_missing_header_fields(self, chart):
        draft = EntryDraft(date=None, description="  ", line_items=())

        codes = _validate(draft, chart).error_codes()

        assert codes == {
            "ENTRY_NUMBER_REQUIRED",
            "ENTRY_DATE_REQUIRED",
            "ENTRY_DESCRIPTION_REQUIRED",
            "LINE_ITEMS_REQUIRED",
        }

    def test_line_with_both_sides(self, chart):
        draft = _draft(
            LineItem(account_id=2, debit_amount=Decimal("10"), credit_amount=Decimal("10")),
        )

        assert "BOTH_DEBIT_CREDIT" in _validate(draft, chart).error_codes()

    def test_line_without_amount(self, chart):
        draft = _draft(LineItem(account_id=2), LineItem.credit(1, Decimal("10")))

        assert "LINE_ITEM_AMOUNT_REQUIRED" in _validate(draft, chart).error_codes()

    def test_line_with_none_amounts(self, chart):
        draft = _draft(LineItem(account_id=2, debit_amount=None, credit_amount=None))

        assert "LINE_ITEM_AMOUNT_REQUIRED" in _validate(draft, chart).error_codes()

    def test_negative_amounts(self, chart):
        draft = _draft(
            LineItem(account_id=2, debit_amount=Decimal("-5")),
            LineItem(account_id=1, credit_amount=Decimal("-5")),
        )

        codes = _validate(draft, chart).error_codes()

        assert "INVALID_DEBIT_AMOUNT" in codes
        assert "INVALID_CREDIT_AMOUNT" in codes

    def test_unknown_and_missing_accounts(self, chart):
        draft = _draft(
            LineItem.debit(77, Decimal("10")),
            LineItem(account_id=None, credit_amount=Decimal("10")),
        )

        codes = _validate(draft, chart).error_codes()

        assert "LINE_ITEM_ACCOUNT_NOT_FOUND" in codes
        assert "LINE_ITEM_ACCOUNT_REQUIRED" in codes

    def test_inactive_account(self, chart):
        draft = _draft(LineItem.debit(3, Decimal("10")), LineItem.credit(1, Decimal("10")))

        assert "LINE_ITEM_ACCOUNT_INACTIVE" in _validate(draft, chart).error_codes()

    def test_currency_mismatch_is_warning(self, chart):
        draft = _draft(LineItem.debit(4, Decimal("10")), LineItem.credit(1, Decimal("10")))

        result = _validate(draft, chart)

        assert result.is_valid
        assert "CURRENCY_MISMATCH_WARNING" in result.warning_codes()

    def test_large_amount_warning(self, chart):
        draft = _draft(LineItem.debit(2, Decimal("100000.01")), LineItem.credit(1, Decimal("100000.01")))

        result = _validate(draft, chart)

        assert result.is_valid
        assert "LARGE_AMOUNT_WARNING" in result.warning_codes()

    def test_large_amount_threshold_is_configurable(self, chart):
        config = LedgerConfig(large_transaction_threshold=Decimal("50"))
        draft = _draft(LineItem.debit(2, Decimal("60")), LineItem.credit(1, Decimal("60")))

        assert "LARGE_AMOUNT_WARNING" in _validate(draft, chart, config).warning_codes()

    def test_future_date_warning(self, chart):
        draft = _draft(
            LineItem.debit(2, Decimal("10")),
            LineItem.credit(1, Decimal("10")),
            entry_date=TODAY + timedelta(days=400),
        )

        result = _validate(draft, chart)

        assert result.is_valid
        assert result.warning_codes() == {"FUTURE_DATE_WARNING"}

    def test_old_date_warning(self, chart):
        draft = _draft(
            LineItem.debit(2, Decimal("10")),
            LineItem.credit(1, Decimal("10")),
            entry_date=TODAY - timedelta(days=400),
        )

        assert _validate(draft, chart).warning_codes() == {"OLD_DATE_WARNING"}


class TestAccountValidation:
    """Tests for validate_account_fields."""

    def test_valid_account(self):
        assert validate_account_fields("1000-A.1", "Cash", "asset").is_valid

    @pytest.mark.parametrize(
        "code, expected",
        [
            ("", "ACCOUNT_CODE_REQUIRED"),
            ("10 00", "ACCOUNT_CODE_FORMAT"),
            ("A" * 51, "ACCOUNT_CODE_LENGTH"),
        ],
    )
    def test_invalid_codes(self, code, expected):
        assert expected in validate_account_fields(code, "Cash", "asset").error_codes()

    def test_name_and_type(self):
        result = validate_account_fields("1000", "", "savings")

        assert result.error_codes() == {"ACCOUNT_NAME_REQUIRED", "INVALID_ACCOUNT_TYPE"}

    def test_name_too_long(self):
        assert "ACCOUNT_NAME_LENGTH" in validate_account_fields("1000", "x" * 256, "asset").error_codes()

    def test_negative_asset_opening_balance_warns(self):
        result = validate_account_fields("1000", "Cash", "asset", Decimal("-1"))

        assert result.is_valid
        assert result.warning_codes() == {"NEGATIVE_BALANCE_WARNING"}

    def test_balance_too_large(self):
        result = validate_account_fields("1000", "Cash", "asset", Decimal("1000000000000"))

        assert "BALANCE_TOO_LARGE" in result.error_codes()


class TestRecurringTemplateValidation:
    """Tests for validate_recurring_template."""

    def _validate(self, **overrides):
        fields = dict(
            name="Rent",
            description="Office rent",
            amount=Decimal("1500"),
            currency="USD",
            frequency="monthly",
            interval=1,
            start_date=date(2024, 1, 1),
            end_date=None,
            account_id=1,
            offset_account_id=2,
        )
        fields.update(overrides)
        return validate_recurring_template(**fields)

    def test_valid_template(self):
        assert self._validate().is_valid

    @pytest.mark.parametrize(
        "overrides, expected",
        [
            ({"name": ""}, "NAME_REQUIRED"),
            ({"description": None}, "DESCRIPTION_REQUIRED"),
            ({"amount": Decimal("0")}, "INVALID_AMOUNT"),
            ({"currency": ""}, "CURRENCY_REQUIRED"),
            ({"frequency": "fortnightly"}, "INVALID_FREQUENCY"),
            ({"interval": 0}, "INVALID_INTERVAL"),
            ({"start_date": None}, "START_DATE_REQUIRED"),
            ({"end_date": date(2024, 1, 1)}, "INVALID_END_DATE"),
            ({"account_id": None}, "ACCOUNT_REQUIRED"),
            ({"offset_account_id": None}, "OFFSET_ACCOUNT_REQUIRED"),
            ({"offset_account_id": 1}, "SAME_ACCOUNT"),
        ],
    )
    def test_invalid_fields(self, overrides, expected):
        assert expected in self._validate(**overrides).error_codes()


class TestRuleValidation:
    """Tests for rule validators."""

    def test_valid_reconciliation_rule(self):
        assert validate_reconciliation_rule("Uber", "uber|lyft", 1, "Travel", 0.85).is_valid

    def test_reconciliation_rule_errors(self):
        result = validate_reconciliation_rule("", "(unclosed", None, "", 1.5)

        assert result.error_codes() == {
            "NAME_REQUIRED",
            "INVALID_PATTERN",
            "ACCOUNT_REQUIRED",
            "CATEGORY_REQUIRED",
            "INVALID_CONFIDENCE",
        }

    def test_categorization_rule_requires_pattern(self):
        result = validate_categorization_rule("Rent", "", "Occupancy")

        assert result.error_codes() == {"PATTERN_REQUIRED"}


class TestStatementLineValidation:
    """Tests for validate_bank_statement_line."""

    def test_valid_line(self):
        assert validate_bank_statement_line(1, TODAY, "Coffee", Decimal("-3.50"), Decimal("100")).is_valid

    def test_zero_amount_warns(self):
        result = validate_bank_statement_line(1, TODAY, "Fee reversal", Decimal("0"), Decimal("100"))

        assert result.is_valid
        assert result.warning_codes() == {"ZERO_AMOUNT_WARNING"}

    def test_missing_fields(self):
        result = validate_bank_statement_line(None, None, "", None, "abc")

        assert result.error_codes() == {
            "BANK_ACCOUNT_REQUIRED",
            "DATE_REQUIRED",
            "DESCRIPTION_REQUIRED",
            "AMOUNT_REQUIRED",
            "INVALID_BALANCE",
        }


class TestDateRangeValidation:
    """Tests for validate_date_range."""

    def test_start_after_end(self):
        result = validate_date_range(date(2024, 2, 1), date(2024, 1, 1))

        assert result.error_codes() == {"INVALID_DATE_RANGE"}

    def test_long_range_warns(self):
        result = validate_date_range(date(2022, 1, 1), date(2024, 1, 1))

        assert result.is_valid
        assert result.warning_codes() == {"LARGE_DATE_RANGE"}


def test_validate_batch_splits_items():
    items = [("Rent", "rent"), ("", "x"), ("Bad", "(")]

    valid, invalid = validate_batch(items, lambda item: validate_categorization_rule(item[0], item[1], "Cat"))

    assert valid == [("Rent", "rent")]
    assert [item for item, _ in invalid] == [("", "x"), ("Bad", "(")]
