"""Mapper functions to convert SQLAlchemy models into domain entities.

This layer isolates the conversion logic so the domain services never see
ORM objects.
"""

from decimal import Decimal

from ledgerkit.domain import entities as domain
from ledgerkit.database.models import (
    Account as ORMAccount,
    BankStatementLine as ORMBankStatementLine,
    CategorizationRule as ORMCategorizationRule,
    JournalEntry as ORMJournalEntry,
    JournalLineItem as ORMJournalLineItem,
    ReconciliationRule as ORMReconciliationRule,
    RecurringTemplate as ORMRecurringTemplate,
)


def _money(value) -> Decimal:
    if value is None:
        return domain.ZERO
    return Decimal(value)


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        code=orm_account.code,
        name=orm_account.name,
        account_type=domain.AccountType(orm_account.account_type),
        currency=orm_account.currency,
        parent_id=orm_account.parent_id,
        opening_balance=_money(orm_account.opening_balance),
        current_balance=_money(orm_account.current_balance),
        debit_balance=_money(orm_account.debit_balance),
        credit_balance=_money(orm_account.credit_balance),
        is_active=orm_account.is_active,
        last_transaction_date=orm_account.last_transaction_date,
        created_at=orm_account.created_at,
        updated_at=orm_account.updated_at,
    )


def line_item_to_domain(orm_line: ORMJournalLineItem) -> domain.LineItem:
    """Convert SQLAlchemy JournalLineItem model to domain LineItem."""
    return domain.LineItem(
        id=orm_line.id,
        account_id=orm_line.account_id,
        debit_amount=_money(orm_line.debit_amount),
        credit_amount=_money(orm_line.credit_amount),
        description=orm_line.description,
        tax_code=orm_line.tax_code,
        customer_id=orm_line.customer_id,
        supplier_id=orm_line.supplier_id,
        department=orm_line.department,
    )


def entry_to_domain(orm_entry: ORMJournalEntry) -> domain.JournalEntry:
    """Convert SQLAlchemy JournalEntry model to domain JournalEntry entity."""
    return domain.JournalEntry(
        id=orm_entry.id,
        entry_number=orm_entry.entry_number,
        date=orm_entry.date,
        description=orm_entry.description,
        status=domain.EntryStatus(orm_entry.status),
        currency=orm_entry.currency,
        line_items=tuple(line_item_to_domain(line) for line in orm_entry.line_items),
        reference=orm_entry.reference,
        tags=tuple(orm_entry.tags or ()),
        notes=orm_entry.notes,
        reconciled=orm_entry.reconciled,
        reversal_of_id=orm_entry.reversal_of_id,
        reversed_by_id=orm_entry.reversed_by_id,
        posted_at=orm_entry.posted_at,
        posted_by=orm_entry.posted_by,
        voided_at=orm_entry.voided_at,
        void_reason=orm_entry.void_reason,
        reversed_at=orm_entry.reversed_at,
        created_at=orm_entry.created_at,
        updated_at=orm_entry.updated_at,
    )


def template_to_domain(orm_template: ORMRecurringTemplate) -> domain.RecurringTemplate:
    """Convert SQLAlchemy RecurringTemplate model to domain entity."""
    return domain.RecurringTemplate(
        id=orm_template.id,
        name=orm_template.name,
        description=orm_template.description,
        amount=_money(orm_template.amount),
        currency=orm_template.currency,
        frequency=domain.Frequency(orm_template.frequency),
        interval=orm_template.interval,
        start_date=orm_template.start_date,
        end_date=orm_template.end_date,
        next_due_date=orm_template.next_due_date,
        account_id=orm_template.account_id,
        offset_account_id=orm_template.offset_account_id,
        category=orm_template.category,
        is_active=orm_template.is_active,
        auto_execute=orm_template.auto_execute,
        last_executed_at=orm_template.last_executed_at,
        created_at=orm_template.created_at,
        updated_at=orm_template.updated_at,
    )


def reconciliation_rule_to_domain(orm_rule: ORMReconciliationRule) -> domain.ReconciliationRule:
    """Convert SQLAlchemy ReconciliationRule model to domain entity."""
    return domain.ReconciliationRule(
        id=orm_rule.id,
        name=orm_rule.name,
        description=orm_rule.description,
        pattern=orm_rule.pattern,
        account_id=orm_rule.account_id,
        category=orm_rule.category,
        confidence=orm_rule.confidence,
        is_active=orm_rule.is_active,
        match_count=orm_rule.match_count,
        last_matched_at=orm_rule.last_matched_at,
        created_at=orm_rule.created_at,
        updated_at=orm_rule.updated_at,
    )


def categorization_rule_to_domain(orm_rule: ORMCategorizationRule) -> domain.CategorizationRule:
    """Convert SQLAlchemy CategorizationRule model to domain entity."""
    return domain.CategorizationRule(
        id=orm_rule.id,
        name=orm_rule.name,
        pattern=orm_rule.pattern,
        category=orm_rule.category,
        subcategory=orm_rule.subcategory,
        confidence=orm_rule.confidence,
        is_active=orm_rule.is_active,
        machine_generated=orm_rule.machine_generated,
        usage_count=orm_rule.usage_count,
        created_at=orm_rule.created_at,
        updated_at=orm_rule.updated_at,
    )


def statement_line_to_domain(orm_line: ORMBankStatementLine) -> domain.BankStatementLine:
    """Convert SQLAlchemy BankStatementLine model to domain entity."""
    return domain.BankStatementLine(
        id=orm_line.id,
        bank_account_id=orm_line.bank_account_id,
        date=orm_line.date,
        description=orm_line.description,
        amount=_money(orm_line.amount),
        balance=_money(orm_line.balance),
        reference=orm_line.reference,
        reconciled=orm_line.reconciled,
        matched_entry_id=orm_line.matched_entry_id,
        matched_rule_id=orm_line.matched_rule_id,
        suggested_category=orm_line.suggested_category,
        confidence=orm_line.confidence,
        created_at=orm_line.created_at,
    )
