"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

# Import entities directly to avoid circular import through domain/__init__.py
from ledgerkit.domain.entities import (
    ZERO,
    Account,
    AccountCriteria,
    AccountType,
    BalanceChange,
    BankStatementLine,
    CategorizationRule,
    EntryCriteria,
    EntryDraft,
    Frequency,
    JournalEntry,
    Posting,
    ReconciliationRule,
    RecurringTemplate,
)


class Database(ABC):
    """Abstract database interface for ledgerkit.

    Every mutating method commits on its own unless it runs inside
    ``transaction()``, in which case the whole block commits or rolls back
    together. Implementations raise ``StorageError`` when the backend fails
    and ``NotFoundError`` for unknown ids.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Group several mutating calls into one atomic unit of work."""
        pass

    # Account operations
    @abstractmethod
    def create_account(
        self,
        code: str,
        name: str,
        account_type: AccountType,
        currency: str,
        parent_id: Optional[int] = None,
        opening_balance: Decimal = ZERO,
    ) -> int:
        """Create a new account. Returns account ID."""
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID."""
        pass

    @abstractmethod
    def get_account_by_code(self, code: str) -> Optional[Account]:
        """Get account by code."""
        pass

    @abstractmethod
    def get_accounts(self, account_ids: set[int]) -> dict[int, Account]:
        """Get several accounts keyed by ID. Unknown IDs are left out."""
        pass

    @abstractmethod
    def list_accounts(
        self, account_type: Optional[AccountType] = None, include_inactive: bool = True
    ) -> list[Account]:
        """List accounts ordered by code."""
        pass

    @abstractmethod
    def search_accounts(self, criteria: AccountCriteria) -> list[Account]:
        """List accounts matching all set criteria, ordered by code."""
        pass

    @abstractmethod
    def update_account(
        self,
        account_id: int,
        name: Optional[str] = None,
        parent_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        update_parent: bool = False,
    ) -> None:
        """Update account fields.

        Args:
            update_parent: If True, update parent_id even if it's None (to clear it)
        """
        pass

    @abstractmethod
    def delete_account(self, account_id: int) -> None:
        """Delete an account."""
        pass

    @abstractmethod
    def count_account_entries(self, account_id: int) -> int:
        """Count journal entries with a line on the account."""
        pass

    @abstractmethod
    def count_child_accounts(self, account_id: int) -> int:
        """Count accounts whose parent is the account."""
        pass

    # Journal entry operations
    @abstractmethod
    def create_entry(self, draft: EntryDraft, entry_number: str, currency: str) -> int:
        """Store a draft journal entry with its line items. Returns entry ID."""
        pass

    @abstractmethod
    def replace_draft(self, entry_id: int, draft: EntryDraft, currency: str) -> None:
        """Overwrite a draft's header fields and line items."""
        pass

    @abstractmethod
    def get_entry(self, entry_id: int) -> Optional[JournalEntry]:
        """Get journal entry by ID."""
        pass

    @abstractmethod
    def get_entry_by_number(self, entry_number: str) -> Optional[JournalEntry]:
        """Get journal entry by entry number."""
        pass

    @abstractmethod
    def search_entries(self, criteria: EntryCriteria) -> list[JournalEntry]:
        """List entries matching all set criteria, ordered by date then ID."""
        pass

    @abstractmethod
    def count_entries(self) -> int:
        """Count all journal entries."""
        pass

    @abstractmethod
    def mark_entry_posted(self, entry_id: int, posted_at: datetime, posted_by: Optional[str]) -> None:
        """Set an entry's status to posted."""
        pass

    @abstractmethod
    def apply_postings(self, entry_id: int, postings: list[Posting]) -> list[BalanceChange]:
        """Apply an entry's postings to account balances.

        A (account, entry) pair that has already been applied is skipped, so
        calling this again for the same entry changes nothing.

        Returns:
            Balance changes for the accounts that were actually updated
        """
        pass

    @abstractmethod
    def void_entry(self, entry_id: int, voided_at: datetime, reason: Optional[str]) -> None:
        """Set an entry's status to void."""
        pass

    @abstractmethod
    def link_reversal(self, entry_id: int, reversal_id: int, reversed_at: datetime) -> None:
        """Mark an entry reversed and link it with its reversing entry."""
        pass

    @abstractmethod
    def update_entry_metadata(
        self, entry_id: int, tags: Optional[tuple[str, ...]] = None, notes: Optional[str] = None
    ) -> None:
        """Update entry tags and/or notes."""
        pass

    @abstractmethod
    def set_entry_reconciled(self, entry_id: int, reconciled: bool = True) -> None:
        """Set an entry's reconciled flag."""
        pass

    @abstractmethod
    def delete_entry(self, entry_id: int) -> None:
        """Delete an entry and its line items."""
        pass

    # Recurring template operations
    @abstractmethod
    def create_template(
        self,
        name: str,
        description: str,
        amount: Decimal,
        currency: str,
        frequency: Frequency,
        interval: int,
        start_date: date,
        end_date: Optional[date],
        account_id: int,
        offset_account_id: int,
        category: Optional[str] = None,
        auto_execute: bool = False,
    ) -> int:
        """Create a recurring template due on its start date. Returns template ID."""
        pass

    @abstractmethod
    def get_template(self, template_id: int) -> Optional[RecurringTemplate]:
        """Get recurring template by ID."""
        pass

    @abstractmethod
    def list_templates(self, active_only: bool = False) -> list[RecurringTemplate]:
        """List templates ordered by next due date."""
        pass

    @abstractmethod
    def list_due_templates(self, through: date) -> list[RecurringTemplate]:
        """List active templates due on or before a date, ordered by due date."""
        pass

    @abstractmethod
    def update_template_schedule(
        self,
        template_id: int,
        next_due_date: date,
        is_active: bool,
        last_executed_at: Optional[datetime] = None,
    ) -> None:
        """Move a template's due date and set its active flag."""
        pass

    @abstractmethod
    def set_template_active(self, template_id: int, active: bool) -> None:
        """Activate or deactivate a template."""
        pass

    # Reconciliation rule operations
    @abstractmethod
    def create_reconciliation_rule(
        self,
        name: str,
        pattern: str,
        account_id: int,
        category: str,
        confidence: float,
        description: Optional[str] = None,
    ) -> int:
        """Create a reconciliation rule. Returns rule ID."""
        pass

    @abstractmethod
    def get_reconciliation_rule(self, rule_id: int) -> Optional[ReconciliationRule]:
        """Get reconciliation rule by ID."""
        pass

    @abstractmethod
    def list_reconciliation_rules(self, active_only: bool = False) -> list[ReconciliationRule]:
        """List reconciliation rules."""
        pass

    @abstractmethod
    def set_reconciliation_rule_active(self, rule_id: int, active: bool) -> None:
        """Activate or deactivate a reconciliation rule."""
        pass

    @abstractmethod
    def record_rule_match(self, rule_id: int, matched_at: datetime) -> None:
        """Increment a reconciliation rule's match count."""
        pass

    # Categorization rule operations
    @abstractmethod
    def create_categorization_rule(
        self,
        name: str,
        pattern: str,
        category: str,
        subcategory: Optional[str],
        confidence: float,
        machine_generated: bool = False,
    ) -> int:
        """Create a categorization rule. Returns rule ID."""
        pass

    @abstractmethod
    def get_categorization_rule(self, rule_id: int) -> Optional[CategorizationRule]:
        """Get categorization rule by ID."""
        pass

    @abstractmethod
    def find_categorization_rule(self, pattern: str, category: str) -> Optional[CategorizationRule]:
        """Get the rule with exactly this pattern and category, if any."""
        pass

    @abstractmethod
    def list_categorization_rules(
        self, active_only: bool = False, machine_generated: Optional[bool] = None
    ) -> list[CategorizationRule]:
        """List categorization rules."""
        pass

    @abstractmethod
    def update_categorization_rule(
        self,
        rule_id: int,
        confidence: Optional[float] = None,
        usage_increment: int = 0,
    ) -> None:
        """Set a rule's confidence and/or bump its usage count."""
        pass

    @abstractmethod
    def delete_categorization_rule(self, rule_id: int) -> None:
        """Delete a categorization rule."""
        pass

    # Bank statement operations
    @abstractmethod
    def create_statement_line(
        self,
        bank_account_id: int,
        line_date: date,
        description: str,
        amount: Decimal,
        balance: Decimal,
        reference: Optional[str] = None,
    ) -> int:
        """Store an imported statement line. Returns line ID."""
        pass

    @abstractmethod
    def statement_line_exists(
        self, bank_account_id: int, line_date: date, description: str, amount: Decimal
    ) -> bool:
        """Check whether an identical line was already imported."""
        pass

    @abstractmethod
    def get_statement_line(self, line_id: int) -> Optional[BankStatementLine]:
        """Get statement line by ID."""
        pass

    @abstractmethod
    def list_statement_lines(
        self, bank_account_id: Optional[int] = None, reconciled: Optional[bool] = None
    ) -> list[BankStatementLine]:
        """List statement lines ordered by date then ID."""
        pass

    @abstractmethod
    def mark_line_matched(
        self,
        line_id: int,
        entry_id: int,
        rule_id: Optional[int] = None,
        category: Optional[str] = None,
        confidence: Optional[float] = None,
    ) -> None:
        """Link a statement line to an entry and mark it reconciled."""
        pass

    @abstractmethod
    def set_line_suggestion(self, line_id: int, category: Optional[str], confidence: Optional[float]) -> None:
        """Record a suggested category without reconciling the line."""
        pass
