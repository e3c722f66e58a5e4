"""Ledger service: accounts, journal entries and their lifecycle.

Journal entries move ``draft -> posted -> void | reversed``. Posting runs the
double-entry validator again, then records the status change and the balance
updates in one storage transaction.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import date, datetime, UTC
from decimal import Decimal
from typing import Iterable, Iterator, Optional, Union

from ledgerkit.config import LedgerConfig
from ledgerkit.database.base import Database
from ledgerkit.domain.balance import BalancePropagator, replay_balance
from ledgerkit.domain.entities import (
    ZERO,
    Account,
    AccountCriteria,
    AccountType,
    BalanceChange,
    EntryCriteria,
    EntryDraft,
    EntryResult,
    EntryStatus,
    JournalEntry,
    PostingResult,
    ValidationResult,
)
from ledgerkit.domain.errors import (
    ConflictError,
    DependencyError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
    account_delete_blocked,
    account_not_found,
    duplicate_account_code,
    duplicate_entry_number,
    entry_not_found,
    invalid_transition,
)
from ledgerkit.domain.events import EventBus, EventTypes
from ledgerkit.domain.validation import (
    DRAFT_BLOCKING_CODES,
    format_errors,
    validate_account_fields,
    validate_journal_entry,
)

logger = logging.getLogger(__name__)

APPLIED_STATUSES = (EntryStatus.POSTED, EntryStatus.VOID, EntryStatus.REVERSED)


@dataclass(frozen=True)
class TrialBalanceRow:
    """One account's balance split into debit and credit columns."""

    account: Account
    debit: Decimal
    credit: Decimal


def _as_draft_validation(validation: ValidationResult) -> ValidationResult:
    """Keep only draft-blocking errors; the rest become warnings until posting."""
    blocking = tuple(issue for issue in validation.errors if issue.code in DRAFT_BLOCKING_CODES)
    deferred = tuple(issue for issue in validation.errors if issue.code not in DRAFT_BLOCKING_CODES)
    return ValidationResult(errors=blocking, warnings=deferred + validation.warnings)


class LedgerService:
    """Service for managing accounts and journal entries."""

    def __init__(
        self,
        db: Database,
        config: Optional[LedgerConfig] = None,
        events: Optional[EventBus] = None,
        propagator: Optional[BalancePropagator] = None,
    ):
        """Initialize ledger service.

        Args:
            db: Database instance
            config: Ledger thresholds (defaults to LedgerConfig())
            events: Event bus to publish to (a private one when omitted)
            propagator: Balance propagator (built from db and config when omitted)
        """
        self.db = db
        self.config = config or LedgerConfig()
        self.events = events or EventBus()
        self.propagator = propagator or BalancePropagator(db, self.config)
        self._locks: dict[int, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._numbering_lock = threading.RLock()

    @staticmethod
    def _now() -> datetime:
        return datetime.now(UTC)

    # Account operations
    def create_account(
        self,
        code: str,
        name: str,
        account_type: Union[AccountType, str],
        currency: Optional[str] = None,
        parent_id: Optional[int] = None,
        opening_balance: Decimal = ZERO,
    ) -> Account:
        """Create a new account.

        Args:
            code: Unique account code (letters, digits, hyphens, periods)
            name: Account name
            account_type: asset, liability, equity, revenue or expense
            currency: ISO currency code (defaults to the configured currency)
            parent_id: Optional parent account ID
            opening_balance: Signed opening balance

        Returns:
            Created account

        Raises:
            ValidationError: If a field is invalid
            ConflictError: If the code is already used
            NotFoundError: If the parent account doesn't exist
        """
        validation = validate_account_fields(code, name, account_type, opening_balance)
        if not validation.is_valid:
            raise ValidationError("; ".join(format_errors(validation)))
        for warning in validation.warnings:
            logger.warning("Account %s: %s", code, warning.message)

        if self.db.get_account_by_code(code) is not None:
            raise ConflictError(duplicate_account_code(code))
        if parent_id is not None and self.db.get_account(parent_id) is None:
            raise NotFoundError(account_not_found(parent_id))

        account_id = self.db.create_account(
            code=code,
            name=name,
            account_type=AccountType(account_type),
            currency=(currency or self.config.default_currency).upper(),
            parent_id=parent_id,
            opening_balance=Decimal(opening_balance),
        )
        logger.info("Created account %s (%s)", code, account_id)
        return self.db.get_account(account_id)

    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID."""
        return self.db.get_account(account_id)

    def get_account_by_code(self, code: str) -> Optional[Account]:
        """Get account by code."""
        return self.db.get_account_by_code(code)

    def require_account(self, account_id: int) -> Account:
        """Get account by ID, raising NotFoundError when it doesn't exist."""
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        return account

    def list_accounts(
        self, account_type: Optional[AccountType] = None, include_inactive: bool = True
    ) -> list[Account]:
        """List accounts ordered by code."""
        return self.db.list_accounts(account_type=account_type, include_inactive=include_inactive)

    def search_accounts(self, criteria: AccountCriteria) -> list[Account]:
        """List accounts matching all set criteria."""
        return self.db.search_accounts(criteria)

    def update_account(
        self,
        account_id: int,
        name: Optional[str] = None,
        parent_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        clear_parent: bool = False,
    ) -> Account:
        """Update an account's name, parent or active flag.

        Args:
            account_id: Account to update
            name: New name (unchanged if None)
            parent_id: New parent account (unchanged if None)
            is_active: New active flag (unchanged if None)
            clear_parent: Remove the parent link

        Returns:
            Updated account

        Raises:
            NotFoundError: If the account or new parent doesn't exist
            ValidationError: If the name is invalid or the parent would create a cycle
        """
        account = self.require_account(account_id)

        if name is not None:
            validation = validate_account_fields(account.code, name, account.account_type)
            if not validation.is_valid:
                raise ValidationError("; ".join(format_errors(validation)))

        if parent_id is not None:
            self.require_account(parent_id)
            ancestor_id = parent_id
            while ancestor_id is not None:
                if ancestor_id == account_id:
                    raise ValidationError(
                        f"Cannot move account '{account.code}' under its own descendant"
                    )
                ancestor_id = self.require_account(ancestor_id).parent_id

        self.db.update_account(
            account_id,
            name=name,
            parent_id=None if clear_parent else parent_id,
            is_active=is_active,
            update_parent=clear_parent,
        )
        return self.require_account(account_id)

    def deactivate_account(self, account_id: int) -> Account:
        """Mark an account inactive so new entries can't use it."""
        return self.update_account(account_id, is_active=False)

    def delete_account(self, account_id: int) -> None:
        """Delete an account.

        Raises:
            NotFoundError: If the account doesn't exist
            DependencyError: If entries or child accounts reference it
        """
        self.require_account(account_id)
        entry_count = self.db.count_account_entries(account_id)
        child_count = self.db.count_child_accounts(account_id)
        if entry_count > 0 or child_count > 0:
            raise DependencyError(account_delete_blocked(account_id, entry_count, child_count))
        self.db.delete_account(account_id)

    def recompute_balance(self, account_id: int) -> tuple[Decimal, Decimal]:
        """Replay applied entries to audit an account's stored balance.

        Returns:
            Tuple of (stored balance, recomputed balance)
        """
        account = self.require_account(account_id)
        entries = self.db.search_entries(EntryCriteria(account_id=account_id, statuses=APPLIED_STATUSES))
        recomputed = replay_balance(account, entries)
        if recomputed != account.current_balance:
            logger.warning(
                "Balance mismatch on %s: stored %s, recomputed %s",
                account.code,
                account.current_balance,
                recomputed,
            )
        return account.current_balance, recomputed

    def trial_balance(self) -> list[TrialBalanceRow]:
        """Current balances of all accounts in debit and credit columns."""
        rows = []
        for account in self.db.list_accounts():
            balance = account.current_balance
            debit_side = (balance >= 0) == account.account_type.is_debit_normal
            rows.append(
                TrialBalanceRow(
                    account=account,
                    debit=abs(balance) if debit_side else ZERO,
                    credit=ZERO if debit_side else abs(balance),
                )
            )
        return rows

    # Entry queries
    def get_entry(self, entry_id: int) -> Optional[JournalEntry]:
        """Get journal entry by ID."""
        return self.db.get_entry(entry_id)

    def get_entry_by_number(self, entry_number: str) -> Optional[JournalEntry]:
        """Get journal entry by entry number."""
        return self.db.get_entry_by_number(entry_number)

    def require_entry(self, entry_id: int) -> JournalEntry:
        """Get journal entry by ID, raising NotFoundError when it doesn't exist."""
        entry = self.db.get_entry(entry_id)
        if entry is None:
            raise NotFoundError(entry_not_found(entry_id))
        return entry

    def search_entries(self, criteria: Optional[EntryCriteria] = None) -> list[JournalEntry]:
        """List entries matching all set criteria, ordered by date."""
        return self.db.search_entries(criteria or EntryCriteria())

    # Entry lifecycle
    def _next_entry_number(self) -> str:
        sequence = self.db.count_entries() + 1
        while True:
            number = f"{self.config.entry_number_prefix}-{sequence:06d}"
            if self.db.get_entry_by_number(number) is None:
                return number
            sequence += 1

    def _prepare(self, draft: EntryDraft, entry_number: str) -> tuple[EntryDraft, ValidationResult]:
        account_ids = {line.account_id for line in draft.line_items if line.account_id is not None}
        accounts = self.db.get_accounts(account_ids)
        currency = draft.currency
        if not currency:
            first = next((accounts[i.account_id] for i in draft.line_items if i.account_id in accounts), None)
            currency = first.currency if first is not None else self.config.default_currency
        candidate = replace(draft, entry_number=entry_number, currency=currency.upper())
        return candidate, validate_journal_entry(candidate, accounts, config=self.config)

    def create_entry(
        self, draft: EntryDraft, *, post: bool = False, posted_by: Optional[str] = None
    ) -> EntryResult:
        """Create a journal entry, optionally posting it right away.

        Drafts may be unbalanced while they are being worked on; structural
        problems (unknown accounts, negative or two-sided amounts, missing
        date or description) still block storing them. With ``post=True``
        the entry must pass full validation before anything is stored.

        Entries without a number get the next free one. The number is taken
        under the numbering lock, which is held until the entry is committed.

        Args:
            draft: Entry contents
            post: Post the entry immediately
            posted_by: Who posted it (with ``post=True``)

        Returns:
            EntryResult with the stored entry, or None and the errors

        Raises:
            ConflictError: If the entry number is already used
            StorageError: If locks or the database fail
        """
        if draft.entry_number and self.db.get_entry_by_number(draft.entry_number) is not None:
            raise ConflictError(duplicate_entry_number(draft.entry_number))

        candidate, validation = self._prepare(draft, draft.entry_number or self._next_entry_number())

        if not post:
            validation = _as_draft_validation(validation)
            if not validation.is_valid:
                return EntryResult(entry=None, validation=validation)
            with self._numbering():
                with self.db.transaction():
                    entry_id = self._store_entry(candidate, numbered=bool(draft.entry_number))
            entry = self.db.get_entry(entry_id)
            logger.info("Created draft entry %s", entry.entry_number)
            return EntryResult(entry=entry, validation=validation)

        if not validation.is_valid:
            return EntryResult(entry=None, validation=validation)

        with self.posting({line.account_id for line in candidate.line_items}):
            entry_id = self._store_entry(candidate, numbered=bool(draft.entry_number))
            changes = self._post_stored(entry_id, posted_by)

        entry = self.db.get_entry(entry_id)
        validation = self._with_balance_warnings(validation, changes)
        logger.info("Created and posted entry %s", entry.entry_number)
        self._emit_posted(entry, changes)
        return EntryResult(entry=entry, validation=validation)

    def update_draft(self, entry_id: int, draft: EntryDraft) -> EntryResult:
        """Replace the contents of a draft entry.

        Raises:
            NotFoundError: If the entry doesn't exist
            InvalidTransitionError: If the entry is no longer a draft
            ConflictError: If a new entry number is already used
        """
        entry = self.require_entry(entry_id)
        if entry.status is not EntryStatus.DRAFT:
            raise InvalidTransitionError(f"Cannot edit entry '{entry.entry_number}': it is {entry.status.value}")

        entry_number = draft.entry_number or entry.entry_number
        if entry_number != entry.entry_number and self.db.get_entry_by_number(entry_number) is not None:
            raise ConflictError(duplicate_entry_number(entry_number))

        candidate, validation = self._prepare(draft, entry_number)
        validation = _as_draft_validation(validation)
        if not validation.is_valid:
            return EntryResult(entry=None, validation=validation)

        self.db.replace_draft(entry_id, candidate, candidate.currency)
        return EntryResult(entry=self.db.get_entry(entry_id), validation=validation)

    def post_entry(self, entry_id: int, posted_by: Optional[str] = None) -> PostingResult:
        """Validate and post a draft entry, updating account balances.

        Returns:
            PostingResult; when validation fails the entry stays a draft and
            the errors are returned

        Raises:
            NotFoundError: If the entry doesn't exist
            InvalidTransitionError: If the entry is not a draft
            StorageError: If account locks or the database fail
        """
        entry = self.require_entry(entry_id)
        if entry.status is not EntryStatus.DRAFT:
            raise InvalidTransitionError(
                invalid_transition(entry.entry_number, entry.status.value, EntryStatus.POSTED.value)
            )

        accounts = self.db.get_accounts(entry.account_ids())
        validation = validate_journal_entry(entry, accounts, config=self.config)
        if not validation.is_valid:
            return PostingResult(entry=entry, validation=validation)

        with self._account_locks(entry.account_ids()):
            with self.db.transaction():
                # Another caller may have posted it while we waited on the locks
                current = self.require_entry(entry_id)
                if current.status is not EntryStatus.DRAFT:
                    raise InvalidTransitionError(
                        invalid_transition(current.entry_number, current.status.value, EntryStatus.POSTED.value)
                    )
                changes = self._post_stored(entry_id, posted_by)

        posted = self.db.get_entry(entry_id)
        logger.info("Posted entry %s", posted.entry_number)
        self._emit_posted(posted, changes)
        return PostingResult(
            entry=posted,
            validation=self._with_balance_warnings(validation, changes),
            balance_changes=tuple(changes),
        )

    def void_entry(self, entry_id: int, reason: Optional[str] = None) -> JournalEntry:
        """Void a posted entry. Account balances are left as they are.

        Raises:
            NotFoundError: If the entry doesn't exist
            InvalidTransitionError: If the entry is not posted
        """
        entry = self.require_entry(entry_id)
        if entry.status is not EntryStatus.POSTED:
            raise InvalidTransitionError(
                invalid_transition(entry.entry_number, entry.status.value, EntryStatus.VOID.value)
            )
        self.db.void_entry(entry_id, self._now(), reason)
        logger.info("Voided entry %s", entry.entry_number)
        return self.db.get_entry(entry_id)

    def reverse_entry(
        self, entry_id: int, *, on: Optional[date] = None, posted_by: Optional[str] = None
    ) -> PostingResult:
        """Post a reversing entry and mark the original reversed.

        The reversal swaps every line's debit and credit and is numbered
        ``<original>-REV``. Creating it, posting it and linking both entries
        happen in one storage transaction.

        Args:
            entry_id: Posted entry to reverse
            on: Date of the reversing entry (defaults to today)
            posted_by: Who posted the reversal

        Returns:
            PostingResult whose ``entry`` is the original and ``reversal`` the new entry

        Raises:
            NotFoundError: If the entry doesn't exist
            InvalidTransitionError: If the entry is not posted
            ConflictError: If the reversal number is already used
        """
        original = self.require_entry(entry_id)
        if original.status is not EntryStatus.POSTED:
            raise InvalidTransitionError(
                invalid_transition(original.entry_number, original.status.value, EntryStatus.REVERSED.value)
            )

        reversal_number = f"{original.entry_number}-REV"
        if self.db.get_entry_by_number(reversal_number) is not None:
            raise ConflictError(duplicate_entry_number(reversal_number))

        draft = EntryDraft(
            date=on or date.today(),
            description=f"Reversal of {original.entry_number}: {original.description}",
            line_items=tuple(line.swapped() for line in original.line_items),
            entry_number=reversal_number,
            currency=original.currency,
            reference=original.reference,
            tags=original.tags,
        )
        validation = validate_journal_entry(draft, self.db.get_accounts(original.account_ids()), config=self.config)
        if not validation.is_valid:
            return PostingResult(entry=original, validation=validation)

        with self._account_locks(original.account_ids()):
            with self.db.transaction():
                current = self.require_entry(entry_id)
                if current.status is not EntryStatus.POSTED:
                    raise InvalidTransitionError(
                        invalid_transition(current.entry_number, current.status.value, EntryStatus.REVERSED.value)
                    )
                reversal_id = self.db.create_entry(draft, reversal_number, original.currency)
                changes = self._post_stored(reversal_id, posted_by)
                self.db.link_reversal(entry_id, reversal_id, self._now())

        reversal = self.db.get_entry(reversal_id)
        logger.info("Reversed entry %s with %s", original.entry_number, reversal_number)
        self._emit_posted(reversal, changes)
        return PostingResult(
            entry=self.db.get_entry(entry_id),
            validation=self._with_balance_warnings(validation, changes),
            balance_changes=tuple(changes),
            reversal=reversal,
        )

    def update_entry_metadata(
        self, entry_id: int, tags: Optional[Iterable[str]] = None, notes: Optional[str] = None
    ) -> JournalEntry:
        """Update tags and/or notes. Allowed in every status."""
        self.require_entry(entry_id)
        self.db.update_entry_metadata(entry_id, tags=tuple(tags) if tags is not None else None, notes=notes)
        return self.db.get_entry(entry_id)

    def delete_draft(self, entry_id: int) -> None:
        """Delete a draft entry.

        Raises:
            NotFoundError: If the entry doesn't exist
            InvalidTransitionError: If the entry is not a draft
        """
        entry = self.require_entry(entry_id)
        if entry.status is not EntryStatus.DRAFT:
            raise InvalidTransitionError(
                f"Cannot delete entry '{entry.entry_number}': it is {entry.status.value}"
            )
        self.db.delete_entry(entry_id)

    # Helpers
    def _store_entry(self, candidate: EntryDraft, numbered: bool) -> int:
        """Insert an entry, taking a fresh number unless the caller chose one.

        Runs inside a transaction under the numbering lock.
        """
        entry_number = candidate.entry_number if numbered else self._next_entry_number()
        if self.db.get_entry_by_number(entry_number) is not None:
            raise ConflictError(duplicate_entry_number(entry_number))
        return self.db.create_entry(replace(candidate, entry_number=entry_number), entry_number, candidate.currency)

    def _post_stored(self, entry_id: int, posted_by: Optional[str]) -> list[BalanceChange]:
        """Mark a stored entry posted and apply it. Runs inside a transaction."""
        self.db.mark_entry_posted(entry_id, self._now(), posted_by)
        return self.propagator.apply(self.db.get_entry(entry_id))

    def _with_balance_warnings(
        self, validation: ValidationResult, changes: list[BalanceChange]
    ) -> ValidationResult:
        warnings = tuple(self.propagator.balance_warnings(changes))
        return ValidationResult(errors=validation.errors, warnings=validation.warnings + warnings)

    def _emit_posted(self, entry: JournalEntry, changes: list[BalanceChange]) -> None:
        self.events.emit(
            EventTypes.ENTRY_POSTED,
            entry_id=entry.id,
            entry_number=entry.entry_number,
            date=entry.date,
            amount=entry.amount,
            currency=entry.currency,
        )
        for change in changes:
            self.events.emit(
                EventTypes.ACCOUNT_BALANCE_CHANGED,
                account_id=change.account_id,
                entry_id=entry.id,
                previous_balance=change.previous_balance,
                new_balance=change.new_balance,
            )

    @contextmanager
    def posting(self, account_ids: Iterable[int]) -> Iterator[None]:
        """Hold the account locks and the numbering lock around one transaction.

        Lets a caller commit its own changes together with the entries it
        creates and posts inside the block. The locks are reentrant, so
        ledger calls made inside the block take them again without waiting.

        Raises:
            StorageError: If a lock times out or the database fails
        """
        with self._account_locks(account_ids):
            with self._numbering():
                with self.db.transaction():
                    yield

    def _lock_for(self, account_id: int) -> threading.RLock:
        with self._locks_guard:
            return self._locks.setdefault(account_id, threading.RLock())

    @contextmanager
    def _numbering(self) -> Iterator[None]:
        if not self._numbering_lock.acquire(timeout=self.config.lock_timeout_seconds):
            raise StorageError("Timed out waiting for the entry numbering lock")
        try:
            yield
        finally:
            self._numbering_lock.release()

    @contextmanager
    def _account_locks(self, account_ids: Iterable[int]) -> Iterator[None]:
        """Hold the locks of several accounts, acquired in ascending ID order."""
        acquired = []
        try:
            for account_id in sorted(set(account_ids)):
                lock = self._lock_for(account_id)
                if not lock.acquire(timeout=self.config.lock_timeout_seconds):
                    raise StorageError(f"Timed out waiting for the lock on account {account_id}")
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
