"""Bank statement import and reconciliation against the ledger."""

import logging
import re
import threading
from datetime import datetime, UTC
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

from ledgerkit.config import LedgerConfig
from ledgerkit.database.base import Database
from ledgerkit.domain.entities import (
    AccountType,
    BankStatementLine,
    EntryCriteria,
    EntryDraft,
    EntryStatus,
    JournalEntry,
    LineItem,
    ReconciliationResult,
    ReconciliationRule,
    ReconciliationSuggestion,
    RuleMatch,
    RuleResult,
    ValidationIssue,
    ValidationResult,
)
from ledgerkit.domain.errors import (
    DomainError,
    NotFoundError,
    ValidationError,
    account_not_found,
    entry_not_found,
    rule_not_found,
    statement_line_not_found,
)
from ledgerkit.domain.events import EventBus, EventTypes
from ledgerkit.domain.ledger import LedgerService
from ledgerkit.domain.validation import (
    format_errors,
    validate_bank_statement_line,
    validate_batch,
    validate_reconciliation_rule,
)

logger = logging.getLogger(__name__)


def _to_decimal(value: Any) -> Any:
    if value is None or isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        return value


class ReconciliationMatcher:
    """Matches bank statement lines to journal entries.

    A line is reconciled either against an existing posted entry with the
    same amount on the same day, or through a pattern rule that books a new
    entry between the bank account and the rule's account.
    """

    def __init__(
        self,
        db: Database,
        ledger: LedgerService,
        config: Optional[LedgerConfig] = None,
        events: Optional[EventBus] = None,
    ):
        """Initialize reconciliation matcher.

        Args:
            db: Database instance
            ledger: Ledger service rule matches are posted through
            config: Ledger thresholds
            events: Event bus for reconciliation events
        """
        self.db = db
        self.ledger = ledger
        self.config = config or ledger.config
        self.events = events or ledger.events
        self._patterns: dict[tuple[int, str], re.Pattern] = {}
        self._patterns_guard = threading.Lock()

    # Rules
    def create_rule(
        self,
        name: str,
        pattern: str,
        account_id: int,
        category: str,
        confidence: Optional[float] = None,
        description: Optional[str] = None,
    ) -> RuleResult:
        """Create a reconciliation rule.

        The pattern is a regular expression matched case-insensitively
        anywhere in a statement line's description.

        Returns:
            RuleResult with the rule, or None and the errors
        """
        if confidence is None:
            confidence = self.config.default_rule_confidence
        validation = validate_reconciliation_rule(name, pattern, account_id, category, confidence)
        if account_id is not None and self.db.get_account(account_id) is None:
            validation = validation.merged(
                ValidationResult(
                    errors=(
                        ValidationIssue(
                            field="account_id",
                            message=account_not_found(account_id),
                            code="ACCOUNT_NOT_FOUND",
                        ),
                    )
                )
            )
        if not validation.is_valid:
            return RuleResult(rule=None, validation=validation)

        rule_id = self.db.create_reconciliation_rule(
            name=name,
            pattern=pattern,
            account_id=account_id,
            category=category,
            confidence=float(confidence),
            description=description,
        )
        logger.info("Created reconciliation rule '%s' (%s)", name, rule_id)
        return RuleResult(rule=self.db.get_reconciliation_rule(rule_id), validation=validation)

    def get_rule(self, rule_id: int) -> Optional[ReconciliationRule]:
        """Get reconciliation rule by ID."""
        return self.db.get_reconciliation_rule(rule_id)

    def list_rules(self, active_only: bool = False) -> list[ReconciliationRule]:
        """List reconciliation rules."""
        return self.db.list_reconciliation_rules(active_only=active_only)

    def set_rule_active(self, rule_id: int, active: bool) -> ReconciliationRule:
        """Enable or disable a rule.

        Raises:
            NotFoundError: If the rule doesn't exist
        """
        if self.db.get_reconciliation_rule(rule_id) is None:
            raise NotFoundError(rule_not_found(rule_id))
        self.db.set_reconciliation_rule_active(rule_id, active)
        return self.db.get_reconciliation_rule(rule_id)

    def _compiled(self, rule: ReconciliationRule) -> Optional[re.Pattern]:
        key = (rule.id, rule.pattern)
        with self._patterns_guard:
            compiled = self._patterns.get(key)
            if compiled is None:
                try:
                    compiled = re.compile(rule.pattern, re.IGNORECASE)
                except re.error as e:
                    logger.warning("Skipping reconciliation rule '%s': invalid pattern: %s", rule.name, e)
                    return None
                self._patterns[key] = compiled
            return compiled

    def match_rules(self, line: BankStatementLine) -> list[RuleMatch]:
        """Active rules matching the line's description, best first.

        Ranked by confidence, ties going to the rule that has matched more
        often.
        """
        matches = []
        for rule in self.db.list_reconciliation_rules(active_only=True):
            compiled = self._compiled(rule)
            if compiled is None or not compiled.search(line.description):
                continue
            matches.append(
                RuleMatch(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    account_id=rule.account_id,
                    category=rule.category,
                    confidence=rule.confidence,
                    match_count=rule.match_count,
                )
            )
        matches.sort(key=lambda m: (-m.confidence, -m.match_count))
        return matches

    # Statement lines
    def import_lines(
        self, bank_account_id: int, rows: Iterable[Mapping[str, Any]]
    ) -> tuple[list[int], list[str]]:
        """Store statement lines for a bank account.

        Each row needs ``date``, ``description``, ``amount`` and ``balance``
        and may carry a ``reference``. Rows that fail validation or were
        already imported are reported and skipped.

        Args:
            bank_account_id: Asset account the statement belongs to
            rows: Parsed statement rows

        Returns:
            Tuple of (created line IDs, error messages)

        Raises:
            NotFoundError: If the bank account doesn't exist
            ValidationError: If the account is not an asset account
        """
        account = self.db.get_account(bank_account_id)
        if account is None:
            raise NotFoundError(account_not_found(bank_account_id))
        if account.account_type is not AccountType.ASSET:
            raise ValidationError(f"Account '{account.code}' is not an asset account")

        parsed = [
            (index, row.get("date"), row.get("description"), _to_decimal(row.get("amount")),
             _to_decimal(row.get("balance")), row.get("reference") or None)
            for index, row in enumerate(rows, start=1)
        ]
        valid, invalid = validate_batch(
            parsed, lambda item: validate_bank_statement_line(bank_account_id, *item[1:5])
        )
        rejected = [(item[0], "; ".join(format_errors(result))) for item, result in invalid]

        created: list[int] = []
        for index, line_date, description, amount, balance, reference in valid:
            description = description.strip()
            if self.db.statement_line_exists(bank_account_id, line_date, description, amount):
                rejected.append((index, "duplicate of an imported line"))
                continue
            created.append(
                self.db.create_statement_line(
                    bank_account_id=bank_account_id,
                    line_date=line_date,
                    description=description,
                    amount=amount,
                    balance=balance,
                    reference=reference,
                )
            )
        errors = [f"Row {index}: {message}" for index, message in sorted(rejected)]
        logger.info("Imported %d statement lines into %s (%d skipped)", len(created), account.code, len(errors))
        return created, errors

    def list_lines(
        self, bank_account_id: Optional[int] = None, reconciled: Optional[bool] = None
    ) -> list[BankStatementLine]:
        """List statement lines ordered by date."""
        return self.db.list_statement_lines(bank_account_id=bank_account_id, reconciled=reconciled)

    def _require_open_line(self, line_id: int) -> BankStatementLine:
        line = self.db.get_statement_line(line_id)
        if line is None:
            raise NotFoundError(statement_line_not_found(line_id))
        if line.reconciled:
            raise ValidationError(f"Statement line {line_id} is already reconciled")
        return line

    # Matching
    def find_exact_match(self, line: BankStatementLine, exclude: Iterable[int] = ()) -> Optional[JournalEntry]:
        """Posted, unreconciled entry with the line's amount on the line's date.

        Entries that touch the line's bank account win over ones that don't.
        """
        amount = abs(line.amount)
        tolerance = self.config.balance_tolerance
        excluded = set(exclude)
        candidates = [
            entry
            for entry in self.db.search_entries(
                EntryCriteria(
                    start_date=line.date,
                    end_date=line.date,
                    min_amount=amount - tolerance,
                    max_amount=amount + tolerance,
                    statuses=(EntryStatus.POSTED,),
                    reconciled=False,
                )
            )
            if entry.id not in excluded and abs(entry.amount - amount) <= tolerance
        ]
        if not candidates:
            return None
        touching = [entry for entry in candidates if line.bank_account_id in entry.account_ids()]
        return (touching or candidates)[0]

    def reconcile(
        self,
        lines: Optional[Iterable[BankStatementLine]] = None,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> ReconciliationResult:
        """Reconcile statement lines, committing each line on its own.

        For each unreconciled line an exact entry match is tried first, then
        the pattern rules. A winning rule at or above the acceptance
        threshold books and links a new entry; a weaker one only records a
        suggestion for a human to confirm.

        Args:
            lines: Lines to process (defaults to every unreconciled line)
            cancel: Event checked between lines to stop the batch early

        Returns:
            ReconciliationResult summarizing the batch
        """
        if lines is None:
            lines = self.db.list_statement_lines(reconciled=False)

        exact, by_rule, suggestions, unmatched, errors = [], [], [], [], []
        claimed: set[int] = set()
        cancelled = False

        for line in lines:
            if cancel is not None and cancel.is_set():
                cancelled = True
                logger.info("Reconciliation cancelled")
                break
            if line.reconciled:
                continue
            try:
                entry = self.find_exact_match(line, exclude=claimed)
                if entry is not None:
                    exact.append(self._link(line, entry, match_type="exact", confidence=1.0))
                    claimed.add(entry.id)
                    continue

                matches = self.match_rules(line)
                if not matches:
                    unmatched.append(line)
                    continue

                best = matches[0]
                if best.confidence >= self.config.acceptance_threshold:
                    by_rule.append(self._apply_rule(line, best))
                else:
                    suggestions.append(self._suggest(line, matches))
            except DomainError as e:
                logger.error("Reconciling statement line %s failed: %s", line.id, e)
                errors.append(f"Line {line.id}: {e}")

        reconciled_count = len(exact) + len(by_rule)
        logger.info(
            "Reconciled %d lines (%d exact, %d by rule), %d suggestions, %d unmatched",
            reconciled_count,
            len(exact),
            len(by_rule),
            len(suggestions),
            len(unmatched),
        )
        return ReconciliationResult(
            reconciled_count=reconciled_count,
            exact_matches=tuple(exact),
            rule_matches=tuple(by_rule),
            suggestions=tuple(suggestions),
            unmatched=tuple(unmatched),
            errors=tuple(errors),
            cancelled=cancelled,
        )

    def confirm_suggestion(self, line_id: int, rule_id: int) -> BankStatementLine:
        """Accept a rule for a line, booking it like an automatic match.

        Raises:
            NotFoundError: If the line or rule doesn't exist
            ValidationError: If the line is already reconciled or the entry can't be posted
        """
        line = self._require_open_line(line_id)
        rule = self.db.get_reconciliation_rule(rule_id)
        if rule is None:
            raise NotFoundError(rule_not_found(rule_id))
        match = RuleMatch(
            rule_id=rule.id,
            rule_name=rule.name,
            account_id=rule.account_id,
            category=rule.category,
            confidence=rule.confidence,
            match_count=rule.match_count,
        )
        return self._apply_rule(line, match, match_type="confirmed")

    def match_manually(self, line_id: int, entry_id: int) -> BankStatementLine:
        """Link a line to an entry chosen by a human.

        Raises:
            NotFoundError: If the line or entry doesn't exist
            ValidationError: If either side is already reconciled or the entry is not posted
        """
        line = self._require_open_line(line_id)
        entry = self.db.get_entry(entry_id)
        if entry is None:
            raise NotFoundError(entry_not_found(entry_id))
        if entry.status is not EntryStatus.POSTED:
            raise ValidationError(f"Entry '{entry.entry_number}' is {entry.status.value}, not posted")
        if entry.reconciled:
            raise ValidationError(f"Entry '{entry.entry_number}' is already reconciled")
        return self._link(line, entry, match_type="manual", confidence=1.0)

    # Helpers
    def _link(
        self, line: BankStatementLine, entry: JournalEntry, match_type: str, confidence: float
    ) -> BankStatementLine:
        with self.db.transaction():
            self.db.mark_line_matched(line.id, entry.id, confidence=confidence)
            self.db.set_entry_reconciled(entry.id)
        self.events.emit(
            EventTypes.RECONCILIATION_MATCHED,
            line_id=line.id,
            entry_id=entry.id,
            rule_id=None,
            match_type=match_type,
            confidence=confidence,
        )
        return self.db.get_statement_line(line.id)

    def _apply_rule(self, line: BankStatementLine, match: RuleMatch, match_type: str = "rule") -> BankStatementLine:
        amount = abs(line.amount)
        if line.amount > 0:
            line_items = (LineItem.debit(line.bank_account_id, amount), LineItem.credit(match.account_id, amount))
        else:
            line_items = (LineItem.debit(match.account_id, amount), LineItem.credit(line.bank_account_id, amount))
        draft = EntryDraft(
            date=line.date,
            description=line.description,
            line_items=line_items,
            reference=line.reference,
            tags=(match.category,),
        )
        # The entry and the line match commit together
        with self.ledger.posting({item.account_id for item in line_items}):
            result = self.ledger.create_entry(draft, post=True, posted_by="reconciliation")
            if not result.ok:
                raise ValidationError("; ".join(format_errors(result.validation)))
            self.db.mark_line_matched(
                line.id,
                result.entry.id,
                rule_id=match.rule_id,
                category=match.category,
                confidence=match.confidence,
            )
            self.db.set_entry_reconciled(result.entry.id)
            self.db.record_rule_match(match.rule_id, datetime.now(UTC))

        self.events.emit(
            EventTypes.RECONCILIATION_MATCHED,
            line_id=line.id,
            entry_id=result.entry.id,
            rule_id=match.rule_id,
            match_type=match_type,
            confidence=match.confidence,
        )
        return self.db.get_statement_line(line.id)

    def _suggest(self, line: BankStatementLine, matches: list[RuleMatch]) -> ReconciliationSuggestion:
        best = matches[0]
        self.db.set_line_suggestion(line.id, best.category, best.confidence)
        suggestion = ReconciliationSuggestion(line=self.db.get_statement_line(line.id), matches=tuple(matches))
        self.events.emit(
            EventTypes.RECONCILIATION_SUGGESTED,
            line_id=line.id,
            rule_id=best.rule_id,
            category=best.category,
            confidence=best.confidence,
            alternatives=len(matches) - 1,
        )
        return suggestion
