"""Recurring transaction templates and their scheduler."""

import logging
import threading
from datetime import date, datetime, timedelta, UTC
from decimal import Decimal
from typing import Callable, Optional, Union

from dateutil.relativedelta import relativedelta

from ledgerkit.config import LedgerConfig
from ledgerkit.database.base import Database
from ledgerkit.domain.entities import (
    EntryDraft,
    ExecutionResult,
    Frequency,
    LineItem,
    RecurringTemplate,
    SweepResult,
    TemplateResult,
    ValidationIssue,
    ValidationResult,
)
from ledgerkit.domain.errors import DomainError, NotFoundError, ValidationError, template_not_found
from ledgerkit.domain.events import EventBus, EventTypes
from ledgerkit.domain.ledger import LedgerService
from ledgerkit.domain.validation import format_errors, validate_recurring_template

logger = logging.getLogger(__name__)

MONTHS_PER_PERIOD = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.YEARLY: 12,
}

# Nominal length of one period, used to pace the background sweep
FREQUENCY_PERIODS = {
    Frequency.DAILY: timedelta(days=1),
    Frequency.WEEKLY: timedelta(weeks=1),
    Frequency.MONTHLY: timedelta(days=28),
    Frequency.QUARTERLY: timedelta(days=90),
    Frequency.YEARLY: timedelta(days=365),
}

# Longest pause between background sweeps
MAX_SWEEP_WAIT = timedelta(days=1)


def next_due_date(
    previous: date,
    frequency: Union[Frequency, str],
    interval: int = 1,
    anchor_day: Optional[int] = None,
) -> date:
    """Return the due date following ``previous``.

    Month-based frequencies land on ``anchor_day`` (usually the start date's
    day), clamped to the last day of shorter months, so a template starting
    on the 31st is due on Feb 28/29 and then on Mar 31 again.

    Args:
        previous: Previous due date
        frequency: Frequency unit
        interval: Number of units between occurrences
        anchor_day: Day of month to keep for month-based frequencies

    Returns:
        Next due date
    """
    frequency = Frequency(frequency)
    if frequency is Frequency.DAILY:
        return previous + relativedelta(days=interval)
    if frequency is Frequency.WEEKLY:
        return previous + relativedelta(weeks=interval)
    months = MONTHS_PER_PERIOD[frequency] * interval
    return previous + relativedelta(months=months, day=anchor_day)


class RecurrenceScheduler:
    """Service for recurring templates: creation, execution and sweeps."""

    def __init__(
        self,
        db: Database,
        ledger: LedgerService,
        config: Optional[LedgerConfig] = None,
        events: Optional[EventBus] = None,
    ):
        """Initialize recurrence scheduler.

        Args:
            db: Database instance
            ledger: Ledger service generated entries are posted through
            config: Ledger thresholds
            events: Event bus for ``template.due``
        """
        self.db = db
        self.ledger = ledger
        self.config = config or ledger.config
        self.events = events or ledger.events

    def create_template(
        self,
        name: str,
        description: str,
        amount: Decimal,
        account_id: int,
        offset_account_id: int,
        frequency: Union[Frequency, str],
        start_date: date,
        interval: int = 1,
        end_date: Optional[date] = None,
        currency: Optional[str] = None,
        category: Optional[str] = None,
        auto_execute: bool = False,
    ) -> TemplateResult:
        """Create a recurring template, first due on its start date.

        Args:
            name: Template name
            description: Description used for generated entries
            amount: Amount of each occurrence
            account_id: Account debited by each occurrence
            offset_account_id: Account credited by each occurrence
            frequency: daily, weekly, monthly, quarterly or yearly
            start_date: First due date
            interval: Number of frequency units between occurrences
            end_date: Last date an occurrence may fall on
            currency: Currency (defaults to the debited account's)
            category: Optional category, added to generated entries as a tag
            auto_execute: Post occurrences automatically during sweeps

        Returns:
            TemplateResult with the template, or None and the errors
        """
        validation = validate_recurring_template(
            name,
            description,
            amount,
            currency or self.config.default_currency,
            frequency,
            interval,
            start_date,
            end_date,
            account_id,
            offset_account_id,
        )
        account_errors = []
        for field, account_id_value in (("account_id", account_id), ("offset_account_id", offset_account_id)):
            if account_id_value is not None and self.db.get_account(account_id_value) is None:
                account_errors.append(
                    ValidationIssue(field=field, message=f"Account {account_id_value} not found", code="ACCOUNT_NOT_FOUND")
                )
        validation = validation.merged(ValidationResult(errors=tuple(account_errors)))
        if not validation.is_valid:
            return TemplateResult(template=None, validation=validation)

        if currency is None:
            currency = self.db.get_account(account_id).currency
        template_id = self.db.create_template(
            name=name,
            description=description,
            amount=Decimal(amount),
            currency=currency.upper(),
            frequency=Frequency(frequency),
            interval=interval,
            start_date=start_date,
            end_date=end_date,
            account_id=account_id,
            offset_account_id=offset_account_id,
            category=category,
            auto_execute=auto_execute,
        )
        logger.info("Created recurring template '%s' (%s)", name, template_id)
        return TemplateResult(template=self.db.get_template(template_id), validation=validation)

    def get_template(self, template_id: int) -> Optional[RecurringTemplate]:
        """Get recurring template by ID."""
        return self.db.get_template(template_id)

    def list_templates(self, active_only: bool = False) -> list[RecurringTemplate]:
        """List templates ordered by next due date."""
        return self.db.list_templates(active_only=active_only)

    def due_templates(self, as_of: Optional[date] = None, horizon_days: int = 0) -> list[RecurringTemplate]:
        """Active templates due on or before ``as_of + horizon_days``."""
        as_of = as_of or date.today()
        return self.db.list_due_templates(as_of + timedelta(days=horizon_days))

    def _require_template(self, template_id: int) -> RecurringTemplate:
        template = self.db.get_template(template_id)
        if template is None:
            raise NotFoundError(template_not_found(template_id))
        return template

    def _require_active(self, template_id: int) -> RecurringTemplate:
        template = self._require_template(template_id)
        if not template.is_active:
            raise ValidationError(f"Recurring template '{template.name}' is inactive")
        return template

    def _advance(self, template: RecurringTemplate, executed_at: Optional[datetime] = None) -> RecurringTemplate:
        following = next_due_date(
            template.next_due_date,
            template.frequency,
            template.interval,
            anchor_day=template.start_date.day,
        )
        active = template.end_date is None or following <= template.end_date
        self.db.update_template_schedule(template.id, following, active, executed_at)
        if not active:
            logger.info("Recurring template '%s' ended on %s", template.name, template.end_date)
        return self.db.get_template(template.id)

    def execute(self, template_id: int, posted_by: Optional[str] = None) -> ExecutionResult:
        """Post the template's current occurrence and advance its due date.

        The generated entry is dated on the template's due date, debits the
        target account and credits the offset account. The entry and the new
        due date are committed together; if either fails the error is logged
        and nothing changes.

        Raises:
            NotFoundError: If the template doesn't exist
            ValidationError: If the template is inactive
        """
        template = self._require_active(template_id)
        draft = EntryDraft(
            date=template.next_due_date,
            description=f"Recurring: {template.description}",
            line_items=(
                LineItem.debit(template.account_id, template.amount),
                LineItem.credit(template.offset_account_id, template.amount),
            ),
            currency=template.currency,
            reference=f"RT-{template.id}",
            tags=(template.category,) if template.category else (),
        )

        result = None
        try:
            with self.ledger.posting({line.account_id for line in draft.line_items}):
                updated = self._advance(template, executed_at=datetime.now(UTC))
                result = self.ledger.create_entry(draft, post=True, posted_by=posted_by or "scheduler")
                if not result.ok:
                    raise ValidationError("; ".join(format_errors(result.validation)))
        except DomainError as e:
            logger.error("Recurring template '%s' failed on %s: %s", template.name, template.next_due_date, e)
            validation = result.validation if result is not None else ValidationResult()
            return ExecutionResult(template=template, entry=None, validation=validation, error=str(e))

        logger.info("Executed recurring template '%s' as %s", template.name, result.entry.entry_number)
        return ExecutionResult(template=updated, entry=result.entry, validation=result.validation)

    def skip(self, template_id: int) -> RecurringTemplate:
        """Advance the due date without posting the current occurrence."""
        template = self._require_active(template_id)
        logger.info("Skipped recurring template '%s' due %s", template.name, template.next_due_date)
        return self._advance(template)

    def deactivate(self, template_id: int) -> RecurringTemplate:
        """Stop a template from coming due again."""
        self._require_template(template_id)
        self.db.set_template_active(template_id, False)
        return self.db.get_template(template_id)

    def sweep(self, today: Optional[date] = None) -> SweepResult:
        """Execute due auto-execute templates and announce the others.

        Each auto-execute template due by ``today`` posts one occurrence per
        sweep. Templates that need a human, or that fall due within the
        configured horizon, are reported as pending with a ``template.due``
        event.
        """
        today = today or date.today()
        executed, failed, pending = [], [], []
        horizon = today + timedelta(days=self.config.due_horizon_days)

        for template in self.db.list_due_templates(horizon):
            if template.auto_execute and template.next_due_date <= today:
                try:
                    result = self.execute(template.id)
                except DomainError as e:
                    logger.error("Recurring template '%s' could not run: %s", template.name, e)
                    result = ExecutionResult(
                        template=template, entry=None, validation=ValidationResult(), error=str(e)
                    )
                (executed if result.ok else failed).append(result)
                continue
            pending.append(template)
            self.events.emit(
                EventTypes.TEMPLATE_DUE,
                template_id=template.id,
                name=template.name,
                due_date=template.next_due_date,
                amount=template.amount,
                currency=template.currency,
            )

        if executed or failed:
            logger.info("Recurring sweep for %s: %d executed, %d failed", today, len(executed), len(failed))
        return SweepResult(executed=tuple(executed), failed=tuple(failed), pending=tuple(pending))

    def sweep_interval(self) -> timedelta:
        """Period of the finest frequency among active templates.

        Intervals are ignored: due dates need not line up with the sweeps.
        """
        periods = [FREQUENCY_PERIODS[t.frequency] for t in self.db.list_templates(active_only=True)]
        return min(periods, default=FREQUENCY_PERIODS[Frequency.DAILY])

    def run(self, stop_event: threading.Event, today: Callable[[], date] = date.today) -> None:
        """Sweep repeatedly until ``stop_event`` is set.

        Meant to run in a background thread. Waits the sweep interval between
        sweeps, but never more than a day, so templates created or edited in
        the meantime still execute on their due date. Storage failures are
        logged and the loop carries on with the next sweep.
        """
        logger.info("Recurring scheduler started")
        while not stop_event.is_set():
            try:
                self.sweep(today())
            except DomainError:
                logger.exception("Recurring sweep failed")
            stop_event.wait(min(self.sweep_interval(), MAX_SWEEP_WAIT).total_seconds())
        logger.info("Recurring scheduler stopped")
