"""Ledger engine: one object wiring every service to a database."""

import threading
from typing import Optional

from ledgerkit.config import LedgerConfig
from ledgerkit.database.base import Database
from ledgerkit.domain.analytics import AnalyticsCalculator
from ledgerkit.domain.balance import BalancePropagator
from ledgerkit.domain.categorization import CategorizationEngine
from ledgerkit.domain.events import EventBus
from ledgerkit.domain.ledger import LedgerService
from ledgerkit.domain.reconciliation import ReconciliationMatcher
from ledgerkit.domain.recurrence import RecurrenceScheduler
from ledgerkit.logging_setup import get_logger

logger = get_logger(__name__)


class LedgerEngine:
    """Entry point for in-process consumers.

    Every engine owns its services, locks and event bus, so several engines
    (for example over different databases) can live side by side.

    Example:
        engine = LedgerEngine(create_sqlite_database("books.db"))
        engine.events.subscribe("entry.posted", print)
        engine.ledger.create_entry(draft, post=True)
    """

    def __init__(
        self,
        db: Database,
        config: Optional[LedgerConfig] = None,
        events: Optional[EventBus] = None,
    ):
        self.db = db
        self.config = config or LedgerConfig()
        self.events = events or EventBus()
        self.balances = BalancePropagator(db, self.config)
        self.ledger = LedgerService(db, self.config, self.events, self.balances)
        self.scheduler = RecurrenceScheduler(db, self.ledger, self.config, self.events)
        self.reconciliation = ReconciliationMatcher(db, self.ledger, self.config, self.events)
        self.categorization = CategorizationEngine(db, self.config)
        self.analytics = AnalyticsCalculator(db, self.config)
        self._scheduler_thread: Optional[threading.Thread] = None
        self._scheduler_stop = threading.Event()

    def start_scheduler(self) -> None:
        """Run recurring sweeps in a background daemon thread."""
        if self._scheduler_thread is not None and self._scheduler_thread.is_alive():
            return
        self._scheduler_stop.clear()
        self._scheduler_thread = threading.Thread(
            target=self.scheduler.run,
            args=(self._scheduler_stop,),
            name="ledgerkit-scheduler",
            daemon=True,
        )
        self._scheduler_thread.start()

    def stop_scheduler(self, timeout: Optional[float] = None) -> None:
        """Signal the background scheduler to stop and wait for it."""
        self._scheduler_stop.set()
        if self._scheduler_thread is not None:
            self._scheduler_thread.join(timeout)
            if self._scheduler_thread.is_alive():
                logger.warning("Recurring scheduler did not stop within %s seconds", timeout)
            else:
                self._scheduler_thread = None

    def close(self) -> None:
        """Stop background work and release the database session."""
        self.stop_scheduler()
        self.db.disconnect()
