"""Domain events emitted by the ledger core.

The core only emits events. Delivering them (notifications, dashboards,
UI refresh) is up to whoever subscribes.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventTypes:
    """Event names emitted by the ledger core."""

    ENTRY_POSTED = "entry.posted"
    ACCOUNT_BALANCE_CHANGED = "account.balance_changed"
    RECONCILIATION_MATCHED = "reconciliation.matched"
    RECONCILIATION_SUGGESTED = "reconciliation.suggested"
    TEMPLATE_DUE = "template.due"

    ALL = (
        ENTRY_POSTED,
        ACCOUNT_BALANCE_CHANGED,
        RECONCILIATION_MATCHED,
        RECONCILIATION_SUGGESTED,
        TEMPLATE_DUE,
    )


@dataclass(frozen=True)
class LedgerEvent:
    """An emitted domain event."""

    name: str
    payload: dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))


EventHandler = Callable[[LedgerEvent], None]

WILDCARD = "*"


class EventBus:
    """In-process publisher for ledger events.

    Handlers run synchronously after the operation that produced the event
    has been committed. A failing handler is logged and does not affect
    other handlers or the caller.
    """

    def __init__(self):
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, name: str, handler: EventHandler) -> None:
        """Register a handler for an event name, or ``"*"`` for every event."""
        if name != WILDCARD and name not in EventTypes.ALL:
            raise ValueError(f"Unknown event type '{name}'")
        self._handlers[name].append(handler)

    def unsubscribe(self, name: str, handler: EventHandler) -> None:
        """Remove a previously registered handler."""
        try:
            self._handlers[name].remove(handler)
        except ValueError:
            raise ValueError(f"Handler is not subscribed to '{name}'") from None

    def emit(self, name: str, **payload: Any) -> LedgerEvent:
        """Emit an event to its subscribers and return it."""
        event = LedgerEvent(name=name, payload=payload)
        for handler in list(self._handlers.get(name, ())) + list(self._handlers.get(WILDCARD, ())):
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler %r failed for %s", handler, name)
        return event
