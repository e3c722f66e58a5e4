"""Domain layer for ledgerkit.

Services are exposed lazily: the database layer imports
``ledgerkit.domain.entities`` and the services import the database layer.
"""

_EXPORTS = {
    "AnalyticsCalculator": "ledgerkit.domain.analytics",
    "BalancePropagator": "ledgerkit.domain.balance",
    "CategorizationEngine": "ledgerkit.domain.categorization",
    "EventBus": "ledgerkit.domain.events",
    "EventTypes": "ledgerkit.domain.events",
    "LedgerEngine": "ledgerkit.domain.engine",
    "LedgerEvent": "ledgerkit.domain.events",
    "LedgerService": "ledgerkit.domain.ledger",
    "ReconciliationMatcher": "ledgerkit.domain.reconciliation",
    "RecurrenceScheduler": "ledgerkit.domain.recurrence",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name):
    if name in _EXPORTS:
        from importlib import import_module
        return getattr(import_module(_EXPORTS[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
