"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class DependencyError(DomainError):
    """Operation blocked due to dependent domain data."""


class InvalidTransitionError(DomainError):
    """Journal entry state change not allowed from its current status."""


class StorageError(DomainError):
    """The persistence layer failed; the operation was not performed."""


def account_not_found(account_id: int) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"


def account_code_not_found(code: str) -> str:
    """Return message for missing account by code."""
    return f"Account '{code}' not found"


def entry_not_found(entry_id: int) -> str:
    """Return message for missing journal entry."""
    return f"Journal entry {entry_id} not found"


def template_not_found(template_id: int) -> str:
    """Return message for missing recurring template."""
    return f"Recurring template {template_id} not found"


def rule_not_found(rule_id: int) -> str:
    """Return message for missing rule."""
    return f"Rule {rule_id} not found"


def statement_line_not_found(line_id: int) -> str:
    """Return message for missing bank statement line."""
    return f"Statement line {line_id} not found"


def duplicate_account_code(code: str) -> str:
    """Return message for duplicate account code."""
    return f"Account with code '{code}' already exists"


def duplicate_entry_number(entry_number: str) -> str:
    """Return message for duplicate journal entry number."""
    return f"Journal entry '{entry_number}' already exists"


def invalid_transition(entry_number: str, current: str, target: str) -> str:
    """Return message for an illegal journal entry status change."""
    return f"Cannot change entry '{entry_number}' from {current} to {target}"


def account_delete_blocked(account_id: int, entry_count: int, child_count: int) -> str:
    """Return message when account has dependent entries or child accounts."""
    parts = []
    if entry_count > 0:
        parts.append(f"{entry_count} journal entr{'ies' if entry_count != 1 else 'y'}")
    if child_count > 0:
        parts.append(f"{child_count} child account{'s' if child_count != 1 else ''}")
    return (
        f"Cannot delete account {account_id}: it has {', '.join(parts)}. "
        "Deactivate it instead."
    )
