"""Utility for resolving account codes to IDs."""

from ledgerkit.domain.errors import NotFoundError, account_code_not_found, account_not_found
from ledgerkit.domain.ledger import LedgerService


def resolve_account(ledger: LedgerService, account: str | int) -> int:
    """Resolve an account code or ID to an account ID.

    Codes take precedence, so an account coded "1000" is found by its code
    even though the string also parses as an ID.

    Args:
        ledger: LedgerService instance
        account: Account code, or ID (int or string representation of int)

    Returns:
        Account ID

    Raises:
        NotFoundError: If account is not found
    """
    if isinstance(account, int):
        if ledger.get_account(account) is None:
            raise NotFoundError(account_not_found(account))
        return account

    by_code = ledger.get_account_by_code(account.strip())
    if by_code is not None:
        return by_code.id

    try:
        account_id = int(account)
    except ValueError:
        raise NotFoundError(account_code_not_found(account)) from None
    if ledger.get_account(account_id) is None:
        raise NotFoundError(account_not_found(account_id))
    return account_id
