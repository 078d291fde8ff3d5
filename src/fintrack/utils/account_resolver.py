"""Utility for resolving account names to IDs."""

from fintrack.domain.account import AccountService
from fintrack.domain.errors import NotFoundError


def resolve_account(account_service: AccountService, account: str | int) -> int:
    """Resolve account name or ID to account ID.

    A value that looks like an integer is tried as an ID first, then as a
    name, so an account literally named "2024" can still be found.

    Args:
        account_service: AccountService instance
        account: Account name, or ID (int or string representation of int)

    Returns:
        Account ID

    Raises:
        NotFoundError: If account is not found
    """
    if isinstance(account, int):
        return account_service.require_account(account).id

    try:
        account_id = int(account)
    except ValueError:
        account_id = None
    if account_id is not None and account_service.get_account(account_id) is not None:
        return account_id

    found = account_service.get_account_by_name(account)
    if found is None:
        raise NotFoundError(f"Account '{account}' not found")
    return found.id
