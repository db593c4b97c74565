from __future__ import annotations


class AccountDomainError(ValueError):
    pass


class AccountInactiveError(AccountDomainError):
    pass
