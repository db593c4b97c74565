from __future__ import annotations

from apps.accounts.domain.caller_context import CallerContext
from apps.accounts.domain.errors import AccountInactiveError
from apps.accounts.domain.policies import resolve_role
from apps.accounts.models import AccountProfile


class CallerContextService:
    @staticmethod
    def from_user(user) -> CallerContext:
        profile = AccountProfile.objects.filter(user_id=user.pk).only("role", "is_active").first()
        if profile and not profile.is_active:
            raise AccountInactiveError("Account is deactivated.")
        role = resolve_role(
            profile.role if profile else None,
            is_superuser=bool(getattr(user, "is_superuser", False)),
        )
        return CallerContext(user_id=user.pk, role=role)
