from __future__ import annotations

from .caller_context import CallerContext, Role

_SELLER_DESK_ROLES = frozenset({Role.SELLER, Role.ADMIN})


def can_act_as_seller(caller: CallerContext) -> bool:
    return caller.role in _SELLER_DESK_ROLES


def resolve_role(raw: str | None, *, is_superuser: bool = False) -> Role:
    if is_superuser:
        return Role.ADMIN
    try:
        return Role((raw or "").strip().upper())
    except ValueError:
        return Role.BUYER
