from __future__ import annotations

from django.db.models import Q, QuerySet

from apps.accounts.domain.caller_context import CallerContext
from apps.orders.models import Order


def orders_visible_to(caller: CallerContext) -> QuerySet[Order]:
    """Orders the caller may look up: their own purchases and sales, or all of them for admins."""
    if caller.is_admin:
        return Order.objects.all()
    return Order.objects.filter(Q(buyer_id=caller.user_id) | Q(seller_id=caller.user_id))
