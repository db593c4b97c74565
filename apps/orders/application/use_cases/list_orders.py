from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings
from django.core.paginator import Paginator
from django.db.models import Count

from apps.accounts.domain.caller_context import CallerContext
from apps.accounts.domain.policies import can_act_as_seller
from apps.orders.application.selectors import orders_visible_to
from apps.orders.domain.errors import OrderAccessDeniedError, OrderNotFoundError
from apps.orders.domain.policies import parse_order_status
from apps.orders.models import Order


@dataclass(frozen=True)
class ListOrdersCommand:
    caller: CallerContext
    status: str | None = None
    page: int = 1
    page_size: int | None = None


@dataclass(frozen=True)
class OrderPage:
    orders: list[Order]
    page: int
    pages: int
    total: int
    status_counts: dict[str, int]


def _paginate(queryset, cmd: ListOrdersCommand, *, status_counts: dict[str, int] | None = None) -> OrderPage:
    if cmd.status:
        queryset = queryset.filter(status=parse_order_status(cmd.status).value)
    page_size = cmd.page_size or settings.ORDERS_PAGE_SIZE
    paginator = Paginator(
        queryset.select_related("buyer", "seller", "shipping_address").prefetch_related("items__product"),
        page_size,
    )
    page = paginator.get_page(cmd.page)
    return OrderPage(
        orders=list(page.object_list),
        page=page.number,
        pages=paginator.num_pages,
        total=paginator.count,
        status_counts=status_counts or {},
    )


class ListBuyerOrdersUseCase:
    @staticmethod
    def execute(cmd: ListOrdersCommand) -> OrderPage:
        return _paginate(Order.objects.filter(buyer_id=cmd.caller.user_id), cmd)


class ListSellerOrdersUseCase:
    @staticmethod
    def execute(cmd: ListOrdersCommand) -> OrderPage:
        if not can_act_as_seller(cmd.caller):
            raise OrderAccessDeniedError("Seller access required.")
        queryset = Order.objects.filter(seller_id=cmd.caller.user_id)
        counts = {
            row["status"]: row["count"]
            for row in queryset.order_by().values("status").annotate(count=Count("id"))
        }
        return _paginate(queryset, cmd, status_counts=counts)


@dataclass(frozen=True)
class GetOrderCommand:
    caller: CallerContext
    order_id: int


class GetOrderUseCase:
    @staticmethod
    def execute(cmd: GetOrderCommand) -> Order:
        order = (
            orders_visible_to(cmd.caller)
            .select_related("buyer", "seller", "shipping_address")
            .prefetch_related("items__product", "payments")
            .filter(id=cmd.order_id)
            .first()
        )
        if not order:
            raise OrderNotFoundError("Order not found")
        return order
