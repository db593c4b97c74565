from __future__ import annotations

import logging
from dataclasses import dataclass, field

from django.conf import settings
from django.db import transaction

from apps.accounts.domain.caller_context import CallerContext
from apps.catalog.models import Product
from apps.customers.models import Address
from apps.orders.domain.errors import OrderNotFoundError, OrderValidationError
from apps.orders.domain.policies import (
    OrderLine,
    PricedLine,
    compute_order_totals,
    generate_order_number,
    normalize_order_lines,
    parse_delivery_option,
    shipping_fee_for,
)
from apps.orders.domain.state_machine import OrderStatus
from apps.orders.models import Order, OrderItem
from apps.payments.application.use_cases.initialize_payment import (
    InitializePaymentCommand,
    InitializePaymentResult,
    InitializePaymentUseCase,
)
from apps.payments.domain.policies import parse_payment_method
from apps.payments.domain.types import ONLINE_PAYMENT_METHODS, PaymentMethod, PaymentStatus

logger = logging.getLogger("balmuya.orders")


@dataclass(frozen=True)
class CreateOrderCommand:
    caller: CallerContext
    items: tuple[OrderLine, ...]
    shipping_address_id: int
    delivery_option: str | None = None
    notes: str = ""
    payment_method: str = PaymentMethod.CHAPA.value


@dataclass(frozen=True)
class CreateOrderResult:
    order: Order
    payment: InitializePaymentResult | None = field(default=None)


class CreateOrderUseCase:
    @staticmethod
    @transaction.atomic
    def execute(cmd: CreateOrderCommand) -> CreateOrderResult:
        lines = normalize_order_lines(cmd.items)
        delivery_option = parse_delivery_option(cmd.delivery_option)
        payment_method = parse_payment_method(cmd.payment_method)

        address = Address.objects.filter(id=cmd.shipping_address_id, user_id=cmd.caller.user_id).first()
        if not address:
            raise OrderNotFoundError("Shipping address not found", field="shipping_address_id")

        product_ids = [line.product_id for line in lines]
        products = {
            product.pk: product
            for product in Product.objects.select_for_update().filter(id__in=product_ids, is_published=True)
        }
        for product_id in product_ids:
            if product_id not in products:
                raise OrderNotFoundError(f"Product {product_id} not found or not available", field="items")

        seller_ids = {product.seller_id for product in products.values()}
        if len(seller_ids) != 1:
            raise OrderValidationError("All items must be from the same seller", field="items")
        seller_id = seller_ids.pop()

        priced: list[PricedLine] = []
        for line in lines:
            product = products[line.product_id]
            if product.price is None or product.price <= 0:
                raise OrderValidationError(f"Product {product.name} has an invalid price", field="items")
            if product.quantity < line.quantity:
                raise OrderValidationError(f"Insufficient quantity for {product.name}", field="items")
            priced.append(PricedLine(product_id=product.pk, quantity=line.quantity, unit_price=product.price))

        totals = compute_order_totals(
            priced,
            shipping=shipping_fee_for(delivery_option, platform_fee=settings.PLATFORM_DELIVERY_FEE),
        )

        order = Order.objects.create(
            order_number=generate_order_number(),
            buyer_id=cmd.caller.user_id,
            seller_id=seller_id,
            shipping_address=address,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            subtotal=totals.subtotal,
            shipping=totals.shipping,
            tax=totals.tax,
            discount=totals.discount,
            total=totals.total,
            delivery_option=delivery_option.value,
            notes=(cmd.notes or "").strip(),
        )
        OrderItem.objects.bulk_create(
            [
                OrderItem(order=order, product_id=line.product_id, quantity=line.quantity, price=line.unit_price)
                for line in priced
            ]
        )

        payment = None
        if payment_method in ONLINE_PAYMENT_METHODS:
            payment = InitializePaymentUseCase.execute(
                InitializePaymentCommand(caller=cmd.caller, order_id=order.pk, method=payment_method.value)
            )

        logger.info(
            "order_created",
            extra={
                "order_id": order.pk,
                "order_number": order.order_number,
                "buyer_id": cmd.caller.user_id,
                "seller_id": seller_id,
                "total": str(order.total),
                "payment_method": payment_method.value,
            },
        )
        return CreateOrderResult(order=order, payment=payment)
