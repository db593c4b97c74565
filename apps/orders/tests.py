from __future__ import annotations

import re
from decimal import Decimal
from itertools import product as cartesian
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.test import APIClient

from apps.accounts.application.services.identity_service import CallerContextService
from apps.accounts.models import AccountProfile
from apps.catalog.models import Product
from apps.customers.models import Address
from apps.orders.application.use_cases.cancel_order import CancelOrderCommand, CancelOrderUseCase
from apps.orders.application.use_cases.create_order import CreateOrderCommand, CreateOrderUseCase
from apps.orders.application.use_cases.update_order_status import (
    UpdateOrderStatusCommand,
    UpdateOrderStatusUseCase,
)
from apps.orders.domain.errors import (
    IllegalOrderTransitionError,
    OrderAccessDeniedError,
    OrderNotCancellableError,
    OrderNotFoundError,
    OrderValidationError,
)
from apps.orders.domain.policies import (
    OrderLine,
    OrderTotals,
    PricedLine,
    assert_totals_consistent,
    compute_order_totals,
    generate_order_number,
    normalize_order_lines,
    parse_order_status,
    shipping_fee_for,
)
from apps.orders.domain.state_machine import (
    ORDER_TRANSITIONS,
    DeliveryOption,
    OrderStateMachine,
    OrderStatus,
)
from apps.orders.models import Order, OrderItem
from apps.payments.domain.errors import PaymentGatewayError
from apps.payments.domain.types import PaymentStatus
from apps.payments.infrastructure.gateways.chapa import ChapaGateway
from apps.payments.models import Payment

LEGAL_PAIRS = {
    (OrderStatus.PENDING, OrderStatus.CONFIRMED),
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
    (OrderStatus.CONFIRMED, OrderStatus.PROCESSING),
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
}


def _make_user(username: str, *, role: str = AccountProfile.ROLE_BUYER, first_name: str = ""):
    user = get_user_model().objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="StrongPass12345!",
        first_name=first_name,
    )
    AccountProfile.objects.create(user=user, role=role)
    return user


class OrderFixtureMixin:
    def setUp(self) -> None:
        super().setUp()
        self.buyer = _make_user("buyer", first_name="Hana")
        self.other_buyer = _make_user("other_buyer")
        self.seller = _make_user("seller", role=AccountProfile.ROLE_SELLER)
        self.other_seller = _make_user("other_seller", role=AccountProfile.ROLE_SELLER)
        self.admin = _make_user("admin", role=AccountProfile.ROLE_ADMIN)
        self.address = Address.objects.create(
            user=self.buyer,
            full_name="Hana Tesfaye",
            phone="+251911000000",
            line1="Bole Road",
            city="Addis Ababa",
        )
        self.dress = Product.objects.create(
            seller=self.seller, name="Habesha Kemis", price=Decimal("2150.00"), quantity=10, is_published=True
        )
        self.scarf = Product.objects.create(
            seller=self.seller, name="Netela Scarf", price=Decimal("400.00"), quantity=2, is_published=True
        )

    def caller(self, user):
        return CallerContextService.from_user(user)

    def make_order(
        self,
        *,
        status: str = OrderStatus.PENDING,
        payment_status: str = PaymentStatus.PENDING,
        total: Decimal = Decimal("4300.00"),
    ) -> Order:
        order = Order.objects.create(
            order_number=generate_order_number(),
            buyer=self.buyer,
            seller=self.seller,
            shipping_address=self.address,
            status=str(status),
            payment_status=str(payment_status),
            subtotal=total,
            total=total,
        )
        OrderItem.objects.create(order=order, product=self.dress, quantity=2, price=self.dress.price)
        return order


class OrderStateMachineTests(SimpleTestCase):
    def test_table_matches_documented_transitions(self):
        pairs = {(current, target) for current, targets in ORDER_TRANSITIONS.items() for target in targets}
        self.assertEqual(pairs, LEGAL_PAIRS)

    def test_every_pair_outside_table_is_rejected(self):
        for current, target in cartesian(OrderStatus, OrderStatus):
            with self.subTest(current=current, target=target):
                if (current, target) in LEGAL_PAIRS:
                    OrderStateMachine.assert_transition(current, target)
                else:
                    with self.assertRaises(IllegalOrderTransitionError) as ctx:
                        OrderStateMachine.assert_transition(current, target)
                    self.assertEqual(str(ctx.exception), f"Cannot change status from {current} to {target}")

    def test_terminal_and_cancellable_statuses(self):
        for status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            self.assertTrue(OrderStateMachine.is_terminal(status))
        self.assertTrue(OrderStateMachine.is_cancellable(OrderStatus.PENDING))
        self.assertTrue(OrderStateMachine.is_cancellable(OrderStatus.CONFIRMED))
        for status in (
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
            OrderStatus.CANCELLED,
            OrderStatus.REFUNDED,
        ):
            self.assertFalse(OrderStateMachine.is_cancellable(status))

    def test_table_is_read_only(self):
        with self.assertRaises(TypeError):
            ORDER_TRANSITIONS[OrderStatus.DELIVERED] = frozenset({OrderStatus.PENDING})  # type: ignore[index]


class OrderPoliciesTests(SimpleTestCase):
    def test_lines_are_merged_per_product(self):
        lines = normalize_order_lines([OrderLine(1, 2), OrderLine(2, 1), OrderLine(1, 3)])
        self.assertEqual(lines, [OrderLine(1, 5), OrderLine(2, 1)])

    def test_empty_or_non_positive_lines_rejected(self):
        with self.assertRaises(OrderValidationError):
            normalize_order_lines([])
        with self.assertRaises(OrderValidationError):
            normalize_order_lines([OrderLine(1, 0)])
        with self.assertRaises(OrderValidationError):
            normalize_order_lines([OrderLine(0, 1)])

    def test_unknown_status_is_validation_error(self):
        self.assertEqual(parse_order_status("shipped"), OrderStatus.SHIPPED)
        with self.assertRaises(OrderValidationError):
            parse_order_status("LOST")

    def test_totals_and_platform_shipping(self):
        shipping = shipping_fee_for(DeliveryOption.PLATFORM_DELIVERY, platform_fee=Decimal("50"))
        totals = compute_order_totals(
            [PricedLine(1, 2, Decimal("2150.00")), PricedLine(2, 1, Decimal("400.00"))],
            shipping=shipping,
        )
        self.assertEqual(totals.subtotal, Decimal("4700.00"))
        self.assertEqual(totals.shipping, Decimal("50.00"))
        self.assertEqual(totals.total, Decimal("4750.00"))
        self.assertEqual(shipping_fee_for(DeliveryOption.BUYER_PICKUP, platform_fee=Decimal("50")), Decimal("0.00"))

    def test_inconsistent_total_rejected(self):
        totals = OrderTotals(
            subtotal=Decimal("100.00"),
            shipping=Decimal("0.00"),
            tax=Decimal("0.00"),
            discount=Decimal("10.00"),
            total=Decimal("100.00"),
        )
        with self.assertRaises(OrderValidationError) as ctx:
            assert_totals_consistent(totals)
        self.assertEqual(ctx.exception.field, "total")

    def test_order_number_format(self):
        self.assertRegex(generate_order_number(now_ms=1700000000000), r"^BALMUYA-1700000000000-[0-9A-F]{6}$")


class UpdateOrderStatusUseCaseTests(OrderFixtureMixin, TestCase):
    def test_all_status_pairs(self):
        for current, target in cartesian(OrderStatus, OrderStatus):
            with self.subTest(current=current, target=target):
                order = self.make_order(status=current)
                cmd = UpdateOrderStatusCommand(caller=self.caller(self.seller), order_id=order.pk, status=target)
                if (current, target) in LEGAL_PAIRS:
                    result = UpdateOrderStatusUseCase.execute(cmd)
                    self.assertEqual(result.previous_status, current)
                    order.refresh_from_db()
                    self.assertEqual(order.status, target)
                else:
                    with self.assertRaises(IllegalOrderTransitionError):
                        UpdateOrderStatusUseCase.execute(cmd)
                    order.refresh_from_db()
                    self.assertEqual(order.status, current)

    def test_confirm_then_ship_is_illegal(self):
        order = self.make_order()
        seller = self.caller(self.seller)
        UpdateOrderStatusUseCase.execute(
            UpdateOrderStatusCommand(caller=seller, order_id=order.pk, status="CONFIRMED")
        )
        with self.assertRaises(IllegalOrderTransitionError) as ctx:
            UpdateOrderStatusUseCase.execute(
                UpdateOrderStatusCommand(caller=seller, order_id=order.pk, status="SHIPPED")
            )
        self.assertEqual(str(ctx.exception), "Cannot change status from CONFIRMED to SHIPPED")
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.CONFIRMED)

    def test_tracking_number_and_shipped_timestamp(self):
        order = self.make_order(status=OrderStatus.PROCESSING)
        UpdateOrderStatusUseCase.execute(
            UpdateOrderStatusCommand(
                caller=self.caller(self.seller),
                order_id=order.pk,
                status="SHIPPED",
                tracking_number=" ET-123456 ",
            )
        )
        order.refresh_from_db()
        self.assertEqual(order.tracking_number, "ET-123456")
        self.assertIsNotNone(order.shipped_at)

    def test_buyer_cannot_change_status(self):
        order = self.make_order()
        with self.assertRaises(OrderAccessDeniedError):
            UpdateOrderStatusUseCase.execute(
                UpdateOrderStatusCommand(caller=self.caller(self.buyer), order_id=order.pk, status="CONFIRMED")
            )
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.PENDING)

    def test_unrelated_users_get_not_found(self):
        order = self.make_order()
        for user in (self.other_seller, self.other_buyer):
            with self.subTest(user=user.username):
                with self.assertRaises(OrderNotFoundError):
                    UpdateOrderStatusUseCase.execute(
                        UpdateOrderStatusCommand(caller=self.caller(user), order_id=order.pk, status="CONFIRMED")
                    )

    def test_admin_can_act_for_seller(self):
        order = self.make_order()
        UpdateOrderStatusUseCase.execute(
            UpdateOrderStatusCommand(caller=self.caller(self.admin), order_id=order.pk, status="CONFIRMED")
        )
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.CONFIRMED)


class CancelOrderUseCaseTests(OrderFixtureMixin, TestCase):
    def test_pending_unpaid_order_cancels_without_refund(self):
        order = self.make_order()
        payment = Payment.objects.create(
            order=order, user=self.buyer, amount=order.total, method="CHAPA", transaction_id="CHAPA-PENDING"
        )

        result = CancelOrderUseCase.execute(
            CancelOrderCommand(caller=self.caller(self.buyer), order_id=order.pk, reason="changed mind")
        )

        self.assertEqual(result.refund_amount, Decimal("0"))
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.CANCELLED)
        self.assertEqual(order.cancellation_reason, "changed mind")
        self.assertEqual(order.cancelled_by_id, self.buyer.pk)
        self.assertIsNotNone(order.cancelled_at)
        payment.refresh_from_db()
        self.assertEqual(payment.status, PaymentStatus.PENDING)
        self.assertIsNone(payment.refunded_at)

    def test_paid_order_is_refunded_in_full(self):
        order = self.make_order(
            status=OrderStatus.CONFIRMED, payment_status=PaymentStatus.COMPLETED, total=Decimal("2500.00")
        )
        payment = Payment.objects.create(
            order=order,
            user=self.buyer,
            amount=order.total,
            method="CHAPA",
            status=PaymentStatus.COMPLETED,
            transaction_id="CHAPA-PAID",
        )

        result = CancelOrderUseCase.execute(CancelOrderCommand(caller=self.caller(self.buyer), order_id=order.pk))

        self.assertEqual(result.refund_amount, Decimal("2500.00"))
        self.assertEqual(result.refunded_payment_ids, (payment.pk,))
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.CANCELLED)
        self.assertEqual(order.payment_status, PaymentStatus.REFUNDED)
        payment.refresh_from_db()
        self.assertEqual(payment.status, PaymentStatus.REFUNDED)
        self.assertEqual(payment.refund_amount, Decimal("2500.00"))
        self.assertIsNotNone(payment.refunded_at)

    def test_non_cancellable_statuses_rejected(self):
        for status in (
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
            OrderStatus.CANCELLED,
            OrderStatus.REFUNDED,
        ):
            with self.subTest(status=status):
                order = self.make_order(status=status)
                with self.assertRaises(OrderNotCancellableError) as ctx:
                    CancelOrderUseCase.execute(CancelOrderCommand(caller=self.caller(self.buyer), order_id=order.pk))
                self.assertEqual(str(ctx.exception), "Order cannot be cancelled")
                order.refresh_from_db()
                self.assertEqual(order.status, status)

    def test_only_the_buyer_can_cancel(self):
        order = self.make_order()
        for user in (self.seller, self.other_buyer):
            with self.subTest(user=user.username):
                with self.assertRaises(OrderNotFoundError):
                    CancelOrderUseCase.execute(CancelOrderCommand(caller=self.caller(user), order_id=order.pk))
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.PENDING)


class CreateOrderUseCaseTests(OrderFixtureMixin, TestCase):
    def _command(self, **overrides) -> CreateOrderCommand:
        values = {
            "caller": self.caller(self.buyer),
            "items": (OrderLine(product_id=self.dress.pk, quantity=2),),
            "shipping_address_id": self.address.pk,
        }
        values.update(overrides)
        return CreateOrderCommand(**values)

    def test_creates_pending_order_with_items_and_payment(self):
        result = CreateOrderUseCase.execute(self._command())

        order = result.order
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.payment_status, PaymentStatus.PENDING)
        self.assertEqual(order.seller_id, self.seller.pk)
        self.assertEqual(order.subtotal, Decimal("4300.00"))
        self.assertEqual(order.shipping, Decimal("0.00"))
        self.assertEqual(order.total, Decimal("4300.00"))
        self.assertTrue(re.match(r"^BALMUYA-\d+-[0-9A-F]{6}$", order.order_number))
        self.assertEqual(list(order.items.values_list("quantity", "price")), [(2, Decimal("2150.00"))])

        self.assertIsNotNone(result.payment)
        self.assertEqual(result.payment.amount, Decimal("4300.00"))
        self.assertTrue(result.payment.payment_url.startswith("https://checkout.chapa.co/checkout/payment/"))
        self.assertEqual(Payment.objects.filter(order=order, status=PaymentStatus.PENDING).count(), 1)

    @override_settings(PLATFORM_DELIVERY_FEE=Decimal("50.00"))
    def test_platform_delivery_adds_shipping_fee(self):
        result = CreateOrderUseCase.execute(
            self._command(
                items=(OrderLine(self.dress.pk, 1), OrderLine(self.scarf.pk, 1)),
                delivery_option="PLATFORM_DELIVERY",
            )
        )
        self.assertEqual(result.order.subtotal, Decimal("2550.00"))
        self.assertEqual(result.order.shipping, Decimal("50.00"))
        self.assertEqual(result.order.total, Decimal("2600.00"))

    def test_cash_on_delivery_skips_payment(self):
        result = CreateOrderUseCase.execute(self._command(payment_method="CASH_ON_DELIVERY"))
        self.assertIsNone(result.payment)
        self.assertFalse(Payment.objects.filter(order=result.order).exists())

    def test_items_from_several_sellers_rejected(self):
        foreign = Product.objects.create(
            seller=self.other_seller, name="Basket", price=Decimal("300.00"), quantity=5, is_published=True
        )
        with self.assertRaises(OrderValidationError):
            CreateOrderUseCase.execute(self._command(items=(OrderLine(self.dress.pk, 1), OrderLine(foreign.pk, 1))))
        self.assertFalse(Order.objects.exists())

    def test_unpublished_product_not_found(self):
        draft = Product.objects.create(seller=self.seller, name="Draft", price=Decimal("10.00"), quantity=5)
        with self.assertRaises(OrderNotFoundError):
            CreateOrderUseCase.execute(self._command(items=(OrderLine(draft.pk, 1),)))

    def test_insufficient_stock_rejected(self):
        with self.assertRaises(OrderValidationError) as ctx:
            CreateOrderUseCase.execute(self._command(items=(OrderLine(self.scarf.pk, 3),)))
        self.assertIn("Netela Scarf", str(ctx.exception))

    def test_non_positive_price_rejected(self):
        free = Product.objects.create(
            seller=self.seller, name="Sample", price=Decimal("0.00"), quantity=5, is_published=True
        )
        with self.assertRaises(OrderValidationError):
            CreateOrderUseCase.execute(self._command(items=(OrderLine(free.pk, 1),)))

    def test_foreign_address_not_found(self):
        address = Address.objects.create(
            user=self.other_buyer, full_name="Other", phone="+251900000000", line1="Piassa", city="Addis Ababa"
        )
        with self.assertRaises(OrderNotFoundError):
            CreateOrderUseCase.execute(self._command(shipping_address_id=address.pk))

    def test_gateway_failure_rolls_back_order(self):
        with patch.object(ChapaGateway, "initialize", side_effect=PaymentGatewayError("Gateway unavailable")):
            with self.assertRaises(PaymentGatewayError):
                CreateOrderUseCase.execute(self._command())
        self.assertFalse(Order.objects.exists())
        self.assertFalse(Payment.objects.exists())


class OrdersApiTests(OrderFixtureMixin, TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client = APIClient()

    def test_requires_authentication(self):
        response = self.client.get("/api/orders/")
        self.assertEqual(response.status_code, 401)

    def test_create_order_contract(self):
        self.client.force_authenticate(user=self.buyer)
        response = self.client.post(
            "/api/orders/",
            data={
                "items": [{"product_id": self.dress.pk, "quantity": 2}],
                "shipping_address_id": self.address.pk,
                "payment_method": "CHAPA",
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertTrue(payload["success"])
        self.assertEqual(payload["data"]["order"]["total"], "4300.00")
        self.assertEqual(payload["data"]["order"]["status"], "PENDING")
        self.assertEqual(payload["data"]["payment"]["currency"], "ETB")

    def test_create_order_rejects_empty_items(self):
        self.client.force_authenticate(user=self.buyer)
        response = self.client.post(
            "/api/orders/",
            data={"items": [], "shipping_address_id": self.address.pk},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "validation_error")

    def test_seller_updates_status(self):
        order = self.make_order()
        self.client.force_authenticate(user=self.seller)
        response = self.client.patch(
            f"/api/orders/{order.pk}/status/", data={"status": "CONFIRMED"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["data"]["order"]["status"], "CONFIRMED")
        self.assertEqual(payload["data"]["previous_status"], "PENDING")

    def test_illegal_transition_is_conflict(self):
        order = self.make_order(status=OrderStatus.CONFIRMED)
        self.client.force_authenticate(user=self.seller)
        response = self.client.patch(f"/api/orders/{order.pk}/status/", data={"status": "SHIPPED"}, format="json")
        self.assertEqual(response.status_code, 409)
        error = response.json()["error"]
        self.assertEqual(error["code"], "illegal_transition")
        self.assertEqual(error["message"], "Cannot change status from CONFIRMED to SHIPPED")

    def test_buyer_status_update_is_forbidden(self):
        order = self.make_order()
        self.client.force_authenticate(user=self.buyer)
        response = self.client.patch(f"/api/orders/{order.pk}/status/", data={"status": "CONFIRMED"}, format="json")
        self.assertEqual(response.status_code, 403)

    def test_buyer_cancels(self):
        order = self.make_order()
        self.client.force_authenticate(user=self.buyer)
        response = self.client.post(f"/api/orders/{order.pk}/cancel/", data={"reason": "changed mind"}, format="json")
        self.assertEqual(response.status_code, 200)
        payload = response.json()["data"]
        self.assertEqual(payload["order"]["status"], "CANCELLED")
        self.assertEqual(payload["refund_amount"], "0.00")

    def test_cancel_shipped_order_is_conflict(self):
        order = self.make_order(status=OrderStatus.SHIPPED)
        self.client.force_authenticate(user=self.buyer)
        response = self.client.post(f"/api/orders/{order.pk}/cancel/", data={}, format="json")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "not_cancellable")

    def test_listing_and_detail_scopes(self):
        order = self.make_order()
        self.make_order(status=OrderStatus.CONFIRMED)

        self.client.force_authenticate(user=self.buyer)
        mine = self.client.get("/api/orders/", {"status": "PENDING"})
        self.assertEqual(mine.status_code, 200)
        self.assertEqual(mine.json()["data"]["pagination"]["total"], 1)

        self.client.force_authenticate(user=self.seller)
        seller_view = self.client.get("/api/orders/seller/")
        self.assertEqual(seller_view.status_code, 200)
        self.assertEqual(seller_view.json()["data"]["stats"], {"PENDING": 1, "CONFIRMED": 1})

        self.client.force_authenticate(user=self.other_buyer)
        self.assertEqual(self.client.get(f"/api/orders/{order.pk}/").status_code, 404)
        self.assertEqual(self.client.get("/api/orders/seller/").status_code, 403)

    def test_listing_honours_bounded_limit(self):
        for _ in range(3):
            self.make_order()
        self.client.force_authenticate(user=self.buyer)

        limited = self.client.get("/api/orders/", {"limit": 2, "page": 2})
        self.assertEqual(limited.status_code, 200)
        data = limited.json()["data"]
        self.assertEqual(len(data["orders"]), 1)
        self.assertEqual(data["pagination"], {"page": 2, "pages": 2, "total": 3})

        self.client.force_authenticate(user=self.seller)
        self.assertEqual(len(self.client.get("/api/orders/seller/", {"limit": 1}).json()["data"]["orders"]), 1)

        too_large = self.client.get("/api/orders/", {"limit": 101})
        self.assertEqual(too_large.status_code, 400)
        self.assertEqual(too_large.json()["error"]["code"], "validation_error")
