from __future__ import annotations

import hashlib
import hmac
import json
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.db import IntegrityError, transaction
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from apps.accounts.application.services.identity_service import CallerContextService
from apps.accounts.models import AccountProfile
from apps.catalog.models import Product
from apps.customers.models import Address
from apps.notifications.domain.errors import EmailGatewayError
from apps.notifications.infrastructure.gateways.smtp import SmtpEmailGateway
from apps.notifications.models import EmailLog
from apps.orders.application.use_cases.cancel_order import CancelOrderCommand, CancelOrderUseCase
from apps.orders.domain.policies import generate_order_number
from apps.orders.domain.state_machine import OrderStatus
from apps.orders.models import Order, OrderItem
from apps.payments.application.use_cases.handle_webhook_event import (
    HandleWebhookEventCommand,
    HandleWebhookEventUseCase,
)
from apps.payments.application.use_cases.initialize_payment import (
    InitializePaymentCommand,
    InitializePaymentUseCase,
)
from apps.payments.application.use_cases.verify_payment import VerifyPaymentCommand, VerifyPaymentUseCase
from apps.payments.domain.errors import (
    OrderNotPayableError,
    PaymentAlreadyInProgressError,
    PaymentGatewayError,
    PaymentNotFoundError,
    PaymentValidationError,
    WebhookSignatureError,
)
from apps.payments.domain.ports import VerificationResult
from apps.payments.domain.types import PaymentStatus
from apps.payments.infrastructure.gateways.chapa import ChapaGateway
from apps.payments.models import Payment

WEBHOOK_SECRETS = {
    "chapa": {"secret_key": "", "webhook_secret": "chapa-test-secret"},
    "cbe-birr": {"secret_key": "", "webhook_secret": "cbe-test-secret"},
    "stripe": {"secret_key": "", "webhook_secret": "stripe-test-secret"},
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


def _sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class PaymentFixtureMixin:
    def setUp(self) -> None:
        super().setUp()
        self.buyer = _make_user("buyer", first_name="Hana")
        self.other_buyer = _make_user("other_buyer")
        self.seller = _make_user("seller", role=AccountProfile.ROLE_SELLER)
        self.address = Address.objects.create(
            user=self.buyer, full_name="Hana Tesfaye", phone="+251911000000", line1="Bole Road", city="Addis Ababa"
        )
        self.product = Product.objects.create(
            seller=self.seller, name="Habesha Kemis", price=Decimal("2150.00"), quantity=10, is_published=True
        )
        self.order = self.make_order()

    def make_order(self, *, status: str = OrderStatus.PENDING, payment_status: str = PaymentStatus.PENDING) -> Order:
        order = Order.objects.create(
            order_number=generate_order_number(),
            buyer=self.buyer,
            seller=self.seller,
            shipping_address=self.address,
            status=str(status),
            payment_status=str(payment_status),
            subtotal=Decimal("4300.00"),
            total=Decimal("4300.00"),
        )
        OrderItem.objects.create(order=order, product=self.product, quantity=2, price=self.product.price)
        return order

    def caller(self, user):
        return CallerContextService.from_user(user)

    def initialize(self, *, order: Order | None = None, method: str = "CHAPA"):
        return InitializePaymentUseCase.execute(
            InitializePaymentCommand(caller=self.caller(self.buyer), order_id=(order or self.order).pk, method=method)
        )


class InitializePaymentUseCaseTests(PaymentFixtureMixin, TestCase):
    def test_creates_pending_payment_for_order_total(self):
        result = self.initialize()

        self.assertEqual(result.amount, Decimal("4300.00"))
        self.assertEqual(result.currency, "ETB")
        self.assertTrue(result.transaction_id.startswith("CHAPA-"))
        self.assertEqual(result.payment_url, f"https://checkout.chapa.co/checkout/payment/{result.transaction_id}")
        payment = Payment.objects.get(pk=result.payment_id)
        self.assertEqual(payment.status, PaymentStatus.PENDING)
        self.assertEqual(payment.user_id, self.buyer.pk)
        self.assertEqual(payment.transaction_id, result.transaction_id)

    def test_gateway_urls_per_method(self):
        cbe = self.initialize(method="CBE_BIRR")
        self.assertTrue(cbe.payment_url.startswith("https://cbe-birr.com/payment/"))
        stripe_order = self.make_order()
        stripe = self.initialize(order=stripe_order, method="STRIPE")
        self.assertTrue(stripe.payment_url.startswith("https://checkout.stripe.com/pay/"))

    def test_second_initialization_is_conflict(self):
        self.initialize()
        with self.assertRaises(PaymentAlreadyInProgressError) as ctx:
            self.initialize(method="CBE_BIRR")
        self.assertEqual(str(ctx.exception), "Payment already initialized for this order")
        self.assertEqual(Payment.objects.filter(order=self.order).count(), 1)

    def test_processing_payment_also_blocks(self):
        Payment.objects.create(
            order=self.order, user=self.buyer, amount=self.order.total, method="CHAPA", status=PaymentStatus.PROCESSING
        )
        with self.assertRaises(PaymentAlreadyInProgressError):
            self.initialize()
        self.assertEqual(Payment.objects.filter(order=self.order).count(), 1)

    def test_database_allows_one_open_payment_per_order(self):
        Payment.objects.create(order=self.order, user=self.buyer, amount=self.order.total, method="CHAPA")
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Payment.objects.create(order=self.order, user=self.buyer, amount=self.order.total, method="STRIPE")

    def test_new_attempt_allowed_after_failure(self):
        first = self.initialize()
        Payment.objects.filter(pk=first.payment_id).update(status=PaymentStatus.FAILED)
        second = self.initialize()
        self.assertNotEqual(first.transaction_id, second.transaction_id)

    def test_unsupported_methods_rejected(self):
        for method in ("CASH_ON_DELIVERY", "PAYPAL", ""):
            with self.subTest(method=method):
                with self.assertRaises(PaymentValidationError) as ctx:
                    self.initialize(method=method)
                self.assertEqual(str(ctx.exception), "Unsupported payment method")
        self.assertFalse(Payment.objects.exists())

    def test_order_of_another_buyer_not_found(self):
        with self.assertRaises(PaymentNotFoundError):
            InitializePaymentUseCase.execute(
                InitializePaymentCommand(caller=self.caller(self.other_buyer), order_id=self.order.pk, method="CHAPA")
            )

    def test_cancelled_or_paid_orders_not_payable(self):
        cancelled = self.make_order(status=OrderStatus.CANCELLED)
        paid = self.make_order(status=OrderStatus.CONFIRMED, payment_status=PaymentStatus.COMPLETED)
        for order in (cancelled, paid):
            with self.subTest(order=order.status):
                with self.assertRaises(OrderNotPayableError):
                    self.initialize(order=order)

    def test_gateway_failure_persists_nothing(self):
        with patch.object(ChapaGateway, "initialize", side_effect=PaymentGatewayError("Gateway unavailable")):
            with self.assertRaises(PaymentGatewayError):
                self.initialize()
        self.assertFalse(Payment.objects.exists())


class VerifyPaymentUseCaseTests(PaymentFixtureMixin, TestCase):
    def verify(self, transaction_id: str, *, user=None):
        return VerifyPaymentUseCase.execute(
            VerifyPaymentCommand(caller=self.caller(user or self.buyer), transaction_id=transaction_id)
        )

    def test_successful_verification_settles_order(self):
        init = self.initialize()

        with self.captureOnCommitCallbacks(execute=True):
            result = self.verify(init.transaction_id)

        self.assertEqual(result.status, "SUCCESS")
        self.assertEqual(result.order_id, self.order.pk)
        self.assertIsNotNone(result.paid_at)
        payment = Payment.objects.get(pk=init.payment_id)
        self.assertEqual(payment.status, PaymentStatus.COMPLETED)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.CONFIRMED)
        self.assertEqual(self.order.payment_status, PaymentStatus.COMPLETED)
        self.assertIsNotNone(self.order.paid_at)

        self.assertEqual(len(mail.outbox), 1)
        email = mail.outbox[0]
        self.assertEqual(email.subject, f"Order Confirmation - {self.order.order_number}")
        self.assertEqual(email.to, ["buyer@example.com"])
        self.assertIn("ETB 4300.00", email.body)

    def test_reverification_is_a_no_op(self):
        init = self.initialize()
        with self.captureOnCommitCallbacks(execute=True):
            first = self.verify(init.transaction_id)
        paid_at = Payment.objects.get(pk=init.payment_id).paid_at

        with patch.object(ChapaGateway, "verify") as gateway_verify:
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                second = self.verify(init.transaction_id)

        gateway_verify.assert_not_called()
        self.assertEqual(callbacks, [])
        self.assertEqual(first, second)
        self.assertEqual(Payment.objects.get(pk=init.payment_id).paid_at, paid_at)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(EmailLog.objects.filter(order=self.order).count(), 1)

    def test_gateway_reported_failure_marks_payment_failed(self):
        init = self.initialize()
        failed = VerificationResult(transaction_id=init.transaction_id, success=False)

        with patch.object(ChapaGateway, "verify", return_value=failed):
            with self.captureOnCommitCallbacks(execute=True):
                result = self.verify(init.transaction_id)

        self.assertEqual(result.status, "FAILED")
        self.assertEqual(Payment.objects.get(pk=init.payment_id).status, PaymentStatus.FAILED)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.PENDING)
        self.assertEqual(len(mail.outbox), 0)

    def test_gateway_error_leaves_payment_open(self):
        init = self.initialize()
        with patch.object(ChapaGateway, "verify", side_effect=PaymentGatewayError("timeout")):
            with self.assertRaises(PaymentGatewayError):
                self.verify(init.transaction_id)
        self.assertEqual(Payment.objects.get(pk=init.payment_id).status, PaymentStatus.PENDING)

    def test_payment_of_another_buyer_not_found(self):
        init = self.initialize()
        with self.assertRaises(PaymentNotFoundError):
            self.verify(init.transaction_id, user=self.other_buyer)

    def test_notification_failure_does_not_undo_settlement(self):
        init = self.initialize()

        with patch.object(SmtpEmailGateway, "send_email", side_effect=EmailGatewayError("smtp down")):
            with self.captureOnCommitCallbacks(execute=True):
                result = self.verify(init.transaction_id)

        self.assertEqual(result.status, "SUCCESS")
        self.assertEqual(Payment.objects.get(pk=init.payment_id).status, PaymentStatus.COMPLETED)
        log = EmailLog.objects.get(order=self.order)
        self.assertEqual(log.status, EmailLog.STATUS_FAILED)
        self.assertIn("smtp down", log.last_error)

    def test_enqueue_failure_is_logged_and_swallowed(self):
        init = self.initialize()
        target = "apps.notifications.application.services.order_notifications.send_order_confirmation_task.delay"

        with patch(target, side_effect=RuntimeError("broker down")):
            with self.assertLogs("balmuya.notifications", level="ERROR"):
                with self.captureOnCommitCallbacks(execute=True):
                    result = self.verify(init.transaction_id)

        self.assertEqual(result.status, "SUCCESS")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.CONFIRMED)

    def test_success_after_cancellation_is_refunded_without_confirmation(self):
        init = self.initialize()
        cancel = CancelOrderUseCase.execute(
            CancelOrderCommand(caller=self.caller(self.buyer), order_id=self.order.pk, reason="changed mind")
        )
        self.assertEqual(cancel.refund_amount, Decimal("0.00"))

        with self.assertLogs("balmuya.payments", level="WARNING"):
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                result = self.verify(init.transaction_id)

        self.assertEqual(callbacks, [])
        self.assertEqual(result.payment_status, PaymentStatus.REFUNDED)
        payment = Payment.objects.get(pk=init.payment_id)
        self.assertEqual(payment.status, PaymentStatus.REFUNDED)
        self.assertEqual(payment.refund_amount, Decimal("4300.00"))
        self.assertIsNotNone(payment.refunded_at)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.CANCELLED)
        self.assertEqual(self.order.payment_status, PaymentStatus.REFUNDED)
        self.assertFalse(EmailLog.objects.filter(order=self.order).exists())
        self.assertEqual(len(mail.outbox), 0)


@override_settings(PAYMENT_GATEWAYS=WEBHOOK_SECRETS)
class HandleWebhookEventTests(PaymentFixtureMixin, TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client = APIClient()

    def post_webhook(self, provider: str, payload: dict, *, secret: str | None = None, signature: str | None = None):
        body = json.dumps(payload).encode("utf-8")
        headers = {}
        if signature is None and secret is not None:
            signature = _sign(secret, body)
        if signature is not None:
            headers["HTTP_X_SIGNATURE"] = signature
        return self.client.post(
            f"/api/payments/webhook/{provider}/",
            data=body,
            content_type="application/json",
            **headers,
        )

    def test_signed_chapa_success_settles(self):
        init = self.initialize()
        with self.captureOnCommitCallbacks(execute=True):
            response = self.post_webhook(
                "chapa", {"transaction_id": init.transaction_id, "status": "success"}, secret="chapa-test-secret"
            )

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["data"]["processed"])
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.CONFIRMED)
        self.assertEqual(self.order.payment_status, PaymentStatus.COMPLETED)
        self.assertEqual(len(mail.outbox), 1)

    def test_bad_or_missing_signature_rejected(self):
        init = self.initialize()
        payload = {"transaction_id": init.transaction_id, "status": "success"}

        wrong = self.post_webhook("chapa", payload, signature="0" * 64)
        missing = self.post_webhook("chapa", payload)
        other_secret = self.post_webhook("chapa", payload, secret="cbe-test-secret")

        for response in (wrong, missing, other_secret):
            self.assertEqual(response.status_code, 401)
            self.assertEqual(response.json()["error"]["code"], "invalid_signature")
        self.assertEqual(Payment.objects.get(pk=init.payment_id).status, PaymentStatus.PENDING)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.PENDING)

    def test_cbe_birr_payload_shape(self):
        init = self.initialize(method="CBE_BIRR")
        response = self.post_webhook(
            "cbe-birr", {"transactionId": init.transaction_id, "status": "success"}, secret="cbe-test-secret"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Payment.objects.get(pk=init.payment_id).status, PaymentStatus.COMPLETED)

    def test_stripe_event_shape(self):
        init = self.initialize(method="STRIPE")
        response = self.post_webhook(
            "stripe",
            {"type": "payment_intent.succeeded", "data": {"object": {"id": init.transaction_id, "status": "succeeded"}}},
            secret="stripe-test-secret",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Payment.objects.get(pk=init.payment_id).status, PaymentStatus.COMPLETED)

    def test_failure_status_marks_payment_failed(self):
        init = self.initialize()
        response = self.post_webhook(
            "chapa", {"transaction_id": init.transaction_id, "status": "failed"}, secret="chapa-test-secret"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Payment.objects.get(pk=init.payment_id).status, PaymentStatus.FAILED)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.PENDING)

    def test_duplicate_event_has_no_further_effect(self):
        init = self.initialize()
        payload = {"transaction_id": init.transaction_id, "status": "success"}
        with self.captureOnCommitCallbacks(execute=True):
            first = self.post_webhook("chapa", payload, secret="chapa-test-secret")
        with self.captureOnCommitCallbacks(execute=True):
            second = self.post_webhook("chapa", payload, secret="chapa-test-secret")
            late_failure = self.post_webhook(
                "chapa", {"transaction_id": init.transaction_id, "status": "failed"}, secret="chapa-test-secret"
            )

        self.assertTrue(first.json()["data"]["processed"])
        self.assertFalse(second.json()["data"]["processed"])
        self.assertFalse(late_failure.json()["data"]["processed"])
        self.assertEqual(Payment.objects.get(pk=init.payment_id).status, PaymentStatus.COMPLETED)
        self.assertEqual(len(mail.outbox), 1)

    def test_unknown_provider_and_transaction(self):
        unknown_provider = self.post_webhook("paypal", {"transaction_id": "X"}, secret="chapa-test-secret")
        self.assertEqual(unknown_provider.status_code, 404)

        unknown_tx = self.post_webhook(
            "chapa", {"transaction_id": "CHAPA-NOPE", "status": "success"}, secret="chapa-test-secret"
        )
        self.assertEqual(unknown_tx.status_code, 404)

    def test_chapa_webhook_cannot_settle_stripe_payment(self):
        init = self.initialize(method="STRIPE")
        with self.assertRaises(PaymentNotFoundError):
            body = json.dumps({"transaction_id": init.transaction_id, "status": "success"}).encode("utf-8")
            HandleWebhookEventUseCase.execute(
                HandleWebhookEventCommand(
                    provider_code="chapa",
                    headers={"X-Signature": _sign("chapa-test-secret", body)},
                    body=body,
                )
            )

    def test_use_case_requires_signature(self):
        init = self.initialize()
        body = json.dumps({"transaction_id": init.transaction_id, "status": "success"}).encode("utf-8")
        with self.assertRaises(WebhookSignatureError):
            HandleWebhookEventUseCase.execute(
                HandleWebhookEventCommand(provider_code="chapa", headers={}, body=body)
            )


class PaymentsApiTests(PaymentFixtureMixin, TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client = APIClient()
        self.client.force_authenticate(user=self.buyer)

    def test_initialize_contract_and_conflict(self):
        response = self.client.post(
            "/api/payments/initialize/",
            data={"order_id": self.order.pk, "payment_method": "CHAPA"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertTrue(payload["success"])
        self.assertEqual(set(payload["data"]), {"payment_url", "transaction_id", "amount", "currency"})
        self.assertEqual(payload["data"]["amount"], "4300.00")

        again = self.client.post(
            "/api/payments/initialize/",
            data={"order_id": self.order.pk, "payment_method": "CHAPA"},
            format="json",
        )
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()["error"]["code"], "conflict")
        self.assertEqual(Payment.objects.filter(order=self.order).count(), 1)

    def test_initialize_requires_order_id(self):
        response = self.client.post("/api/payments/initialize/", data={"payment_method": "CHAPA"}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_verify_and_fetch_order_payment(self):
        init = self.initialize()
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(f"/api/payments/verify/{init.transaction_id}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["status"], "SUCCESS")

        fetched = self.client.get(f"/api/payments/order/{self.order.pk}/")
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(fetched.json()["data"]["payment"]["status"], "COMPLETED")

    def test_gateway_failure_is_bad_gateway(self):
        with patch.object(ChapaGateway, "initialize", side_effect=PaymentGatewayError("Gateway unavailable")):
            response = self.client.post(
                "/api/payments/initialize/",
                data={"order_id": self.order.pk, "payment_method": "CHAPA"},
                format="json",
            )
        self.assertEqual(response.status_code, 502)
        self.assertFalse(Payment.objects.exists())

    def test_order_payment_is_readable_only_by_buyer(self):
        self.initialize()
        self.assertEqual(self.client.get(f"/api/payments/order/{self.order.pk}/").status_code, 200)

        self.client.force_authenticate(user=self.seller)
        seller_view = self.client.get(f"/api/payments/order/{self.order.pk}/")
        self.assertEqual(seller_view.status_code, 404)
        self.assertEqual(seller_view.json()["error"]["code"], "not_found")

        self.client.force_authenticate(user=self.other_buyer)
        self.assertEqual(self.client.get(f"/api/payments/order/{self.order.pk}/").status_code, 404)

    def test_providers_listing(self):
        response = self.client.get("/api/payments/providers/")
        self.assertEqual(response.status_code, 200)
        codes = {provider["code"] for provider in response.json()["data"]["providers"]}
        self.assertEqual(codes, {"chapa", "cbe-birr", "stripe"})
