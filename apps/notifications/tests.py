from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase, override_settings

from apps.accounts.models import AccountProfile
from apps.customers.models import Address
from apps.notifications.application.services.order_notifications import OrderNotificationService
from apps.notifications.application.use_cases.send_order_confirmation import (
    SendOrderConfirmationCommand,
    SendOrderConfirmationUseCase,
    build_order_confirmation,
)
from apps.notifications.models import EmailLog
from apps.orders.domain.policies import generate_order_number
from apps.orders.models import Order


class OrderConfirmationTestMixin:
    def setUp(self) -> None:
        super().setUp()
        user_model = get_user_model()
        self.buyer = user_model.objects.create_user(
            username="buyer", email="buyer@example.com", password="StrongPass12345!", first_name="Hana"
        )
        self.seller = user_model.objects.create_user(
            username="seller", email="seller@example.com", password="StrongPass12345!"
        )
        AccountProfile.objects.create(user=self.buyer, role=AccountProfile.ROLE_BUYER)
        AccountProfile.objects.create(user=self.seller, role=AccountProfile.ROLE_SELLER)
        address = Address.objects.create(
            user=self.buyer, full_name="Hana Tesfaye", phone="+251911000000", line1="Bole Road", city="Addis Ababa"
        )
        self.order = Order.objects.create(
            order_number=generate_order_number(),
            buyer=self.buyer,
            seller=self.seller,
            shipping_address=address,
            status="CONFIRMED",
            payment_status="COMPLETED",
            subtotal=Decimal("1200.00"),
            shipping=Decimal("50.00"),
            total=Decimal("1250.00"),
        )

    def queued_log(self) -> EmailLog:
        return EmailLog.objects.create(order=self.order, kind=EmailLog.KIND_ORDER_CONFIRMATION)


@override_settings(FRONTEND_URL="https://shop.example.com", PAYMENT_CURRENCY="ETB")
class BuildOrderConfirmationTests(OrderConfirmationTestMixin, TestCase):
    def test_message_content(self):
        message = build_order_confirmation(order=self.order, recipient_name="Hana")

        self.assertEqual(message.to_email, "buyer@example.com")
        self.assertEqual(message.subject, f"Order Confirmation - {self.order.order_number}")
        self.assertIn("Hello Hana", message.text)
        self.assertIn("ETB 1250.00", message.text)
        self.assertIn(f"https://shop.example.com/orders/{self.order.pk}", message.text)
        self.assertIn(self.order.order_number, message.html)

    def test_missing_name_falls_back(self):
        message = build_order_confirmation(order=self.order, recipient_name="")
        self.assertIn("Hello there", message.text)


class SendOrderConfirmationUseCaseTests(OrderConfirmationTestMixin, TestCase):
    def test_sends_once_and_records_delivery(self):
        log = self.queued_log()

        first = SendOrderConfirmationUseCase.execute(SendOrderConfirmationCommand(email_log_id=log.pk))
        second = SendOrderConfirmationUseCase.execute(SendOrderConfirmationCommand(email_log_id=log.pk))

        self.assertTrue(first.sent)
        self.assertTrue(second.skipped)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].alternatives[0][1], "text/html")
        log.refresh_from_db()
        self.assertEqual(log.status, EmailLog.STATUS_SENT)
        self.assertEqual(log.to_email, "buyer@example.com")
        self.assertIsNotNone(log.sent_at)

    def test_buyer_without_email_is_marked_failed(self):
        self.buyer.email = ""
        self.buyer.save(update_fields=["email"])
        log = self.queued_log()

        result = SendOrderConfirmationUseCase.execute(SendOrderConfirmationCommand(email_log_id=log.pk))

        self.assertFalse(result.sent)
        self.assertEqual(len(mail.outbox), 0)
        log.refresh_from_db()
        self.assertEqual(log.status, EmailLog.STATUS_FAILED)

    @override_settings(DEFAULT_FROM_EMAIL="")
    def test_unconfigured_sender_is_marked_failed(self):
        log = self.queued_log()

        result = SendOrderConfirmationUseCase.execute(SendOrderConfirmationCommand(email_log_id=log.pk))

        self.assertFalse(result.sent)
        log.refresh_from_db()
        self.assertEqual(log.status, EmailLog.STATUS_FAILED)
        self.assertIn("DEFAULT_FROM_EMAIL", log.last_error)

    def test_unknown_log_is_skipped(self):
        result = SendOrderConfirmationUseCase.execute(SendOrderConfirmationCommand(email_log_id=999999))
        self.assertTrue(result.skipped)


class OrderNotificationServiceTests(OrderConfirmationTestMixin, TestCase):
    def test_queues_once_per_order(self):
        OrderNotificationService.queue_order_confirmation(order_id=self.order.pk)
        OrderNotificationService.queue_order_confirmation(order_id=self.order.pk)

        self.assertEqual(EmailLog.objects.filter(order=self.order).count(), 1)
        self.assertEqual(len(mail.outbox), 1)

    def test_enqueue_failure_is_swallowed(self):
        target = "apps.notifications.application.services.order_notifications.send_order_confirmation_task.delay"
        with patch(target, side_effect=RuntimeError("broker down")):
            with self.assertLogs("balmuya.notifications", level="ERROR") as logs:
                OrderNotificationService.queue_order_confirmation(order_id=self.order.pk)

        self.assertIn("order_confirmation_enqueue_failed", logs.output[0])
        self.assertEqual(len(mail.outbox), 0)
