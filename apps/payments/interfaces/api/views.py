from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.accounts.application.services.identity_service import CallerContextService
from apps.accounts.domain.errors import AccountDomainError
from apps.payments.application.facade import PaymentGatewayFacade
from apps.payments.application.use_cases.get_order_payment import GetOrderPaymentCommand, GetOrderPaymentUseCase
from apps.payments.application.use_cases.handle_webhook_event import (
    HandleWebhookEventCommand,
    HandleWebhookEventUseCase,
)
from apps.payments.application.use_cases.initialize_payment import (
    InitializePaymentCommand,
    InitializePaymentUseCase,
)
from apps.payments.application.use_cases.verify_payment import VerifyPaymentCommand, VerifyPaymentUseCase
from apps.payments.domain.errors import PaymentDomainError, WebhookSignatureError
from apps.payments.interfaces.api.serializers import InitializePaymentSerializer, PaymentSerializer
from balmuya.api_responses import domain_error, error, invalid_input, success

logger = logging.getLogger("balmuya.payments")


def _forbidden(exc: AccountDomainError):
    return error(message=str(exc), code="forbidden", http_status=status.HTTP_403_FORBIDDEN)


class PaymentInitializeAPI(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = InitializePaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        try:
            caller = CallerContextService.from_user(request.user)
            result = InitializePaymentUseCase.execute(
                InitializePaymentCommand(
                    caller=caller,
                    order_id=serializer.validated_data["order_id"],
                    method=serializer.validated_data["payment_method"],
                )
            )
        except AccountDomainError as exc:
            return _forbidden(exc)
        except PaymentDomainError as exc:
            return domain_error(exc)
        return success(
            data={
                "payment_url": result.payment_url,
                "transaction_id": result.transaction_id,
                "amount": str(result.amount),
                "currency": result.currency,
            },
            http_status=status.HTTP_201_CREATED,
        )


class PaymentVerifyAPI(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, transaction_id: str):
        try:
            caller = CallerContextService.from_user(request.user)
            result = VerifyPaymentUseCase.execute(
                VerifyPaymentCommand(caller=caller, transaction_id=transaction_id)
            )
        except AccountDomainError as exc:
            return _forbidden(exc)
        except PaymentDomainError as exc:
            return domain_error(exc)
        return success(
            data={
                "transaction_id": result.transaction_id,
                "status": result.status,
                "order_id": result.order_id,
                "amount": str(result.amount),
                "paid_at": result.paid_at.isoformat() if result.paid_at else None,
            }
        )


class OrderPaymentAPI(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, order_id: int):
        try:
            caller = CallerContextService.from_user(request.user)
            payment = GetOrderPaymentUseCase.execute(GetOrderPaymentCommand(caller=caller, order_id=order_id))
        except AccountDomainError as exc:
            return _forbidden(exc)
        except PaymentDomainError as exc:
            return domain_error(exc)
        return success(data={"payment": PaymentSerializer(payment).data})


class PaymentProvidersAPI(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return success(data={"providers": PaymentGatewayFacade.available_providers()})


class PaymentWebhookAPI(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "webhooks"

    def post(self, request, provider_code: str):
        try:
            result = HandleWebhookEventUseCase.execute(
                HandleWebhookEventCommand(
                    provider_code=provider_code,
                    headers=request.headers,
                    body=request.body,
                )
            )
        except WebhookSignatureError as exc:
            logger.warning("webhook_signature_rejected", extra={"provider": provider_code, "reason": str(exc)})
            return domain_error(exc)
        except PaymentDomainError as exc:
            return domain_error(exc)
        return success(
            data={
                "transaction_id": result.transaction_id,
                "payment_status": result.payment_status,
                "order_id": result.order_id,
                "processed": result.changed,
            }
        )
