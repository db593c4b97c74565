from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from apps.accounts.application.services.identity_service import CallerContextService
from apps.accounts.domain.errors import AccountDomainError
from apps.orders.application.use_cases.cancel_order import CancelOrderCommand, CancelOrderUseCase
from apps.orders.application.use_cases.create_order import CreateOrderCommand, CreateOrderUseCase
from apps.orders.application.use_cases.list_orders import (
    GetOrderCommand,
    GetOrderUseCase,
    ListBuyerOrdersUseCase,
    ListOrdersCommand,
    ListSellerOrdersUseCase,
    OrderPage,
)
from apps.orders.application.use_cases.update_order_status import (
    UpdateOrderStatusCommand,
    UpdateOrderStatusUseCase,
)
from apps.orders.domain.errors import OrderDomainError
from apps.orders.domain.policies import OrderLine
from apps.orders.interfaces.api.serializers import (
    CancelOrderSerializer,
    CreateOrderSerializer,
    OrderListQuerySerializer,
    OrderSerializer,
    UpdateOrderStatusSerializer,
)
from apps.payments.domain.errors import PaymentDomainError
from balmuya.api_responses import domain_error, error, invalid_input, success


def _page_payload(page: OrderPage) -> dict:
    payload = {
        "orders": OrderSerializer(page.orders, many=True).data,
        "pagination": {"page": page.page, "pages": page.pages, "total": page.total},
    }
    if page.status_counts:
        payload["stats"] = page.status_counts
    return payload


def _payment_payload(payment) -> dict | None:
    if payment is None:
        return None
    return {
        "payment_url": payment.payment_url,
        "transaction_id": payment.transaction_id,
        "amount": str(payment.amount),
        "currency": payment.currency,
        "method": payment.method,
    }


class OrdersAPI(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        query = OrderListQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return invalid_input(query.errors)
        try:
            caller = CallerContextService.from_user(request.user)
            page = ListBuyerOrdersUseCase.execute(
                ListOrdersCommand(
                    caller=caller,
                    status=query.validated_data.get("status") or None,
                    page=query.validated_data["page"],
                    page_size=query.validated_data.get("limit"),
                )
            )
        except (AccountDomainError, OrderDomainError) as exc:
            return _caller_or_domain_error(exc)
        return success(data=_page_payload(page))

    def post(self, request):
        serializer = CreateOrderSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        data = serializer.validated_data
        try:
            caller = CallerContextService.from_user(request.user)
            result = CreateOrderUseCase.execute(
                CreateOrderCommand(
                    caller=caller,
                    items=tuple(
                        OrderLine(product_id=item["product_id"], quantity=item["quantity"]) for item in data["items"]
                    ),
                    shipping_address_id=data["shipping_address_id"],
                    delivery_option=data.get("delivery_option") or None,
                    notes=data.get("notes", ""),
                    payment_method=data.get("payment_method") or "CHAPA",
                )
            )
        except (AccountDomainError, OrderDomainError, PaymentDomainError) as exc:
            return _caller_or_domain_error(exc)
        return success(
            data={"order": OrderSerializer(result.order).data, "payment": _payment_payload(result.payment)},
            http_status=status.HTTP_201_CREATED,
        )


class SellerOrdersAPI(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        query = OrderListQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return invalid_input(query.errors)
        try:
            caller = CallerContextService.from_user(request.user)
            page = ListSellerOrdersUseCase.execute(
                ListOrdersCommand(
                    caller=caller,
                    status=query.validated_data.get("status") or None,
                    page=query.validated_data["page"],
                    page_size=query.validated_data.get("limit"),
                )
            )
        except (AccountDomainError, OrderDomainError) as exc:
            return _caller_or_domain_error(exc)
        return success(data=_page_payload(page))


class OrderDetailAPI(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, order_id: int):
        try:
            caller = CallerContextService.from_user(request.user)
            order = GetOrderUseCase.execute(GetOrderCommand(caller=caller, order_id=order_id))
        except (AccountDomainError, OrderDomainError) as exc:
            return _caller_or_domain_error(exc)
        return success(data={"order": OrderSerializer(order).data})


class OrderStatusAPI(APIView):
    permission_classes = [IsAuthenticated]

    def patch(self, request, order_id: int):
        serializer = UpdateOrderStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        try:
            caller = CallerContextService.from_user(request.user)
            result = UpdateOrderStatusUseCase.execute(
                UpdateOrderStatusCommand(
                    caller=caller,
                    order_id=order_id,
                    status=serializer.validated_data["status"],
                    tracking_number=serializer.validated_data.get("tracking_number"),
                )
            )
        except (AccountDomainError, OrderDomainError) as exc:
            return _caller_or_domain_error(exc)
        return success(
            data={
                "order": OrderSerializer(result.order).data,
                "previous_status": result.previous_status.value,
            }
        )

    put = patch


class OrderCancelAPI(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, order_id: int):
        serializer = CancelOrderSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        try:
            caller = CallerContextService.from_user(request.user)
            result = CancelOrderUseCase.execute(
                CancelOrderCommand(
                    caller=caller,
                    order_id=order_id,
                    reason=serializer.validated_data.get("reason", ""),
                )
            )
        except (AccountDomainError, OrderDomainError) as exc:
            return _caller_or_domain_error(exc)
        return success(
            data={
                "order": OrderSerializer(result.order).data,
                "refund_amount": str(result.refund_amount),
            }
        )


def _caller_or_domain_error(exc: Exception):
    if isinstance(exc, AccountDomainError):
        return error(message=str(exc), code="forbidden", http_status=status.HTTP_403_FORBIDDEN)
    return domain_error(exc)
