from django.urls import path

from .views import (
    OrderPaymentAPI,
    PaymentInitializeAPI,
    PaymentProvidersAPI,
    PaymentVerifyAPI,
    PaymentWebhookAPI,
)

urlpatterns = [
    path("payments/providers/", PaymentProvidersAPI.as_view(), name="api_payment_providers"),
    path("payments/initialize/", PaymentInitializeAPI.as_view(), name="api_payment_initialize"),
    path("payments/verify/<str:transaction_id>/", PaymentVerifyAPI.as_view(), name="api_payment_verify"),
    path("payments/order/<int:order_id>/", OrderPaymentAPI.as_view(), name="api_order_payment"),
    path("payments/webhook/<str:provider_code>/", PaymentWebhookAPI.as_view(), name="api_payment_webhook"),
]
