from django.urls import path

from .views import OrderCancelAPI, OrderDetailAPI, OrdersAPI, OrderStatusAPI, SellerOrdersAPI

urlpatterns = [
    path("orders/", OrdersAPI.as_view(), name="api_orders"),
    path("orders/seller/", SellerOrdersAPI.as_view(), name="api_orders_seller"),
    path("orders/<int:order_id>/", OrderDetailAPI.as_view(), name="api_order_detail"),
    path("orders/<int:order_id>/status/", OrderStatusAPI.as_view(), name="api_order_status"),
    path("orders/<int:order_id>/cancel/", OrderCancelAPI.as_view(), name="api_order_cancel"),
]
