from __future__ import annotations

from rest_framework import serializers

from apps.orders.models import Order, OrderItem


class OrderItemInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class CreateOrderSerializer(serializers.Serializer):
    items = serializers.ListField(child=OrderItemInputSerializer(), allow_empty=False)
    shipping_address_id = serializers.IntegerField(min_value=1)
    delivery_option = serializers.CharField(max_length=30, required=False, allow_blank=True)
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, default="")
    payment_method = serializers.CharField(max_length=30, required=False, default="CHAPA")


class UpdateOrderStatusSerializer(serializers.Serializer):
    status = serializers.CharField(max_length=20)
    tracking_number = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class OrderListQuerySerializer(serializers.Serializer):
    status = serializers.CharField(max_length=20, required=False, allow_blank=True)
    page = serializers.IntegerField(min_value=1, required=False, default=1)
    limit = serializers.IntegerField(min_value=1, max_value=100, required=False)


class OrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = OrderItem
        fields = ("id", "product_id", "product_name", "quantity", "price")


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = (
            "id",
            "order_number",
            "buyer_id",
            "seller_id",
            "shipping_address_id",
            "status",
            "payment_status",
            "subtotal",
            "shipping",
            "tax",
            "discount",
            "total",
            "delivery_option",
            "tracking_number",
            "notes",
            "cancelled_at",
            "cancelled_by_id",
            "cancellation_reason",
            "paid_at",
            "shipped_at",
            "delivered_at",
            "created_at",
            "updated_at",
            "items",
        )
        read_only_fields = fields
