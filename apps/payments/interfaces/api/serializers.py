from __future__ import annotations

from rest_framework import serializers

from apps.payments.models import Payment


class InitializePaymentSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(min_value=1)
    payment_method = serializers.CharField(max_length=30)


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = (
            "id",
            "order_id",
            "amount",
            "currency",
            "method",
            "status",
            "transaction_id",
            "payment_url",
            "paid_at",
            "refunded_at",
            "refund_amount",
            "created_at",
        )
        read_only_fields = fields
