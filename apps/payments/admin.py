from django.contrib import admin

from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "user", "method", "status", "amount", "currency", "transaction_id", "paid_at")
    list_filter = ("method", "status")
    search_fields = ("transaction_id", "order__order_number", "user__email")
    list_select_related = ("order", "user")
    readonly_fields = ("status", "amount", "transaction_id", "paid_at", "refunded_at", "refund_amount")
