from django.contrib import admin

from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    readonly_fields = ("product", "quantity", "price")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "order_number",
        "buyer",
        "seller",
        "status",
        "payment_status",
        "total",
        "delivery_option",
        "created_at",
    )
    list_filter = ("status", "payment_status", "delivery_option")
    search_fields = ("order_number", "buyer__email", "seller__email", "tracking_number")
    list_select_related = ("buyer", "seller")
    # Status changes go through the API so the transition table is enforced.
    readonly_fields = ("status", "payment_status", "subtotal", "shipping", "tax", "discount", "total")
    inlines = [OrderItemInline]

    def has_delete_permission(self, request, obj=None):
        return False
