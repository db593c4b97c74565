from django.contrib import admin

from .models import EmailLog


@admin.register(EmailLog)
class EmailLogAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "kind", "to_email", "status", "created_at", "sent_at")
    list_filter = ("kind", "status")
    search_fields = ("to_email", "order__order_number")
    list_select_related = ("order",)
