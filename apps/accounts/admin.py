from django.contrib import admin

from .models import AccountProfile


@admin.register(AccountProfile)
class AccountProfileAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "role", "phone", "store_name", "is_active", "created_at")
    search_fields = ("phone", "store_name", "user__username", "user__email")
    list_filter = ("role", "is_active")
    list_select_related = ("user",)
