from django.contrib import admin

from .models import Address


@admin.register(Address)
class AddressAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "full_name", "city", "country", "is_default")
    search_fields = ("full_name", "phone", "city", "user__email")
    list_select_related = ("user",)
