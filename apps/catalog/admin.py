from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "seller", "price", "quantity", "is_published")
    list_filter = ("is_published",)
    search_fields = ("name", "seller__email")
    list_select_related = ("seller",)
