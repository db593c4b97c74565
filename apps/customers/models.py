from django.conf import settings
from django.db import models


class Address(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="addresses"
    )
    label = models.CharField(max_length=50, blank=True, default="")
    full_name = models.CharField(max_length=200)
    phone = models.CharField(max_length=32)
    line1 = models.CharField(max_length=255)
    city = models.CharField(max_length=100)
    region = models.CharField(max_length=100, blank=True, default="")
    country = models.CharField(max_length=100, default="Ethiopia")
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.full_name} - {self.city}, {self.country}"

    class Meta:
        indexes = [
            models.Index(fields=["user", "is_default"], name="address_user_default_idx"),
        ]
