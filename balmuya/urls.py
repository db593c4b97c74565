"""
URL configuration for the balmuya project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.1/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path

from apps.observability.views.health import healthz, readyz

handler404 = "balmuya.error_views.handle_404"
handler500 = "balmuya.error_views.handle_500"

urlpatterns = [
    path("healthz", healthz, name="healthz"),
    path("readyz", readyz, name="readyz"),
    path("admin/", admin.site.urls),
    path("api/", include("balmuya.api_urls")),
]
