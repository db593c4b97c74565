"""
Celery application.

Background work (order confirmation emails) is queued here after the
database transaction that produced it commits.
"""

from __future__ import annotations

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "balmuya.settings")

app = Celery("balmuya")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
