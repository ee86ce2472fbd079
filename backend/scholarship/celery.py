import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "scholarship.settings")

app = Celery("scholarship")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
