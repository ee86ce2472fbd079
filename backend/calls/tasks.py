from celery import shared_task
from .services import update_call_statuses


@shared_task
def update_call_statuses_task():
    return update_call_statuses()
