import logging

from celery import shared_task

from . import reconcile

log = logging.getLogger(__name__)


# Not on the beat schedule: operators trigger it after data fixes or migrations.
@shared_task
def run_reconciliation(merge_duplicates: bool = False):
    result = reconcile.run_reconciliation(merge_duplicates=merge_duplicates)
    log.info("reconciliation finished: %s", result)
    return result
