import logging

from django.db import transaction
from django.utils import timezone

from audit.utils import audit_log
from .models import Call

log = logging.getLogger(__name__)


@transaction.atomic
def update_call_statuses(now=None) -> dict:
    """
    Date-driven lifecycle for calls with auto_close:
      DRAFT -> OPEN   once start_date is reached (and end_date not passed)
      OPEN  -> CLOSED once end_date has passed
    Calls without both dates are left alone.
    """
    now = now or timezone.now()
    activated = closed = 0
    qs = Call.objects.select_for_update().filter(
        auto_close=True, start_date__isnull=False, end_date__isnull=False,
        status__in=[Call.Status.DRAFT, Call.Status.OPEN],
    )
    checked = 0
    for call in qs:
        checked += 1
        if call.status == Call.Status.DRAFT and call.start_date <= now <= call.end_date:
            call.status = Call.Status.OPEN
            activated += 1
        elif call.status == Call.Status.OPEN and now > call.end_date:
            call.status = Call.Status.CLOSED
            closed += 1
        else:
            continue
        call.save(update_fields=["status", "updated_at"])
        log.info("call %s moved to %s", call.pk, call.status)
        audit_log(None, "CALL_STATUS_CHANGED", target=call, payload={"status": call.status})
    return {"activated": activated, "closed": closed, "checked": checked}
