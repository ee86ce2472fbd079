"""Application bootstrap and status bookkeeping.

ensure_application() is the only place applications are created. It seeds a
progress row for every milestone of the call up front, so milestones added
later are a reconciliation concern (see reconcile.sync_missing_progress),
never a read-time special case.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Callable, Optional

from django.db import DatabaseError, transaction
from django.utils import timezone

from audit.utils import audit_log
from calls.models import Call
from scholarship.exceptions import InvariantViolation, NotFound
from .models import Applicant, Application, ApplicationStatusHistory, MilestoneProgress

log = logging.getLogger(__name__)


def _duplicate_order_indexes(order_indexes) -> list[int]:
    return sorted(i for i, n in Counter(order_indexes).items() if n > 1)


def seed_progress(application: Application) -> int:
    """
    One progress row per milestone of the call: the lowest order_index starts
    IN_PROGRESS, everything else PENDING. Must run inside the transaction that
    created the application.
    """
    milestones = list(application.call.milestones.order_by("order_index", "id"))
    dupes = _duplicate_order_indexes(m.order_index for m in milestones)
    if dupes:
        raise InvariantViolation(
            f"Call {application.call_id} has duplicate order_index {dupes}",
            application_id=application.pk,
        )
    now = timezone.now()
    rows = []
    for i, m in enumerate(milestones):
        first = i == 0
        rows.append(MilestoneProgress(
            application=application,
            milestone=m,
            status=MilestoneProgress.Status.IN_PROGRESS if first else MilestoneProgress.Status.PENDING,
            started_at=now if first else None,
        ))
    MilestoneProgress.objects.bulk_create(rows)
    return len(rows)


@transaction.atomic
def ensure_application(applicant: Applicant, call: Call) -> Application:
    """
    Find-or-create the single application for (applicant, call).

    Creation is serialized on the applicant row, so two concurrent calls for
    the same pair cannot both insert.
    """
    Applicant.objects.select_for_update().only("id").get(pk=applicant.pk)

    existing = (Application.objects
                .filter(applicant=applicant, call=call)
                .order_by("created_at", "id")
                .first())
    if existing:
        return existing

    app = Application.objects.create(applicant=applicant, call=call, status=Application.Status.DRAFT)
    n = seed_progress(app)
    log.info("application %s created for applicant %s in call %s (%d milestones)",
             app.pk, applicant.pk, call.pk, n)
    audit_log(None, "APPLICATION_CREATED", target=app, payload={"call": call.pk, "milestones": n})
    return app


def ensure_application_for_open_call(applicant: Applicant,
                                     call_selector: Optional[Callable[[], Optional[Call]]] = None) -> Application:
    call_selector = call_selector or Call.objects.current_open
    call = call_selector()
    if call is None:
        raise NotFound("No call is open for onboarding")
    return ensure_application(applicant, call)


def change_application_status(application: Application, to_status: str, actor=None,
                              reason: str = "", best_effort_history: bool = False) -> bool:
    """
    Move the application to ``to_status`` and write a history row.

    With best_effort_history the history insert runs in a savepoint and a
    failure is logged instead of raised. Returns False when nothing changed.
    """
    from_status = application.status
    if from_status == to_status:
        return False
    application.status = to_status
    fields = ["status", "updated_at"]
    if to_status == Application.Status.SUBMITTED and not application.submitted_at:
        application.submitted_at = timezone.now()
        fields.append("submitted_at")
    application.save(update_fields=fields)

    history = dict(application=application, from_status=from_status, to_status=to_status,
                   actor=actor if getattr(actor, "is_authenticated", False) else None,
                   reason=reason[:255])
    if not best_effort_history:
        ApplicationStatusHistory.objects.create(**history)
        return True
    try:
        with transaction.atomic():
            ApplicationStatusHistory.objects.create(**history)
    except DatabaseError as exc:
        log.warning("status history for application %s not recorded: %s", application.pk, exc)
    return True


def progress_summary(application: Application) -> dict:
    rows = list(application.progress.select_related("milestone").order_by("milestone__order_index", "id"))
    total = len(rows)
    completed = sum(1 for p in rows if p.status == MilestoneProgress.Status.COMPLETED)
    current = next((p for p in rows if p.status == MilestoneProgress.Status.IN_PROGRESS), None)

    def _row(p):
        return {
            "id": p.pk,
            "milestone_id": p.milestone_id,
            "milestone_name": p.milestone.name,
            "order_index": p.milestone.order_index,
            "required": p.milestone.required,
            "status": p.status,
            "review_status": p.review_status,
            "started_at": p.started_at.isoformat() if p.started_at else None,
            "completed_at": p.completed_at.isoformat() if p.completed_at else None,
        }

    return {
        "application_id": application.pk,
        "status": application.status,
        "progress": [_row(p) for p in rows],
        "summary": {
            "total": total,
            "completed": completed,
            "pending": total - completed,
            "percentage": round(completed * 100 / total) if total else 0,
            "current": _row(current) if current else None,
        },
    }
