"""Reconciliation sweep.

Batch repairs for state that drifted away from what the progression engine
would have produced. Everything here is idempotent and only inserts missing
rows or corrects rows that violate an invariant, so it can run next to live
traffic. Rows touched here are marked (origin=SWEEP or repaired_at /
repair_reason) and every correction is audited with no actor.

merge_duplicate_applications() is the exception: it deletes the losing
duplicates and is never part of the default run.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from audit.utils import audit_log
from calls.models import Call
from .models import Application, FormSubmission, MilestoneProgress
from .progression import apply_rejection, repair_in_progress_for
from .submissions import submission_counts

log = logging.getLogger(__name__)

Status = MilestoneProgress.Status


def sync_missing_progress(call: Call | None = None) -> int:
    """
    Insert a PENDING row for every (application, milestone) pair of the same
    call that has none. Existing rows are never touched. Returns rows inserted.
    """
    calls = [call] if call is not None else list(Call.objects.all())
    total = 0
    for c in calls:
        milestone_ids = list(c.milestones.values_list("id", flat=True))
        if not milestone_ids:
            continue
        app_ids = list(Application.objects.filter(call=c).values_list("id", flat=True))
        existing = set(MilestoneProgress.objects
                       .filter(application__call=c)
                       .values_list("application_id", "milestone_id"))
        now = timezone.now()
        rows = [
            MilestoneProgress(application_id=a, milestone_id=m, status=Status.PENDING,
                              origin=MilestoneProgress.Origin.SWEEP,
                              repaired_at=now, repair_reason="missing_progress")
            for a in app_ids for m in milestone_ids if (a, m) not in existing
        ]
        if not rows:
            continue
        with transaction.atomic():
            # insert-if-absent: a concurrent bootstrap wins on the unique constraint
            MilestoneProgress.objects.bulk_create(rows, ignore_conflicts=True, batch_size=500)
            # ignore_conflicts reports nothing back, so count what this pass wrote
            inserted = MilestoneProgress.objects.filter(
                application__call=c, origin=MilestoneProgress.Origin.SWEEP, repaired_at=now).count()
        if not inserted:
            continue
        total += inserted
        log.info("call %s: inserted %d missing progress rows", c.pk, inserted)
        audit_log(None, "PROGRESS_SYNCED", target=c, payload={"inserted": inserted})
    return total


def _has_open_after(rejected: MilestoneProgress) -> bool:
    return MilestoneProgress.objects.filter(
        application_id=rejected.application_id,
        milestone__call_id=rejected.milestone.call_id,
        milestone__order_index__gt=rejected.milestone.order_index,
        status__in=MilestoneProgress.OPEN_STATUSES,
    ).exists()


def _needs_cascade_fix(rejected: MilestoneProgress, application: Application) -> bool:
    return application.status != Application.TERMINAL_REJECTION or _has_open_after(rejected)


def fix_cascade_drift() -> list[dict]:
    """
    For every application with a REJECTED review whose status is not
    NOT_SELECTED, or whose later milestones are still open, set the status,
    re-run the blocking cascade from the earliest rejection and record a
    history entry (best effort). Returns one summary dict per fixed application.
    """
    rejected_rows = (MilestoneProgress.objects
                     .filter(review_status=MilestoneProgress.ReviewStatus.REJECTED)
                     .select_related("milestone", "application")
                     .order_by("application_id", "milestone__order_index", "id"))
    fixed = []
    seen = set()
    for rejected in list(rejected_rows):
        if rejected.application_id in seen:
            continue
        seen.add(rejected.application_id)
        if not _needs_cascade_fix(rejected, rejected.application):
            continue

        with transaction.atomic():
            app = Application.objects.select_for_update().get(pk=rejected.application_id)
            rejected.refresh_from_db()
            if (rejected.review_status != MilestoneProgress.ReviewStatus.REJECTED
                    or not _needs_cascade_fix(rejected, app)):
                continue
            from_status = app.status
            blocked = apply_rejection(rejected, app, actor=None, repair_reason="cascade_drift")
            audit_log(None, "CASCADE_REPAIRED", target=app, payload={
                "rejected_progress": rejected.pk, "from_status": from_status, "blocked": blocked,
            })
        log.warning("application %s: cascade drift fixed (was %s, blocked %d)", app.pk, from_status, blocked)
        fixed.append({"application_id": app.pk, "from_status": from_status, "blocked": blocked})
    return fixed


def repair_in_progress() -> int:
    """Apply the engine's IN_PROGRESS repair to every application that has one."""
    app_ids = (MilestoneProgress.objects
               .filter(status=Status.IN_PROGRESS)
               .values_list("application_id", flat=True)
               .distinct())
    return sum(repair_in_progress_for(a) for a in list(app_ids))


def merge_duplicate_applications() -> dict:
    """
    Collapse duplicate applications for the same (applicant, call).

    The survivor is the duplicate with the most form submissions (the oldest
    on ties); the others' submissions are moved to it and then their progress
    rows and the applications themselves are deleted.
    """
    groups = list(Application.objects
                  .values("applicant_id", "call_id")
                  .annotate(n=Count("id"))
                  .filter(n__gt=1))
    deleted = moved = 0
    for g in groups:
        with transaction.atomic():
            apps = list(Application.objects.select_for_update()
                        .filter(applicant_id=g["applicant_id"], call_id=g["call_id"])
                        .order_by("created_at", "id"))
            if len(apps) < 2:
                continue
            counts = submission_counts(a.pk for a in apps)
            keep = apps[0]
            for a in apps[1:]:
                if counts.get(a.pk, 0) > counts.get(keep.pk, 0):
                    keep = a
            loser_ids = [a.pk for a in apps if a.pk != keep.pk]

            moved += FormSubmission.objects.filter(application_id__in=loser_ids).update(application=keep)
            MilestoneProgress.objects.filter(application_id__in=loser_ids).delete()
            Application.objects.filter(pk__in=loser_ids).delete()
            deleted += len(loser_ids)
            audit_log(None, "APPLICATIONS_MERGED", target=keep, payload={"removed": loser_ids})
        log.warning("applicant %s call %s: kept application %s, removed %s",
                    g["applicant_id"], g["call_id"], keep.pk, loser_ids)
    return {"duplicate_groups": len(groups), "applications_deleted": deleted, "submissions_moved": moved}


def run_reconciliation(merge_duplicates: bool = False) -> dict:
    result = {}
    if merge_duplicates:
        result["merged"] = merge_duplicate_applications()
    result["inserted"] = sync_missing_progress()
    result["in_progress_repaired"] = repair_in_progress()
    result["cascades_fixed"] = len(fix_cascade_drift())
    return result
