"""Milestone progression engine.

Per progress row:

    PENDING -> IN_PROGRESS -> COMPLETED
    PENDING | IN_PROGRESS -> BLOCKED  (cascade from a rejection, reversible)

The "frontier" of an application is its lowest-order progress row that is not
COMPLETED. At most one row may be IN_PROGRESS and, if one is, it must be the
frontier. Every operation locks the application row and then all of its
progress rows before reading, so concurrent calls on the same application are
serialized.

complete() is the only forward-advance trigger. review() records the decision
and, on REJECTED, blocks every later open milestone and moves the application
to NOT_SELECTED in the same transaction.
"""

from __future__ import annotations

import logging
from collections import Counter
from functools import wraps
from typing import Optional

from django.db import OperationalError, transaction
from django.utils import timezone

from audit.utils import audit_log
from calls.models import Milestone
from scholarship.exceptions import (
    ConcurrencyConflict, InvalidTransition, InvariantViolation, MissingSubmission,
    NotAllowed, NotFound, OutOfOrder,
)
from .models import Application, ApplicationStatusHistory, MilestoneProgress
from .services import change_application_status
from .submissions import SubmissionChecker, default_checker

log = logging.getLogger(__name__)

Status = MilestoneProgress.Status
Review = MilestoneProgress.ReviewStatus


def _attempt(fn, args, kwargs):
    try:
        with transaction.atomic():
            return fn(*args, **kwargs)
    except OperationalError as exc:
        # deadlock / lock wait timeout
        raise ConcurrencyConflict(str(exc)) from exc


def retry_once(fn):
    """
    Run ``fn`` atomically; on InvariantViolation or ConcurrencyConflict
    repair what can be repaired, re-read and try exactly once more.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return _attempt(fn, args, kwargs)
        except (InvariantViolation, ConcurrencyConflict) as exc:
            log.warning("%s failed with %s (%s); retrying once", fn.__name__, exc.code, exc)
            app_id = getattr(exc, "application_id", None)
            if app_id:
                repair_in_progress_for(app_id)
        return _attempt(fn, args, kwargs)
    return wrapper


class _Snapshot:
    """Locked view of one application's progress rows, ordered by milestone."""

    def __init__(self, application: Application, rows: list[MilestoneProgress]):
        self.application = application
        self.rows = rows
        self.by_id = {r.pk: r for r in rows}

    @classmethod
    def lock(cls, application_id) -> "_Snapshot":
        application = Application.objects.select_for_update().get(pk=application_id)
        rows = list(MilestoneProgress.objects.select_for_update()
                    .select_related("milestone")
                    .filter(application_id=application_id, milestone__call_id=application.call_id)
                    .order_by("milestone__order_index", "id"))
        return cls(application, rows)

    @property
    def frontier(self) -> Optional[MilestoneProgress]:
        return next((r for r in self.rows if r.status != Status.COMPLETED), None)

    @property
    def in_progress(self) -> list[MilestoneProgress]:
        return [r for r in self.rows if r.status == Status.IN_PROGRESS]

    def check(self) -> None:
        dupes = sorted(i for i, n in Counter(r.milestone.order_index for r in self.rows).items() if n > 1)
        if dupes:
            raise InvariantViolation(
                f"Application {self.application.pk}: milestones share order_index {dupes}",
                application_id=self.application.pk,
            )
        active = self.in_progress
        if len(active) > 1:
            raise InvariantViolation(
                f"Application {self.application.pk} has {len(active)} milestones IN_PROGRESS",
                application_id=self.application.pk,
            )
        frontier = self.frontier
        if active and active[0] is not frontier:
            raise InvariantViolation(
                f"Application {self.application.pk}: {active[0].milestone} is IN_PROGRESS ahead of {frontier.milestone}",
                application_id=self.application.pk,
            )


def _lock_for(progress_id) -> tuple[_Snapshot, MilestoneProgress]:
    progress_id = getattr(progress_id, "pk", progress_id)
    application_id = (MilestoneProgress.objects
                      .filter(pk=progress_id)
                      .values_list("application_id", flat=True)
                      .first())
    if application_id is None:
        raise NotFound(f"Milestone progress {progress_id} not found")
    snap = _Snapshot.lock(application_id)
    target = snap.by_id.get(progress_id)
    if target is None:
        raise NotFound(f"Milestone progress {progress_id} does not belong to the application's call")
    return snap, target


def _check_actor(progress: MilestoneProgress, application: Application, actor) -> None:
    if actor is None:
        return
    if getattr(actor, "is_staff_role", False):
        return
    if progress.milestone.who_can_fill == Milestone.WhoCanFill.STAFF:
        raise NotAllowed(f"{progress.milestone.name} can only be completed by staff")
    if application.applicant.account_id != actor.pk:
        raise NotAllowed("Only the applicant can complete this milestone")


def _actor_or_none(actor):
    return actor if getattr(actor, "is_authenticated", False) else None


# ------------------------------------------------------------------------------
# Transitions
# ------------------------------------------------------------------------------

@retry_once
def start(progress_id, actor=None) -> MilestoneProgress:
    snap, p = _lock_for(progress_id)
    snap.check()
    frontier = snap.frontier
    if p.status == Status.COMPLETED:
        raise OutOfOrder(f"{p.milestone.name} is already completed")
    if frontier.pk != p.pk:
        raise OutOfOrder(f"{p.milestone.name} is not the current milestone ({frontier.milestone.name})")
    if p.status == Status.IN_PROGRESS:
        return p
    if p.status != Status.PENDING:
        raise InvalidTransition(f"Cannot start a {p.status} milestone")

    p.status = Status.IN_PROGRESS
    p.started_at = timezone.now()
    p.save(update_fields=["status", "started_at", "updated_at"])
    audit_log(actor, "MILESTONE_STARTED", target=p, payload={"milestone": p.milestone_id})
    return p


@retry_once
def complete(progress_id, actor=None, submissions: SubmissionChecker = default_checker) -> MilestoneProgress:
    snap, p = _lock_for(progress_id)
    snap.check()
    app = snap.application
    if p.status == Status.COMPLETED:
        raise OutOfOrder(f"{p.milestone.name} is already completed")
    frontier = snap.frontier
    if frontier.pk != p.pk:
        raise OutOfOrder(f"{p.milestone.name} is not the current milestone ({frontier.milestone.name})")
    if p.status != Status.IN_PROGRESS:
        raise InvalidTransition(f"Cannot complete a {p.status} milestone")
    _check_actor(p, app, actor)
    if p.milestone.needs_form_submission and not submissions.has_submission(app, p.milestone):
        raise MissingSubmission(f"{p.milestone.name} has no submitted form")

    now = timezone.now()
    p.status = Status.COMPLETED
    p.completed_at = now
    p.completed_by = _actor_or_none(actor)
    p.save(update_fields=["status", "completed_at", "completed_by", "updated_at"])

    advanced = None
    if not p.milestone.requires_review:
        nxt = snap.frontier  # recomputed: p is COMPLETED now
        if nxt is not None and nxt.status == Status.PENDING:
            nxt.status = Status.IN_PROGRESS
            nxt.started_at = now
            nxt.save(update_fields=["status", "started_at", "updated_at"])
            advanced = nxt

    if app.status == Application.Status.DRAFT:
        change_application_status(app, Application.Status.SUBMITTED, actor,
                                  reason=f"Completed milestone: {p.milestone.name}")

    audit_log(actor, "MILESTONE_COMPLETED", target=p, payload={
        "milestone": p.milestone_id, "advanced_to": advanced.milestone_id if advanced else None,
    })
    return p


def cascade_block(rejected: MilestoneProgress, repair_reason: str = "") -> int:
    """
    Block every open (PENDING/IN_PROGRESS) row after ``rejected`` in the same
    application and call. Idempotent; returns the number of rows blocked.
    """
    now = timezone.now()
    updates = dict(status=Status.BLOCKED, block_reason=MilestoneProgress.BlockReason.CASCADE,
                   blocked_by=rejected, updated_at=now)
    if repair_reason:
        updates.update(repaired_at=now, repair_reason=repair_reason)
    return (MilestoneProgress.objects
            .filter(application_id=rejected.application_id,
                    milestone__call_id=rejected.milestone.call_id,
                    milestone__order_index__gt=rejected.milestone.order_index,
                    status__in=MilestoneProgress.OPEN_STATUSES)
            .update(**updates))


def apply_rejection(rejected: MilestoneProgress, application: Application, actor=None,
                    repair_reason: str = "") -> int:
    blocked = cascade_block(rejected, repair_reason=repair_reason)
    prefix = "[reconciliation] " if repair_reason else ""
    change_application_status(
        application, Application.TERMINAL_REJECTION, actor,
        reason=f"{prefix}Rejected at milestone: {rejected.milestone.name}",
        best_effort_history=bool(repair_reason),
    )
    return blocked


def _status_before_rejection(application: Application) -> str:
    last = (ApplicationStatusHistory.objects
            .filter(application=application, to_status=Application.TERMINAL_REJECTION)
            .order_by("-created_at", "-id")
            .first())
    if last and last.from_status and last.from_status != Application.TERMINAL_REJECTION:
        return last.from_status
    return Application.Status.IN_REVIEW


def _release_cascade(rejected: MilestoneProgress, application: Application, actor=None) -> int:
    released = (MilestoneProgress.objects
                .filter(blocked_by=rejected, status=Status.BLOCKED,
                        block_reason=MilestoneProgress.BlockReason.CASCADE)
                .update(status=Status.PENDING, block_reason="", blocked_by=None, updated_at=timezone.now()))
    still_rejected = (MilestoneProgress.objects
                      .filter(application=application, review_status=Review.REJECTED)
                      .exclude(pk=rejected.pk)
                      .exists())
    if application.status == Application.TERMINAL_REJECTION and not still_rejected:
        change_application_status(application, _status_before_rejection(application), actor,
                                  reason=f"Rejection overturned at milestone: {rejected.milestone.name}")
    return released


@retry_once
def review(progress_id, outcome: str, actor=None, notes: str = "") -> MilestoneProgress:
    if outcome not in Review.values:
        raise InvalidTransition(f"Unknown review outcome {outcome!r}")
    snap, p = _lock_for(progress_id)
    snap.check()
    app = snap.application
    if p.status != Status.COMPLETED:
        raise InvalidTransition(f"Only completed milestones can be reviewed ({p.milestone.name} is {p.status})")
    if actor is not None and not getattr(actor, "is_staff_role", False):
        raise NotAllowed("Only staff can review milestones")

    previous = p.review_status
    if previous == Review.REJECTED and outcome == Review.APPROVED:
        _release_cascade(p, app, actor)

    p.review_status = outcome
    p.reviewed_by = _actor_or_none(actor)
    p.reviewed_at = timezone.now()
    p.review_notes = notes or ""
    p.save(update_fields=["review_status", "reviewed_by", "reviewed_at", "review_notes", "updated_at"])

    blocked = 0
    if outcome == Review.REJECTED:
        blocked = apply_rejection(p, app, actor)

    audit_log(actor, "MILESTONE_REVIEWED", target=p, payload={
        "outcome": outcome, "previous": previous, "blocked": blocked,
    })
    return p


@retry_once
def unblock(progress_id, actor=None, notes: str = "") -> MilestoneProgress:
    """
    Overturn the rejection recorded on ``progress_id``: rows it blocked go
    back to PENDING and the review decision is cleared. Rows blocked for any
    other reason are left alone.

    ``progress_id`` may also name a row the cascade blocked; the rejection
    that blocked it is overturned.
    """
    snap, p = _lock_for(progress_id)
    app = snap.application
    if (p.status == Status.BLOCKED and p.block_reason == MilestoneProgress.BlockReason.CASCADE
            and p.blocked_by_id in snap.by_id):
        p = snap.by_id[p.blocked_by_id]
    if p.review_status != Review.REJECTED and not p.cascade_blocked.exists():
        if p.status == Status.BLOCKED:
            raise InvalidTransition(f"{p.milestone.name} is not blocked by a rejection")
        raise InvalidTransition(f"{p.milestone.name} has no rejection to overturn")

    released = _release_cascade(p, app, actor)
    if p.review_status == Review.REJECTED:
        p.review_status = None
        p.reviewed_by = _actor_or_none(actor)
        p.reviewed_at = timezone.now()
        p.review_notes = notes or p.review_notes
        p.save(update_fields=["review_status", "reviewed_by", "reviewed_at", "review_notes", "updated_at"])

    log.info("rejection on progress %s overturned; %d milestones unblocked", p.pk, released)
    audit_log(actor, "MILESTONE_UNBLOCKED", target=p, payload={"released": released})
    return p


# ------------------------------------------------------------------------------
# Repair
# ------------------------------------------------------------------------------

@transaction.atomic
def repair_in_progress_for(application_id, reason: str = "in_progress_drift") -> int:
    """
    Demote every IN_PROGRESS row that is not the frontier back to PENDING.
    Returns the number of rows changed.
    """
    snap = _Snapshot.lock(application_id)
    frontier = snap.frontier
    now = timezone.now()
    fixed = 0
    for r in snap.in_progress:
        if r is frontier:
            continue
        r.status = Status.PENDING
        r.started_at = None
        r.repaired_at = now
        r.repair_reason = reason
        r.save(update_fields=["status", "started_at", "repaired_at", "repair_reason", "updated_at"])
        fixed += 1
        log.warning("application %s: demoted out-of-sequence IN_PROGRESS milestone %s",
                    application_id, r.milestone_id)
        audit_log(None, "PROGRESS_REPAIRED", target=r, payload={"reason": reason, "to": Status.PENDING})
    return fixed
