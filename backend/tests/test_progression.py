import pytest
from django.db import OperationalError
from django.utils import timezone

from applications import progression
from applications.models import Application, ApplicationStatusHistory, FormSubmission, MilestoneProgress
from applications.services import ensure_application
from audit.models import AuditLog
from calls.models import Milestone
from scholarship.exceptions import (
    ConcurrencyConflict, InvalidTransition, InvariantViolation, MissingSubmission, NotAllowed, OutOfOrder,
)

Status = MilestoneProgress.Status


def _row(app, order_index):
    return app.progress.get(milestone__order_index=order_index)


@pytest.fixture
def app(call_c1, applicant):
    return ensure_application(applicant, call_c1)


@pytest.mark.django_db
def test_complete_advances_to_next_milestone(app, applicant, progress_of):
    progression.complete(_row(app, 1).pk, actor=applicant.account)
    assert progress_of(app) == {"M1": "COMPLETED", "M2": "IN_PROGRESS", "M3": "PENDING"}
    app.refresh_from_db()
    assert app.status == Application.Status.SUBMITTED
    assert _row(app, 1).completed_by == applicant.account
    assert ApplicationStatusHistory.objects.filter(application=app, to_status="SUBMITTED").count() == 1


@pytest.mark.django_db
def test_rejection_blocks_everything_after(app, reviewer, progress_of):
    progression.complete(_row(app, 1).pk)
    progression.complete(_row(app, 2).pk)
    progression.review(_row(app, 2).pk, "REJECTED", actor=reviewer, notes="incompleto")

    assert progress_of(app) == {"M1": "COMPLETED", "M2": "COMPLETED", "M3": "BLOCKED"}
    m2, m3 = _row(app, 2), _row(app, 3)
    assert m2.review_status == "REJECTED"
    assert m2.reviewed_by == reviewer
    assert m3.block_reason == MilestoneProgress.BlockReason.CASCADE
    assert m3.blocked_by_id == m2.pk
    app.refresh_from_db()
    assert app.status == Application.Status.NOT_SELECTED
    assert AuditLog.objects.filter(action="MILESTONE_REVIEWED", actor=reviewer).exists()


@pytest.mark.django_db
def test_rejection_cascade_covers_pending_rows(call_c1, applicant, reviewer):
    m1 = call_c1.milestones.get(order_index=1)
    m1.requires_review = True
    m1.save()
    Milestone.objects.create(call=call_c1, name="M4", order_index=4)
    app = ensure_application(applicant, call_c1)

    progression.complete(_row(app, 1).pk)
    progression.review(_row(app, 1).pk, "REJECTED", actor=reviewer)
    statuses = list(app.progress.filter(milestone__order_index__gt=1).values_list("status", flat=True))
    assert statuses == [Status.BLOCKED] * 3


@pytest.mark.django_db
def test_start_out_of_order_is_rejected(app):
    with pytest.raises(OutOfOrder):
        progression.start(_row(app, 3).pk)
    assert _row(app, 3).status == Status.PENDING


@pytest.mark.django_db
def test_start_current_milestone_is_idempotent(app):
    p = progression.start(_row(app, 1).pk)
    assert p.status == Status.IN_PROGRESS


@pytest.mark.django_db
def test_completing_twice_is_benign(app):
    progression.complete(_row(app, 1).pk)
    with pytest.raises(OutOfOrder) as exc:
        progression.complete(_row(app, 1).pk)
    assert exc.value.benign


@pytest.mark.django_db
def test_review_required_milestone_does_not_advance(call_c1, applicant, reviewer, progress_of):
    m1 = call_c1.milestones.get(order_index=1)
    m1.requires_review = True
    m1.save()
    app = ensure_application(applicant, call_c1)

    progression.complete(_row(app, 1).pk)
    assert progress_of(app) == {"M1": "COMPLETED", "M2": "PENDING", "M3": "PENDING"}
    assert _row(app, 1).review_status is None

    # approval records the decision only
    progression.review(_row(app, 1).pk, "APPROVED", actor=reviewer)
    assert progress_of(app)["M2"] == "PENDING"

    progression.start(_row(app, 2).pk)
    assert progress_of(app) == {"M1": "COMPLETED", "M2": "IN_PROGRESS", "M3": "PENDING"}


@pytest.mark.django_db
def test_pending_frontier_cannot_be_completed(call_c1, applicant):
    m1 = call_c1.milestones.get(order_index=1)
    m1.requires_review = True
    m1.save()
    app = ensure_application(applicant, call_c1)
    progression.complete(_row(app, 1).pk)
    with pytest.raises(InvalidTransition):
        progression.complete(_row(app, 2).pk)


@pytest.mark.django_db
def test_blocked_rows_cannot_be_completed(app, reviewer):
    progression.complete(_row(app, 1).pk)
    progression.complete(_row(app, 2).pk)
    progression.review(_row(app, 2).pk, "REJECTED", actor=reviewer)
    with pytest.raises(InvalidTransition):
        progression.complete(_row(app, 3).pk)


@pytest.mark.django_db
def test_review_requires_completed_row(app, reviewer):
    with pytest.raises(InvalidTransition):
        progression.review(_row(app, 1).pk, "APPROVED", actor=reviewer)
    progression.complete(_row(app, 1).pk)
    with pytest.raises(InvalidTransition):
        progression.review(_row(app, 1).pk, "MAYBE", actor=reviewer)


@pytest.mark.django_db
def test_applicant_cannot_review(app, applicant):
    progression.complete(_row(app, 1).pk)
    with pytest.raises(NotAllowed):
        progression.review(_row(app, 1).pk, "APPROVED", actor=applicant.account)


@pytest.mark.django_db
def test_staff_milestone_needs_staff(call_c1, applicant, reviewer):
    m1 = call_c1.milestones.get(order_index=1)
    m1.who_can_fill = Milestone.WhoCanFill.STAFF
    m1.save()
    app = ensure_application(applicant, call_c1)
    with pytest.raises(NotAllowed):
        progression.complete(_row(app, 1).pk, actor=applicant.account)
    progression.complete(_row(app, 1).pk, actor=reviewer)
    assert _row(app, 1).status == Status.COMPLETED


@pytest.mark.django_db
def test_form_milestone_requires_submission(call_c1, applicant):
    m1 = call_c1.milestones.get(order_index=1)
    m1.form_id = "postulacion"
    m1.save()
    app = ensure_application(applicant, call_c1)
    with pytest.raises(MissingSubmission):
        progression.complete(_row(app, 1).pk, actor=applicant.account)

    FormSubmission.objects.create(application=app, milestone=m1, form_id="postulacion",
                                  answers={"a": 1}, submitted_at=timezone.now())
    progression.complete(_row(app, 1).pk, actor=applicant.account)
    assert _row(app, 1).status == Status.COMPLETED


@pytest.mark.django_db
def test_two_in_progress_rows_are_repaired_then_retried(app, progress_of):
    MilestoneProgress.objects.filter(pk=_row(app, 3).pk).update(status=Status.IN_PROGRESS)

    progression.complete(_row(app, 1).pk)

    assert progress_of(app) == {"M1": "COMPLETED", "M2": "IN_PROGRESS", "M3": "PENDING"}
    m3 = _row(app, 3)
    assert m3.repair_reason == "in_progress_drift"
    assert m3.repaired_at is not None
    assert app.progress.filter(status=Status.IN_PROGRESS).count() == 1
    assert AuditLog.objects.filter(action="PROGRESS_REPAIRED", actor__isnull=True).count() == 1


@pytest.mark.django_db
def test_duplicate_order_index_surfaces_after_retry(app):
    extra = Milestone.objects.create(call=app.call, name="M2bis", order_index=2)
    MilestoneProgress.objects.create(application=app, milestone=extra)
    with pytest.raises(InvariantViolation):
        progression.complete(_row(app, 1).pk)
    assert _row(app, 1).status == Status.IN_PROGRESS


@pytest.mark.django_db
def test_lock_errors_become_concurrency_conflict(app, monkeypatch):
    calls = []

    def boom(application_id):
        calls.append(application_id)
        raise OperationalError("deadlock detected")

    monkeypatch.setattr(progression._Snapshot, "lock", staticmethod(boom))
    with pytest.raises(ConcurrencyConflict):
        progression.complete(_row(app, 1).pk)
    assert len(calls) == 2


@pytest.mark.django_db
def test_unblock_releases_cascade_and_restores_status(app, reviewer, progress_of):
    progression.complete(_row(app, 1).pk)
    progression.complete(_row(app, 2).pk)
    progression.review(_row(app, 2).pk, "REJECTED", actor=reviewer)

    progression.unblock(_row(app, 2).pk, actor=reviewer, notes="apelación aceptada")

    assert progress_of(app) == {"M1": "COMPLETED", "M2": "COMPLETED", "M3": "PENDING"}
    m2, m3 = _row(app, 2), _row(app, 3)
    assert m2.review_status is None
    assert m3.blocked_by is None and m3.block_reason == ""
    app.refresh_from_db()
    assert app.status == Application.Status.SUBMITTED

    # nothing left to undo
    with pytest.raises(InvalidTransition):
        progression.unblock(m2.pk, actor=reviewer)
    assert progress_of(app)["M3"] == "PENDING"


@pytest.mark.django_db
def test_unblock_through_blocked_row(app, reviewer, progress_of):
    progression.complete(_row(app, 1).pk)
    progression.complete(_row(app, 2).pk)
    progression.review(_row(app, 2).pk, "REJECTED", actor=reviewer)

    overturned = progression.unblock(_row(app, 3).pk, actor=reviewer)

    assert overturned.pk == _row(app, 2).pk
    assert progress_of(app) == {"M1": "COMPLETED", "M2": "COMPLETED", "M3": "PENDING"}
    assert _row(app, 2).review_status is None
    app.refresh_from_db()
    assert app.status == Application.Status.SUBMITTED


@pytest.mark.django_db
def test_unblock_without_rejection_is_refused(app, progress_of):
    with pytest.raises(InvalidTransition):
        progression.unblock(_row(app, 2).pk)
    MilestoneProgress.objects.filter(pk=_row(app, 3).pk).update(
        status=Status.BLOCKED, block_reason=MilestoneProgress.BlockReason.MANUAL)
    with pytest.raises(InvalidTransition):
        progression.unblock(_row(app, 3).pk)
    assert progress_of(app)["M3"] == "BLOCKED"


@pytest.mark.django_db
def test_unblock_leaves_manual_blocks(app, reviewer):
    progression.complete(_row(app, 1).pk)
    MilestoneProgress.objects.filter(pk=_row(app, 3).pk).update(
        status=Status.BLOCKED, block_reason=MilestoneProgress.BlockReason.MANUAL)
    progression.complete(_row(app, 2).pk)
    progression.review(_row(app, 2).pk, "REJECTED", actor=reviewer)

    progression.unblock(_row(app, 2).pk, actor=reviewer)

    m3 = _row(app, 3)
    assert m3.status == Status.BLOCKED
    assert m3.block_reason == MilestoneProgress.BlockReason.MANUAL


@pytest.mark.django_db
def test_approval_overturns_earlier_rejection(app, reviewer, progress_of):
    progression.complete(_row(app, 1).pk)
    progression.complete(_row(app, 2).pk)
    progression.review(_row(app, 2).pk, "REJECTED", actor=reviewer)
    progression.review(_row(app, 2).pk, "APPROVED", actor=reviewer)

    assert progress_of(app)["M3"] == "PENDING"
    assert _row(app, 2).review_status == "APPROVED"
    app.refresh_from_db()
    assert app.status == Application.Status.SUBMITTED


@pytest.mark.django_db
def test_never_more_than_one_in_progress(app, reviewer):
    steps = [
        lambda: progression.complete(_row(app, 1).pk),
        lambda: progression.complete(_row(app, 2).pk),
        lambda: progression.review(_row(app, 2).pk, "REJECTED", actor=reviewer),
        lambda: progression.unblock(_row(app, 2).pk, actor=reviewer),
        lambda: progression.start(_row(app, 3).pk),
        lambda: progression.complete(_row(app, 3).pk),
    ]
    for step in steps:
        step()
        assert app.progress.filter(status=Status.IN_PROGRESS).count() <= 1
    assert not app.progress.exclude(status=Status.COMPLETED).exists()
