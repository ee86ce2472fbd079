import pytest

from applications.models import Application, ApplicationStatusHistory, MilestoneProgress
from applications.services import (
    change_application_status, ensure_application, ensure_application_for_open_call, progress_summary,
)
from calls.models import Call, Milestone
from scholarship.exceptions import InvariantViolation, NotFound


@pytest.mark.django_db
def test_new_application_seeds_first_milestone_in_progress(call_c1, applicant, progress_of):
    app = ensure_application(applicant, call_c1)
    assert app.status == Application.Status.DRAFT
    assert progress_of(app) == {"M1": "IN_PROGRESS", "M2": "PENDING", "M3": "PENDING"}
    first = app.progress.get(milestone__order_index=1)
    assert first.started_at is not None
    assert first.origin == MilestoneProgress.Origin.BOOTSTRAP


@pytest.mark.django_db
def test_ensure_application_is_idempotent(call_c1, applicant):
    a1 = ensure_application(applicant, call_c1)
    a2 = ensure_application(applicant, call_c1)
    assert a1.pk == a2.pk
    assert Application.objects.filter(applicant=applicant, call=call_c1).count() == 1
    assert MilestoneProgress.objects.filter(application=a1).count() == 3


@pytest.mark.django_db
def test_duplicate_order_index_aborts_bootstrap(call_c1, applicant):
    Milestone.objects.create(call=call_c1, name="M2bis", order_index=2)
    with pytest.raises(InvariantViolation):
        ensure_application(applicant, call_c1)
    assert not Application.objects.filter(applicant=applicant).exists()
    assert not MilestoneProgress.objects.exists()


@pytest.mark.django_db
def test_open_call_selection(call_c1, applicant):
    app = ensure_application_for_open_call(applicant)
    assert app.call_id == call_c1.pk

    call_c1.status = Call.Status.CLOSED
    call_c1.save()
    with pytest.raises(NotFound):
        ensure_application_for_open_call(applicant)


@pytest.mark.django_db
def test_open_call_selector_is_injectable(call_c1, applicant):
    other = Call.objects.create(name="Otra", year=2026)
    Milestone.objects.create(call=other, name="X1", order_index=1)
    app = ensure_application_for_open_call(applicant, call_selector=lambda: other)
    assert app.call_id == other.pk


@pytest.mark.django_db
def test_status_change_writes_history(call_c1, applicant, reviewer):
    app = ensure_application(applicant, call_c1)
    assert change_application_status(app, Application.Status.SUBMITTED, reviewer, reason="test")
    assert not change_application_status(app, Application.Status.SUBMITTED, reviewer)
    app.refresh_from_db()
    assert app.submitted_at is not None
    h = ApplicationStatusHistory.objects.get(application=app)
    assert (h.from_status, h.to_status, h.actor) == ("DRAFT", "SUBMITTED", reviewer)


@pytest.mark.django_db
def test_progress_summary(call_c1, applicant):
    app = ensure_application(applicant, call_c1)
    data = progress_summary(app)
    assert [r["milestone_name"] for r in data["progress"]] == ["M1", "M2", "M3"]
    assert data["summary"]["total"] == 3
    assert data["summary"]["completed"] == 0
    assert data["summary"]["percentage"] == 0
    assert data["summary"]["current"]["milestone_name"] == "M1"
