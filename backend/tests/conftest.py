import pytest
from django.contrib.auth import get_user_model

from accounts.models import Role
from applications.models import Applicant
from calls.models import Call, Milestone

User = get_user_model()


@pytest.fixture
def call_c1(db):
    call = Call.objects.create(name="Becas C1", year=2026, status=Call.Status.OPEN, is_active=True)
    for i in (1, 2, 3):
        Milestone.objects.create(call=call, name=f"M{i}", order_index=i)
    return call


@pytest.fixture
def applicant(db):
    u = User.objects.create_user(email="ana@test", password="x", role=Role.APPLICANT)
    return Applicant.objects.create(full_name="Ana", email="ana@test", account=u)


@pytest.fixture
def reviewer(db):
    return User.objects.create_user(email="rev@test", password="x", role=Role.REVIEWER)


@pytest.fixture
def progress_of():
    """{milestone name: status} for an application, in milestone order."""
    def _map(application):
        return {
            p.milestone.name: p.status
            for p in application.progress.select_related("milestone").order_by("milestone__order_index")
        }
    return _map
