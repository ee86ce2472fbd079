import pytest

from accounts.models import Role, User
from accounts.services import create_account_shell, set_password
from applications.models import Applicant
from scholarship.exceptions import AlreadyConsumed, NotAllowed


@pytest.mark.django_db
def test_account_shell_is_created_once():
    a = Applicant.objects.create(email="luis@test")
    u1 = create_account_shell(a, "Luis@Test")
    u2 = create_account_shell(a, "luis@test")
    assert u1.pk == u2.pk
    assert u1.email == "luis@test"
    assert u1.role == Role.APPLICANT
    assert not u1.has_usable_password()
    a.refresh_from_db()
    assert a.account_id == u1.pk


@pytest.mark.django_db
def test_existing_applicant_login_is_linked():
    u = User.objects.create_user(email="luis@test", role=Role.APPLICANT)
    a = Applicant.objects.create(email="luis@test")
    assert create_account_shell(a, "luis@test").pk == u.pk


@pytest.mark.django_db
def test_shell_refuses_staff_and_inactive_and_taken_accounts():
    User.objects.create_user(email="rev@test", role=Role.REVIEWER)
    User.objects.create_user(email="off@test", role=Role.APPLICANT, is_active=False)
    taken = User.objects.create_user(email="taken@test", role=Role.APPLICANT)
    Applicant.objects.create(email="first@test", account=taken)

    with pytest.raises(NotAllowed):
        create_account_shell(Applicant.objects.create(email="rev@test"), "rev@test")
    with pytest.raises(NotAllowed):
        create_account_shell(Applicant.objects.create(email="off@test"), "off@test")
    with pytest.raises(AlreadyConsumed):
        create_account_shell(Applicant.objects.create(email="taken@test"), "taken@test")


@pytest.mark.django_db
def test_set_password():
    u = User.objects.create_user(email="luis@test")
    set_password(u, "n3w-secret")
    u.refresh_from_db()
    assert u.check_password("n3w-secret")


@pytest.mark.django_db
def test_staff_role_flag():
    assert User.objects.create_user(email="r@test", role=Role.REVIEWER).is_staff_role
    assert not User.objects.create_user(email="a@test").is_staff_role
    assert User.objects.create_superuser(email="s@test", password="x").is_staff_role
