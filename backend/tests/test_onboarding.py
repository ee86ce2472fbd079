from datetime import timedelta

import pytest
from django.core import mail
from django.utils import timezone

from accounts.models import Role, User
from applications.models import Applicant, Application
from audit.models import AuditLog
from onboarding import notifications
from onboarding.hashers import HmacCodeHasher, get_hasher
from onboarding.models import Invite
from onboarding.services import (
    issue_invite, mark_invite_used, normalize_code, redeem_invite, validate_invite,
)
from scholarship.exceptions import AlreadyConsumed, CodeCollision, Expired, MissingEmail, NotAllowed, NotFound


def test_normalize_code():
    assert normalize_code("  x7q9 ") == "X7Q9"
    assert normalize_code(None) == ""


def test_hmac_hasher_depends_on_pepper():
    a, b = HmacCodeHasher("one"), HmacCodeHasher("two")
    assert a.hash("X7Q9") == a.hash("X7Q9")
    assert a.hash("X7Q9") != b.hash("X7Q9")
    assert a.verify(a.hash("X7Q9"), "X7Q9")
    assert not a.verify(a.hash("X7Q9"), "X7Q8")


@pytest.mark.django_db
def test_issue_stores_only_hash(call_c1):
    issued = issue_invite(call_c1, {"email": "Luis@Test"}, code="x7q9")
    inv = issued.invite
    assert issued.raw_code == "X7Q9"
    assert inv.code_hash == get_hasher().hash("X7Q9")
    assert "X7Q9" not in inv.code_hash
    assert inv.meta["email"] == "luis@test"
    assert inv.expires_at - inv.created_at >= timedelta(days=29, hours=23)


@pytest.mark.django_db
def test_generated_codes_use_configured_alphabet(call_c1, settings):
    issued = issue_invite(call_c1)
    assert len(issued.raw_code) == settings.INVITE_CODE_LENGTH
    assert set(issued.raw_code) <= set(settings.INVITE_CODE_ALPHABET)


@pytest.mark.django_db
def test_explicit_code_collision(call_c1):
    issue_invite(call_c1, code="X7Q9")
    with pytest.raises(CodeCollision):
        issue_invite(call_c1, code=" x7q9")


@pytest.mark.django_db
def test_code_can_be_reused_once_expired(call_c1):
    old = issue_invite(call_c1, code="X7Q9", ttl_days=0).invite
    new = issue_invite(call_c1, code="X7Q9").invite
    assert validate_invite("x7q9").pk == new.pk != old.pk


@pytest.mark.django_db
def test_used_code_is_never_reissued(call_c1):
    first = issue_invite(call_c1, {"email": "a@test"}, code="X7Q9").invite
    owner = redeem_invite("x7q9").applicant
    with pytest.raises(CodeCollision):
        issue_invite(call_c1, {"email": "b@test"}, code="X7Q9")

    # past expiry the used invite still belongs to its owner
    Invite.objects.filter(pk=first.pk).update(expires_at=timezone.now() - timedelta(days=1))
    with pytest.raises(CodeCollision):
        issue_invite(call_c1, {"email": "b@test"}, code="X7Q9")

    retry = redeem_invite("X7Q9", email="a@test")
    assert retry.invite.pk == first.pk
    assert retry.applicant.pk == owner.pk
    assert not retry.first_redemption
    assert Invite.objects.count() == 1


@pytest.mark.django_db
def test_validate_errors(call_c1):
    issue_invite(call_c1, code="OLD1", ttl_days=-1)
    with pytest.raises(Expired):
        validate_invite("old1")
    with pytest.raises(NotFound):
        validate_invite("NOPE")
    with pytest.raises(NotFound):
        validate_invite("   ")


@pytest.mark.django_db
def test_redeem_is_idempotent_and_case_insensitive(call_c1):
    issue_invite(call_c1, {"email": "luis@test", "full_name": "Luis"}, code="X7Q9")

    first = redeem_invite("x7q9", password="s3cret!")
    second = redeem_invite("X7Q9")

    assert first.first_redemption and not second.first_redemption
    assert first.applicant.pk == second.applicant.pk
    assert first.application.pk == second.application.pk
    assert first.applicant.full_name == "Luis"
    assert first.account.role == Role.APPLICANT
    assert first.account.check_password("s3cret!")
    assert Application.objects.filter(applicant=first.applicant, call=call_c1).count() == 1

    inv = Invite.objects.get()
    assert inv.used_by_applicant_id == first.applicant.pk
    assert AuditLog.objects.filter(action="INVITE_REDEEMED").count() == 1


@pytest.mark.django_db
def test_retry_does_not_overwrite_password(call_c1):
    issue_invite(call_c1, {"email": "luis@test"}, code="X7Q9")
    redeem_invite("X7Q9", password="first-choice")
    r = redeem_invite("X7Q9", password="second-try")
    r.account.refresh_from_db()
    assert r.account.check_password("first-choice")


@pytest.mark.django_db
def test_used_invite_with_other_identity_conflicts(call_c1):
    issue_invite(call_c1, code="X7Q9")
    redeem_invite("X7Q9", email="luis@test")
    with pytest.raises(AlreadyConsumed):
        redeem_invite("X7Q9", email="otra@test")
    assert not Applicant.objects.filter(email="otra@test").exists()


@pytest.mark.django_db
def test_used_invite_survives_expiry(call_c1):
    issued = issue_invite(call_c1, {"email": "luis@test"}, code="X7Q9")
    first = redeem_invite("X7Q9")
    Invite.objects.filter(pk=issued.invite.pk).update(expires_at=timezone.now() - timedelta(days=1))
    assert redeem_invite("X7Q9").applicant.pk == first.applicant.pk


@pytest.mark.django_db
def test_missing_email(call_c1):
    issue_invite(call_c1, code="X7Q9")
    with pytest.raises(MissingEmail):
        redeem_invite("X7Q9")
    assert Invite.objects.get().used_at is None


@pytest.mark.django_db
def test_existing_applicant_is_reused(call_c1, applicant):
    issue_invite(call_c1, code="X7Q9")
    r = redeem_invite("X7Q9", email="ANA@test")
    assert r.applicant.pk == applicant.pk
    assert r.account.pk == applicant.account_id


@pytest.mark.django_db
def test_staff_email_cannot_redeem(call_c1, reviewer):
    issue_invite(call_c1, code="X7Q9")
    with pytest.raises(NotAllowed):
        redeem_invite("X7Q9", email=reviewer.email)
    # all-or-nothing: nothing of the redemption was kept
    assert Invite.objects.get().used_at is None
    assert not Applicant.objects.filter(email=reviewer.email).exists()


@pytest.mark.django_db
def test_mark_used_keeps_first_binding(call_c1):
    inv = issue_invite(call_c1, code="X7Q9").invite
    a = Applicant.objects.create(email="a@test")
    b = Applicant.objects.create(email="b@test")
    mark_invite_used(inv, a)
    used_at = inv.used_at
    mark_invite_used(inv, b)
    assert inv.used_by_applicant_id == a.pk
    assert inv.used_at == used_at


@pytest.mark.django_db(transaction=True)
def test_issue_sends_email_after_commit(call_c1, settings):
    settings.INVITE_EMAIL_PROVIDER = "django"
    issue_invite(call_c1, {"email": "luis@test", "full_name": "Luis"}, code="X7Q9")
    assert len(mail.outbox) == 1
    assert mail.outbox[0].to == ["luis@test"]
    assert "X7Q9" in mail.outbox[0].body
    assert AuditLog.objects.filter(action="INVITE_EMAIL_SENT").count() == 1


@pytest.mark.django_db(transaction=True)
def test_email_failure_does_not_fail_issue(call_c1, monkeypatch):
    class Broken:
        def send(self, *args):
            raise ConnectionError("smtp down")

    monkeypatch.setattr(notifications, "_provider", lambda: Broken())
    issued = issue_invite(call_c1, {"email": "luis@test"}, code="X7Q9")

    assert Invite.objects.filter(pk=issued.invite.pk).exists()
    assert validate_invite("X7Q9").pk == issued.invite.pk
    assert AuditLog.objects.filter(action="INVITE_EMAIL_FAILED").count() == 1


@pytest.mark.django_db
def test_no_email_sent_without_address(call_c1, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        issue_invite(call_c1, code="X7Q9")
    assert callbacks == []
    assert User.objects.count() == 0
