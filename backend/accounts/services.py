"""Credential shell for applicant accounts.

The onboarding flow only needs two things from the account store: an
applicant-role login bound to an applicant profile, and a way to set its
password once the applicant chooses one.
"""

from __future__ import annotations

import logging

from django.db import transaction

from scholarship.exceptions import AlreadyConsumed, NotAllowed
from .models import Role, User

log = logging.getLogger(__name__)


@transaction.atomic
def create_account_shell(applicant, email: str) -> User:
    """Find-or-create the APPLICANT login for ``applicant``.

    Idempotent: an account already linked to the applicant is returned as-is.
    New accounts get an unusable password until ``set_password`` runs.
    """
    if applicant.account_id:
        return applicant.account

    email = (email or "").strip().lower()
    user = User.objects.select_for_update().filter(email=email).first()
    if user is None:
        user = User.objects.create_user(email=email, role=Role.APPLICANT)
        log.info("account shell created for applicant %s", applicant.pk)
    elif user.role != Role.APPLICANT:
        raise NotAllowed("Email already used by a staff account")
    elif not user.is_active:
        raise NotAllowed("Account is inactive")
    elif hasattr(user, "applicant") and user.applicant.pk != applicant.pk:
        raise AlreadyConsumed("Account already belongs to another applicant")

    applicant.account = user
    applicant.save(update_fields=["account", "updated_at"])
    return user


def set_password(account: User, secret: str) -> None:
    account.set_password(secret)
    account.save(update_fields=["password"])
