"""Identity resolution for a validated invite."""

from __future__ import annotations

from typing import Optional

from applications.models import Applicant
from scholarship.exceptions import AlreadyConsumed, MissingEmail
from .models import Invite


def resolve_email(invite: Invite, email: Optional[str] = None) -> str:
    """Caller-supplied email first, then the invite's suggested email."""
    resolved = (email or invite.email or "").strip().lower()
    if not resolved:
        raise MissingEmail("An email is required to redeem this invite")
    return resolved


def resolve_applicant(invite: Invite, email: Optional[str] = None,
                      full_name: Optional[str] = None) -> Applicant:
    """
    Find-or-create the applicant for the invite. A used invite only resolves
    to the applicant that consumed it; any other identity is a conflict.
    """
    email = resolve_email(invite, email)
    applicant = Applicant.objects.filter(email=email).first()

    if invite.used_at is not None:
        if applicant is None or applicant.pk != invite.used_by_applicant_id:
            raise AlreadyConsumed("Invite was already used by someone else")
        return applicant

    full_name = (full_name or (invite.meta or {}).get("full_name") or "").strip()
    if applicant is None:
        # get_or_create absorbs a concurrent insert of the same email
        applicant, _ = Applicant.objects.get_or_create(email=email, defaults={"full_name": full_name})
    elif full_name and not applicant.full_name:
        applicant.full_name = full_name
        applicant.save(update_fields=["full_name", "updated_at"])
    return applicant
