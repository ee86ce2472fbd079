"""Invite registry and the redemption flow.

    issue_invite  -> raw code returned once, only its hash is stored
    validate_invite -> Invite | NotFound | Expired
    redeem_invite -> applicant + account shell + application, all or nothing

Redemption is idempotent: a second redemption of the same code by the same
identity returns the same applicant and application.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from accounts.services import create_account_shell, set_password
from applications.services import ensure_application
from audit.utils import audit_log
from scholarship.exceptions import AlreadyConsumed, CodeCollision, Expired, NotFound
from .hashers import get_hasher
from .identity import resolve_applicant
from .models import Invite
from .notifications import send_invite_notification

log = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 6


@dataclass(frozen=True)
class IssuedInvite:
    invite: Invite
    raw_code: str


@dataclass(frozen=True)
class Redemption:
    invite: Invite
    applicant: object
    account: object
    application: object
    first_redemption: bool


def normalize_code(raw_code) -> str:
    return (raw_code or "").strip().upper()


def generate_code(length: Optional[int] = None, alphabet: Optional[str] = None) -> str:
    length = length or settings.INVITE_CODE_LENGTH
    alphabet = alphabet or settings.INVITE_CODE_ALPHABET
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _matches(qs, normalized: str, hasher) -> list[Invite]:
    if hasher.deterministic:
        qs = qs.filter(code_hash=hasher.hash(normalized))
    return [i for i in qs if hasher.verify(i.code_hash, normalized)]


def _taken(now):
    # a used invite keeps answering its owner after expiry, so its code stays taken
    return Invite.objects.filter(Q(expires_at__gt=now) | Q(used_at__isnull=False))


@transaction.atomic
def issue_invite(call, metadata: Optional[dict] = None, code: Optional[str] = None,
                 ttl_days: Optional[int] = None, actor=None, notify: bool = True) -> IssuedInvite:
    """
    Create an invite for ``call``. The code is generated unless one is given;
    either way it must not match an unexpired invite or one already used.
    """
    hasher = get_hasher()
    now = timezone.now()

    if code is not None:
        normalized = normalize_code(code)
        if not normalized:
            raise ValueError("Invite code cannot be blank")
        if _matches(_taken(now), normalized, hasher):
            raise CodeCollision("This code belongs to an unexpired or used invite")
    else:
        for _ in range(MAX_CODE_ATTEMPTS):
            normalized = generate_code()
            if not _matches(_taken(now), normalized, hasher):
                break
        else:
            raise CodeCollision(f"No unique code after {MAX_CODE_ATTEMPTS} attempts")

    ttl = settings.INVITE_TTL_DAYS if ttl_days is None else ttl_days
    meta = dict(metadata or {})
    if meta.get("email"):
        meta["email"] = meta["email"].strip().lower()
    invite = Invite.objects.create(
        call=call,
        code_hash=hasher.hash(normalized),
        expires_at=now + timedelta(days=ttl),
        meta=meta,
        created_by=actor if getattr(actor, "is_authenticated", False) else None,
    )
    log.info("invite %s issued for call %s (expires %s)", invite.pk, call.pk, invite.expires_at.date())
    audit_log(actor, "INVITE_ISSUED", target=invite, payload={
        "call": call.pk, "expires_at": invite.expires_at.isoformat(), "has_email": bool(invite.email),
    })
    if notify and invite.email:
        transaction.on_commit(lambda: send_invite_notification(invite, normalized))
    return IssuedInvite(invite=invite, raw_code=normalized)


def validate_invite(raw_code, now=None) -> Invite:
    """
    Resolve a raw code to its invite. A live invite wins; a used one is
    returned as-is so re-validation stays idempotent; a match that is only
    past its expiry raises Expired.
    """
    normalized = normalize_code(raw_code)
    if not normalized:
        raise NotFound("Invite not found")
    now = now or timezone.now()
    candidates = _matches(Invite.objects.select_related("call").order_by("-created_at", "-id"),
                          normalized, get_hasher())

    live = [i for i in candidates if i.used_at is None and not i.is_expired(now)]
    if live:
        return live[0]
    used = [i for i in candidates if i.used_at is not None]
    if used:
        return used[0]
    if candidates:
        raise Expired("Invite expired")
    raise NotFound("Invite not found")


def mark_invite_used(invite: Invite, applicant) -> Invite:
    """
    Bind the invite to ``applicant`` exactly once. On an already-used invite
    this is a no-op and the original binding is returned.
    """
    updated = (Invite.objects
               .filter(pk=invite.pk, used_at__isnull=True)
               .update(used_at=timezone.now(), used_by_applicant=applicant))
    invite.refresh_from_db(fields=["used_at", "used_by_applicant"])
    if updated:
        audit_log(None, "INVITE_USED", target=invite, payload={"applicant": applicant.pk})
    return invite


def redeem_invite(raw_code, email: Optional[str] = None, full_name: Optional[str] = None,
                  password: Optional[str] = None, request=None) -> Redemption:
    invite = validate_invite(raw_code)
    with transaction.atomic():
        invite = Invite.objects.select_for_update().select_related("call").get(pk=invite.pk)
        first = invite.used_at is None
        if first and invite.is_expired():
            raise Expired("Invite expired")

        applicant = resolve_applicant(invite, email=email, full_name=full_name)
        mark_invite_used(invite, applicant)
        if invite.used_by_applicant_id != applicant.pk:
            raise AlreadyConsumed("Invite was already used by someone else")

        account = create_account_shell(applicant, applicant.email)
        # a retry may carry the password again; never overwrite a chosen one
        if password and not account.has_usable_password():
            set_password(account, password)

        application = ensure_application(applicant, invite.call)
        if first:
            audit_log(account, "INVITE_REDEEMED", target=invite, request=request, payload={
                "applicant": applicant.pk, "application": application.pk,
            })
    if first:
        log.info("invite %s redeemed by applicant %s (application %s)", invite.pk, applicant.pk, application.pk)
    return Redemption(invite=invite, applicant=applicant, account=account,
                      application=application, first_redemption=first)
