# backend/onboarding/models.py
from django.db import models
from django.utils import timezone

from accounts.models import User
from calls.models import Call


class Invite(models.Model):
    """
    Single-use onboarding code for one call. Only a one-way hash of the
    normalized code is stored; the raw code is shown once at issuance.
    Once used_at is set the invite is terminal.
    """
    call = models.ForeignKey(Call, on_delete=models.PROTECT, related_name="invites")
    # not unique: expired or used invites may share a code with a live one
    code_hash = models.CharField(max_length=128, db_index=True)
    expires_at = models.DateTimeField(db_index=True)
    used_at = models.DateTimeField(null=True, blank=True)
    used_by_applicant = models.ForeignKey("applications.Applicant", on_delete=models.SET_NULL,
                                          null=True, blank=True, related_name="invites_used")
    meta = models.JSONField(default=dict, blank=True)  # suggested email / full_name
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        indexes = [models.Index(fields=["used_at", "expires_at"], name="onboarding_used_at_3f8c2e_idx")]

    def __str__(self):
        return f"Invite #{self.pk} ({self.call})"

    @property
    def is_used(self) -> bool:
        return self.used_at is not None

    def is_expired(self, now=None) -> bool:
        return self.expires_at <= (now or timezone.now())

    @property
    def email(self) -> str:
        return (self.meta or {}).get("email") or ""
