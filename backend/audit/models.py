from django.db import models
from django.utils import timezone
from accounts.models import User


class AuditLog(models.Model):
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    # null actor = system (reconciliation sweep, scheduler)
    actor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="audit_logs")
    action = models.CharField(max_length=64)  # e.g., INVITE_ISSUED, MILESTONE_REVIEWED
    target_app = models.CharField(max_length=64, blank=True)
    target_model = models.CharField(max_length=64, blank=True)
    target_id = models.CharField(max_length=64, blank=True)
    payload = models.JSONField(default=dict, blank=True)
    ip = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["action", "created_at"], name="audit_audit_action_9e3b1c_idx"),
            models.Index(fields=["target_model", "target_id"], name="audit_audit_target__51d7aa_idx"),
        ]

    def __str__(self):
        return f"{self.created_at:%Y-%m-%d %H:%M} {self.action}"
