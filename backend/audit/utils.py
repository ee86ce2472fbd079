import logging

from django.db import DatabaseError, transaction

log = logging.getLogger(__name__)


def audit_log(user, action, target=None, payload=None, request=None):
    """
    Fire-and-forget audit record. Runs in its own savepoint so a failed
    insert never aborts the caller's transaction.
    """
    from .models import AuditLog
    payload = payload or {}
    target_app = target.__class__._meta.app_label if target else ""
    target_model = target.__class__._meta.model_name if target else ""
    target_id = str(target.pk) if target else ""
    ip = request.META.get("REMOTE_ADDR") if request else None
    ua = request.META.get("HTTP_USER_AGENT", "") if request else ""
    actor = user if (user is not None and getattr(user, "is_authenticated", False)) else None
    try:
        with transaction.atomic():
            return AuditLog.objects.create(
                actor=actor, action=action,
                target_app=target_app, target_model=target_model, target_id=target_id,
                payload=payload, ip=ip, user_agent=ua,
            )
    except DatabaseError as exc:
        log.warning("audit_log %s on %s:%s failed: %s", action, target_model, target_id, exc)
        return None
