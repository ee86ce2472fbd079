from django.shortcuts import get_object_or_404
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from accounts.decorators import require_roles
from accounts.models import Role
from scholarship.exceptions import NotAllowed
from scholarship.http import json_body, workflow_view
from . import progression
from .models import Application
from .services import progress_summary


def _progress_json(p):
    return {
        "id": p.pk,
        "application_id": p.application_id,
        "milestone_id": p.milestone_id,
        "status": p.status,
        "review_status": p.review_status,
        "completed_at": p.completed_at.isoformat() if p.completed_at else None,
        "reviewed_at": p.reviewed_at.isoformat() if p.reviewed_at else None,
    }


def _ok(p):
    return JsonResponse({"ok": True, "progress": _progress_json(p)})


@require_GET
@require_roles(Role.APPLICANT, Role.REVIEWER, Role.ADMIN, allow_superuser=True)
@workflow_view
def application_progress(request, application_id: int):
    app = get_object_or_404(Application.objects.select_related("applicant"), pk=application_id)
    if not request.user.is_staff_role and app.applicant.account_id != request.user.pk:
        raise NotAllowed("Not your application")
    return JsonResponse(progress_summary(app))


@csrf_exempt
@require_POST
@require_roles(Role.APPLICANT, Role.REVIEWER, Role.ADMIN, allow_superuser=True)
@workflow_view
def progress_start(request, progress_id: int):
    return _ok(progression.start(progress_id, actor=request.user))


@csrf_exempt
@require_POST
@require_roles(Role.APPLICANT, Role.REVIEWER, Role.ADMIN, allow_superuser=True)
@workflow_view
def progress_complete(request, progress_id: int):
    return _ok(progression.complete(progress_id, actor=request.user))


@csrf_exempt
@require_POST
@require_roles(Role.REVIEWER, Role.ADMIN, allow_superuser=True)
@workflow_view
def progress_review(request, progress_id: int):
    data = json_body(request)
    outcome = (data.get("outcome") or "").strip().upper()
    return _ok(progression.review(progress_id, outcome, actor=request.user, notes=data.get("notes") or ""))


@csrf_exempt
@require_POST
@require_roles(Role.REVIEWER, Role.ADMIN, allow_superuser=True)
@workflow_view
def progress_unblock(request, progress_id: int):
    data = json_body(request)
    return _ok(progression.unblock(progress_id, actor=request.user, notes=data.get("notes") or ""))
