from django.conf import settings
from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path

from accounts.decorators import require_roles
from accounts.models import Role


def health(_):
    return JsonResponse({"ok": True})


@require_roles(Role.APPLICANT, Role.REVIEWER, Role.ADMIN, allow_superuser=True)
def whoami(request):
    u = request.user
    applicant = getattr(u, "applicant", None)
    return JsonResponse({
        "email": u.email,
        "role": u.role,
        "applicant_id": applicant.pk if applicant else None,
    })


urlpatterns = [
    path("health/", health),
    path(f"{settings.ADMIN_URL}/", admin.site.urls),
    path("whoami/", whoami),
    path("api/", include("onboarding.urls")),
    path("api/", include("applications.urls")),
]
