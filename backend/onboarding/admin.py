from django.contrib import admin
from .models import Invite


@admin.register(Invite)
class InviteAdmin(admin.ModelAdmin):
    list_display = ("id", "call", "email", "expires_at", "used_at", "used_by_applicant", "created_at")
    list_filter = ("call",)
    search_fields = ("meta",)
    # codes are issued through the issue_invite command; hashes are not editable
    readonly_fields = ("code_hash", "used_at", "used_by_applicant", "created_by", "created_at")

    def has_add_permission(self, request):
        return False
