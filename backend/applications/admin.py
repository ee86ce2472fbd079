from django.contrib import admin
from .models import Applicant, Application, ApplicationStatusHistory, FormSubmission, MilestoneProgress


class MilestoneProgressInline(admin.TabularInline):
    model = MilestoneProgress
    extra = 0
    fields = ("milestone", "status", "review_status", "block_reason", "completed_at", "origin", "repair_reason")
    readonly_fields = fields
    can_delete = False


class StatusHistoryInline(admin.TabularInline):
    model = ApplicationStatusHistory
    extra = 0
    readonly_fields = ("created_at", "from_status", "to_status", "actor", "reason")
    can_delete = False


@admin.register(Applicant)
class ApplicantAdmin(admin.ModelAdmin):
    list_display = ("email", "full_name", "account", "created_at")
    search_fields = ("email", "full_name")


@admin.register(Application)
class ApplicationAdmin(admin.ModelAdmin):
    list_display = ("id", "applicant", "call", "status", "submitted_at", "created_at")
    list_filter = ("call", "status")
    search_fields = ("applicant__email", "applicant__full_name")
    inlines = [MilestoneProgressInline, StatusHistoryInline]


@admin.register(MilestoneProgress)
class MilestoneProgressAdmin(admin.ModelAdmin):
    list_display = ("application", "milestone", "status", "review_status", "block_reason", "origin")
    list_filter = ("status", "review_status", "block_reason", "origin")


@admin.register(FormSubmission)
class FormSubmissionAdmin(admin.ModelAdmin):
    list_display = ("application", "milestone", "form_id", "submitted_at")
