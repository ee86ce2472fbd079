# backend/applications/models.py
from __future__ import annotations

from django.db import models
from django.utils import timezone

from accounts.models import User
from calls.models import Call, Milestone


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Applicant(TimeStampedModel):
    """
    Person profile, created lazily on first successful invite redemption.
    Lives independently of any call; one applicant may apply to many calls.
    """
    full_name = models.CharField(max_length=255, blank=True)
    email = models.EmailField(unique=True)
    account = models.OneToOneField(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="applicant")

    def __str__(self):
        return self.full_name or self.email


class Application(TimeStampedModel):
    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        SUBMITTED = "SUBMITTED", "Submitted"
        IN_REVIEW = "IN_REVIEW", "In review"
        NEEDS_FIX = "NEEDS_FIX", "Needs fix"
        SELECTED = "SELECTED", "Selected"
        NOT_SELECTED = "NOT_SELECTED", "Not selected"

    TERMINAL_REJECTION = Status.NOT_SELECTED

    # (applicant, call) is unique by contract, not by constraint: duplicates
    # are merged by reconcile.merge_duplicate_applications.
    applicant = models.ForeignKey(Applicant, on_delete=models.CASCADE, related_name="applications")
    call = models.ForeignKey(Call, on_delete=models.PROTECT, related_name="applications")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.DRAFT)
    submitted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["applicant", "call"], name="applicatio_applica_0d4e2b_idx"),
            models.Index(fields=["call", "status"], name="applicatio_call_id_7f19c3_idx"),
        ]

    def __str__(self):
        return f"{self.applicant} – {self.call} ({self.status})"


class MilestoneProgress(TimeStampedModel):
    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        IN_PROGRESS = "IN_PROGRESS", "In progress"
        COMPLETED = "COMPLETED", "Completed"
        BLOCKED = "BLOCKED", "Blocked"

    class ReviewStatus(models.TextChoices):
        APPROVED = "APPROVED", "Approved"
        REJECTED = "REJECTED", "Rejected"

    class BlockReason(models.TextChoices):
        CASCADE = "CASCADE", "Blocked by an earlier rejection"
        MANUAL = "MANUAL", "Blocked manually"

    class Origin(models.TextChoices):
        BOOTSTRAP = "BOOTSTRAP", "Application bootstrap"
        SWEEP = "SWEEP", "Reconciliation sweep"

    OPEN_STATUSES = (Status.PENDING, Status.IN_PROGRESS)

    application = models.ForeignKey(Application, on_delete=models.CASCADE, related_name="progress")
    milestone = models.ForeignKey(Milestone, on_delete=models.CASCADE, related_name="progress")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)

    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")

    review_status = models.CharField(max_length=16, choices=ReviewStatus.choices, null=True, blank=True)
    review_notes = models.TextField(blank=True)
    reviewed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    reviewed_at = models.DateTimeField(null=True, blank=True)

    block_reason = models.CharField(max_length=16, choices=BlockReason.choices, blank=True)
    blocked_by = models.ForeignKey("self", on_delete=models.SET_NULL, null=True, blank=True, related_name="cascade_blocked")

    # attribution for rows written or corrected outside the normal flow
    origin = models.CharField(max_length=16, choices=Origin.choices, default=Origin.BOOTSTRAP)
    repaired_at = models.DateTimeField(null=True, blank=True)
    repair_reason = models.CharField(max_length=64, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["application", "milestone"], name="uniq_progress_per_application_milestone"),
        ]
        indexes = [
            models.Index(fields=["application", "status"], name="applicatio_applica_5c8e71_idx"),
            models.Index(fields=["review_status"], name="applicatio_review__a2f6d0_idx"),
        ]

    def __str__(self):
        return f"{self.application_id} {self.milestone} – {self.status}"


class ApplicationStatusHistory(models.Model):
    application = models.ForeignKey(Application, on_delete=models.CASCADE, related_name="status_history")
    from_status = models.CharField(max_length=16, blank=True)
    to_status = models.CharField(max_length=16)
    actor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ("created_at", "id")

    def __str__(self):
        return f"{self.application_id}: {self.from_status} → {self.to_status}"


class FormSubmission(TimeStampedModel):
    """
    Answers an applicant saved for a milestone's form. Only existence and
    count matter to the engine; rendering/validation live elsewhere.
    """
    application = models.ForeignKey(Application, on_delete=models.CASCADE, related_name="submissions")
    milestone = models.ForeignKey(Milestone, on_delete=models.SET_NULL, null=True, blank=True, related_name="submissions")
    form_id = models.CharField(max_length=64, blank=True)
    answers = models.JSONField(default=dict, blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [models.Index(fields=["application", "milestone"], name="applicatio_applica_e93b40_idx")]
