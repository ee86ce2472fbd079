# backend/calls/models.py
from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone


class CallQuerySet(models.QuerySet):
    def open_for_onboarding(self, now=None):
        """
        The one predicate for "open call": status OPEN, active flag set and,
        when dates are configured, inside the start/end window.
        """
        now = now or timezone.now()
        return (self.filter(status=Call.Status.OPEN, is_active=True)
                .filter(Q(start_date__isnull=True) | Q(start_date__lte=now))
                .filter(Q(end_date__isnull=True) | Q(end_date__gte=now)))

    def current_open(self, now=None) -> "Call | None":
        return self.open_for_onboarding(now).order_by("-created_at", "-id").first()


class Call(models.Model):
    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        OPEN = "OPEN", "Open"
        CLOSED = "CLOSED", "Closed"
        ARCHIVED = "ARCHIVED", "Archived"

    name = models.CharField(max_length=255)
    year = models.PositiveIntegerField()
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.DRAFT)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=False)
    auto_close = models.BooleanField(default=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CallQuerySet.as_manager()

    class Meta:
        indexes = [models.Index(fields=["status", "is_active"], name="calls_call_status_6c1f0e_idx")]

    def __str__(self):
        return f"{self.name} {self.year}"

    def is_open_for_onboarding(self, now=None) -> bool:
        return Call.objects.open_for_onboarding(now).filter(pk=self.pk).exists()


class Milestone(models.Model):
    class WhoCanFill(models.TextChoices):
        APPLICANT = "APPLICANT", "Applicant"
        STAFF = "STAFF", "Staff"

    class Status(models.TextChoices):
        ACTIVE = "ACTIVE", "Active"
        INACTIVE = "INACTIVE", "Inactive"

    call = models.ForeignKey(Call, on_delete=models.CASCADE, related_name="milestones")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    # No DB unique constraint: a duplicated order_index is surfaced by the
    # progression engine as an invariant violation.
    order_index = models.IntegerField()
    required = models.BooleanField(default=True)
    requires_review = models.BooleanField(default=False)
    who_can_fill = models.CharField(max_length=16, choices=WhoCanFill.choices, default=WhoCanFill.APPLICANT)
    form_id = models.CharField(max_length=64, blank=True, default="")
    start_date = models.DateTimeField(null=True, blank=True)
    due_date = models.DateTimeField(null=True, blank=True)
    # display only: progress rows are seeded for every milestone of the call
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("call", "order_index")
        indexes = [models.Index(fields=["call", "order_index"], name="calls_miles_call_id_4b2a9d_idx")]

    def __str__(self):
        return f"[{self.order_index}] {self.name}"

    def clean(self):
        clash = Milestone.objects.filter(call_id=self.call_id, order_index=self.order_index)
        if self.pk:
            clash = clash.exclude(pk=self.pk)
        if clash.exists():
            raise ValidationError({"order_index": "order_index must be unique within a call"})

    @property
    def needs_form_submission(self) -> bool:
        return self.who_can_fill == self.WhoCanFill.APPLICANT and bool(self.form_id)
