import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("calls", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Applicant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("full_name", models.CharField(blank=True, max_length=255)),
                ("email", models.EmailField(max_length=254, unique=True)),
                ("account", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="applicant", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="Application",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("status", models.CharField(choices=[("DRAFT", "Draft"), ("SUBMITTED", "Submitted"), ("IN_REVIEW", "In review"), ("NEEDS_FIX", "Needs fix"), ("SELECTED", "Selected"), ("NOT_SELECTED", "Not selected")], default="DRAFT", max_length=16)),
                ("submitted_at", models.DateTimeField(blank=True, null=True)),
                ("applicant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="applications", to="applications.applicant")),
                ("call", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="applications", to="calls.call")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["applicant", "call"], name="applicatio_applica_0d4e2b_idx"),
                    models.Index(fields=["call", "status"], name="applicatio_call_id_7f19c3_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="MilestoneProgress",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("IN_PROGRESS", "In progress"), ("COMPLETED", "Completed"), ("BLOCKED", "Blocked")], default="PENDING", max_length=16)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("review_status", models.CharField(blank=True, choices=[("APPROVED", "Approved"), ("REJECTED", "Rejected")], max_length=16, null=True)),
                ("review_notes", models.TextField(blank=True)),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("block_reason", models.CharField(blank=True, choices=[("CASCADE", "Blocked by an earlier rejection"), ("MANUAL", "Blocked manually")], max_length=16)),
                ("origin", models.CharField(choices=[("BOOTSTRAP", "Application bootstrap"), ("SWEEP", "Reconciliation sweep")], default="BOOTSTRAP", max_length=16)),
                ("repaired_at", models.DateTimeField(blank=True, null=True)),
                ("repair_reason", models.CharField(blank=True, max_length=64)),
                ("application", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="progress", to="applications.application")),
                ("blocked_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="cascade_blocked", to="applications.milestoneprogress")),
                ("completed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("milestone", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="progress", to="calls.milestone")),
                ("reviewed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["application", "status"], name="applicatio_applica_5c8e71_idx"),
                    models.Index(fields=["review_status"], name="applicatio_review__a2f6d0_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("application", "milestone"), name="uniq_progress_per_application_milestone"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ApplicationStatusHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("from_status", models.CharField(blank=True, max_length=16)),
                ("to_status", models.CharField(max_length=16)),
                ("reason", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("actor", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("application", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="status_history", to="applications.application")),
            ],
            options={
                "ordering": ("created_at", "id"),
            },
        ),
        migrations.CreateModel(
            name="FormSubmission",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("form_id", models.CharField(blank=True, max_length=64)),
                ("answers", models.JSONField(blank=True, default=dict)),
                ("submitted_at", models.DateTimeField(blank=True, null=True)),
                ("application", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="submissions", to="applications.application")),
                ("milestone", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="submissions", to="calls.milestone")),
            ],
            options={
                "indexes": [models.Index(fields=["application", "milestone"], name="applicatio_applica_e93b40_idx")],
            },
        ),
    ]
