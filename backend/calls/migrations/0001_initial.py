import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Call",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("year", models.PositiveIntegerField()),
                ("status", models.CharField(choices=[("DRAFT", "Draft"), ("OPEN", "Open"), ("CLOSED", "Closed"), ("ARCHIVED", "Archived")], default="DRAFT", max_length=16)),
                ("start_date", models.DateTimeField(blank=True, null=True)),
                ("end_date", models.DateTimeField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=False)),
                ("auto_close", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "indexes": [models.Index(fields=["status", "is_active"], name="calls_call_status_6c1f0e_idx")],
            },
        ),
        migrations.CreateModel(
            name="Milestone",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("order_index", models.IntegerField()),
                ("required", models.BooleanField(default=True)),
                ("requires_review", models.BooleanField(default=False)),
                ("who_can_fill", models.CharField(choices=[("APPLICANT", "Applicant"), ("STAFF", "Staff")], default="APPLICANT", max_length=16)),
                ("form_id", models.CharField(blank=True, default="", max_length=64)),
                ("start_date", models.DateTimeField(blank=True, null=True)),
                ("due_date", models.DateTimeField(blank=True, null=True)),
                ("status", models.CharField(choices=[("ACTIVE", "Active"), ("INACTIVE", "Inactive")], default="ACTIVE", max_length=16)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("call", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="milestones", to="calls.call")),
            ],
            options={
                "ordering": ("call", "order_index"),
                "indexes": [models.Index(fields=["call", "order_index"], name="calls_miles_call_id_4b2a9d_idx")],
            },
        ),
    ]
