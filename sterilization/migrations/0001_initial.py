# sterilization/migrations/0001_initial.py

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


STEP_CHOICES = [
    ("reception", "Réception"),
    ("pre_disinfection", "Pré-désinfection"),
    ("cleaning", "Nettoyage"),
    ("conditioning", "Conditionnement"),
    ("sterilization", "Stérilisation"),
    ("control", "Contrôle"),
    ("storage", "Stockage"),
    ("distribution", "Distribution"),
]

STERILIZATION_TYPE_CHOICES = [
    ("vapeur", "Vapeur d'eau"),
    ("plasma", "Plasma H2O2"),
    ("oxyde_ethylene", "Oxyde d'éthylène"),
    ("radiation", "Rayonnement"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Service",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("code", models.CharField(max_length=30, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="InstrumentBox",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("box_code", models.CharField(max_length=100)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("current_step", models.CharField(blank=True, choices=STEP_CHOICES, default=None, editable=False, max_length=32, null=True)),
                ("sterilization_type", models.CharField(blank=True, choices=STERILIZATION_TYPE_CHOICES, max_length=32, null=True)),
                ("last_sterilized_at", models.DateTimeField(blank=True, editable=False, null=True)),
                ("next_sterilization_due", models.DateTimeField(blank=True, null=True)),
                ("assigned_bloc", models.CharField(blank=True, editable=False, max_length=255, null=True)),
                ("version", models.PositiveIntegerField(default=0, editable=False)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("assigned_service", models.ForeignKey(blank=True, editable=False, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="assigned_boxes", to="sterilization.service")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="instrument_boxes_created", to=settings.AUTH_USER_MODEL)),
                ("service", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="owned_boxes", to="sterilization.service")),
            ],
            options={
                "ordering": ["name", "id"],
                "indexes": [models.Index(fields=["is_active", "current_step"], name="box_active_step_idx")],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("is_active", True)), fields=("box_code",), name="unique_active_box_code"),
                    models.CheckConstraint(condition=models.Q(("box_code", ""), _negated=True), name="box_code_not_blank"),
                ],
            },
        ),
        migrations.CreateModel(
            name="UserRole",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("role", models.CharField(choices=[("ADMIN", "Administrator"), ("INSTRUMENTISTE", "Instrumentiste"), ("USER", "User")], max_length=32)),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="sterilization_roles", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["user_id", "role"],
                "unique_together": {("user", "role")},
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("action", models.CharField(max_length=255)),
                ("details", models.JSONField(blank=True, default=dict)),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["action", "created_at"], name="audit_action_time_idx")],
            },
        ),
        migrations.CreateModel(
            name="WorkflowLogEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("from_step", models.CharField(blank=True, choices=STEP_CHOICES, max_length=32, null=True)),
                ("to_step", models.CharField(choices=STEP_CHOICES, max_length=32)),
                ("sterilization_type", models.CharField(blank=True, choices=STERILIZATION_TYPE_CHOICES, max_length=32, null=True)),
                ("validation_result", models.CharField(blank=True, choices=[("passed", "Passed"), ("failed", "Failed")], max_length=16, null=True)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("box", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="workflow_log", to="sterilization.instrumentbox")),
                ("performed_by", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="sterilization_transitions", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "workflow log entry",
                "verbose_name_plural": "workflow log entries",
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["box", "created_at"], name="wflog_box_time_idx")],
            },
        ),
        migrations.CreateModel(
            name="BoxAssignment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("bloc", models.CharField(blank=True, max_length=255, null=True)),
                ("status", models.CharField(choices=[("requested", "Requested"), ("assigned", "Assigned"), ("in_use", "In use"), ("returned", "Returned")], db_index=True, default="requested", max_length=16)),
                ("requested_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("assigned_at", models.DateTimeField(blank=True, null=True)),
                ("returned_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("assigned_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="box_assignments_made", to=settings.AUTH_USER_MODEL)),
                ("box", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="assignments", to="sterilization.instrumentbox")),
                ("returned_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="box_assignments_returned", to=settings.AUTH_USER_MODEL)),
                ("service", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="assignments", to="sterilization.service")),
            ],
            options={
                "ordering": ["-requested_at", "-id"],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("status__in", ["requested", "assigned", "in_use"])), fields=("box",), name="one_open_assignment_per_box"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SterilityAlert",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sterilized_at", models.DateTimeField()),
                ("expired_at", models.DateTimeField()),
                ("detected_at", models.DateTimeField(auto_now_add=True)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("box", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="sterility_alerts", to="sterilization.instrumentbox")),
            ],
            options={
                "ordering": ("-detected_at",),
                "unique_together": {("box", "sterilized_at")},
            },
        ),
    ]
