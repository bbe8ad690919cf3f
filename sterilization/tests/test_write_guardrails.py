# sterilization/tests/test_write_guardrails.py

from django.contrib.auth.models import User
from django.core.exceptions import PermissionDenied
from django.test import TestCase
from rest_framework.test import APIClient

from sterilization.models import InstrumentBox, UserRole, WorkflowLogEntry
from sterilization.permissions import effective_roles, normalize_role
from sterilization.services import workflow


class WriteGuardrailTests(TestCase):
    """
    Workflow-controlled fields can only change through the workflow
    services, and the workflow log is append-only.
    """

    def setUp(self):
        self.client = APIClient()

        self.user = User.objects.create_user(username="op", password="pass")
        UserRole.objects.create(user=self.user, role=UserRole.INSTRUMENTISTE)
        self.client.force_authenticate(user=self.user)

        self.box = InstrumentBox.objects.create(box_code="g-1", name="Boîte garde")

    def test_box_code_is_upper_cased_on_save(self):
        self.assertEqual(self.box.box_code, "G-1")

    def test_direct_step_change_is_blocked(self):
        self.box.current_step = "storage"
        with self.assertRaises(PermissionDenied):
            self.box.save()

        self.box.refresh_from_db()
        self.assertIsNone(self.box.current_step)

    def test_direct_step_change_with_bypass(self):
        self.box.current_step = "cleaning"
        self.box.save(_workflow_bypass=True)

        self.box.refresh_from_db()
        self.assertEqual(self.box.current_step, "cleaning")

    def test_non_workflow_fields_stay_editable(self):
        self.box.name = "Boîte renommée"
        self.box.save()

        self.box.refresh_from_db()
        self.assertEqual(self.box.name, "Boîte renommée")

    def test_log_entries_are_immutable(self):
        result = workflow.advance("G-1", self.user)
        entry = WorkflowLogEntry.objects.get(pk=result.log.pk)

        entry.notes = "rewritten"
        with self.assertRaises(PermissionDenied):
            entry.save()
        with self.assertRaises(PermissionDenied):
            entry.delete()

        self.assertEqual(WorkflowLogEntry.objects.get(pk=entry.pk).notes, "")

    def test_box_with_history_is_protected_from_hard_delete(self):
        from django.db.models import ProtectedError

        workflow.advance("G-1", self.user)
        with self.assertRaises(ProtectedError):
            self.box.delete()

    def test_api_has_no_box_update(self):
        res = self.client.patch(
            f"/sterilization/boxes/{self.box.pk}/",
            {"current_step": "storage"},
            format="json",
        )
        self.assertEqual(res.status_code, 405)


class RoleNormalizationTests(TestCase):
    def test_aliases(self):
        self.assertEqual(normalize_role("admin"), UserRole.ADMIN)
        self.assertEqual(normalize_role("Superuser"), UserRole.ADMIN)
        self.assertEqual(normalize_role("technician"), UserRole.INSTRUMENTISTE)
        self.assertEqual(normalize_role("instrumentiste"), UserRole.INSTRUMENTISTE)
        self.assertEqual(normalize_role("guest"), UserRole.USER)

    def test_effective_roles(self):
        plain = User.objects.create_user(username="plain", password="pass")
        self.assertEqual(effective_roles(plain), set())

        root = User.objects.create_superuser(username="root", email="r@example.org", password="pass")
        self.assertEqual(effective_roles(root), {UserRole.ADMIN})
