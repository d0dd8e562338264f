from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.preferences.models import AppSettings
from apps.preferences.services import get_quotation_defaults, get_required_accessories

User = get_user_model()


class QuotationDefaultsTests(TestCase):
    def test_defaults_come_from_app_settings(self):
        settings = AppSettings.load()
        settings.default_global_discount = Decimal("5")
        settings.default_gst_percentage = Decimal("12")
        settings.save()

        defaults = get_quotation_defaults()
        self.assertEqual(defaults.default_global_discount, Decimal("5"))
        self.assertEqual(defaults.default_gst_percentage, Decimal("12"))
        self.assertIn("advance payment", defaults.default_terms)

    def test_load_keeps_a_single_row(self):
        AppSettings.load()
        AppSettings().save()
        self.assertEqual(AppSettings.objects.count(), 1)

    def test_required_accessories_are_normalized(self):
        self.assertEqual(
            get_required_accessories(),
            ["skirting", "handles", "sliding mechanism", "t profile"],
        )


class SettingsApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.manager = User.objects.create_user(username="manager", password="manager123", role="MANAGER")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_admin_updates_app_settings(self):
        self.auth_as("admin", "admin123")
        response = self.client.patch(
            "/api/v1/settings/app/",
            {"default_gst_percentage": "12.00", "required_accessories": " handles , skirting ,"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["required_accessories"], "handles,skirting")
        self.assertEqual(AppSettings.load().default_gst_percentage, Decimal("12.00"))
        self.assertTrue(AuditLog.objects.filter(action="settings.app.update").exists())

    def test_percentage_out_of_range_is_rejected(self):
        self.auth_as("admin", "admin123")
        response = self.client.patch("/api/v1/settings/app/", {"default_global_discount": "120"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("default_global_discount", response.data["fields"])

    def test_manager_reads_but_cannot_change_settings(self):
        self.auth_as("manager", "manager123")
        read = self.client.get("/api/v1/settings/company/")
        self.assertEqual(read.status_code, 200)
        self.assertEqual(read.data["name"], "Interior Studio")

        write = self.client.put("/api/v1/settings/company/", {"name": "Other"}, format="json")
        self.assertEqual(write.status_code, 403)
