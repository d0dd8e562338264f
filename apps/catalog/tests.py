from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.catalog.models import AccessoryCatalog

User = get_user_model()


class AccessoryCatalogApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.designer = User.objects.create_user(username="designer", password="designer123", role="DESIGNER")
        call_command("seed_accessory_catalog", stdout=StringIO())

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_seed_is_idempotent(self):
        out = StringIO()
        call_command("seed_accessory_catalog", stdout=out)
        self.assertIn("items_created=0", out.getvalue())
        self.assertEqual(AccessoryCatalog.objects.count(), 5)

    def test_filter_by_category_and_query(self):
        self.auth_as("designer", "designer123")
        handles = self.client.get("/api/v1/accessory-catalog/?category=handle")
        self.assertEqual(handles.status_code, 200)
        self.assertEqual({row["code"] for row in handles.data["results"]}, {"LH-101", "LH-203"})

        searched = self.client.get("/api/v1/accessory-catalog/?q=spice")
        self.assertEqual([row["code"] for row in searched.data["results"]], ["LK-305"])

    def test_duplicate_code_is_rejected(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            "/api/v1/accessory-catalog/",
            {"category": "handle", "code": "LH-101", "name": "Copy", "selling_price": "10.00"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("code", response.data["fields"])

    def test_price_change_is_audited(self):
        self.auth_as("admin", "admin123")
        item = AccessoryCatalog.objects.get(code="LL-405")
        response = self.client.patch(f"/api/v1/accessory-catalog/{item.id}/", {"selling_price": "1950.00"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(
            AuditLog.objects.filter(action="catalog.accessory.price_change", entity_id=str(item.id)).exists()
        )

    def test_designer_cannot_edit_catalog(self):
        self.auth_as("designer", "designer123")
        response = self.client.post(
            "/api/v1/accessory-catalog/",
            {"category": "light", "code": "LL-999", "name": "Spot", "selling_price": "500.00"},
            format="json",
        )
        self.assertEqual(response.status_code, 403)

    def test_room_specific_price(self):
        item = AccessoryCatalog.objects.get(code="LK-305")
        self.assertEqual(item.price_for("Main Kitchen"), Decimal("3500"))
        self.assertEqual(item.price_for("Master Wardrobe"), Decimal("3500"))
        trouser = AccessoryCatalog.objects.get(code="LW-503")
        self.assertEqual(trouser.price_for("Kids Wardrobe"), Decimal("2600"))
