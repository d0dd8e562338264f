from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.customers.models import Customer, CustomerStage, FollowUp
from apps.preferences.services import QuotationDefaults
from apps.quotations.services import create_quotation
from apps.sales.models import CustomerPayment

User = get_user_model()


class CustomerApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.viewer = User.objects.create_user(username="viewer", password="viewer123", role="VIEWER")
        self.customer = Customer.objects.create(name="Asha Rao", phone="9800000001", email="asha@example.com")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_create_and_search(self):
        self.auth_as("admin", "admin123")
        created = self.client.post(
            "/api/v1/customers/",
            {"name": "  Vikram Shah ", "phone": "9800000002", "address": "12 MG Road"},
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["name"], "Vikram Shah")
        self.assertEqual(created.data["stage"], CustomerStage.NEW)
        self.assertTrue(AuditLog.objects.filter(action="customer.create", entity_id=created.data["id"]).exists())

        found = self.client.get("/api/v1/customers/?q=vikram")
        self.assertEqual(found.data["count"], 1)
        by_phone = self.client.get("/api/v1/customers/?q=0000001")
        self.assertEqual(by_phone.data["results"][0]["id"], str(self.customer.id))

    def test_phone_is_required(self):
        self.auth_as("admin", "admin123")
        response = self.client.post("/api/v1/customers/", {"name": "No Phone", "phone": "  "}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("phone", response.data["fields"])

    def test_viewer_is_read_only(self):
        self.auth_as("viewer", "viewer123")
        self.assertEqual(self.client.get("/api/v1/customers/").status_code, 200)
        response = self.client.post("/api/v1/customers/", {"name": "X", "phone": "1"}, format="json")
        self.assertEqual(response.status_code, 403)

    def test_stage_change_is_audited(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(f"/api/v1/customers/{self.customer.id}/stage/", {"stage": "warm"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["stage"], CustomerStage.WARM)
        entry = AuditLog.objects.get(action="customer.stage", entity_id=str(self.customer.id))
        self.assertEqual(entry.payload, {"from": "new", "to": "warm"})

        filtered = self.client.get("/api/v1/customers/?stage=warm")
        self.assertEqual(filtered.data["count"], 1)

        invalid = self.client.post(f"/api/v1/customers/{self.customer.id}/stage/", {"stage": "vip"}, format="json")
        self.assertEqual(invalid.status_code, 400)

    def test_delete_blocked_while_referenced(self):
        create_quotation(customer=self.customer, defaults=QuotationDefaults(), actor=self.admin)
        self.auth_as("admin", "admin123")

        response = self.client.delete(f"/api/v1/customers/{self.customer.id}/")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "customer_in_use")
        self.assertTrue(Customer.objects.filter(pk=self.customer.pk).exists())

    def test_delete_unreferenced_customer(self):
        self.auth_as("admin", "admin123")
        response = self.client.delete(f"/api/v1/customers/{self.customer.id}/")
        self.assertEqual(response.status_code, 204)
        self.assertTrue(AuditLog.objects.filter(action="customer.delete", entity_id=str(self.customer.id)).exists())

    def test_ledger_lists_payments(self):
        CustomerPayment.objects.create(
            customer=self.customer,
            amount=Decimal("1500.00"),
            payment_method="cash",
            receipt_number="CP-2026-0001",
        )
        self.auth_as("viewer", "viewer123")
        response = self.client.get(f"/api/v1/customers/{self.customer.id}/ledger/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["customer"]["name"], "Asha Rao")
        self.assertEqual(response.data["sales_orders"], [])
        self.assertEqual(response.data["payments"][0]["receipt_number"], "CP-2026-0001")


class FollowUpApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.customer = Customer.objects.create(name="Asha Rao", phone="9800000001")
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": "admin", "password": "admin123"},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_create_sets_author(self):
        today = timezone.localdate()
        response = self.client.post(
            "/api/v1/follow-ups/",
            {
                "customer": str(self.customer.id),
                "notes": "Shared kitchen layout",
                "interaction_date": today.isoformat(),
                "next_follow_up_date": (today + timedelta(days=3)).isoformat(),
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["user"], self.admin.id)
        self.assertEqual(response.data["customer_name"], "Asha Rao")

    def test_next_date_cannot_precede_interaction(self):
        today = timezone.localdate()
        response = self.client.post(
            "/api/v1/follow-ups/",
            {
                "customer": str(self.customer.id),
                "notes": "Call back",
                "interaction_date": today.isoformat(),
                "next_follow_up_date": (today - timedelta(days=1)).isoformat(),
            },
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("next_follow_up_date", response.data["fields"])

    def test_pending_and_complete(self):
        today = timezone.localdate()
        older = FollowUp.objects.create(
            customer=self.customer,
            notes="Send revised quote",
            interaction_date=today - timedelta(days=10),
            next_follow_up_date=today - timedelta(days=2),
        )
        due_today = FollowUp.objects.create(
            customer=self.customer,
            notes="Site visit",
            interaction_date=today - timedelta(days=5),
            next_follow_up_date=today,
        )
        FollowUp.objects.create(
            customer=self.customer,
            notes="Later",
            interaction_date=today,
            next_follow_up_date=today + timedelta(days=7),
        )

        pending = self.client.get("/api/v1/follow-ups/pending/")
        self.assertEqual(pending.status_code, 200)
        self.assertEqual([row["id"] for row in pending.data["results"]], [str(older.id), str(due_today.id)])

        done = self.client.post(f"/api/v1/follow-ups/{older.id}/complete/", {}, format="json")
        self.assertEqual(done.status_code, 200)
        self.assertTrue(done.data["completed"])
        self.assertTrue(AuditLog.objects.filter(action="follow_up.complete", entity_id=str(older.id)).exists())

        pending = self.client.get("/api/v1/follow-ups/pending/")
        self.assertEqual([row["id"] for row in pending.data["results"]], [str(due_today.id)])
