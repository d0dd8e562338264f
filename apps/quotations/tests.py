from decimal import Decimal
from io import StringIO
from types import SimpleNamespace
from datetime import date, timedelta

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.catalog.models import AccessoryCatalog
from apps.customers.models import Customer
from apps.preferences.models import AppSettings
from apps.preferences.services import QuotationDefaults
from apps.quotations import pricing
from apps.quotations.errors import InvalidTransition, ValidationFailed
from apps.quotations.models import (
    InstallationCharge,
    Milestone,
    MilestoneStatus,
    Quotation,
    QuotationStatus,
    Room,
    RoomAccessory,
    RoomProduct,
)
from apps.quotations.services import create_quotation, refresh_room_totals
from apps.quotations.workflow import TRANSITIONS, accessory_warnings, transition_status, validate_for_save

User = get_user_model()


def line(selling_price, quantity, discount="0", discount_type="percentage"):
    return SimpleNamespace(
        selling_price=Decimal(selling_price), discount=Decimal(discount), discount_type=discount_type, quantity=quantity
    )


def expected_final_price(rooms_discounted, global_discount, handling, gst):
    base = sum(rooms_discounted, Decimal("0"))
    return (base * (1 - global_discount / Decimal("100")) + handling) * (1 + gst / Decimal("100"))


class PricingTests(SimpleTestCase):
    def test_reference_example(self):
        quotation = SimpleNamespace(
            global_discount=Decimal("10"), installation_handling=Decimal("500"), gst_percentage=Decimal("18")
        )
        rooms = [SimpleNamespace(selling_price=Decimal("12000"), discounted_price=Decimal("10000"))]
        totals = pricing.compute_quotation_totals(quotation, rooms)

        self.assertEqual(totals.total_selling_price, Decimal("12000"))
        self.assertEqual(totals.total_discounted_price, Decimal("10000"))
        self.assertEqual(totals.after_discount, Decimal("9000"))
        self.assertEqual(totals.taxable_amount, Decimal("9500"))
        self.assertEqual(totals.gst_amount, Decimal("1710"))
        self.assertEqual(totals.final_price, Decimal("11210"))
        self.assertEqual(totals.total_installation_charges, Decimal("0"))

    def test_zero_rooms_still_charges_handling_and_gst(self):
        quotation = SimpleNamespace(
            global_discount=Decimal("5"), installation_handling=Decimal("500"), gst_percentage=Decimal("18")
        )
        totals = pricing.compute_quotation_totals(quotation, [])
        self.assertEqual(totals.total_discounted_price, Decimal("0"))
        self.assertEqual(totals.final_price, Decimal("590"))

    def test_final_price_matches_closed_form(self):
        cases = [
            (["1999.99", "250.50"], "7.5", "0", "18"),
            (["0"], "0", "0", "0"),
            (["333.3333", "0.0001"], "100", "1200", "28"),
            (["10"], "12.25", "99.99", "5"),
        ]
        for discounted, global_discount, handling, gst in cases:
            with self.subTest(discounted=discounted):
                rooms = [SimpleNamespace(selling_price=Decimal(d), discounted_price=Decimal(d)) for d in discounted]
                quotation = SimpleNamespace(
                    global_discount=Decimal(global_discount),
                    installation_handling=Decimal(handling),
                    gst_percentage=Decimal(gst),
                )
                totals = pricing.compute_quotation_totals(quotation, rooms)
                expected = expected_final_price(
                    [Decimal(d) for d in discounted], Decimal(global_discount), Decimal(handling), Decimal(gst)
                )
                self.assertEqual(totals.final_price.quantize(Decimal("0.0001")), expected.quantize(Decimal("0.0001")))

    def test_line_discounted_price(self):
        self.assertEqual(pricing.compute_line_discounted_price(Decimal("1000"), Decimal("10")), Decimal("900"))
        self.assertEqual(pricing.compute_line_discounted_price(Decimal("1000"), Decimal("0")), Decimal("1000"))
        self.assertEqual(pricing.compute_line_discounted_price(Decimal("1000"), None), Decimal("1000"))
        self.assertEqual(pricing.compute_line_discounted_price(Decimal("1000"), Decimal("250"), "fixed"), Decimal("750"))
        self.assertEqual(pricing.compute_line_discounted_price(Decimal("1000"), Decimal("1500"), "fixed"), Decimal("0"))
        self.assertEqual(pricing.compute_line_discounted_price(Decimal("1000"), Decimal("150")), Decimal("0"))

    def test_room_totals_multiply_by_quantity(self):
        totals = pricing.compute_room_totals(
            [line("4000", 2, "10")],
            [line("500", 4), line("120.50", 3, "20.25", "fixed")],
            [SimpleNamespace(amount=Decimal("1300")), SimpleNamespace(amount=Decimal("200.50"))],
        )
        self.assertEqual(totals.selling_price, Decimal("10361.50"))
        self.assertEqual(totals.discounted_price, Decimal("9500.75"))
        self.assertEqual(totals.installation_amount, Decimal("1500.50"))
        self.assertEqual(pricing.compute_room_totals([], []).selling_price, Decimal("0"))

    def test_room_totals_ignore_stored_line_rounding(self):
        stale = SimpleNamespace(
            selling_price=Decimal("1999.99"),
            discount=Decimal("12.25"),
            discount_type="percentage",
            discounted_price=Decimal("1754.9912"),
            quantity=1000,
        )
        totals = pricing.compute_room_totals([stale], [])
        self.assertEqual(totals.discounted_price, Decimal("1754991.225"))

    def test_installation_area_and_amount(self):
        self.assertEqual(pricing.compute_installation_area(Decimal("1524"), Decimal("609.6")), Decimal("10"))
        self.assertEqual(
            pricing.compute_installation_amount(Decimal("1524"), Decimal("609.6")), Decimal("1300")
        )
        charges = [SimpleNamespace(amount=Decimal("1300")), SimpleNamespace(amount=Decimal("200.50"))]
        self.assertEqual(pricing.compute_installation_total(charges), Decimal("1500.50"))


class QuotationFixtureMixin:
    def make_quotation(self, handling="500", global_discount="10", with_accessory=True):
        quotation = create_quotation(
            customer=self.customer,
            defaults=QuotationDefaults(),
            actor=self.admin,
            installation_handling=Decimal(handling),
            global_discount=Decimal(global_discount),
        )
        room = Room.objects.create(quotation=quotation, name="Kitchen")
        RoomProduct.objects.create(room=room, name="Base cabinet", quantity=2, selling_price=Decimal("4000"))
        if with_accessory:
            RoomAccessory.objects.create(room=room, name="Handles", quantity=4, selling_price=Decimal("500"))
        InstallationCharge.objects.create(room=room, cabinet_type="Base", amount=Decimal("1500"))
        refresh_room_totals(room)
        quotation.refresh_from_db()
        return quotation, room


class WorkflowTests(QuotationFixtureMixin, TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.customer = Customer.objects.create(name="Asha Rao", phone="9800000001")

    def test_totals_follow_line_items(self):
        quotation, room = self.make_quotation()
        room.refresh_from_db()
        self.assertEqual(room.selling_price, Decimal("10000"))
        self.assertEqual(room.discounted_price, Decimal("10000"))
        self.assertEqual(room.installation_amount, Decimal("1500"))
        self.assertEqual(quotation.final_price, Decimal("11210"))
        self.assertEqual(quotation.gst_amount, Decimal("1710"))
        self.assertEqual(quotation.total_installation_charges, Decimal("1500"))

    def test_quotation_totals_use_unrounded_line_prices(self):
        quotation = create_quotation(customer=self.customer, defaults=QuotationDefaults(), actor=self.admin)
        room = Room.objects.create(quotation=quotation, name="Kitchen")
        product = RoomProduct.objects.create(
            room=room, name="Base cabinet", quantity=1000, selling_price=Decimal("1999.99"), discount=Decimal("12.25")
        )
        refresh_room_totals(room)

        product.refresh_from_db()
        room.refresh_from_db()
        quotation.refresh_from_db()
        self.assertEqual(product.discounted_price, Decimal("1754.9912"))
        self.assertEqual(room.discounted_price, Decimal("1754991.2250"))
        self.assertEqual(quotation.total_discounted_price, Decimal("1754991.2250"))
        self.assertEqual(quotation.final_price, Decimal("2070889.6455"))

    def test_missing_accessory_blocks_save_and_keeps_status(self):
        quotation, room = self.make_quotation(with_accessory=False)
        result = transition_status(quotation, QuotationStatus.SAVED, actor=self.admin)

        self.assertIsInstance(result, ValidationFailed)
        self.assertTrue(result.has_issue("missing_accessory", room.id))
        quotation.refresh_from_db()
        self.assertEqual(quotation.status, QuotationStatus.DRAFT)

    def test_issues_are_collected_not_fail_fast(self):
        quotation = create_quotation(customer=self.customer, defaults=QuotationDefaults(), actor=self.admin)
        Room.objects.create(quotation=quotation, name="Bedroom")
        issue_types = [issue.type for issue in validate_for_save(quotation)]
        self.assertEqual(
            issue_types,
            ["room_zero_value", "missing_product", "missing_accessory", "missing_installation", "missing_handling_charge"],
        )

    def test_quotation_without_rooms(self):
        quotation = create_quotation(customer=self.customer, defaults=QuotationDefaults(), actor=self.admin)
        issues = validate_for_save(quotation)
        self.assertEqual([issue.type for issue in issues], ["room_zero_value", "missing_handling_charge"])
        self.assertEqual(issues[0].message, "Quotation must have at least one room.")
        self.assertIsNone(issues[0].room_id)

    def test_valid_path_to_approved(self):
        quotation, _ = self.make_quotation()
        saved = transition_status(quotation, QuotationStatus.SAVED, actor=self.admin)
        self.assertEqual(saved.status, QuotationStatus.SAVED)
        approved = transition_status(saved, QuotationStatus.APPROVED, actor=self.admin)
        self.assertEqual(approved.status, QuotationStatus.APPROVED)
        self.assertEqual(
            AuditLog.objects.filter(action="quotation.status", entity_id=str(quotation.id)).count(),
            2,
        )

    def test_approval_only_from_saved(self):
        quotation, _ = self.make_quotation()
        result = transition_status(quotation, QuotationStatus.APPROVED)
        self.assertIsInstance(result, InvalidTransition)
        self.assertEqual(result.current, QuotationStatus.DRAFT)

        transition_status(quotation, QuotationStatus.SAVED)
        transition_status(quotation, QuotationStatus.SENT)
        result = transition_status(quotation, QuotationStatus.APPROVED)
        self.assertIsInstance(result, InvalidTransition)
        quotation.refresh_from_db()
        self.assertEqual(quotation.status, QuotationStatus.SENT)

    def test_converted_is_terminal(self):
        quotation, _ = self.make_quotation()
        Quotation.objects.filter(pk=quotation.pk).update(status=QuotationStatus.CONVERTED)
        for target in QuotationStatus.values:
            with self.subTest(target=target):
                result = transition_status(quotation, target)
                self.assertIsInstance(result, InvalidTransition)
        quotation.refresh_from_db()
        self.assertEqual(quotation.status, QuotationStatus.CONVERTED)

    def test_no_edge_leads_to_converted(self):
        self.assertFalse(any(QuotationStatus.CONVERTED in edge for edge in TRANSITIONS))

    def test_unknown_status_is_an_invalid_transition(self):
        quotation, _ = self.make_quotation()
        result = transition_status(quotation, "archived")
        self.assertIsInstance(result, InvalidTransition)
        self.assertEqual(result.requested, "archived")

    def test_accessory_warnings(self):
        quotation, _ = self.make_quotation()
        warnings = accessory_warnings(quotation, ["skirting", "handles", "t profile"])
        self.assertEqual(len(warnings), 1)
        self.assertEqual(warnings[0]["type"], "check_accessories")
        self.assertEqual(warnings[0]["accessories"], ["skirting", "t profile"])
        self.assertEqual(accessory_warnings(quotation, ["handles"]), [])

    def test_expire_command_only_touches_past_validity(self):
        quotation, _ = self.make_quotation()
        transition_status(quotation, QuotationStatus.SAVED)
        Quotation.objects.filter(pk=quotation.pk).update(valid_until=timezone.localdate() - timedelta(days=1))
        fresh, _ = self.make_quotation()
        transition_status(fresh, QuotationStatus.SAVED)

        out = StringIO()
        call_command("expire_quotations", stdout=out)
        self.assertIn("Expired quotations: 1", out.getvalue())
        quotation.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(quotation.status, QuotationStatus.EXPIRED)
        self.assertEqual(fresh.status, QuotationStatus.SAVED)


class QuotationApiTests(QuotationFixtureMixin, APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.designer = User.objects.create_user(username="designer", password="designer123", role="DESIGNER")
        self.viewer = User.objects.create_user(username="viewer", password="viewer123", role="VIEWER")
        self.customer = Customer.objects.create(name="Asha Rao", phone="9800000001")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_create_uses_app_defaults(self):
        settings = AppSettings.load()
        settings.default_gst_percentage = Decimal("12")
        settings.default_global_discount = Decimal("5")
        settings.save()

        self.auth_as("designer", "designer123")
        response = self.client.post(
            "/api/v1/quotations/",
            {"customer": str(self.customer.id), "title": "Kitchen remodel", "installation_handling": "500.00"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], QuotationStatus.DRAFT)
        self.assertEqual(response.data["gst_percentage"], "12.00")
        self.assertEqual(response.data["global_discount"], "5.00")
        self.assertTrue(response.data["quotation_number"].startswith(f"Q-{timezone.localdate().year}-"))
        self.assertEqual(Decimal(response.data["final_price"]), Decimal("560"))
        self.assertIn("advance payment", response.data["terms"])

    def test_explicit_inputs_override_defaults(self):
        self.auth_as("designer", "designer123")
        response = self.client.post(
            "/api/v1/quotations/",
            {"customer": str(self.customer.id), "gst_percentage": "0.00", "terms": "Custom"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["gst_percentage"], "0.00")
        self.assertEqual(response.data["terms"], "Custom")

    def test_viewer_cannot_create(self):
        self.auth_as("viewer", "viewer123")
        response = self.client.post("/api/v1/quotations/", {"customer": str(self.customer.id)}, format="json")
        self.assertEqual(response.status_code, 403)

    def test_line_item_mutations_recalculate(self):
        quotation, room = self.make_quotation()
        self.auth_as("designer", "designer123")

        created = self.client.post(
            "/api/v1/room-products/",
            {
                "room": str(room.id),
                "name": "Tall unit",
                "quantity": 1,
                "selling_price": "2000.00",
                "discount": "10",
                "discount_type": "percentage",
            },
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(Decimal(created.data["discounted_price"]), Decimal("1800"))
        room.refresh_from_db()
        self.assertEqual(room.selling_price, Decimal("12000"))
        self.assertEqual(room.discounted_price, Decimal("11800"))

        updated = self.client.patch(f"/api/v1/room-products/{created.data['id']}/", {"quantity": 2}, format="json")
        self.assertEqual(updated.status_code, 200)
        room.refresh_from_db()
        self.assertEqual(room.discounted_price, Decimal("13600"))

        deleted = self.client.delete(f"/api/v1/room-products/{created.data['id']}/")
        self.assertEqual(deleted.status_code, 204)
        room.refresh_from_db()
        quotation.refresh_from_db()
        self.assertEqual(room.discounted_price, Decimal("10000"))
        self.assertEqual(quotation.final_price, Decimal("11210"))

    def test_percentage_discount_above_hundred_is_rejected(self):
        _, room = self.make_quotation()
        self.auth_as("designer", "designer123")
        response = self.client.post(
            "/api/v1/room-products/",
            {"room": str(room.id), "name": "X", "quantity": 1, "selling_price": "100.00", "discount": "120"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("discount", response.data["fields"])

    def test_accessory_from_catalog_and_installation_from_dimensions(self):
        quotation, room = self.make_quotation()
        Room.objects.filter(pk=room.pk).update(name="Main Kitchen")
        item = AccessoryCatalog.objects.create(
            category="kitchen",
            code="LK-305",
            name="Pull-Out Spice Rack",
            selling_price=Decimal("3500"),
            kitchen_price=Decimal("3300"),
        )
        self.auth_as("designer", "designer123")

        accessory = self.client.post(
            "/api/v1/room-accessories/",
            {"room": str(room.id), "catalog_item": str(item.id), "quantity": 1},
            format="json",
        )
        self.assertEqual(accessory.status_code, 201)
        self.assertEqual(accessory.data["name"], "Pull-Out Spice Rack")
        self.assertEqual(accessory.data["selling_price"], "3300.00")

        charge = self.client.post(
            "/api/v1/installation-charges/",
            {"room": str(room.id), "cabinet_type": "Wall", "width_mm": "1524.00", "height_mm": "609.60"},
            format="json",
        )
        self.assertEqual(charge.status_code, 201)
        self.assertEqual(charge.data["amount"], "1300.00")
        self.assertEqual(Decimal(charge.data["area_sqft"]), Decimal("10"))

        listing = self.client.get(f"/api/v1/quotations/{quotation.id}/installation-charges/")
        self.assertEqual(listing.status_code, 200)
        self.assertEqual(len(listing.data["results"]), 2)
        self.assertEqual(listing.data["total"], "2800.00")

    def test_status_endpoint_reports_validation_issues(self):
        quotation, room = self.make_quotation(with_accessory=False)
        self.auth_as("designer", "designer123")
        response = self.client.post(f"/api/v1/quotations/{quotation.id}/status/", {"status": "saved"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "validation_failed")
        self.assertEqual(response.data["errors"][0]["type"], "missing_accessory")
        self.assertEqual(response.data["errors"][0]["room_id"], str(room.id))

        invalid = self.client.post(f"/api/v1/quotations/{quotation.id}/status/", {"status": "converted"}, format="json")
        self.assertEqual(invalid.status_code, 400)
        self.assertEqual(invalid.data["code"], "invalid_transition")

    def test_failed_approval_names_the_requested_status(self):
        quotation, room = self.make_quotation()
        transition_status(quotation, QuotationStatus.SAVED)
        RoomAccessory.objects.filter(room=room).delete()
        refresh_room_totals(room)
        self.auth_as("designer", "designer123")

        response = self.client.post(
            f"/api/v1/quotations/{quotation.id}/status/", {"status": "approved"}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "validation_failed")
        self.assertEqual(response.data["detail"], "The quotation is not ready to be approved.")
        self.assertEqual(response.data["requested"], "approved")
        quotation.refresh_from_db()
        self.assertEqual(quotation.status, QuotationStatus.SAVED)

    def test_patching_installation_charge_keeps_explicit_amount(self):
        _, room = self.make_quotation()
        self.auth_as("designer", "designer123")
        created = self.client.post(
            "/api/v1/installation-charges/",
            {"room": str(room.id), "cabinet_type": "Loft", "amount": "5000.00"},
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["amount"], "5000.00")

        relabelled = self.client.patch(
            f"/api/v1/installation-charges/{created.data['id']}/", {"cabinet_type": "Wall"}, format="json"
        )
        self.assertEqual(relabelled.status_code, 200)
        self.assertEqual(relabelled.data["amount"], "5000.00")
        room.refresh_from_db()
        self.assertEqual(room.installation_amount, Decimal("6500"))

        resized = self.client.patch(
            f"/api/v1/installation-charges/{created.data['id']}/",
            {"width_mm": "1524.00", "height_mm": "609.60"},
            format="json",
        )
        self.assertEqual(resized.status_code, 200)
        self.assertEqual(resized.data["amount"], "1300.00")

    def test_status_endpoint_moves_valid_quotation(self):
        quotation, _ = self.make_quotation()
        self.auth_as("designer", "designer123")
        response = self.client.put(f"/api/v1/quotations/{quotation.id}/status/", {"status": "saved"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "saved")
        self.assertIn("approved", response.data["allowed_transitions"])

    def test_validate_endpoint(self):
        quotation, _ = self.make_quotation()
        self.auth_as("viewer", "viewer123")
        response = self.client.get(f"/api/v1/quotations/{quotation.id}/validate/")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["is_valid"])
        self.assertEqual(response.data["errors"], [])
        self.assertEqual(response.data["warnings"][0]["accessories"], ["skirting", "sliding mechanism", "t profile"])

    def test_delete_only_in_draft(self):
        quotation, room = self.make_quotation()
        transition_status(quotation, QuotationStatus.SAVED)
        self.auth_as("admin", "admin123")

        blocked = self.client.delete(f"/api/v1/quotations/{quotation.id}/")
        self.assertEqual(blocked.status_code, 400)
        self.assertEqual(blocked.data["code"], "invalid_state")

        transition_status(quotation, QuotationStatus.DRAFT)
        deleted = self.client.delete(f"/api/v1/quotations/{quotation.id}/")
        self.assertEqual(deleted.status_code, 204)
        self.assertFalse(Room.objects.filter(pk=room.pk).exists())
        self.assertFalse(RoomProduct.objects.filter(room_id=room.pk).exists())

    def test_converted_quotation_is_read_only(self):
        quotation, room = self.make_quotation()
        Quotation.objects.filter(pk=quotation.pk).update(status=QuotationStatus.CONVERTED)
        self.auth_as("admin", "admin123")

        response = self.client.post(
            "/api/v1/room-products/",
            {"room": str(room.id), "name": "Late add", "quantity": 1, "selling_price": "10.00"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_state")

        patch = self.client.patch(f"/api/v1/quotations/{quotation.id}/", {"global_discount": "50"}, format="json")
        self.assertEqual(patch.status_code, 400)
        quotation.refresh_from_db()
        self.assertEqual(quotation.global_discount, Decimal("10"))

    def test_updating_inputs_recalculates_totals(self):
        quotation, _ = self.make_quotation()
        self.auth_as("designer", "designer123")
        response = self.client.patch(
            f"/api/v1/quotations/{quotation.id}/",
            {"global_discount": "0", "installation_handling": "0"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Decimal(response.data["final_price"]), Decimal("11800"))
        self.assertEqual(response.data["summary"]["final_price"], "11800.00")

    def test_summary_spells_amounts_above_a_thousand_crore(self):
        quotation = create_quotation(customer=self.customer, defaults=QuotationDefaults(), actor=self.admin)
        room = Room.objects.create(quotation=quotation, name="Tower fit-out")
        RoomProduct.objects.create(room=room, name="Modules", quantity=10, selling_price=Decimal("2000000000"))
        refresh_room_totals(room)
        self.auth_as("viewer", "viewer123")

        response = self.client.get(f"/api/v1/quotations/{quotation.id}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["summary"]["final_price"], "23600000000.00")
        self.assertEqual(
            response.data["summary"]["final_price_in_words"], "Two Thousand Three Hundred Sixty Crore Rupees Only"
        )

    def test_duplicate_copies_rooms_into_new_draft(self):
        quotation, _ = self.make_quotation()
        transition_status(quotation, QuotationStatus.SAVED)
        self.auth_as("designer", "designer123")

        response = self.client.post(f"/api/v1/quotations/{quotation.id}/duplicate/", {}, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertNotEqual(response.data["id"], str(quotation.id))
        self.assertNotEqual(response.data["quotation_number"], quotation.quotation_number)
        self.assertEqual(response.data["status"], "draft")
        self.assertEqual(len(response.data["rooms"]), 1)
        self.assertEqual(len(response.data["rooms"][0]["products"]), 1)
        self.assertEqual(Decimal(response.data["final_price"]), Decimal("11210"))
        self.assertEqual(Room.objects.filter(quotation=quotation).count(), 1)

    def test_reorder_rooms(self):
        quotation, first = self.make_quotation()
        second = Room.objects.create(quotation=quotation, name="Wardrobe", order=1)
        self.auth_as("designer", "designer123")

        response = self.client.post(
            "/api/v1/rooms/reorder/",
            {"quotation": str(quotation.id), "room_ids": [str(second.id), str(first.id)]},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["name"] for row in response.data], ["Wardrobe", "Kitchen"])

        partial = self.client.post(
            "/api/v1/rooms/reorder/",
            {"quotation": str(quotation.id), "room_ids": [str(second.id)]},
            format="json",
        )
        self.assertEqual(partial.status_code, 400)

    def test_deleting_room_recalculates_quotation(self):
        quotation, room = self.make_quotation()
        self.auth_as("designer", "designer123")
        response = self.client.delete(f"/api/v1/rooms/{room.id}/")
        self.assertEqual(response.status_code, 204)
        quotation.refresh_from_db()
        self.assertEqual(quotation.total_discounted_price, Decimal("0"))
        self.assertEqual(quotation.final_price, Decimal("590"))

    def test_history_lists_audit_entries(self):
        quotation, _ = self.make_quotation()
        transition_status(quotation, QuotationStatus.SAVED, actor=self.admin)
        self.auth_as("viewer", "viewer123")
        response = self.client.get(f"/api/v1/quotations/{quotation.id}/history/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual({row["action"] for row in response.data}, {"quotation.create", "quotation.status"})


class MilestoneApiTests(QuotationFixtureMixin, APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.designer = User.objects.create_user(username="designer", password="designer123", role="DESIGNER")
        self.viewer = User.objects.create_user(username="viewer", password="viewer123", role="VIEWER")
        self.customer = Customer.objects.create(name="Asha Rao", phone="9800000001")
        self.quotation, _ = self.make_quotation()

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def add_milestone(self, title, order=0, **fields):
        return Milestone.objects.create(
            quotation=self.quotation,
            title=title,
            start_date=date(2026, 3, 1),
            end_date=date(2026, 3, 10),
            order=order,
            **fields,
        )

    def test_create_appends_after_highest_order(self):
        self.add_milestone("Site survey", order=5)
        self.auth_as("designer", "designer123")
        response = self.client.post(
            "/api/v1/milestones/",
            {
                "quotation": str(self.quotation.id),
                "title": "Carcass installation",
                "start_date": "2026-03-11",
                "end_date": "2026-03-20",
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["order"], 6)
        self.assertEqual(response.data["status"], MilestoneStatus.PENDING)
        self.assertIsNone(response.data["completed_date"])

    def test_end_date_before_start_is_rejected(self):
        self.auth_as("designer", "designer123")
        response = self.client.post(
            "/api/v1/milestones/",
            {
                "quotation": str(self.quotation.id),
                "title": "Handover",
                "start_date": "2026-04-10",
                "end_date": "2026-04-01",
            },
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("end_date", response.data["fields"])
        self.assertFalse(Milestone.objects.exists())

    def test_status_stamps_and_clears_completed_date(self):
        milestone = self.add_milestone("Site survey")
        self.auth_as("designer", "designer123")
        url = f"/api/v1/milestones/{milestone.id}/status/"

        completed = self.client.post(url, {"status": "completed", "completed_date": "2026-03-09"}, format="json")
        self.assertEqual(completed.status_code, 200)
        self.assertEqual(completed.data["completed_date"], "2026-03-09")

        again = self.client.put(url, {"status": "completed", "completed_date": "2026-03-15"}, format="json")
        self.assertEqual(again.data["completed_date"], "2026-03-09")

        reopened = self.client.post(url, {"status": "in_progress"}, format="json")
        self.assertEqual(reopened.status_code, 200)
        self.assertIsNone(reopened.data["completed_date"])

        today = self.client.post(url, {"status": "completed"}, format="json")
        self.assertEqual(today.data["completed_date"], timezone.localdate().isoformat())
        self.assertTrue(
            AuditLog.objects.filter(action="milestone.status", entity_id=str(self.quotation.id)).exists()
        )

        unknown = self.client.post(url, {"status": "done"}, format="json")
        self.assertEqual(unknown.status_code, 400)
        self.assertIn("status", unknown.data["fields"])

    def test_reorder_requires_every_milestone(self):
        first = self.add_milestone("Site survey", order=0)
        second = self.add_milestone("Delivery", order=1)
        self.auth_as("designer", "designer123")

        response = self.client.post(
            "/api/v1/milestones/reorder/",
            {"quotation": str(self.quotation.id), "milestone_ids": [str(second.id), str(first.id)]},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["title"] for row in response.data], ["Delivery", "Site survey"])

        partial = self.client.post(
            "/api/v1/milestones/reorder/",
            {"quotation": str(self.quotation.id), "milestone_ids": [str(first.id)]},
            format="json",
        )
        self.assertEqual(partial.status_code, 400)
        self.assertEqual(partial.data["code"], "invalid_request")
        self.assertIn("milestone_ids", partial.data["fields"])

    def test_duplicate_resets_milestones_to_pending(self):
        self.add_milestone("Site survey", status=MilestoneStatus.COMPLETED, completed_date=date(2026, 3, 9))
        self.auth_as("designer", "designer123")

        response = self.client.post(f"/api/v1/quotations/{self.quotation.id}/duplicate/", {}, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(response.data["milestones"]), 1)
        copied = response.data["milestones"][0]
        self.assertEqual(copied["title"], "Site survey")
        self.assertEqual(copied["status"], MilestoneStatus.PENDING)
        self.assertIsNone(copied["completed_date"])
        self.assertEqual(
            Milestone.objects.get(quotation=self.quotation).status, MilestoneStatus.COMPLETED
        )

    def test_milestones_stay_editable_after_conversion(self):
        milestone = self.add_milestone("Site survey")
        Quotation.objects.filter(pk=self.quotation.pk).update(status=QuotationStatus.CONVERTED)
        self.auth_as("designer", "designer123")

        response = self.client.patch(f"/api/v1/milestones/{milestone.id}/", {"end_date": "2026-03-12"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["end_date"], "2026-03-12")

        status = self.client.post(f"/api/v1/milestones/{milestone.id}/status/", {"status": "delayed"}, format="json")
        self.assertEqual(status.status_code, 200)
        self.assertEqual(status.data["status"], MilestoneStatus.DELAYED)

    def test_viewer_can_list_but_not_create(self):
        self.add_milestone("Site survey")
        self.auth_as("viewer", "viewer123")
        listed = self.client.get("/api/v1/milestones/", {"quotation": str(self.quotation.id)})
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(listed.data["count"], 1)

        forbidden = self.client.post(
            "/api/v1/milestones/",
            {"quotation": str(self.quotation.id), "title": "X", "start_date": "2026-03-01", "end_date": "2026-03-02"},
            format="json",
        )
        self.assertEqual(forbidden.status_code, 403)
