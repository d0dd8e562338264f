from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.common.money import amount_in_words, format_inr
from apps.customers.models import Customer
from apps.preferences.services import QuotationDefaults
from apps.quotations.errors import AlreadyConverted, NotApproved
from apps.quotations.models import InstallationCharge, Quotation, QuotationStatus, Room, RoomAccessory, RoomProduct
from apps.quotations.services import create_quotation, refresh_room_totals
from apps.quotations.workflow import transition_status
from apps.sales.models import (
    CustomerPayment,
    Invoice,
    InvoiceStatus,
    PaymentStatus,
    SalesOrder,
    SalesOrderPayment,
    SalesOrderStatus,
)
from apps.sales.services import (
    convert_quotation_to_invoice,
    convert_sales_order_to_invoice,
    convert_to_sales_order,
    record_sales_order_payment,
)

User = get_user_model()


def build_quotation(customer, actor, status=QuotationStatus.APPROVED):
    """A valid quotation worth 11210.00 moved to ``status``."""
    quotation = create_quotation(
        customer=customer,
        defaults=QuotationDefaults(),
        actor=actor,
        installation_handling=Decimal("500"),
        global_discount=Decimal("10"),
    )
    room = Room.objects.create(quotation=quotation, name="Kitchen")
    RoomProduct.objects.create(room=room, name="Base cabinet", quantity=2, selling_price=Decimal("4000"))
    RoomAccessory.objects.create(room=room, name="Handles", quantity=4, selling_price=Decimal("500"))
    InstallationCharge.objects.create(room=room, cabinet_type="Base", amount=Decimal("1500"))
    refresh_room_totals(room)
    if status in (QuotationStatus.SAVED, QuotationStatus.APPROVED):
        transition_status(quotation, QuotationStatus.SAVED, actor=actor)
    if status == QuotationStatus.APPROVED:
        transition_status(quotation, QuotationStatus.APPROVED, actor=actor)
    quotation.refresh_from_db()
    return quotation


class MoneyFormattingTests(SimpleTestCase):
    def test_format_inr_uses_indian_grouping(self):
        self.assertEqual(format_inr(Decimal("1234567.5")), "Rs. 12,34,567.50")
        self.assertEqual(format_inr(Decimal("999")), "Rs. 999.00")
        self.assertEqual(format_inr(None), "Rs. 0.00")

    def test_amount_in_words(self):
        self.assertEqual(amount_in_words(Decimal("11210")), "Eleven Thousand Two Hundred Ten Rupees Only")
        self.assertEqual(amount_in_words(Decimal("150000")), "One Lakh Fifty Thousand Rupees Only")
        self.assertEqual(amount_in_words(Decimal("10000000")), "One Crore Rupees Only")
        self.assertEqual(amount_in_words(Decimal("0")), "Zero Rupees Only")

    def test_amount_in_words_beyond_a_thousand_crore(self):
        self.assertEqual(amount_in_words(Decimal("23600000000")), "Two Thousand Three Hundred Sixty Crore Rupees Only")
        self.assertEqual(
            amount_in_words(Decimal("1234567890123")),
            "One Lakh Twenty Three Thousand Four Hundred Fifty Six Crore "
            "Seventy Eight Lakh Ninety Thousand One Hundred Twenty Three Rupees Only",
        )
        self.assertEqual(amount_in_words(Decimal("-99990000000")), "Minus Nine Thousand Nine Hundred Ninety Nine Crore Rupees Only")


class ConversionServiceTests(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.customer = Customer.objects.create(name="Asha Rao", phone="9800000001")

    def test_convert_to_sales_order_snapshots_final_price(self):
        quotation = build_quotation(self.customer, self.admin)
        order = convert_to_sales_order(quotation.id, actor=self.admin)

        self.assertIsInstance(order, SalesOrder)
        self.assertEqual(order.total_amount, Decimal("11210.00"))
        self.assertEqual(order.amount_due, Decimal("11210.00"))
        self.assertEqual(order.payment_status, PaymentStatus.UNPAID)
        self.assertEqual(order.status, SalesOrderStatus.PENDING)
        self.assertEqual(order.expected_delivery_date, timezone.localdate() + timedelta(days=30))
        self.assertTrue(order.order_number.startswith(f"SO-{timezone.localdate().year}-"))
        quotation.refresh_from_db()
        self.assertEqual(quotation.status, QuotationStatus.CONVERTED)
        self.assertTrue(AuditLog.objects.filter(action="quotation.convert", entity_id=str(quotation.id)).exists())

    def test_second_conversion_returns_existing_order(self):
        quotation = build_quotation(self.customer, self.admin)
        first = convert_to_sales_order(quotation.id, actor=self.admin)
        second = convert_to_sales_order(quotation.id, actor=self.admin)

        self.assertIsInstance(second, AlreadyConverted)
        self.assertEqual(second.target, "sales_order")
        self.assertEqual(second.existing_id, first.id)
        self.assertEqual(SalesOrder.objects.filter(quotation=quotation).count(), 1)
        quotation.refresh_from_db()
        self.assertEqual(quotation.status, QuotationStatus.CONVERTED)

    def test_conversion_from_saved_forces_approval(self):
        quotation = build_quotation(self.customer, self.admin, status=QuotationStatus.SAVED)
        order = convert_to_sales_order(quotation.id, actor=self.admin)

        self.assertIsInstance(order, SalesOrder)
        entries = AuditLog.objects.filter(action="quotation.status", entity_id=str(quotation.id))
        forced = next(entry for entry in entries if entry.payload.get("reason"))
        self.assertEqual(forced.payload["reason"], "convert_to_sales_order")
        self.assertEqual(forced.payload["to"], QuotationStatus.APPROVED)

    def test_invoice_requires_approved_quotation(self):
        quotation = build_quotation(self.customer, self.admin, status=QuotationStatus.DRAFT)
        result = convert_quotation_to_invoice(quotation.id, actor=self.admin)

        self.assertIsInstance(result, NotApproved)
        self.assertEqual(result.status, QuotationStatus.DRAFT)
        self.assertFalse(Invoice.objects.exists())
        quotation.refresh_from_db()
        self.assertEqual(quotation.status, QuotationStatus.DRAFT)

    def test_direct_invoice_then_order_is_rejected(self):
        quotation = build_quotation(self.customer, self.admin)
        invoice = convert_quotation_to_invoice(quotation.id, actor=self.admin)

        self.assertIsInstance(invoice, Invoice)
        self.assertEqual(invoice.total_amount, Decimal("11210.00"))
        self.assertEqual(invoice.status, InvoiceStatus.PENDING)
        self.assertEqual(invoice.due_date, timezone.localdate() + timedelta(days=15))

        result = convert_to_sales_order(quotation.id, actor=self.admin)
        self.assertIsInstance(result, AlreadyConverted)
        self.assertEqual(result.target, "invoice")
        self.assertEqual(result.existing_id, invoice.id)
        self.assertFalse(SalesOrder.objects.exists())

    def test_quotation_invoice_after_order_is_rejected(self):
        quotation = build_quotation(self.customer, self.admin)
        order = convert_to_sales_order(quotation.id, actor=self.admin)
        result = convert_quotation_to_invoice(quotation.id, actor=self.admin)

        self.assertIsInstance(result, AlreadyConverted)
        self.assertEqual(result.target, "sales_order")
        self.assertEqual(result.existing_id, order.id)
        self.assertFalse(Invoice.objects.exists())

    def test_sales_order_invoice_carries_payments(self):
        quotation = build_quotation(self.customer, self.admin)
        order = convert_to_sales_order(quotation.id, actor=self.admin)
        record_sales_order_payment(order, amount=Decimal("5000"), payment_method="upi", actor=self.admin)

        invoice = convert_sales_order_to_invoice(order.id, actor=self.admin)
        self.assertIsInstance(invoice, Invoice)
        self.assertEqual(invoice.sales_order_id, order.id)
        self.assertEqual(invoice.amount_paid, Decimal("5000.00"))
        self.assertEqual(invoice.status, InvoiceStatus.PARTIALLY_PAID)
        self.assertEqual(invoice.balance_due, Decimal("6210.00"))

        again = convert_sales_order_to_invoice(order.id, actor=self.admin)
        self.assertIsInstance(again, AlreadyConverted)
        self.assertEqual(again.existing_id, invoice.id)

    def test_mark_overdue_invoices_command(self):
        overdue = convert_quotation_to_invoice(build_quotation(self.customer, self.admin).id, actor=self.admin)
        Invoice.objects.filter(pk=overdue.pk).update(due_date=timezone.localdate() - timedelta(days=1))
        current = convert_quotation_to_invoice(build_quotation(self.customer, self.admin).id, actor=self.admin)

        out = StringIO()
        call_command("mark_overdue_invoices", stdout=out)
        self.assertIn("Overdue invoices: 1", out.getvalue())
        overdue.refresh_from_db()
        current.refresh_from_db()
        self.assertEqual(overdue.status, InvoiceStatus.OVERDUE)
        self.assertEqual(current.status, InvoiceStatus.PENDING)
        self.assertTrue(AuditLog.objects.filter(action="invoice.overdue.auto", entity_id=str(overdue.id)).exists())


class SalesApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.manager = User.objects.create_user(username="manager", password="manager123", role="MANAGER")
        self.designer = User.objects.create_user(username="designer", password="designer123", role="DESIGNER")
        self.customer = Customer.objects.create(name="Asha Rao", phone="9800000001")
        self.quotation = build_quotation(self.customer, self.admin)

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def convert(self):
        response = self.client.post(f"/api/v1/quotations/{self.quotation.id}/convert-to-order/", {}, format="json")
        self.assertEqual(response.status_code, 201)
        return response.data

    def test_convert_endpoint_and_repeat(self):
        self.auth_as("manager", "manager123")
        order = self.convert()
        self.assertEqual(order["total_amount"], "11210.00")
        self.assertEqual(order["amount_in_words"], "Eleven Thousand Two Hundred Ten Rupees Only")
        self.assertEqual(order["amount_display"], "Rs. 11,210.00")

        repeat = self.client.post(f"/api/v1/quotations/{self.quotation.id}/convert-to-order/", {}, format="json")
        self.assertEqual(repeat.status_code, 400)
        self.assertEqual(repeat.data["code"], "already_converted")
        self.assertEqual(repeat.data["existing_id"], order["id"])

    def test_designer_cannot_convert(self):
        self.auth_as("designer", "designer123")
        response = self.client.post(f"/api/v1/quotations/{self.quotation.id}/convert-to-order/", {}, format="json")
        self.assertEqual(response.status_code, 403)
        self.assertFalse(SalesOrder.objects.exists())

    def test_invoice_endpoint_rejects_unapproved(self):
        draft = build_quotation(self.customer, self.admin, status=QuotationStatus.DRAFT)
        self.auth_as("manager", "manager123")
        response = self.client.post(f"/api/v1/quotations/{draft.id}/convert-to-invoice/", {}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "not_approved")
        self.assertFalse(Invoice.objects.exists())

    def test_payments_update_order_status(self):
        self.auth_as("manager", "manager123")
        order = self.convert()
        url = f"/api/v1/sales-orders/{order['id']}/payments/"

        first = self.client.post(url, {"amount": "5000.00", "payment_method": "upi"}, format="json")
        self.assertEqual(first.status_code, 201)
        self.assertTrue(first.data["receipt_number"].startswith(f"RCPT-{timezone.localdate().year}-"))
        detail = self.client.get(f"/api/v1/sales-orders/{order['id']}/")
        self.assertEqual(detail.data["payment_status"], PaymentStatus.PARTIALLY_PAID)
        self.assertEqual(detail.data["amount_due"], "6210.00")

        over = self.client.post(url, {"amount": "6210.01", "payment_method": "cash"}, format="json")
        self.assertEqual(over.status_code, 400)
        self.assertEqual(over.data["code"], "invalid_payment")

        rest = self.client.post(url, {"amount": "6210.00", "payment_method": "cash"}, format="json")
        self.assertEqual(rest.status_code, 201)
        detail = self.client.get(f"/api/v1/sales-orders/{order['id']}/")
        self.assertEqual(detail.data["payment_status"], PaymentStatus.PAID)
        self.assertEqual(detail.data["amount_due"], "0.00")

        listing = self.client.get(url)
        self.assertEqual(len(listing.data), 2)

    def test_payment_correction_requires_admin(self):
        self.auth_as("manager", "manager123")
        order = self.convert()
        payment = self.client.post(
            f"/api/v1/sales-orders/{order['id']}/payments/",
            {"amount": "1000.00", "payment_method": "cash"},
            format="json",
        )
        denied = self.client.delete(f"/api/v1/sales-order-payments/{payment.data['id']}/")
        self.assertEqual(denied.status_code, 403)

        self.auth_as("admin", "admin123")
        removed = self.client.delete(f"/api/v1/sales-order-payments/{payment.data['id']}/")
        self.assertEqual(removed.status_code, 204)
        self.assertFalse(SalesOrderPayment.objects.exists())
        stored = SalesOrder.objects.get(pk=order["id"])
        self.assertEqual(stored.payment_status, PaymentStatus.UNPAID)
        self.assertEqual(stored.amount_due, Decimal("11210.00"))
        self.assertTrue(AuditLog.objects.filter(action="sales_order.payment.delete", entity_id=order["id"]).exists())

    def test_designer_cannot_record_payment_but_can_view(self):
        self.auth_as("manager", "manager123")
        order = self.convert()
        self.auth_as("designer", "designer123")
        url = f"/api/v1/sales-orders/{order['id']}/payments/"
        self.assertEqual(self.client.post(url, {"amount": "10.00", "payment_method": "cash"}, format="json").status_code, 403)
        self.assertEqual(self.client.get(url).status_code, 200)

    def test_cancelled_order_is_terminal(self):
        self.auth_as("manager", "manager123")
        order = self.convert()
        cancel = self.client.post(f"/api/v1/sales-orders/{order['id']}/cancel/", {"reason": "customer left"}, format="json")
        self.assertEqual(cancel.status_code, 200)
        self.assertEqual(cancel.data["status"], SalesOrderStatus.CANCELLED)

        status = self.client.post(f"/api/v1/sales-orders/{order['id']}/status/", {"status": "confirmed"}, format="json")
        self.assertEqual(status.status_code, 400)
        self.assertEqual(status.data["code"], "invalid_state")

        payment = self.client.post(
            f"/api/v1/sales-orders/{order['id']}/payments/",
            {"amount": "10.00", "payment_method": "cash"},
            format="json",
        )
        self.assertEqual(payment.status_code, 400)
        self.assertEqual(payment.data["code"], "invalid_state")

    def test_order_to_invoice_endpoint(self):
        self.auth_as("manager", "manager123")
        order = self.convert()
        response = self.client.post(f"/api/v1/sales-orders/{order['id']}/convert-to-invoice/", {}, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["sales_order"], order["id"])
        self.assertEqual(response.data["order_number"], order["order_number"])
        self.assertEqual(response.data["status"], InvoiceStatus.PENDING)

        detail = self.client.get(f"/api/v1/sales-orders/{order['id']}/")
        self.assertEqual(detail.data["invoice_id"], response.data["id"])

        repeat = self.client.post(f"/api/v1/sales-orders/{order['id']}/convert-to-invoice/", {}, format="json")
        self.assertEqual(repeat.status_code, 400)
        self.assertEqual(repeat.data["target"], "invoice")

    def test_paid_invoice_cannot_be_cancelled(self):
        self.auth_as("manager", "manager123")
        response = self.client.post(f"/api/v1/quotations/{self.quotation.id}/convert-to-invoice/", {}, format="json")
        self.assertEqual(response.status_code, 201)
        invoice_id = response.data["id"]

        overpaid = self.client.post(
            f"/api/v1/invoices/{invoice_id}/status/", {"status": "paid", "amount_paid": "99999.00"}, format="json"
        )
        self.assertEqual(overpaid.status_code, 400)

        paid = self.client.post(
            f"/api/v1/invoices/{invoice_id}/status/", {"status": "paid", "amount_paid": "11210.00"}, format="json"
        )
        self.assertEqual(paid.status_code, 200)
        self.assertEqual(paid.data["balance_due"], "0.00")

        cancel = self.client.post(f"/api/v1/invoices/{invoice_id}/cancel/", {}, format="json")
        self.assertEqual(cancel.status_code, 400)
        self.assertEqual(cancel.data["code"], "invalid_state")

    def test_customer_payment_receipt_and_correction(self):
        self.auth_as("manager", "manager123")
        created = self.client.post(
            "/api/v1/customer-payments/",
            {
                "customer": str(self.customer.id),
                "amount": "2500.00",
                "payment_method": "bank_transfer",
                "payment_type": "token_advance",
            },
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["receipt_number"], f"CP-{timezone.localdate().year}-0001")
        self.assertEqual(created.data["amount_in_words"], "Two Thousand Five Hundred Rupees Only")

        denied = self.client.patch(f"/api/v1/customer-payments/{created.data['id']}/", {"amount": "2000.00"}, format="json")
        self.assertEqual(denied.status_code, 403)

        self.auth_as("admin", "admin123")
        corrected = self.client.patch(
            f"/api/v1/customer-payments/{created.data['id']}/", {"amount": "2000.00"}, format="json"
        )
        self.assertEqual(corrected.status_code, 200)
        self.assertEqual(CustomerPayment.objects.get().amount, Decimal("2000.00"))
        entry = AuditLog.objects.get(action="customer_payment.correct", entity_id=created.data["id"])
        self.assertEqual(entry.payload["before"]["amount"], "2500.00")

    def test_customer_payment_rejects_foreign_order(self):
        other = Customer.objects.create(name="Vikram Shah", phone="9800000002")
        order = convert_to_sales_order(self.quotation.id, actor=self.admin)
        self.auth_as("manager", "manager123")
        response = self.client.post(
            "/api/v1/customer-payments/",
            {"customer": str(other.id), "sales_order": str(order.id), "amount": "100.00", "payment_method": "cash"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("sales_order", response.data["fields"])
