import logging
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from apps.audit.services import record_audit
from apps.common.money import to_money
from apps.common.numbering import next_document_number
from apps.quotations.errors import AlreadyConverted, NotApproved
from apps.quotations.models import Quotation, QuotationStatus
from apps.sales.models import (
    CustomerPayment,
    Invoice,
    InvoiceStatus,
    PaymentStatus,
    SalesOrder,
    SalesOrderPayment,
    SalesOrderStatus,
)

logger = logging.getLogger(__name__)

DELIVERY_LEAD_DAYS = 30
INVOICE_DUE_DAYS = 15
ZERO = Decimal("0.00")


def _user_or_none(actor):
    return actor if getattr(actor, "is_authenticated", False) else None


def _existing_targets(quotation):
    invoice_id = Invoice.objects.filter(quotation=quotation).values_list("id", flat=True).first()
    order_id = SalesOrder.objects.filter(quotation=quotation).values_list("id", flat=True).first()
    return invoice_id, order_id


def _mark_converted(quotation, actor, target, target_id):
    previous = quotation.status
    quotation.status = QuotationStatus.CONVERTED
    quotation.save(update_fields=["status", "updated_at"])
    record_audit(
        actor=actor,
        action="quotation.convert",
        entity_type="quotation",
        entity_id=quotation.id,
        payload={"from": previous, "target": target, "target_id": str(target_id)},
    )


def invoice_status_for(total_amount, amount_paid):
    if amount_paid <= ZERO:
        return InvoiceStatus.PENDING
    if amount_paid >= total_amount:
        return InvoiceStatus.PAID
    return InvoiceStatus.PARTIALLY_PAID


def convert_to_sales_order(quotation_id, overrides=None, actor=None):
    """Create the one sales order for a quotation, or return an ``AlreadyConverted`` error."""
    overrides = overrides or {}
    with transaction.atomic():
        quotation = Quotation.objects.select_for_update(of=("self",)).select_related("customer").get(pk=quotation_id)
        invoice_id, order_id = _existing_targets(quotation)
        if invoice_id:
            return AlreadyConverted(target="invoice", existing_id=invoice_id)
        if order_id:
            return AlreadyConverted(target="sales_order", existing_id=order_id)

        if quotation.status != QuotationStatus.APPROVED:
            previous = quotation.status
            quotation.status = QuotationStatus.APPROVED
            quotation.save(update_fields=["status", "updated_at"])
            record_audit(
                actor=actor,
                action="quotation.status",
                entity_type="quotation",
                entity_id=quotation.id,
                payload={"from": previous, "to": QuotationStatus.APPROVED, "reason": "convert_to_sales_order"},
            )

        today = timezone.localdate()
        total = to_money(quotation.final_price)
        order = SalesOrder.objects.create(
            order_number=next_document_number(SalesOrder, "order_number", "SO"),
            quotation=quotation,
            customer=quotation.customer,
            total_amount=total,
            amount_paid=ZERO,
            amount_due=total,
            status=SalesOrderStatus.PENDING,
            payment_status=PaymentStatus.UNPAID,
            order_date=today,
            expected_delivery_date=overrides.get("expected_delivery_date") or today + timedelta(days=DELIVERY_LEAD_DAYS),
            notes=overrides.get("notes") or "",
            created_by=_user_or_none(actor),
        )
        _mark_converted(quotation, actor, "sales_order", order.id)
    logger.info("Converted quotation %s to sales order %s", quotation.quotation_number, order.order_number)
    return order


def convert_quotation_to_invoice(quotation_id, overrides=None, actor=None):
    overrides = overrides or {}
    with transaction.atomic():
        quotation = Quotation.objects.select_for_update(of=("self",)).select_related("customer").get(pk=quotation_id)
        invoice_id, order_id = _existing_targets(quotation)
        if invoice_id:
            return AlreadyConverted(target="invoice", existing_id=invoice_id)
        if order_id:
            return AlreadyConverted(target="sales_order", existing_id=order_id)
        if quotation.status != QuotationStatus.APPROVED:
            return NotApproved(status=quotation.status)

        today = timezone.localdate()
        invoice = Invoice.objects.create(
            invoice_number=next_document_number(Invoice, "invoice_number", "INV"),
            quotation=quotation,
            customer=quotation.customer,
            total_amount=to_money(quotation.final_price),
            amount_paid=ZERO,
            status=InvoiceStatus.PENDING,
            issue_date=today,
            due_date=overrides.get("due_date") or today + timedelta(days=INVOICE_DUE_DAYS),
            notes=overrides.get("notes") or "",
            created_by=_user_or_none(actor),
        )
        _mark_converted(quotation, actor, "invoice", invoice.id)
    logger.info("Converted quotation %s to invoice %s", quotation.quotation_number, invoice.invoice_number)
    return invoice


def convert_sales_order_to_invoice(sales_order_id, overrides=None, actor=None):
    overrides = overrides or {}
    with transaction.atomic():
        order = SalesOrder.objects.select_for_update().get(pk=sales_order_id)
        quotation = Quotation.objects.select_for_update().get(pk=order.quotation_id)
        invoice_id = Invoice.objects.filter(quotation=quotation).values_list("id", flat=True).first()
        if invoice_id:
            return AlreadyConverted(target="invoice", existing_id=invoice_id)

        today = timezone.localdate()
        invoice = Invoice.objects.create(
            invoice_number=next_document_number(Invoice, "invoice_number", "INV"),
            quotation=quotation,
            sales_order=order,
            customer_id=order.customer_id,
            total_amount=order.total_amount,
            amount_paid=order.amount_paid,
            status=invoice_status_for(order.total_amount, order.amount_paid),
            issue_date=today,
            due_date=overrides.get("due_date") or today + timedelta(days=INVOICE_DUE_DAYS),
            notes=overrides.get("notes") or order.notes,
            created_by=_user_or_none(actor),
        )
        record_audit(
            actor=actor,
            action="sales_order.invoice",
            entity_type="sales_order",
            entity_id=order.id,
            payload={"invoice_id": str(invoice.id), "invoice_number": invoice.invoice_number},
        )
    logger.info("Invoiced sales order %s as %s", order.order_number, invoice.invoice_number)
    return invoice


def refresh_payment_status(order):
    """Recompute paid/due/payment_status from the order's payments."""
    paid = to_money(order.payments.aggregate(total=Sum("amount"))["total"] or ZERO)
    order.amount_paid = paid
    order.amount_due = max(ZERO, order.total_amount - paid)
    if paid <= ZERO:
        order.payment_status = PaymentStatus.UNPAID
    elif paid >= order.total_amount:
        order.payment_status = PaymentStatus.PAID
    else:
        order.payment_status = PaymentStatus.PARTIALLY_PAID
    order.save(update_fields=["amount_paid", "amount_due", "payment_status", "updated_at"])
    return order


def record_sales_order_payment(order, *, amount, payment_method, actor=None, **fields):
    with transaction.atomic():
        locked = SalesOrder.objects.select_for_update().get(pk=order.pk)
        payment = SalesOrderPayment.objects.create(
            sales_order=locked,
            receipt_number=next_document_number(SalesOrderPayment, "receipt_number", "RCPT"),
            amount=to_money(amount),
            payment_method=payment_method,
            created_by=_user_or_none(actor),
            **fields,
        )
        refresh_payment_status(locked)
        record_audit(
            actor=actor,
            action="sales_order.payment",
            entity_type="sales_order",
            entity_id=locked.id,
            payload={"payment_id": str(payment.id), "amount": str(payment.amount), "method": payment_method},
        )
    return payment


def delete_sales_order_payment(payment, actor=None):
    with transaction.atomic():
        locked = SalesOrder.objects.select_for_update().get(pk=payment.sales_order_id)
        payload = {"payment_id": str(payment.id), "amount": str(payment.amount), "receipt": payment.receipt_number}
        payment.delete()
        refresh_payment_status(locked)
        record_audit(
            actor=actor,
            action="sales_order.payment.delete",
            entity_type="sales_order",
            entity_id=locked.id,
            payload=payload,
        )
    return locked


def record_customer_payment(*, customer, amount, payment_method, actor=None, **fields):
    with transaction.atomic():
        payment = CustomerPayment.objects.create(
            customer=customer,
            amount=to_money(amount),
            payment_method=payment_method,
            receipt_number=next_document_number(CustomerPayment, "receipt_number", "CP", width=4),
            created_by=_user_or_none(actor),
            **fields,
        )
        record_audit(
            actor=actor,
            action="customer_payment.create",
            entity_type="customer_payment",
            entity_id=payment.id,
            payload={"customer_id": str(customer.id), "amount": str(payment.amount)},
        )
    return payment
