from django.db import transaction
from rest_framework import mixins, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.common.exceptions import error_response
from apps.common.permissions import RolePermission
from apps.quotations.errors import QuotationError
from apps.sales.models import CustomerPayment, Invoice, InvoiceStatus, SalesOrder, SalesOrderPayment, SalesOrderStatus
from apps.sales.serializers import (
    ConvertToInvoiceSerializer,
    CustomerPaymentSerializer,
    InvoiceSerializer,
    InvoiceStatusSerializer,
    SalesOrderListSerializer,
    SalesOrderPaymentSerializer,
    SalesOrderSerializer,
    SalesOrderStatusSerializer,
)
from apps.sales.services import (
    convert_sales_order_to_invoice,
    delete_sales_order_payment,
    record_customer_payment,
    record_sales_order_payment,
)

CLOSED_ORDER_STATUSES = {SalesOrderStatus.CANCELLED, SalesOrderStatus.COMPLETED}


class SalesOrderViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    queryset = (
        SalesOrder.objects.select_related("customer", "quotation", "invoice")
        .prefetch_related("payments")
        .order_by("-created_at")
    )
    serializer_class = SalesOrderSerializer
    permission_classes = [RolePermission]
    http_method_names = ["get", "post", "patch", "head", "options"]
    capability_map = {
        "list": ["orders.view"],
        "retrieve": ["orders.view"],
        "partial_update": ["orders.manage"],
        "status": ["orders.manage"],
        "cancel": ["orders.manage"],
        "payments:get": ["payments.view"],
        "payments:post": ["payments.record"],
        "convert_to_invoice": ["invoices.manage"],
    }

    def get_serializer_class(self):
        if self.action == "list":
            return SalesOrderListSerializer
        return SalesOrderSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        for param in ("status", "payment_status", "customer"):
            value = self.request.query_params.get(param)
            if value:
                queryset = queryset.filter(**{param: value})
        return queryset

    def perform_update(self, serializer):
        order = serializer.save()
        record_audit(
            actor=self.request.user,
            action="sales_order.update",
            entity_type="sales_order",
            entity_id=order.id,
            payload={key: str(value) for key, value in serializer.validated_data.items()},
        )

    @action(detail=True, methods=["post"])
    def status(self, request, pk=None):
        serializer = SalesOrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_status = serializer.validated_data["status"]

        with transaction.atomic():
            order = SalesOrder.objects.select_for_update().get(pk=self.get_object().pk)
            if order.status in CLOSED_ORDER_STATUSES:
                return error_response("invalid_state", f"The order is already {order.status}.")
            previous = order.status
            order.status = new_status
            order.save(update_fields=["status", "updated_at"])
            record_audit(
                actor=request.user,
                action="sales_order.status",
                entity_type="sales_order",
                entity_id=order.id,
                payload={"from": previous, "to": new_status},
            )
        return Response(SalesOrderSerializer(order).data, status=200)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        reason = str(request.data.get("reason", "")).strip()
        with transaction.atomic():
            order = SalesOrder.objects.select_for_update().get(pk=self.get_object().pk)
            if order.status in CLOSED_ORDER_STATUSES:
                return error_response("invalid_state", f"The order is already {order.status}.")
            previous = order.status
            order.status = SalesOrderStatus.CANCELLED
            order.save(update_fields=["status", "updated_at"])
            record_audit(
                actor=request.user,
                action="sales_order.cancel",
                entity_type="sales_order",
                entity_id=order.id,
                payload={"from": previous, "reason": reason},
            )
        return Response(SalesOrderSerializer(order).data, status=200)

    @action(detail=True, methods=["get", "post"])
    def payments(self, request, pk=None):
        order = self.get_object()
        if request.method == "GET":
            return Response(SalesOrderPaymentSerializer(order.payments.all(), many=True).data)

        if order.status == SalesOrderStatus.CANCELLED:
            return error_response("invalid_state", "Payments cannot be recorded against a cancelled order.")
        serializer = SalesOrderPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if serializer.validated_data["amount"] > order.amount_due:
            return error_response(
                "invalid_payment",
                "The payment exceeds the amount due on the order.",
                fields={"amount": [f"must be <= {order.amount_due}"]},
            )
        data = dict(serializer.validated_data)
        payment = record_sales_order_payment(
            order,
            amount=data.pop("amount"),
            payment_method=data.pop("payment_method"),
            actor=request.user,
            **data,
        )
        return Response(SalesOrderPaymentSerializer(payment).data, status=201)

    @action(detail=True, methods=["post"], url_path="convert-to-invoice")
    def convert_to_invoice(self, request, pk=None):
        order = self.get_object()
        serializer = ConvertToInvoiceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = convert_sales_order_to_invoice(order.pk, serializer.validated_data, actor=request.user)
        if isinstance(result, QuotationError):
            return result.as_response()
        return Response(InvoiceSerializer(result).data, status=201)


class SalesOrderPaymentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    queryset = SalesOrderPayment.objects.select_related("sales_order").order_by("-payment_date", "-created_at")
    serializer_class = SalesOrderPaymentSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["payments.view"],
        "retrieve": ["payments.view"],
        "destroy": ["payments.correct"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        order_id = self.request.query_params.get("sales_order")
        if order_id:
            queryset = queryset.filter(sales_order_id=order_id)
        return queryset

    def perform_destroy(self, instance):
        delete_sales_order_payment(instance, actor=self.request.user)


class InvoiceViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Invoice.objects.select_related("customer", "quotation", "sales_order").order_by("-created_at")
    serializer_class = InvoiceSerializer
    permission_classes = [RolePermission]
    http_method_names = ["get", "post", "patch", "head", "options"]
    capability_map = {
        "list": ["invoices.view"],
        "retrieve": ["invoices.view"],
        "partial_update": ["invoices.manage"],
        "status": ["invoices.manage"],
        "cancel": ["invoices.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        for param in ("status", "customer"):
            value = self.request.query_params.get(param)
            if value:
                queryset = queryset.filter(**{param: value})
        return queryset

    def perform_update(self, serializer):
        invoice = serializer.save()
        record_audit(
            actor=self.request.user,
            action="invoice.update",
            entity_type="invoice",
            entity_id=invoice.id,
            payload={key: str(value) for key, value in serializer.validated_data.items()},
        )

    @action(detail=True, methods=["post"])
    def status(self, request, pk=None):
        serializer = InvoiceStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            invoice = Invoice.objects.select_for_update().get(pk=self.get_object().pk)
            if invoice.status == InvoiceStatus.CANCELLED:
                return error_response("invalid_state", "Cancelled invoices cannot change status.")
            amount_paid = serializer.validated_data.get("amount_paid", invoice.amount_paid)
            if amount_paid > invoice.total_amount:
                return error_response(
                    "invalid_payment",
                    "The paid amount exceeds the invoice total.",
                    fields={"amount_paid": [f"must be <= {invoice.total_amount}"]},
                )
            previous = invoice.status
            invoice.status = serializer.validated_data["status"]
            invoice.amount_paid = amount_paid
            invoice.save(update_fields=["status", "amount_paid", "updated_at"])
            record_audit(
                actor=request.user,
                action="invoice.status",
                entity_type="invoice",
                entity_id=invoice.id,
                payload={"from": previous, "to": invoice.status, "amount_paid": str(amount_paid)},
            )
        return Response(self.get_serializer(invoice).data, status=200)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        with transaction.atomic():
            invoice = Invoice.objects.select_for_update().get(pk=self.get_object().pk)
            if invoice.status in {InvoiceStatus.CANCELLED, InvoiceStatus.PAID}:
                return error_response("invalid_state", f"The invoice is already {invoice.status}.")
            previous = invoice.status
            invoice.status = InvoiceStatus.CANCELLED
            invoice.save(update_fields=["status", "updated_at"])
            record_audit(
                actor=request.user,
                action="invoice.cancel",
                entity_type="invoice",
                entity_id=invoice.id,
                payload={"from": previous, "reason": str(request.data.get("reason", "")).strip()},
            )
        return Response(self.get_serializer(invoice).data, status=200)


class CustomerPaymentViewSet(viewsets.ModelViewSet):
    queryset = CustomerPayment.objects.select_related("customer", "sales_order").order_by("-payment_date", "-created_at")
    serializer_class = CustomerPaymentSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["payments.view"],
        "retrieve": ["payments.view"],
        "create": ["payments.record"],
        "update": ["payments.correct"],
        "partial_update": ["payments.correct"],
        "destroy": ["payments.correct"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        for param in ("customer", "sales_order", "payment_type"):
            value = self.request.query_params.get(param)
            if value:
                queryset = queryset.filter(**{param: value})
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        payment = record_customer_payment(
            customer=data.pop("customer"),
            amount=data.pop("amount"),
            payment_method=data.pop("payment_method"),
            actor=request.user,
            **data,
        )
        return Response(self.get_serializer(payment).data, status=201)

    def perform_update(self, serializer):
        before = {"amount": str(serializer.instance.amount), "payment_method": serializer.instance.payment_method}
        payment = serializer.save()
        record_audit(
            actor=self.request.user,
            action="customer_payment.correct",
            entity_type="customer_payment",
            entity_id=payment.id,
            payload={"before": before, "after": {"amount": str(payment.amount), "payment_method": payment.payment_method}},
        )

    def perform_destroy(self, instance):
        record_audit(
            actor=self.request.user,
            action="customer_payment.delete",
            entity_type="customer_payment",
            entity_id=instance.id,
            payload={"receipt_number": instance.receipt_number, "amount": str(instance.amount)},
        )
        instance.delete()
