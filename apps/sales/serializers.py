from decimal import Decimal

from rest_framework import serializers

from apps.common.money import amount_in_words, format_inr
from apps.sales.models import (
    CustomerPayment,
    Invoice,
    InvoiceStatus,
    PaymentMethod,
    SalesOrder,
    SalesOrderPayment,
    SalesOrderStatus,
)


class AmountInWordsMixin(serializers.Serializer):
    amount_display = serializers.SerializerMethodField()
    amount_in_words = serializers.SerializerMethodField()

    amount_source = "amount"

    def get_amount_display(self, obj):
        return format_inr(getattr(obj, self.amount_source))

    def get_amount_in_words(self, obj):
        return amount_in_words(getattr(obj, self.amount_source))


class SalesOrderPaymentSerializer(AmountInWordsMixin, serializers.ModelSerializer):
    class Meta:
        model = SalesOrderPayment
        fields = [
            "id",
            "sales_order",
            "receipt_number",
            "transaction_id",
            "amount",
            "amount_display",
            "amount_in_words",
            "payment_method",
            "payment_date",
            "notes",
            "created_at",
        ]
        read_only_fields = ["id", "sales_order", "receipt_number", "created_at"]

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("must be > 0")
        return value


class SalesOrderListSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source="customer.name", read_only=True)
    quotation_number = serializers.CharField(source="quotation.quotation_number", read_only=True)

    class Meta:
        model = SalesOrder
        fields = [
            "id",
            "order_number",
            "quotation",
            "quotation_number",
            "customer",
            "customer_name",
            "total_amount",
            "amount_paid",
            "amount_due",
            "status",
            "payment_status",
            "order_date",
            "expected_delivery_date",
        ]


class SalesOrderSerializer(AmountInWordsMixin, SalesOrderListSerializer):
    payments = SalesOrderPaymentSerializer(many=True, read_only=True)
    invoice_id = serializers.SerializerMethodField()

    amount_source = "total_amount"

    class Meta(SalesOrderListSerializer.Meta):
        fields = [
            *SalesOrderListSerializer.Meta.fields,
            "amount_display",
            "amount_in_words",
            "notes",
            "payments",
            "invoice_id",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "order_number",
            "quotation",
            "customer",
            "total_amount",
            "amount_paid",
            "amount_due",
            "status",
            "payment_status",
            "order_date",
            "created_at",
            "updated_at",
        ]

    def get_invoice_id(self, obj):
        invoice = getattr(obj, "invoice", None)
        return str(invoice.id) if invoice else None


class SalesOrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c in SalesOrderStatus.choices if c[0] != SalesOrderStatus.CANCELLED])


class ConvertToOrderSerializer(serializers.Serializer):
    expected_delivery_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class ConvertToInvoiceSerializer(serializers.Serializer):
    due_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class InvoiceSerializer(AmountInWordsMixin, serializers.ModelSerializer):
    customer_name = serializers.CharField(source="customer.name", read_only=True)
    quotation_number = serializers.CharField(source="quotation.quotation_number", read_only=True)
    order_number = serializers.CharField(source="sales_order.order_number", read_only=True, default=None)
    balance_due = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    amount_source = "total_amount"

    class Meta:
        model = Invoice
        fields = [
            "id",
            "invoice_number",
            "quotation",
            "quotation_number",
            "sales_order",
            "order_number",
            "customer",
            "customer_name",
            "total_amount",
            "amount_display",
            "amount_in_words",
            "amount_paid",
            "balance_due",
            "status",
            "issue_date",
            "due_date",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "invoice_number",
            "quotation",
            "sales_order",
            "customer",
            "total_amount",
            "amount_paid",
            "status",
            "issue_date",
            "created_at",
            "updated_at",
        ]


class InvoiceStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c in InvoiceStatus.choices if c[0] != InvoiceStatus.CANCELLED])
    amount_paid = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)

    def validate_amount_paid(self, value):
        if value < Decimal("0"):
            raise serializers.ValidationError("must be >= 0")
        return value


class CustomerPaymentSerializer(AmountInWordsMixin, serializers.ModelSerializer):
    customer_name = serializers.CharField(source="customer.name", read_only=True)
    order_number = serializers.CharField(source="sales_order.order_number", read_only=True, default=None)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)

    class Meta:
        model = CustomerPayment
        fields = [
            "id",
            "customer",
            "customer_name",
            "sales_order",
            "order_number",
            "amount",
            "amount_display",
            "amount_in_words",
            "payment_method",
            "payment_type",
            "payment_date",
            "receipt_number",
            "transaction_id",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "receipt_number", "created_at", "updated_at"]

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("must be > 0")
        return value

    def validate(self, attrs):
        customer = attrs.get("customer", getattr(self.instance, "customer", None))
        order = attrs.get("sales_order", getattr(self.instance, "sales_order", None))
        if order is not None and customer is not None and order.customer_id != customer.id:
            raise serializers.ValidationError({"sales_order": "sales order belongs to a different customer"})
        return attrs
