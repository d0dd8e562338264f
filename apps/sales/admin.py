from django.contrib import admin

from apps.sales.models import CustomerPayment, Invoice, SalesOrder, SalesOrderPayment


class SalesOrderPaymentInline(admin.TabularInline):
    model = SalesOrderPayment
    extra = 0
    readonly_fields = ("receipt_number", "amount", "payment_method", "payment_date", "created_at")


@admin.register(SalesOrder)
class SalesOrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "customer", "status", "payment_status", "total_amount", "amount_due", "order_date")
    list_filter = ("status", "payment_status")
    search_fields = ("order_number", "customer__name", "quotation__quotation_number")
    inlines = [SalesOrderPaymentInline]


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "customer", "status", "total_amount", "amount_paid", "due_date")
    list_filter = ("status",)
    search_fields = ("invoice_number", "customer__name")


@admin.register(CustomerPayment)
class CustomerPaymentAdmin(admin.ModelAdmin):
    list_display = ("receipt_number", "customer", "amount", "payment_method", "payment_type", "payment_date")
    list_filter = ("payment_method", "payment_type")
    search_fields = ("receipt_number", "customer__name", "transaction_id")
