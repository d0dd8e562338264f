from rest_framework.routers import DefaultRouter

from apps.sales.views import CustomerPaymentViewSet, InvoiceViewSet, SalesOrderPaymentViewSet, SalesOrderViewSet

router = DefaultRouter()
router.register("sales-orders", SalesOrderViewSet, basename="sales-order")
router.register("sales-order-payments", SalesOrderPaymentViewSet, basename="sales-order-payment")
router.register("invoices", InvoiceViewSet, basename="invoice")
router.register("customer-payments", CustomerPaymentViewSet, basename="customer-payment")

urlpatterns = router.urls
