from rest_framework.routers import DefaultRouter

from apps.customers.views import CustomerViewSet, FollowUpViewSet

router = DefaultRouter()
router.register("customers", CustomerViewSet, basename="customer")
router.register("follow-ups", FollowUpViewSet, basename="follow-up")

urlpatterns = router.urls
