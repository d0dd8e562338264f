from rest_framework.routers import DefaultRouter

from apps.quotations.views import (
    InstallationChargeViewSet,
    MilestoneViewSet,
    QuotationViewSet,
    RoomAccessoryViewSet,
    RoomImageViewSet,
    RoomProductViewSet,
    RoomViewSet,
)

router = DefaultRouter()
router.register("quotations", QuotationViewSet, basename="quotation")
router.register("rooms", RoomViewSet, basename="room")
router.register("room-products", RoomProductViewSet, basename="room-product")
router.register("room-accessories", RoomAccessoryViewSet, basename="room-accessory")
router.register("installation-charges", InstallationChargeViewSet, basename="installation-charge")
router.register("room-images", RoomImageViewSet, basename="room-image")
router.register("milestones", MilestoneViewSet, basename="milestone")

urlpatterns = router.urls
