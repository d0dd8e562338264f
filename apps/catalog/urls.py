from rest_framework.routers import DefaultRouter

from apps.catalog.views import AccessoryCatalogViewSet

router = DefaultRouter()
router.register("accessory-catalog", AccessoryCatalogViewSet, basename="accessory-catalog")

urlpatterns = router.urls
