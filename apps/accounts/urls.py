from rest_framework.routers import DefaultRouter

from apps.accounts.views import TeamViewSet, UserViewSet

router = DefaultRouter()
router.register("teams", TeamViewSet, basename="team")
router.register("users", UserViewSet, basename="user")

urlpatterns = router.urls
