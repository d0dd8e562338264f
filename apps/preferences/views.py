from rest_framework.response import Response
from rest_framework.views import APIView

from apps.audit.services import record_audit
from apps.common.permissions import RolePermission
from apps.preferences.models import AppSettings, CompanySettings
from apps.preferences.serializers import AppSettingsSerializer, CompanySettingsSerializer


class SingletonSettingsView(APIView):
    model = None
    serializer_class = None
    audit_action = ""
    permission_classes = [RolePermission]
    capability_map = {
        "get": ["settings.view"],
        "put": ["settings.manage"],
        "patch": ["settings.manage"],
    }

    def get(self, request):
        return Response(self.serializer_class(self.model.load()).data)

    def put(self, request):
        return self._update(request, partial=False)

    def patch(self, request):
        return self._update(request, partial=True)

    def _update(self, request, partial):
        instance = self.model.load()
        serializer = self.serializer_class(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        record_audit(
            actor=request.user,
            action=self.audit_action,
            entity_type="settings",
            entity_id=instance.pk,
            payload={key: str(value) for key, value in serializer.validated_data.items()},
        )
        return Response(serializer.data)


class AppSettingsView(SingletonSettingsView):
    model = AppSettings
    serializer_class = AppSettingsSerializer
    audit_action = "settings.app.update"


class CompanySettingsView(SingletonSettingsView):
    model = CompanySettings
    serializer_class = CompanySettingsSerializer
    audit_action = "settings.company.update"
