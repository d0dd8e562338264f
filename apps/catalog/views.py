from django.db.models import Q
from rest_framework import viewsets

from apps.audit.services import record_audit
from apps.catalog.models import AccessoryCatalog
from apps.catalog.serializers import AccessoryCatalogSerializer
from apps.common.permissions import RolePermission


class AccessoryCatalogViewSet(viewsets.ModelViewSet):
    queryset = AccessoryCatalog.objects.all()
    serializer_class = AccessoryCatalogSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["catalog.view"],
        "retrieve": ["catalog.view"],
        "create": ["catalog.manage"],
        "partial_update": ["catalog.manage"],
        "update": ["catalog.manage"],
        "destroy": ["catalog.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        category = self.request.query_params.get("category")
        if category:
            queryset = queryset.filter(category=category)
        query = self.request.query_params.get("q")
        if query:
            queryset = queryset.filter(Q(name__icontains=query) | Q(code__icontains=query))
        return queryset

    def perform_create(self, serializer):
        item = serializer.save()
        record_audit(
            actor=self.request.user,
            action="catalog.accessory.create",
            entity_type="accessory_catalog",
            entity_id=item.id,
            payload={"code": item.code, "selling_price": str(item.selling_price)},
        )

    def perform_update(self, serializer):
        old_price = serializer.instance.selling_price
        item = serializer.save()
        if item.selling_price != old_price:
            record_audit(
                actor=self.request.user,
                action="catalog.accessory.price_change",
                entity_type="accessory_catalog",
                entity_id=item.id,
                payload={"from": str(old_price), "to": str(item.selling_price)},
            )

    def perform_destroy(self, instance):
        record_audit(
            actor=self.request.user,
            action="catalog.accessory.delete",
            entity_type="accessory_catalog",
            entity_id=instance.id,
            payload={"code": instance.code},
        )
        instance.delete()
