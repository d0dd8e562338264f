from django.db import transaction
from django.db.models import ProtectedError, Q
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.common.exceptions import error_response
from apps.common.permissions import RolePermission
from apps.customers.models import Customer, FollowUp
from apps.customers.serializers import CustomerSerializer, CustomerStageSerializer, FollowUpSerializer
from apps.sales.models import CustomerPayment, SalesOrder
from apps.sales.serializers import CustomerPaymentSerializer, SalesOrderListSerializer


class CustomerViewSet(viewsets.ModelViewSet):
    queryset = Customer.objects.order_by("-updated_at")
    serializer_class = CustomerSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["customers.view"],
        "retrieve": ["customers.view"],
        "ledger": ["customers.view"],
        "create": ["customers.manage"],
        "update": ["customers.manage"],
        "partial_update": ["customers.manage"],
        "destroy": ["customers.manage"],
        "stage": ["customers.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        stage = self.request.query_params.get("stage")
        query = self.request.query_params.get("q")
        if stage:
            queryset = queryset.filter(stage=stage)
        if query:
            queryset = queryset.filter(Q(name__icontains=query) | Q(phone__icontains=query) | Q(email__icontains=query))
        return queryset

    def perform_create(self, serializer):
        customer = serializer.save()
        record_audit(
            actor=self.request.user,
            action="customer.create",
            entity_type="customer",
            entity_id=customer.id,
            payload={"name": customer.name},
        )

    def destroy(self, request, *args, **kwargs):
        customer = self.get_object()
        try:
            customer.delete()
        except ProtectedError:
            return error_response(
                "customer_in_use",
                "The customer has quotations or orders and cannot be deleted.",
            )
        record_audit(
            actor=request.user,
            action="customer.delete",
            entity_type="customer",
            entity_id=kwargs.get("pk"),
            payload={"name": customer.name},
        )
        return Response(status=204)

    @action(detail=True, methods=["post"])
    def stage(self, request, pk=None):
        serializer = CustomerStageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_stage = serializer.validated_data["stage"]

        with transaction.atomic():
            customer = Customer.objects.select_for_update().get(pk=self.get_object().pk)
            previous = customer.stage
            customer.stage = new_stage
            customer.save(update_fields=["stage", "updated_at"])
            record_audit(
                actor=request.user,
                action="customer.stage",
                entity_type="customer",
                entity_id=customer.id,
                payload={"from": previous, "to": new_stage},
            )
        return Response(self.get_serializer(customer).data, status=200)

    @action(detail=True, methods=["get"])
    def ledger(self, request, pk=None):
        customer = self.get_object()
        orders = SalesOrder.objects.filter(customer=customer).select_related("customer", "quotation").order_by("-order_date")
        payments = CustomerPayment.objects.filter(customer=customer).select_related("sales_order").order_by("-payment_date")
        return Response(
            {
                "customer": self.get_serializer(customer).data,
                "sales_orders": SalesOrderListSerializer(orders, many=True).data,
                "payments": CustomerPaymentSerializer(payments, many=True).data,
            }
        )


class FollowUpViewSet(viewsets.ModelViewSet):
    queryset = FollowUp.objects.select_related("customer", "user")
    serializer_class = FollowUpSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["customers.view"],
        "retrieve": ["customers.view"],
        "pending": ["customers.view"],
        "create": ["customers.manage"],
        "update": ["customers.manage"],
        "partial_update": ["customers.manage"],
        "destroy": ["customers.manage"],
        "complete": ["customers.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        customer_id = self.request.query_params.get("customer")
        if customer_id:
            queryset = queryset.filter(customer_id=customer_id)
        return queryset

    def perform_create(self, serializer):
        serializer.save(user=self.request.user)

    @action(detail=False, methods=["get"])
    def pending(self, request):
        follow_ups = FollowUp.objects.pending().select_related("customer", "user")
        page = self.paginate_queryset(follow_ups)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(follow_ups, many=True).data)

    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        follow_up = self.get_object()
        if not follow_up.completed:
            follow_up.completed = True
            follow_up.save(update_fields=["completed"])
            record_audit(
                actor=request.user,
                action="follow_up.complete",
                entity_type="follow_up",
                entity_id=follow_up.id,
                payload={"customer_id": str(follow_up.customer_id)},
            )
        return Response(self.get_serializer(follow_up).data, status=200)
