from django.db import transaction
from django.db.models import Prefetch, Q
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.models import AuditLog
from apps.audit.serializers import AuditLogSerializer
from apps.audit.services import record_audit
from apps.common.exceptions import error_response
from apps.common.money import to_money
from apps.common.permissions import RolePermission
from apps.preferences.services import get_quotation_defaults, get_required_accessories
from apps.quotations.errors import QuotationError
from apps.quotations.models import (
    InstallationCharge,
    Milestone,
    Quotation,
    QuotationStatus,
    Room,
    RoomAccessory,
    RoomImage,
    RoomProduct,
)
from apps.quotations.serializers import (
    InstallationChargeSerializer,
    MilestoneReorderSerializer,
    MilestoneSerializer,
    MilestoneStatusSerializer,
    QuotationDuplicateSerializer,
    QuotationListSerializer,
    QuotationSerializer,
    QuotationStatusSerializer,
    RoomAccessorySerializer,
    RoomImageSerializer,
    RoomProductSerializer,
    RoomReorderSerializer,
    RoomSerializer,
)
from apps.quotations.services import (
    create_quotation,
    duplicate_quotation,
    ensure_editable,
    next_milestone_order,
    recalculate_quotation,
    refresh_room_totals,
    reorder_milestones,
    reorder_rooms,
    set_milestone_status,
)
from apps.quotations.workflow import accessory_warnings, transition_status, validate_for_save
from apps.sales.serializers import ConvertToInvoiceSerializer, ConvertToOrderSerializer, InvoiceSerializer, SalesOrderSerializer
from apps.sales.services import convert_quotation_to_invoice, convert_to_sales_order

ROOM_PREFETCH = Prefetch(
    "rooms",
    queryset=Room.objects.prefetch_related("products", "accessories", "installation_charges", "images"),
)
CHILD_CAPABILITIES = {
    "list": ["quotations.view"],
    "retrieve": ["quotations.view"],
    "create": ["quotations.manage"],
    "update": ["quotations.manage"],
    "partial_update": ["quotations.manage"],
    "destroy": ["quotations.manage"],
}


class QuotationViewSet(viewsets.ModelViewSet):
    queryset = Quotation.objects.select_related("customer").order_by("-created_at")
    serializer_class = QuotationSerializer
    permission_classes = [RolePermission]
    capability_map = {
        **CHILD_CAPABILITIES,
        "validate": ["quotations.view"],
        "history": ["quotations.view"],
        "installation_charges": ["quotations.view"],
        "status": ["quotations.manage"],
        "duplicate": ["quotations.manage"],
        "convert_to_order": ["orders.manage"],
        "convert_to_invoice": ["invoices.manage"],
    }

    def get_serializer_class(self):
        if self.action == "list":
            return QuotationListSerializer
        return QuotationSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action != "list":
            queryset = queryset.prefetch_related(ROOM_PREFETCH, "milestones")
        status = self.request.query_params.get("status")
        if status:
            queryset = queryset.filter(status=status)
        customer_id = self.request.query_params.get("customer")
        if customer_id:
            queryset = queryset.filter(customer_id=customer_id)
        query = self.request.query_params.get("q")
        if query:
            queryset = queryset.filter(
                Q(quotation_number__icontains=query) | Q(title__icontains=query) | Q(customer__name__icontains=query)
            )
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        quotation = create_quotation(
            customer=fields.pop("customer"),
            defaults=get_quotation_defaults(),
            actor=request.user,
            **fields,
        )
        return Response(self.get_serializer(quotation).data, status=201)

    def perform_update(self, serializer):
        ensure_editable(serializer.instance)
        with transaction.atomic():
            quotation = recalculate_quotation(serializer.save())
            record_audit(
                actor=self.request.user,
                action="quotation.update",
                entity_type="quotation",
                entity_id=quotation.id,
                payload={key: str(value) for key, value in serializer.validated_data.items()},
            )

    def destroy(self, request, *args, **kwargs):
        quotation = self.get_object()
        if quotation.status != QuotationStatus.DRAFT:
            return error_response("invalid_state", "Only draft quotations can be deleted.")
        record_audit(
            actor=request.user,
            action="quotation.delete",
            entity_type="quotation",
            entity_id=quotation.id,
            payload={"quotation_number": quotation.quotation_number},
        )
        quotation.delete()
        return Response(status=204)

    @action(detail=True, methods=["post", "put"])
    def status(self, request, pk=None):
        quotation = self.get_object()
        serializer = QuotationStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = transition_status(quotation, serializer.validated_data["status"], actor=request.user)
        if isinstance(result, QuotationError):
            return result.as_response()
        return Response(self.get_serializer(self.get_queryset().get(pk=result.pk)).data, status=200)

    @action(detail=True, methods=["get"])
    def validate(self, request, pk=None):
        quotation = self.get_object()
        errors = [issue.as_dict() for issue in validate_for_save(quotation)]
        warnings = accessory_warnings(quotation, get_required_accessories())
        return Response({"is_valid": not errors, "errors": errors, "warnings": warnings})

    @action(detail=True, methods=["post"])
    def duplicate(self, request, pk=None):
        source = self.get_object()
        serializer = QuotationDuplicateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        copy = duplicate_quotation(source, actor=request.user, customer=serializer.validated_data.get("customer"))
        return Response(self.get_serializer(self.get_queryset().get(pk=copy.pk)).data, status=201)

    @action(detail=True, methods=["post"], url_path="convert-to-order")
    def convert_to_order(self, request, pk=None):
        quotation = self.get_object()
        serializer = ConvertToOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = convert_to_sales_order(quotation.pk, serializer.validated_data, actor=request.user)
        if isinstance(result, QuotationError):
            return result.as_response()
        return Response(SalesOrderSerializer(result).data, status=201)

    @action(detail=True, methods=["post"], url_path="convert-to-invoice")
    def convert_to_invoice(self, request, pk=None):
        quotation = self.get_object()
        serializer = ConvertToInvoiceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = convert_quotation_to_invoice(quotation.pk, serializer.validated_data, actor=request.user)
        if isinstance(result, QuotationError):
            return result.as_response()
        return Response(InvoiceSerializer(result).data, status=201)

    @action(detail=True, methods=["get"], url_path="installation-charges")
    def installation_charges(self, request, pk=None):
        quotation = self.get_object()
        charges = InstallationCharge.objects.filter(room__quotation=quotation).select_related("room")
        rows = []
        for charge in charges.order_by("room__order", "created_at"):
            row = InstallationChargeSerializer(charge).data
            row["room_name"] = charge.room.name
            rows.append(row)
        return Response({"results": rows, "total": str(to_money(quotation.total_installation_charges))})

    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        quotation = self.get_object()
        entries = AuditLog.objects.for_entity("quotation", quotation.id).select_related("actor")
        return Response(AuditLogSerializer(entries, many=True).data)


class RoomViewSet(viewsets.ModelViewSet):
    queryset = Room.objects.select_related("quotation").prefetch_related(
        "products", "accessories", "installation_charges", "images"
    )
    serializer_class = RoomSerializer
    permission_classes = [RolePermission]
    capability_map = {**CHILD_CAPABILITIES, "reorder": ["quotations.manage"]}

    def get_queryset(self):
        queryset = super().get_queryset()
        quotation_id = self.request.query_params.get("quotation")
        if quotation_id:
            queryset = queryset.filter(quotation_id=quotation_id)
        return queryset

    def perform_create(self, serializer):
        quotation = serializer.validated_data["quotation"]
        ensure_editable(quotation)
        with transaction.atomic():
            extra = {} if "order" in serializer.validated_data else {"order": quotation.rooms.count()}
            serializer.save(**extra)
            recalculate_quotation(quotation)

    def perform_update(self, serializer):
        ensure_editable(serializer.instance.quotation)
        serializer.save()

    def perform_destroy(self, instance):
        quotation = instance.quotation
        ensure_editable(quotation)
        with transaction.atomic():
            instance.delete()
            recalculate_quotation(quotation)

    @action(detail=False, methods=["post"])
    def reorder(self, request):
        serializer = RoomReorderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        quotation = serializer.validated_data["quotation"]
        ensure_editable(quotation)
        if not reorder_rooms(quotation, serializer.validated_data["room_ids"]):
            return error_response(
                "invalid_request",
                "room_ids must list every room of the quotation exactly once.",
                fields={"room_ids": ["must match the quotation's rooms"]},
            )
        rooms = Room.objects.filter(quotation=quotation).prefetch_related(
            "products", "accessories", "installation_charges", "images"
        )
        return Response(RoomSerializer(rooms, many=True).data, status=200)


class RoomChildViewSet(viewsets.ModelViewSet):
    """Base for records owned by a room; every write refreshes room and quotation totals."""

    permission_classes = [RolePermission]
    capability_map = CHILD_CAPABILITIES
    affects_totals = True

    def get_queryset(self):
        queryset = self.queryset.select_related("room__quotation")
        room_id = self.request.query_params.get("room")
        if room_id:
            queryset = queryset.filter(room_id=room_id)
        return queryset

    def _refresh(self, room):
        if self.affects_totals:
            refresh_room_totals(room)

    def perform_create(self, serializer):
        room = serializer.validated_data["room"]
        ensure_editable(room.quotation)
        with transaction.atomic():
            serializer.save()
            self._refresh(room)

    def perform_update(self, serializer):
        room = serializer.instance.room
        ensure_editable(room.quotation)
        with transaction.atomic():
            serializer.save()
            self._refresh(room)

    def perform_destroy(self, instance):
        room = instance.room
        ensure_editable(room.quotation)
        with transaction.atomic():
            instance.delete()
            self._refresh(room)


class RoomProductViewSet(RoomChildViewSet):
    queryset = RoomProduct.objects.all()
    serializer_class = RoomProductSerializer


class RoomAccessoryViewSet(RoomChildViewSet):
    queryset = RoomAccessory.objects.all()
    serializer_class = RoomAccessorySerializer


class InstallationChargeViewSet(RoomChildViewSet):
    queryset = InstallationCharge.objects.all()
    serializer_class = InstallationChargeSerializer


class RoomImageViewSet(RoomChildViewSet):
    queryset = RoomImage.objects.all()
    serializer_class = RoomImageSerializer
    affects_totals = False


class MilestoneViewSet(viewsets.ModelViewSet):
    """Project schedule of a quotation; stays editable after conversion."""

    queryset = Milestone.objects.select_related("quotation")
    serializer_class = MilestoneSerializer
    permission_classes = [RolePermission]
    capability_map = {**CHILD_CAPABILITIES, "status": ["quotations.manage"], "reorder": ["quotations.manage"]}

    def get_queryset(self):
        queryset = super().get_queryset()
        quotation_id = self.request.query_params.get("quotation")
        if quotation_id:
            queryset = queryset.filter(quotation_id=quotation_id)
        return queryset

    def perform_create(self, serializer):
        quotation = serializer.validated_data["quotation"]
        extra = {} if "order" in serializer.validated_data else {"order": next_milestone_order(quotation)}
        serializer.save(**extra)

    @action(detail=True, methods=["post", "put"])
    def status(self, request, pk=None):
        milestone = self.get_object()
        serializer = MilestoneStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        milestone = set_milestone_status(
            milestone,
            serializer.validated_data["status"],
            completed_date=serializer.validated_data.get("completed_date"),
            actor=request.user,
        )
        return Response(self.get_serializer(milestone).data, status=200)

    @action(detail=False, methods=["post"])
    def reorder(self, request):
        serializer = MilestoneReorderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        quotation = serializer.validated_data["quotation"]
        if not reorder_milestones(quotation, serializer.validated_data["milestone_ids"]):
            return error_response(
                "invalid_request",
                "milestone_ids must list every milestone of the quotation exactly once.",
                fields={"milestone_ids": ["must match the quotation's milestones"]},
            )
        milestones = Milestone.objects.filter(quotation=quotation)
        return Response(MilestoneSerializer(milestones, many=True).data, status=200)
