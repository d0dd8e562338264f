from decimal import Decimal

from rest_framework import serializers

from apps.common.money import amount_in_words, format_inr, to_money
from apps.customers.models import Customer
from apps.quotations import pricing
from apps.quotations.models import (
    DiscountType,
    InstallationCharge,
    Milestone,
    MilestoneStatus,
    Quotation,
    QuotationStatus,
    Room,
    RoomAccessory,
    RoomImage,
    RoomProduct,
)
from apps.quotations.services import room_totals
from apps.quotations.workflow import allowed_transitions

LINE_FIELDS = [
    "id",
    "room",
    "name",
    "description",
    "quantity",
    "selling_price",
    "discount",
    "discount_type",
    "discounted_price",
    "line_total",
    "created_at",
]


class LineItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=18, decimal_places=4, read_only=True)

    class Meta:
        fields = LINE_FIELDS
        read_only_fields = ["id", "discounted_price", "line_total", "created_at"]

    def validate_room(self, value):
        if self.instance is not None and value.pk != self.instance.room_id:
            raise serializers.ValidationError("line items cannot be moved to another room")
        return value

    def validate(self, attrs):
        discount = attrs.get("discount", getattr(self.instance, "discount", Decimal("0")))
        discount_type = attrs.get("discount_type", getattr(self.instance, "discount_type", DiscountType.PERCENTAGE))
        if discount is not None and discount < 0:
            raise serializers.ValidationError({"discount": "must be >= 0"})
        if discount_type == DiscountType.PERCENTAGE and discount is not None and discount > 100:
            raise serializers.ValidationError({"discount": "percentage discount must be <= 100"})
        return attrs


class RoomProductSerializer(LineItemSerializer):
    class Meta(LineItemSerializer.Meta):
        model = RoomProduct


class RoomAccessorySerializer(LineItemSerializer):
    class Meta(LineItemSerializer.Meta):
        model = RoomAccessory
        fields = [*LINE_FIELDS, "catalog_item"]
        extra_kwargs = {
            "name": {"required": False},
            "selling_price": {"required": False},
        }

    def validate(self, attrs):
        catalog_item = attrs.get("catalog_item")
        room = attrs.get("room") or getattr(self.instance, "room", None)
        if catalog_item is not None:
            attrs.setdefault("name", catalog_item.name)
            if not attrs.get("description"):
                attrs["description"] = catalog_item.description
            if "selling_price" not in attrs:
                attrs["selling_price"] = catalog_item.price_for(room.name if room else "")
        if self.instance is None:
            if not attrs.get("name"):
                raise serializers.ValidationError({"name": "name or catalog_item is required"})
            if attrs.get("selling_price") is None:
                raise serializers.ValidationError({"selling_price": "selling_price or catalog_item is required"})
        return super().validate(attrs)


class InstallationChargeSerializer(serializers.ModelSerializer):
    class Meta:
        model = InstallationCharge
        fields = [
            "id",
            "room",
            "cabinet_type",
            "width_mm",
            "height_mm",
            "price_per_sqft",
            "area_sqft",
            "amount",
            "created_at",
        ]
        read_only_fields = ["id", "area_sqft", "created_at"]
        extra_kwargs = {"amount": {"required": False}}

    def validate(self, attrs):
        for field in ("width_mm", "height_mm", "price_per_sqft", "amount"):
            value = attrs.get(field)
            if value is not None and value < 0:
                raise serializers.ValidationError({field: "must be >= 0"})

        dimensions_changed = any(field in attrs for field in ("width_mm", "height_mm", "price_per_sqft"))
        if "amount" not in attrs and (self.instance is None or dimensions_changed):
            width = attrs.get("width_mm", getattr(self.instance, "width_mm", Decimal("0")))
            height = attrs.get("height_mm", getattr(self.instance, "height_mm", Decimal("0")))
            price = attrs.get("price_per_sqft", getattr(self.instance, "price_per_sqft", pricing.DEFAULT_PRICE_PER_SQFT))
            attrs["amount"] = to_money(pricing.compute_installation_amount(width, height, price))
        return attrs


class RoomImageSerializer(serializers.ModelSerializer):
    class Meta:
        model = RoomImage
        fields = ["id", "room", "image_url", "caption", "order", "created_at"]
        read_only_fields = ["id", "created_at"]


class RoomSerializer(serializers.ModelSerializer):
    products = RoomProductSerializer(many=True, read_only=True)
    accessories = RoomAccessorySerializer(many=True, read_only=True)
    installation_charges = InstallationChargeSerializer(many=True, read_only=True)
    images = RoomImageSerializer(many=True, read_only=True)

    class Meta:
        model = Room
        fields = [
            "id",
            "quotation",
            "name",
            "description",
            "order",
            "selling_price",
            "discounted_price",
            "installation_amount",
            "products",
            "accessories",
            "installation_charges",
            "images",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "selling_price",
            "discounted_price",
            "installation_amount",
            "created_at",
            "updated_at",
        ]

    def validate_quotation(self, value):
        if self.instance is not None and value.pk != self.instance.quotation_id:
            raise serializers.ValidationError("rooms cannot be moved to another quotation")
        return value


class RoomReorderSerializer(serializers.Serializer):
    quotation = serializers.PrimaryKeyRelatedField(queryset=Quotation.objects.all())
    room_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class MilestoneSerializer(serializers.ModelSerializer):
    class Meta:
        model = Milestone
        fields = [
            "id",
            "quotation",
            "title",
            "description",
            "start_date",
            "end_date",
            "status",
            "completed_date",
            "order",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "status", "completed_date", "created_at", "updated_at"]

    def validate_quotation(self, value):
        if self.instance is not None and value.pk != self.instance.quotation_id:
            raise serializers.ValidationError("milestones cannot be moved to another quotation")
        return value

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("title is required")
        return value

    def validate(self, attrs):
        start = attrs.get("start_date", getattr(self.instance, "start_date", None))
        end = attrs.get("end_date", getattr(self.instance, "end_date", None))
        if start and end and end < start:
            raise serializers.ValidationError({"end_date": "must not be before start_date"})
        return attrs


class MilestoneStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=MilestoneStatus.choices)
    completed_date = serializers.DateField(required=False, allow_null=True)


class MilestoneReorderSerializer(serializers.Serializer):
    quotation = serializers.PrimaryKeyRelatedField(queryset=Quotation.objects.all())
    milestone_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


QUOTATION_INPUT_FIELDS = [
    "customer",
    "title",
    "description",
    "global_discount",
    "installation_handling",
    "gst_percentage",
    "valid_until",
    "terms",
]
QUOTATION_DERIVED_FIELDS = [
    "total_selling_price",
    "total_discounted_price",
    "total_installation_charges",
    "gst_amount",
    "final_price",
]


class QuotationListSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source="customer.name", read_only=True)

    class Meta:
        model = Quotation
        fields = [
            "id",
            "quotation_number",
            "customer",
            "customer_name",
            "title",
            "status",
            "final_price",
            "valid_until",
            "created_at",
            "updated_at",
        ]


class QuotationSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source="customer.name", read_only=True)
    rooms = RoomSerializer(many=True, read_only=True)
    milestones = MilestoneSerializer(many=True, read_only=True)
    summary = serializers.SerializerMethodField()
    allowed_transitions = serializers.SerializerMethodField()

    class Meta:
        model = Quotation
        fields = [
            "id",
            "quotation_number",
            "status",
            "customer_name",
            *QUOTATION_INPUT_FIELDS,
            *QUOTATION_DERIVED_FIELDS,
            "summary",
            "allowed_transitions",
            "rooms",
            "milestones",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "quotation_number",
            "status",
            *QUOTATION_DERIVED_FIELDS,
            "created_by",
            "created_at",
            "updated_at",
        ]

    def validate_global_discount(self, value):
        if value < 0 or value > 100:
            raise serializers.ValidationError("must be between 0 and 100")
        return value

    def validate_gst_percentage(self, value):
        if value < 0:
            raise serializers.ValidationError("must be >= 0")
        return value

    def validate_installation_handling(self, value):
        if value < 0:
            raise serializers.ValidationError("must be >= 0")
        return value

    def get_summary(self, obj):
        totals = pricing.compute_quotation_totals(obj, [room_totals(room) for room in obj.rooms.all()])
        final_price = to_money(totals.final_price)
        return {
            "subtotal": str(to_money(totals.total_discounted_price)),
            "global_discount_amount": str(to_money(totals.total_discounted_price - totals.after_discount)),
            "after_discount": str(to_money(totals.after_discount)),
            "taxable_amount": str(to_money(totals.taxable_amount)),
            "gst_amount": str(to_money(totals.gst_amount)),
            "final_price": str(final_price),
            "final_price_display": format_inr(final_price),
            "final_price_in_words": amount_in_words(final_price),
        }

    def get_allowed_transitions(self, obj):
        return allowed_transitions(obj.status)


class QuotationStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=QuotationStatus.choices)


class QuotationDuplicateSerializer(serializers.Serializer):
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.all(), required=False)
