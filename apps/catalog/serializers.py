from rest_framework import serializers

from apps.catalog.models import AccessoryCatalog


class AccessoryCatalogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AccessoryCatalog
        fields = [
            "id",
            "category",
            "code",
            "name",
            "description",
            "selling_price",
            "kitchen_price",
            "wardrobe_price",
            "size",
            "image_url",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_code(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("code is required")
        return value

    def validate(self, attrs):
        for field in ("selling_price", "kitchen_price", "wardrobe_price"):
            value = attrs.get(field)
            if value is not None and value < 0:
                raise serializers.ValidationError({field: "must be >= 0"})
        return attrs
