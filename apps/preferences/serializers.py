from decimal import Decimal

from rest_framework import serializers

from apps.preferences.models import AppSettings, CompanySettings


class CompanySettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = CompanySettings
        fields = ["name", "address", "phone", "email", "website", "logo_url", "tax_id", "updated_at"]
        read_only_fields = ["updated_at"]


class AppSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = AppSettings
        fields = [
            "default_global_discount",
            "default_gst_percentage",
            "default_terms",
            "receipt_terms",
            "required_accessories",
            "updated_at",
        ]
        read_only_fields = ["updated_at"]

    def _validate_percentage(self, value):
        if value < Decimal("0") or value > Decimal("100"):
            raise serializers.ValidationError("must be between 0 and 100")
        return value

    def validate_default_global_discount(self, value):
        return self._validate_percentage(value)

    def validate_default_gst_percentage(self, value):
        return self._validate_percentage(value)

    def validate_required_accessories(self, value):
        return ",".join(item.strip() for item in value.split(",") if item.strip())
