from rest_framework import serializers

from apps.customers.models import Customer, CustomerStage, FollowUp


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ["id", "name", "email", "phone", "address", "stage", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("name is required")
        return value

    def validate_phone(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("phone is required")
        return value


class CustomerStageSerializer(serializers.Serializer):
    stage = serializers.ChoiceField(choices=CustomerStage.choices)


class FollowUpSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source="customer.name", read_only=True)

    class Meta:
        model = FollowUp
        fields = [
            "id",
            "customer",
            "customer_name",
            "notes",
            "interaction_date",
            "next_follow_up_date",
            "completed",
            "user",
            "created_at",
        ]
        read_only_fields = ["id", "user", "created_at"]

    def validate(self, attrs):
        interaction_date = attrs.get("interaction_date", getattr(self.instance, "interaction_date", None))
        next_date = attrs.get("next_follow_up_date")
        if next_date and interaction_date and next_date < interaction_date:
            raise serializers.ValidationError({"next_follow_up_date": "cannot be before interaction_date"})
        return attrs
