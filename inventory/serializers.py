from decimal import Decimal

from rest_framework import serializers

from inventory.models import Product


class ProductSerializer(serializers.ModelSerializer):
    isActive = serializers.BooleanField(source="is_active", required=False)
    price = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0"),
        error_messages={"min_value": "Price must be greater than or equal to 0"},
    )
    quantity = serializers.IntegerField(
        required=False,
        min_value=0,
        error_messages={"min_value": "Quantity must be greater than or equal to 0"},
    )
    description = serializers.CharField(required=False, allow_blank=True)

    class Meta:
        model = Product
        fields = ["id", "name", "description", "price", "quantity", "isActive"]
        read_only_fields = ["id"]

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Name is required")
        return value

    def validate_description(self, value):
        return value.strip()

    def validate(self, attrs):
        if self.partial and not attrs:
            raise serializers.ValidationError("At least one field must be provided for update")
        if self.instance is None:
            attrs.setdefault("is_active", True)
        return attrs
