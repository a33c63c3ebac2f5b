from decimal import Decimal

from rest_framework import serializers

from common.exceptions import Conflict
from sales.models import Client, ClientProductPrice, Invoice, InvoiceItem, Sale, SaleItem


class ClientSerializer(serializers.ModelSerializer):
    email = serializers.EmailField(max_length=254, error_messages={"invalid": "Invalid email format"})
    address = serializers.CharField(required=False, allow_blank=True, max_length=512)
    isActive = serializers.BooleanField(source="is_active", read_only=True)

    class Meta:
        model = Client
        fields = ["id", "name", "email", "phone", "address", "isActive"]
        read_only_fields = ["id"]

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Name is required")
        return value

    def validate_phone(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Phone is required")
        return value

    def validate_address(self, value):
        return value.strip()

    def validate_email(self, value):
        value = value.strip()
        duplicates = Client.objects.filter(email=value)
        if self.instance is not None:
            duplicates = duplicates.exclude(pk=self.instance.pk)
        if duplicates.exists():
            raise Conflict("Email already exists", email=value)
        return value

    def validate(self, attrs):
        if self.partial and not attrs:
            raise serializers.ValidationError("At least one field must be provided for update")
        return attrs


class ClientSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Client
        fields = ["id", "name", "email", "phone"]
        read_only_fields = fields


class ClientBulkDeleteSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(), required=False, allow_empty=True)


class ClientPriceSerializer(serializers.ModelSerializer):
    clientId = serializers.IntegerField(source="client_id", read_only=True)
    productId = serializers.IntegerField(source="product_id", read_only=True)
    productName = serializers.CharField(source="product.name", read_only=True)
    basePrice = serializers.DecimalField(source="product.price", max_digits=12, decimal_places=2, read_only=True)
    isActive = serializers.BooleanField(source="is_active", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = ClientProductPrice
        fields = ["id", "clientId", "productId", "productName", "basePrice", "price", "isActive", "createdAt", "updatedAt"]
        read_only_fields = fields


class ClientPriceInputSerializer(serializers.Serializer):
    productId = serializers.IntegerField(
        min_value=1,
        error_messages={"min_value": "ProductId is required"},
    )
    price = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
        error_messages={"min_value": "Price must be greater than zero"},
    )


class SaleItemInputSerializer(serializers.Serializer):
    # Range checks happen in the service so every violation is reported at once.
    productId = serializers.IntegerField(source="product_id")
    quantity = serializers.IntegerField()


class SaleCreateSerializer(serializers.Serializer):
    clientId = serializers.IntegerField(source="client_id", required=False, allow_null=True)
    items = SaleItemInputSerializer(many=True, required=False)


class SaleItemSerializer(serializers.ModelSerializer):
    productId = serializers.IntegerField(source="product_id", read_only=True)
    productName = serializers.CharField(source="product.name", read_only=True)
    unitPrice = serializers.DecimalField(source="unit_price", max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = SaleItem
        fields = ["id", "productId", "productName", "quantity", "unitPrice", "subtotal"]
        read_only_fields = fields


class SaleSerializer(serializers.ModelSerializer):
    clientId = serializers.IntegerField(source="client_id", read_only=True, allow_null=True)
    client = ClientSummarySerializer(read_only=True, allow_null=True)
    saleDate = serializers.DateTimeField(source="sale_date", read_only=True)
    totalAmount = serializers.DecimalField(source="total_amount", max_digits=12, decimal_places=2, read_only=True)
    items = SaleItemSerializer(many=True, read_only=True)

    class Meta:
        model = Sale
        fields = ["id", "clientId", "client", "saleDate", "totalAmount", "items"]
        read_only_fields = fields


class InvoiceCreateSerializer(serializers.Serializer):
    manualInvoiceNumber = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=64)
    dueDate = serializers.DateField(required=False, allow_null=True)


class InvoiceItemSerializer(serializers.ModelSerializer):
    productId = serializers.IntegerField(source="product_id", read_only=True)
    productName = serializers.CharField(source="product_name", read_only=True)
    unitPrice = serializers.DecimalField(source="unit_price", max_digits=12, decimal_places=2, read_only=True)
    lineTotal = serializers.DecimalField(source="line_total", max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = InvoiceItem
        fields = ["id", "productId", "productName", "quantity", "unitPrice", "lineTotal"]
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    invoiceNumber = serializers.CharField(source="invoice_number", read_only=True)
    saleId = serializers.IntegerField(source="sale_id", read_only=True)
    clientId = serializers.IntegerField(source="client_id", read_only=True, allow_null=True)
    issueDate = serializers.DateTimeField(source="issue_date", read_only=True)
    dueDate = serializers.DateField(source="due_date", read_only=True, allow_null=True)
    totalAmount = serializers.DecimalField(source="total_amount", max_digits=12, decimal_places=2, read_only=True)
    client = ClientSummarySerializer(read_only=True, allow_null=True)
    items = InvoiceItemSerializer(many=True, read_only=True)

    class Meta:
        model = Invoice
        fields = [
            "id",
            "invoiceNumber",
            "saleId",
            "clientId",
            "issueDate",
            "dueDate",
            "totalAmount",
            "status",
            "client",
            "items",
        ]
        read_only_fields = fields
