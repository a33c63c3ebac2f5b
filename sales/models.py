from django.db import models

from inventory.models import Product

WALK_IN_CLIENT_ID = 1
WALK_IN_CLIENT_NAME = "Walk-in Customer"


class ClientQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)


class Client(models.Model):
    name = models.CharField(max_length=255)
    email = models.EmailField(max_length=254)
    phone = models.CharField(max_length=64)
    address = models.CharField(max_length=512, blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ClientQuerySet.as_manager()

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["email"], name="client_email_idx"),
            models.Index(fields=["is_active"], name="client_is_active_idx"),
        ]

    def __str__(self):
        return self.name


class ClientProductPrice(models.Model):
    """Per-client price override. Removing an override only flips `is_active`."""

    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name="price_overrides")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="client_prices")
    price = models.DecimalField(max_digits=12, decimal_places=2)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["client", "product"], name="uniq_client_product_price"),
            models.CheckConstraint(condition=models.Q(price__gt=0), name="client_product_price_positive"),
        ]


class Sale(models.Model):
    client = models.ForeignKey(Client, on_delete=models.PROTECT, null=True, blank=True, related_name="sales")
    sale_date = models.DateTimeField()
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    class Meta:
        ordering = ["-sale_date", "-id"]
        indexes = [
            models.Index(fields=["sale_date"], name="sale_date_idx"),
            models.Index(fields=["client", "sale_date"], name="sale_client_date_idx"),
        ]


class SaleItem(models.Model):
    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="sale_items")
    quantity = models.PositiveIntegerField()
    # Snapshotted at sale time, independent of later product price changes.
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["product"], name="sale_item_product_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name="sale_item_quantity_positive"),
        ]


class Invoice(models.Model):
    class Status(models.TextChoices):
        UNPAID = "Unpaid", "Unpaid"
        PAID = "Paid", "Paid"
        CANCELLED = "Cancelled", "Cancelled"

    invoice_number = models.CharField(max_length=64)
    sale = models.OneToOneField(Sale, on_delete=models.PROTECT, related_name="invoice")
    client = models.ForeignKey(Client, on_delete=models.PROTECT, null=True, blank=True, related_name="invoices")
    issue_date = models.DateTimeField()
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.UNPAID)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    class Meta:
        ordering = ["-issue_date", "-id"]
        indexes = [
            models.Index(fields=["issue_date"], name="invoice_issue_date_idx"),
            models.Index(fields=["status", "issue_date"], name="invoice_status_issue_idx"),
        ]
        constraints = [
            models.UniqueConstraint(fields=["invoice_number"], name="uniq_invoice_number"),
        ]


class InvoiceItem(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="invoice_items")
    product_name = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    line_total = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["product"], name="invoice_item_product_idx"),
        ]
