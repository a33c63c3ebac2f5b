import logging
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from common.exceptions import Conflict, InvalidRequest, ResourceNotFound
from common.utils import ZERO, to_money
from inventory.models import Product
from sales.models import (
    WALK_IN_CLIENT_ID,
    Client,
    ClientProductPrice,
    Invoice,
    InvoiceItem,
    Sale,
    SaleItem,
)
from sales.pricing import unit_prices_for

logger = logging.getLogger(__name__)

WALK_IN_PROTECTED_MESSAGE = "Cannot delete Walk-in Customer. This is a default system client."

# Largest values the quantity and money columns can hold.
MAX_QUANTITY = 2147483647
MAX_AMOUNT = Decimal("9999999999.99")


def sale_queryset():
    return Sale.objects.select_related("client").prefetch_related("items__product")


def invoice_queryset():
    return Invoice.objects.select_related("client").prefetch_related("items")


# Sales


def _collect_sale_errors(client_id, items):
    errors = []
    for item in items:
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        if product_id is None or product_id <= 0:
            errors.append("ProductId must be valid")
        if quantity is None or quantity <= 0:
            errors.append(f"Quantity must be > 0 for ProductId {product_id}")
        elif quantity > MAX_QUANTITY:
            errors.append(f"Quantity must be <= {MAX_QUANTITY} for ProductId {product_id}")

    client = None
    if client_id:
        client = Client.objects.filter(pk=client_id).first()
        if client is None:
            errors.append(f"ClientId {client_id} does not exist")

    product_ids = list(dict.fromkeys(item["product_id"] for item in items if (item.get("product_id") or 0) > 0))
    products = Product.objects.in_bulk(product_ids)
    missing = [product_id for product_id in product_ids if product_id not in products]
    if missing:
        errors.append("Some products do not exist: " + ", ".join(str(product_id) for product_id in missing))

    return errors, client, products, missing


def _price_lines(client, products, items):
    """Return ``(lines, total, errors)``; `errors` lists amounts too large to store."""
    prices = unit_prices_for(client, products.values())
    lines = []
    errors = []
    total = ZERO
    for item in items:
        unit_price = to_money(prices[item["product_id"]])
        subtotal = to_money(unit_price * item["quantity"])
        if subtotal > MAX_AMOUNT:
            errors.append(f"Subtotal exceeds {MAX_AMOUNT} for ProductId {item['product_id']}")
        lines.append((item, unit_price, subtotal))
        total += subtotal

    if not errors and total > MAX_AMOUNT:
        errors.append(f"Sale total exceeds {MAX_AMOUNT}")
    return lines, to_money(total), errors


def create_sale(*, items, client_id=None):
    """Validate and persist a sale with all of its line items in one transaction.

    `items` is a sequence of ``{"product_id": int, "quantity": int}`` mappings.
    A falsy `client_id` records a walk-in sale with no client row and base
    prices. Every violation is collected before anything is written.
    """
    if not items:
        raise InvalidRequest("Sale items are required", errors=["Sale items are required"])

    errors, client, products, missing = _collect_sale_errors(client_id, items)
    if errors:
        extra = {"missing": missing} if missing else {}
        raise InvalidRequest("Validation failed.", errors=errors, **extra)

    inactive = [product.id for product in products.values() if not product.is_active]
    if inactive:
        raise Conflict("Some products are inactive", errors=[f"Product with ID {pid} is inactive" for pid in inactive], inactive=inactive)

    lines, total, errors = _price_lines(client, products, items)
    if errors:
        raise InvalidRequest("Validation failed.", errors=errors)

    with transaction.atomic():
        sale = Sale.objects.create(client=client, sale_date=timezone.now(), total_amount=ZERO)
        sale_items = [
            SaleItem(
                sale=sale,
                product_id=item["product_id"],
                quantity=item["quantity"],
                unit_price=unit_price,
                subtotal=subtotal,
            )
            for item, unit_price, subtotal in lines
        ]
        SaleItem.objects.bulk_create(sale_items)
        sale.total_amount = total
        sale.save(update_fields=["total_amount"])

    logger.info(
        "sale_created",
        extra={
            "sale_id": sale.id,
            "client_id": client.id if client else None,
            "item_count": len(sale_items),
            "total_amount": str(sale.total_amount),
        },
    )
    return sale_queryset().get(pk=sale.pk)


# Invoices


def format_invoice_number(year, sequence):
    return f"{settings.INVOICE_NUMBER_PREFIX}-{year}-{sequence:0{settings.INVOICE_NUMBER_PADDING}d}"


def next_invoice_number(year, start=None):
    """Return ``(number, sequence)`` for the first free number of `year`.

    The starting sequence is the count of invoices already issued that year
    plus one. Count-then-format is racy, so the caller still has to handle a
    collision at insert time.
    """
    sequence = start
    if sequence is None:
        sequence = Invoice.objects.filter(issue_date__year=year).count() + 1

    candidate = format_invoice_number(year, sequence)
    while Invoice.objects.filter(invoice_number=candidate).exists():
        sequence += 1
        candidate = format_invoice_number(year, sequence)
    return candidate, sequence


def _existing_invoice_id(sale_id):
    return Invoice.objects.filter(sale_id=sale_id).values_list("id", flat=True).first()


def _insert_invoice(sale, manual_number, issue_date, due_date):
    sequence = None
    for attempt in range(1, settings.INVOICE_NUMBER_MAX_ATTEMPTS + 1):
        if manual_number:
            number = manual_number
        else:
            number, sequence = next_invoice_number(issue_date.year, start=sequence)

        try:
            with transaction.atomic():
                return Invoice.objects.create(
                    invoice_number=number,
                    sale=sale,
                    client=sale.client,
                    issue_date=issue_date,
                    due_date=due_date,
                    status=Invoice.Status.UNPAID,
                    total_amount=ZERO,
                )
        except IntegrityError:
            existing_id = _existing_invoice_id(sale.id)
            if existing_id is not None:
                raise Conflict("An invoice already exists for this sale", invoiceId=existing_id)
            if manual_number:
                raise Conflict("Manual invoice number already exists", invoiceNumber=manual_number)
            logger.warning(
                "invoice_number_collision",
                extra={"sale_id": sale.id, "invoice_number": number, "attempt": attempt},
            )
            sequence += 1

    raise Conflict("Could not allocate a unique invoice number, please retry")


def generate_invoice(sale_id, *, manual_invoice_number=None, due_date=None):
    """Derive an Unpaid invoice from a sale, snapshotting its lines and total."""
    sale = sale_queryset().filter(pk=sale_id).first()
    if sale is None:
        raise ResourceNotFound(f"Sale with ID {sale_id} not found")

    existing_id = _existing_invoice_id(sale.id)
    if existing_id is not None:
        raise Conflict("An invoice already exists for this sale", invoiceId=existing_id)

    manual_number = (manual_invoice_number or "").strip()
    if manual_number and Invoice.objects.filter(invoice_number=manual_number).exists():
        raise Conflict("Manual invoice number already exists", invoiceNumber=manual_number)

    issue_date = timezone.now()
    with transaction.atomic():
        invoice = _insert_invoice(sale, manual_number, issue_date, due_date)

        total = ZERO
        invoice_items = []
        for sale_item in sale.items.all():
            line_total = to_money(sale_item.unit_price * sale_item.quantity)
            invoice_items.append(
                InvoiceItem(
                    invoice=invoice,
                    product_id=sale_item.product_id,
                    product_name=sale_item.product.name,
                    quantity=sale_item.quantity,
                    unit_price=sale_item.unit_price,
                    line_total=line_total,
                )
            )
            total += line_total

        InvoiceItem.objects.bulk_create(invoice_items)
        invoice.total_amount = to_money(total)
        invoice.save(update_fields=["total_amount"])

    logger.info(
        "invoice_generated",
        extra={
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "sale_id": sale.id,
            "total_amount": str(invoice.total_amount),
        },
    )
    return invoice_queryset().get(pk=invoice.pk)


# Clients and overrides


def deactivate_client(client_id):
    if client_id == WALK_IN_CLIENT_ID:
        raise InvalidRequest(WALK_IN_PROTECTED_MESSAGE)

    client = Client.objects.filter(pk=client_id).first()
    if client is None:
        raise ResourceNotFound(f"Client with ID {client_id} not found")

    client.is_active = False
    client.save(update_fields=["is_active", "updated_at"])
    logger.info("client_deactivated", extra={"client_id": client.id})
    return client


def bulk_deactivate_clients(ids):
    """Soft-delete many clients at once. The Walk-in Customer is skipped, never deleted."""
    ids = list(dict.fromkeys(ids or []))
    if not ids:
        raise InvalidRequest("Client IDs are required")

    valid_ids = [client_id for client_id in ids if client_id != WALK_IN_CLIENT_ID]
    skipped_count = len(ids) - len(valid_ids)
    if not valid_ids:
        raise InvalidRequest(WALK_IN_PROTECTED_MESSAGE)

    with transaction.atomic():
        clients = Client.objects.select_for_update().filter(pk__in=valid_ids)
        deleted_ids = list(clients.values_list("id", flat=True))
        if not deleted_ids:
            raise ResourceNotFound("No clients found with the provided IDs")
        Client.objects.filter(pk__in=deleted_ids).update(is_active=False, updated_at=timezone.now())

    deleted_count = len(deleted_ids)
    if skipped_count:
        message = f"{deleted_count} client(s) deactivated successfully. Walk-in Customer was skipped (cannot be deleted)."
    else:
        message = f"{deleted_count} client(s) deactivated successfully"

    logger.info("clients_bulk_deactivated", extra={"item_count": deleted_count})
    return {
        "message": message,
        "deletedCount": deleted_count,
        "skippedCount": skipped_count,
        "skippedWalkIn": bool(skipped_count),
    }


def set_override_price(client_id, product_id, price):
    """Create, replace or reactivate the single override row for a (client, product) pair."""
    if price is None or price <= 0:
        raise InvalidRequest("Price must be greater than zero", errors={"price": ["Price must be greater than zero"]})

    client = Client.objects.filter(pk=client_id).first()
    if client is None:
        raise ResourceNotFound(f"Client with ID {client_id} not found")
    if not client.is_active:
        raise Conflict("Client is inactive", clientId=client.id)

    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise ResourceNotFound(f"Product with ID {product_id} not found")
    if not product.is_active:
        raise Conflict("Product is inactive", productId=product.id)

    override, created = ClientProductPrice.objects.update_or_create(
        client=client,
        product=product,
        defaults={"price": to_money(price), "is_active": True},
    )
    logger.info(
        "override_price_set",
        extra={"client_id": client.id, "product_id": product.id, "price": str(override.price)},
    )
    return override, created


def remove_override_price(client_id, product_id):
    override = ClientProductPrice.objects.filter(client_id=client_id, product_id=product_id).first()
    if override is None:
        raise ResourceNotFound("Override price not found")

    override.is_active = False
    override.save(update_fields=["is_active", "updated_at"])
    logger.info("override_price_removed", extra={"client_id": client_id, "product_id": product_id})
    return override

