"""Effective unit price resolution.

A client's active override for a product wins over the product's base price.
Overrides only count while both the client and the product are active, so a
deactivated client silently falls back to base pricing and a deactivated
product cannot be priced at all.
"""

from common.exceptions import Conflict, ResourceNotFound
from inventory.models import Product
from sales.models import Client, ClientProductPrice


def resolve_unit_price(client_id, product_id):
    """Return the price a client pays for one unit of a product.

    Raises ResourceNotFound for an unknown product or client and Conflict for
    an inactive product. Reads straight from the database every call.
    """
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise ResourceNotFound(f"Product with ID {product_id} not found", productId=product_id)
    if not product.is_active:
        raise Conflict(f"Product with ID {product_id} is inactive", productId=product_id)

    client = Client.objects.filter(pk=client_id).first()
    if client is None:
        raise ResourceNotFound(f"Client with ID {client_id} not found", clientId=client_id)

    return unit_prices_for(client, [product])[product.id]


def unit_prices_for(client, products):
    """Batch form used by the sale builder: one override query for many products.

    `client` may be None for walk-in sales without a client row, in which case
    every product is charged its base price.
    """
    prices = {product.id: product.price for product in products}
    if client is None or not client.is_active or not prices:
        return prices

    overrides = ClientProductPrice.objects.filter(
        client=client,
        product_id__in=prices.keys(),
        product__is_active=True,
        is_active=True,
    ).values_list("product_id", "price")
    for product_id, price in overrides:
        prices[product_id] = price
    return prices
