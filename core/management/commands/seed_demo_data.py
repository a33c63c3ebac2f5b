from datetime import timedelta
from decimal import Decimal
import random

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from common.utils import ZERO, to_money
from inventory.models import Product
from sales.models import WALK_IN_CLIENT_ID, WALK_IN_CLIENT_NAME, Client, Sale, SaleItem

DEMO_USERS = [
    ("admin", "admin123", "Admin", "User", "admin"),
    ("staff1", "staff123", "Staff", "Member One", "staff"),
    ("staff2", "staff123", "Staff", "Member Two", "staff"),
]

DEMO_CLIENTS = [
    ("ABC Corporation", "contact@abc.com", "555-0101", "123 Business St", True),
    ("XYZ Restaurant", "orders@xyz.com", "555-0102", "456 Food Ave", True),
    ("Smith Family", "smith@email.com", "555-0103", "789 Home Rd", True),
    ("Green Gym", "info@greengym.com", "555-0104", "321 Fitness Blvd", True),
    ("Tech Startup Inc", "hello@techstartup.com", "555-0105", "654 Innovation Dr", True),
    ("Downtown Cafe", "cafe@downtown.com", "555-0106", "987 Main St", True),
    ("Johnson Household", "johnson@email.com", "555-0107", "147 Oak Lane", True),
    ("City School", "admin@cityschool.edu", "555-0108", "258 Education Way", True),
    ("Wellness Spa", "booking@wellnessspa.com", "555-0109", "369 Relax Ave", False),
    ("Martinez Office", "martinez@business.com", "555-0110", "741 Corporate Plaza", True),
]

DEMO_PRODUCTS = [
    ("5-Gallon Refill", "Standard 5-gallon water refill", "35.00", 500, True),
    ("3-Gallon Refill", "Medium 3-gallon water refill", "25.00", 300, True),
    ("1-Gallon Refill", "Small 1-gallon water refill", "15.00", 200, True),
    ("500ml Bottle", "Purified water in 500ml bottle", "10.00", 1000, True),
    ("1-Liter Bottle", "Purified water in 1-liter bottle", "18.00", 800, True),
    ("Empty 5-Gallon Container", "New empty container for refills", "250.00", 50, True),
    ("Dispenser Pump", "Manual water dispenser pump", "150.00", 30, True),
    ("Alkaline 5-Gallon", "Alkaline water 5-gallon refill", "50.00", 150, True),
    ("Mineral 3-Gallon", "Mineral-enriched 3-gallon refill", "35.00", 100, True),
    ("Distilled 5-Gallon", "Distilled water for medical/lab use", "60.00", 80, True),
    ("2-Gallon Jug", "Portable 2-gallon water jug", "20.00", 120, True),
    ("Cleaning Service", "Container cleaning and sanitization", "50.00", 0, True),
    ("Premium Filtered 5-Gallon", "7-stage filtered premium water", "45.00", 200, True),
    ("Water Cooler Rental", "Monthly water cooler rental", "200.00", 15, True),
    ("Vintage 5-Gallon (Discontinued)", "Old product line", "30.00", 5, False),
]


class Command(BaseCommand):
    help = "Seed demo users, clients, products and historical sales for local development."

    def add_arguments(self, parser):
        parser.add_argument("--sales", type=int, default=30, help="Number of historical sales to create.")
        parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible data.")

    def handle(self, *args, **options):
        if Client.objects.exclude(pk=WALK_IN_CLIENT_ID).exists():
            self.stdout.write("Database already seeded. Skipping seed data.")
            return

        rng = random.Random(options["seed"])
        User = get_user_model()

        with transaction.atomic():
            for username, password, first_name, last_name, role in DEMO_USERS:
                user, created = User.objects.get_or_create(
                    username=username,
                    defaults={
                        "first_name": first_name,
                        "last_name": last_name,
                        "role": role,
                        "is_active": True,
                    },
                )
                if created:
                    user.set_password(password)
                    user.save(update_fields=["password"])

            walk_in, _ = Client.objects.get_or_create(
                pk=WALK_IN_CLIENT_ID,
                defaults={
                    "name": WALK_IN_CLIENT_NAME,
                    "email": "walkin@waterrefill.com",
                    "phone": "000-0000",
                    "address": "N/A",
                },
            )
            clients = [
                Client.objects.create(name=name, email=email, phone=phone, address=address, is_active=is_active)
                for name, email, phone, address, is_active in DEMO_CLIENTS
            ]
            products = [
                Product.objects.create(
                    name=name,
                    description=description,
                    price=Decimal(price),
                    quantity=quantity,
                    is_active=is_active,
                )
                for name, description, price, quantity, is_active in DEMO_PRODUCTS
            ]

            sellable = [product for product in products if product.is_active]
            named_clients = [client for client in clients if client.is_active]
            now = timezone.now()
            item_total = 0

            for _ in range(options["sales"]):
                # Roughly 60% of demo sales belong to a named client.
                client = rng.choice(named_clients) if rng.randint(0, 9) > 3 else walk_in
                sale = Sale.objects.create(
                    client=client,
                    sale_date=now - timedelta(days=rng.randint(1, 59), minutes=rng.randint(0, 1439)),
                    total_amount=ZERO,
                )

                total = ZERO
                items = []
                for _ in range(rng.randint(1, 4)):
                    product = rng.choice(sellable)
                    quantity = rng.randint(1, 5)
                    subtotal = to_money(product.price * quantity)
                    items.append(
                        SaleItem(sale=sale, product=product, quantity=quantity, unit_price=product.price, subtotal=subtotal)
                    )
                    total += subtotal
                SaleItem.objects.bulk_create(items)
                sale.total_amount = to_money(total)
                sale.save(update_fields=["total_amount"])
                item_total += len(items)

        self.stdout.write(self.style.SUCCESS("Demo data seeded successfully."))
        self.stdout.write(
            f"Users: {len(DEMO_USERS)} | Clients: {len(clients) + 1} | Products: {len(products)} | "
            f"Sales: {options['sales']} with {item_total} items"
        )
        self.stdout.write("Credentials: admin/admin123, staff1/staff123, staff2/staff123")
