from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from common.exceptions import Conflict, ResourceNotFound
from inventory.models import Product
from sales import services
from sales.models import WALK_IN_CLIENT_ID, Client, ClientProductPrice, Invoice, InvoiceItem, Sale, SaleItem
from sales.pricing import resolve_unit_price, unit_prices_for


class SalesTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()

        self.admin = self.user_model.objects.create_user(
            username="sales-admin",
            password="pass1234",
            role="admin",
        )
        self.staff = self.user_model.objects.create_user(
            username="sales-staff",
            password="pass1234",
            role="staff",
        )

        self.five_gallon = Product.objects.create(name="5-Gallon Refill", price=Decimal("35.00"), quantity=500)
        self.three_gallon = Product.objects.create(name="3-Gallon Refill", price=Decimal("25.00"), quantity=300)
        self.abc = Client.objects.create(name="ABC Corporation", email="contact@abc.com", phone="555-0101")

        self.client.force_authenticate(user=self.staff)

    def post_sale(self, items, client_id=None):
        payload = {"items": items}
        if client_id is not None:
            payload["clientId"] = client_id
        return self.client.post("/api/v1/sales/", payload, format="json")

    def make_sale(self, items, client=None):
        return services.create_sale(
            client_id=client.id if client else None,
            items=[{"product_id": product.id, "quantity": quantity} for product, quantity in items],
        )


class PricingResolverTests(SalesTestCase):
    def test_base_price_without_override(self):
        self.assertEqual(resolve_unit_price(self.abc.id, self.five_gallon.id), Decimal("35.00"))

    def test_active_override_wins(self):
        ClientProductPrice.objects.create(client=self.abc, product=self.five_gallon, price=Decimal("30.00"))

        self.assertEqual(resolve_unit_price(self.abc.id, self.five_gallon.id), Decimal("30.00"))
        self.assertEqual(resolve_unit_price(self.abc.id, self.three_gallon.id), Decimal("25.00"))

    def test_inactive_override_falls_back_to_base_price(self):
        ClientProductPrice.objects.create(client=self.abc, product=self.five_gallon, price=Decimal("30.00"), is_active=False)

        self.assertEqual(resolve_unit_price(self.abc.id, self.five_gallon.id), Decimal("35.00"))

    def test_inactive_client_gets_base_price(self):
        ClientProductPrice.objects.create(client=self.abc, product=self.five_gallon, price=Decimal("30.00"))
        self.abc.is_active = False
        self.abc.save()

        self.assertEqual(resolve_unit_price(self.abc.id, self.five_gallon.id), Decimal("35.00"))

    def test_override_for_other_client_is_ignored(self):
        other = Client.objects.create(name="XYZ Restaurant", email="orders@xyz.com", phone="555-0102")
        ClientProductPrice.objects.create(client=other, product=self.five_gallon, price=Decimal("20.00"))

        self.assertEqual(resolve_unit_price(self.abc.id, self.five_gallon.id), Decimal("35.00"))

    def test_missing_product_raises_not_found(self):
        with self.assertRaises(ResourceNotFound):
            resolve_unit_price(self.abc.id, 987654)

    def test_inactive_product_raises_conflict(self):
        self.five_gallon.is_active = False
        self.five_gallon.save()

        with self.assertRaises(Conflict):
            resolve_unit_price(self.abc.id, self.five_gallon.id)

    def test_missing_client_raises_not_found(self):
        with self.assertRaises(ResourceNotFound):
            resolve_unit_price(987654, self.five_gallon.id)

    def test_walk_in_without_client_row_uses_base_prices(self):
        ClientProductPrice.objects.create(client=self.abc, product=self.five_gallon, price=Decimal("30.00"))

        prices = unit_prices_for(None, [self.five_gallon, self.three_gallon])

        self.assertEqual(prices, {self.five_gallon.id: Decimal("35.00"), self.three_gallon.id: Decimal("25.00")})


class SaleCreationTests(SalesTestCase):
    def test_sale_total_is_sum_of_line_subtotals(self):
        with self.assertLogs("sales.services", level="INFO") as cm:
            response = self.post_sale(
                [
                    {"productId": self.five_gallon.id, "quantity": 2},
                    {"productId": self.three_gallon.id, "quantity": 1},
                ]
            )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["totalAmount"], Decimal("95.00"))
        self.assertEqual([item["subtotal"] for item in response.data["items"]], [Decimal("70.00"), Decimal("25.00")])
        self.assertEqual(response.data["items"][0]["productName"], "5-Gallon Refill")
        self.assertEqual(response.data["items"][0]["unitPrice"], Decimal("35.00"))
        self.assertIsNone(response.data["clientId"])
        self.assertIsNone(response.data["client"])
        self.assertTrue(any("sale_created" in message for message in cm.output))

        sale = Sale.objects.get(pk=response.data["id"])
        self.assertEqual(sale.items.count(), 2)
        self.assertEqual(sale.total_amount, sum(item.quantity * item.unit_price for item in sale.items.all()))

    def test_client_override_is_applied(self):
        ClientProductPrice.objects.create(client=self.abc, product=self.five_gallon, price=Decimal("30.00"))

        response = self.post_sale([{"productId": self.five_gallon.id, "quantity": 1}], client_id=self.abc.id)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["items"][0]["unitPrice"], Decimal("30.00"))
        self.assertEqual(response.data["totalAmount"], Decimal("30.00"))
        self.assertEqual(response.data["client"]["name"], "ABC Corporation")

    def test_unit_price_is_snapshotted(self):
        response = self.post_sale([{"productId": self.five_gallon.id, "quantity": 2}])
        self.five_gallon.price = Decimal("99.00")
        self.five_gallon.save()

        item = SaleItem.objects.get(sale_id=response.data["id"])
        self.assertEqual(item.unit_price, Decimal("35.00"))
        self.assertEqual(Sale.objects.get(pk=response.data["id"]).total_amount, Decimal("70.00"))

    def test_sale_does_not_touch_stock(self):
        self.post_sale([{"productId": self.five_gallon.id, "quantity": 3}])

        self.five_gallon.refresh_from_db()
        self.assertEqual(self.five_gallon.quantity, 500)

    def test_walk_in_client_can_be_referenced_explicitly(self):
        response = self.post_sale([{"productId": self.three_gallon.id, "quantity": 1}], client_id=WALK_IN_CLIENT_ID)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["clientId"], WALK_IN_CLIENT_ID)
        self.assertEqual(response.data["client"]["name"], "Walk-in Customer")

    def test_inactive_client_is_charged_base_price(self):
        ClientProductPrice.objects.create(client=self.abc, product=self.five_gallon, price=Decimal("30.00"))
        self.abc.is_active = False
        self.abc.save()

        response = self.post_sale([{"productId": self.five_gallon.id, "quantity": 1}], client_id=self.abc.id)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["totalAmount"], Decimal("35.00"))

    def test_empty_items_are_rejected(self):
        response = self.post_sale([])

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Sale items are required")
        self.assertEqual(Sale.objects.count(), 0)

    def test_all_violations_are_collected(self):
        response = self.post_sale(
            [
                {"productId": self.five_gallon.id, "quantity": 0},
                {"productId": 0, "quantity": 1},
                {"productId": 777001, "quantity": 1},
                {"productId": 777002, "quantity": 2},
            ],
            client_id=888001,
        )

        self.assertEqual(response.status_code, 400)
        payload = response.json()
        self.assertEqual(payload["code"], "validation_error")
        self.assertIn(f"Quantity must be > 0 for ProductId {self.five_gallon.id}", payload["errors"])
        self.assertIn("ProductId must be valid", payload["errors"])
        self.assertIn("ClientId 888001 does not exist", payload["errors"])
        self.assertIn("Some products do not exist: 777001, 777002", payload["errors"])
        self.assertEqual(payload["missing"], [777001, 777002])
        self.assertEqual(Sale.objects.count(), 0)

    def test_amounts_too_large_to_store_are_rejected_before_writing(self):
        response = self.post_sale(
            [
                {"productId": self.five_gallon.id, "quantity": 300_000_000},
                {"productId": self.three_gallon.id, "quantity": 1},
            ]
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["errors"],
            [f"Subtotal exceeds 9999999999.99 for ProductId {self.five_gallon.id}"],
        )
        self.assertEqual(Sale.objects.count(), 0)
        self.assertEqual(SaleItem.objects.count(), 0)

    def test_sale_total_too_large_to_store_is_rejected(self):
        # Each line fits on its own; the sum does not.
        quantity = 200_000_000
        response = self.post_sale(
            [
                {"productId": self.five_gallon.id, "quantity": quantity},
                {"productId": self.five_gallon.id, "quantity": quantity},
            ]
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["errors"], ["Sale total exceeds 9999999999.99"])
        self.assertEqual(Sale.objects.count(), 0)

    def test_quantity_beyond_integer_range_is_collected(self):
        response = self.post_sale(
            [
                {"productId": self.five_gallon.id, "quantity": 2**70},
                {"productId": 777001, "quantity": 1},
            ]
        )

        self.assertEqual(response.status_code, 400)
        errors = response.json()["errors"]
        self.assertIn(f"Quantity must be <= 2147483647 for ProductId {self.five_gallon.id}", errors)
        self.assertIn("Some products do not exist: 777001", errors)
        self.assertEqual(Sale.objects.count(), 0)

    def test_inactive_product_is_a_conflict(self):
        self.three_gallon.is_active = False
        self.three_gallon.save()

        response = self.post_sale(
            [
                {"productId": self.five_gallon.id, "quantity": 1},
                {"productId": self.three_gallon.id, "quantity": 1},
            ]
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["inactive"], [self.three_gallon.id])
        self.assertEqual(Sale.objects.count(), 0)

    @override_settings(API_EXPOSE_ERROR_DETAIL=True)
    def test_failure_inside_transaction_rolls_back_everything(self):
        with patch("sales.services.SaleItem.objects.bulk_create", side_effect=RuntimeError("disk full")):
            with self.assertLogs("common.exceptions", level="ERROR"):
                response = self.post_sale([{"productId": self.five_gallon.id, "quantity": 1}])

        self.assertEqual(response.status_code, 500)
        payload = response.json()
        self.assertEqual(payload["message"], "An unexpected error occurred.")
        self.assertEqual(payload["error"], "disk full")
        self.assertEqual(Sale.objects.count(), 0)
        self.assertEqual(SaleItem.objects.count(), 0)

    @override_settings(API_EXPOSE_ERROR_DETAIL=False)
    def test_error_detail_can_be_suppressed(self):
        with patch("sales.services.SaleItem.objects.bulk_create", side_effect=RuntimeError("disk full")):
            with self.assertLogs("common.exceptions", level="ERROR"):
                response = self.post_sale([{"productId": self.five_gallon.id, "quantity": 1}])

        self.assertEqual(response.status_code, 500)
        self.assertNotIn("error", response.json())

    def test_malformed_payload_uses_field_errors(self):
        response = self.client.post("/api/v1/sales/", {"items": [{"productId": "abc", "quantity": 1}]}, format="json")

        self.assertEqual(response.status_code, 400)
        payload = response.json()
        self.assertEqual(payload["message"], "Validation failed.")
        self.assertIn("items", payload["errors"])


class SaleReadTests(SalesTestCase):
    def test_retrieve_missing_sale_returns_envelope(self):
        response = self.client.get("/api/v1/sales/999999/")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(
            response.json(),
            {"code": "not_found", "message": "Sale with ID 999999 not found", "errors": None, "status": 404},
        )

    def test_list_filters_by_client_and_orders_newest_first(self):
        first = self.make_sale([(self.five_gallon, 1)], client=self.abc)
        second = self.make_sale([(self.three_gallon, 1)], client=self.abc)
        self.make_sale([(self.three_gallon, 1)])

        response = self.client.get("/api/v1/sales/", {"clientId": self.abc.id})

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(sorted(payload.keys()), ["count", "next", "previous", "results"])
        self.assertEqual([row["id"] for row in payload["results"]], [second.id, first.id])

    def test_list_filters_by_date_range(self):
        old = self.make_sale([(self.five_gallon, 1)])
        Sale.objects.filter(pk=old.pk).update(sale_date=timezone.now() - timedelta(days=10))
        recent = self.make_sale([(self.five_gallon, 1)])
        today = timezone.now().date()

        response = self.client.get(
            "/api/v1/sales/",
            {"startDate": (today - timedelta(days=1)).isoformat(), "endDate": today.isoformat()},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["id"] for row in response.json()["results"]], [recent.id])

    def test_invalid_date_filter_is_rejected(self):
        response = self.client.get("/api/v1/sales/", {"startDate": "not-a-date"})

        self.assertEqual(response.status_code, 400)
        self.assertIn("startDate", response.json()["errors"])

    def test_sales_cannot_be_deleted(self):
        sale = self.make_sale([(self.five_gallon, 1)])

        response = self.client.delete(f"/api/v1/sales/{sale.id}/")

        self.assertEqual(response.status_code, 405)


class InvoiceGenerationTests(SalesTestCase):
    def setUp(self):
        super().setUp()
        self.sale = self.make_sale([(self.five_gallon, 2), (self.three_gallon, 1)], client=self.abc)

    def generate(self, sale_id=None, **payload):
        return self.client.post(f"/api/v1/invoices/from-sale/{sale_id or self.sale.id}/", payload, format="json")

    def test_first_invoice_of_year_gets_sequence_one(self):
        issued_at = datetime(2025, 3, 14, 9, 30, tzinfo=dt_timezone.utc)
        with patch("django.utils.timezone.now", return_value=issued_at):
            with self.assertLogs("sales.services", level="INFO") as cm:
                response = self.generate()

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["invoiceNumber"], "INV-2025-000001")
        self.assertEqual(response.data["totalAmount"], Decimal("95.00"))
        self.assertEqual(response.data["status"], "Unpaid")
        self.assertEqual(response.data["saleId"], self.sale.id)
        self.assertEqual(response.data["clientId"], self.abc.id)
        self.assertEqual(len(response.data["items"]), 2)
        self.assertTrue(any("invoice_generated" in message for message in cm.output))

    def test_sequence_continues_within_year(self):
        other_sale = self.make_sale([(self.five_gallon, 1)])
        issued_at = datetime(2025, 6, 1, tzinfo=dt_timezone.utc)
        with patch("django.utils.timezone.now", return_value=issued_at):
            self.generate()
            response = self.generate(sale_id=other_sale.id)

        self.assertEqual(response.data["invoiceNumber"], "INV-2025-000002")

    def test_sequence_resets_each_year(self):
        other_sale = self.make_sale([(self.five_gallon, 1)])
        with patch("django.utils.timezone.now", return_value=datetime(2024, 12, 31, 23, 0, tzinfo=dt_timezone.utc)):
            self.generate()
        with patch("django.utils.timezone.now", return_value=datetime(2025, 1, 1, 1, 0, tzinfo=dt_timezone.utc)):
            response = self.generate(sale_id=other_sale.id)

        self.assertEqual(response.data["invoiceNumber"], "INV-2025-000001")

    def test_taken_candidate_is_skipped(self):
        other_sale = self.make_sale([(self.five_gallon, 1)])
        Invoice.objects.create(
            invoice_number="INV-2025-000001",
            sale=other_sale,
            issue_date=datetime(2024, 5, 1, tzinfo=dt_timezone.utc),
            total_amount=Decimal("35.00"),
        )

        with patch("django.utils.timezone.now", return_value=datetime(2025, 2, 1, tzinfo=dt_timezone.utc)):
            response = self.generate()

        self.assertEqual(response.data["invoiceNumber"], "INV-2025-000002")

    def test_insert_collision_is_retried(self):
        other_sale = self.make_sale([(self.five_gallon, 1)])
        Invoice.objects.create(
            invoice_number="INV-2025-000001",
            sale=other_sale,
            issue_date=datetime(2025, 1, 2, tzinfo=dt_timezone.utc),
            total_amount=Decimal("35.00"),
        )
        # Simulates a concurrent writer taking the number between the check and the insert.
        stale_then_fresh = [("INV-2025-000001", 1), ("INV-2025-000002", 2)]

        with patch("django.utils.timezone.now", return_value=datetime(2025, 2, 1, tzinfo=dt_timezone.utc)):
            with patch("sales.services.next_invoice_number", side_effect=stale_then_fresh):
                with self.assertLogs("sales.services", level="WARNING") as cm:
                    response = self.generate()

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["invoiceNumber"], "INV-2025-000002")
        self.assertTrue(any("invoice_number_collision" in message for message in cm.output))
        self.assertEqual(Invoice.objects.filter(sale=self.sale).count(), 1)

    def test_second_invoice_for_sale_conflicts(self):
        first = self.generate()

        second = self.generate()

        self.assertEqual(second.status_code, 409)
        payload = second.json()
        self.assertEqual(payload["message"], "An invoice already exists for this sale")
        self.assertEqual(payload["invoiceId"], first.data["id"])
        self.assertEqual(Invoice.objects.count(), 1)

    def test_sale_invoiced_concurrently_conflicts_at_insert(self):
        first = services.generate_invoice(self.sale.id)

        # The up-front check misses the invoice another request just committed.
        with patch("sales.services._existing_invoice_id", side_effect=[None, first.id]):
            with self.assertRaises(Conflict) as cm:
                services.generate_invoice(self.sale.id)

        self.assertEqual(str(cm.exception.detail), "An invoice already exists for this sale")
        self.assertEqual(cm.exception.extra, {"invoiceId": first.id})
        self.assertEqual(Invoice.objects.filter(sale=self.sale).count(), 1)

    def test_manual_number_is_trimmed(self):
        response = self.generate(manualInvoiceNumber="  MANUAL-42  ", dueDate="2025-04-30")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["invoiceNumber"], "MANUAL-42")
        self.assertEqual(response.json()["dueDate"], "2025-04-30")

    def test_duplicate_manual_number_conflicts(self):
        self.generate(manualInvoiceNumber="MANUAL-42")
        other_sale = self.make_sale([(self.five_gallon, 1)])

        response = self.generate(sale_id=other_sale.id, manualInvoiceNumber="MANUAL-42")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["invoiceNumber"], "MANUAL-42")
        self.assertFalse(Invoice.objects.filter(sale=other_sale).exists())

    def test_blank_manual_number_falls_back_to_generated(self):
        response = self.generate(manualInvoiceNumber="   ")

        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data["invoiceNumber"].startswith(f"INV-{timezone.now().year}-"))

    def test_missing_sale_returns_not_found(self):
        response = self.generate(sale_id=999999)

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Sale with ID 999999 not found")

    def test_invoice_items_snapshot_sale_lines(self):
        response = self.generate()
        self.five_gallon.name = "Renamed Refill"
        self.five_gallon.save()

        invoice = Invoice.objects.get(pk=response.data["id"])
        items = list(invoice.items.all())
        self.assertEqual([item.product_name for item in items], ["5-Gallon Refill", "3-Gallon Refill"])
        for item in items:
            self.assertEqual(item.line_total, item.quantity * item.unit_price)
        self.assertEqual(invoice.total_amount, sum(item.line_total for item in items))

    def test_walk_in_sale_invoice_has_no_client(self):
        walk_in_sale = self.make_sale([(self.three_gallon, 2)])

        response = self.generate(sale_id=walk_in_sale.id)

        self.assertEqual(response.status_code, 201)
        self.assertIsNone(response.data["clientId"])
        self.assertIsNone(response.data["client"])

    def test_failed_item_insert_leaves_no_invoice(self):
        with patch("sales.services.InvoiceItem.objects.bulk_create", side_effect=RuntimeError("boom")):
            with self.assertLogs("common.exceptions", level="ERROR"):
                response = self.generate()

        self.assertEqual(response.status_code, 500)
        self.assertEqual(Invoice.objects.count(), 0)
        self.assertEqual(InvoiceItem.objects.count(), 0)

    def test_list_and_retrieve(self):
        created = self.generate()

        listing = self.client.get("/api/v1/invoices/")
        detail = self.client.get(f"/api/v1/invoices/{created.data['id']}/")
        missing = self.client.get("/api/v1/invoices/999999/")

        self.assertEqual(listing.status_code, 200)
        self.assertEqual(listing.json()["count"], 1)
        self.assertEqual(detail.data["invoiceNumber"], created.data["invoiceNumber"])
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["message"], "Invoice with ID 999999 not found")


class ReportTests(SalesTestCase):
    def test_daily_report_for_empty_day_is_all_zero(self):
        response = self.client.get("/api/v1/reports/daily-sales/", {"date": "2020-01-01"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["salesCount"], 0)
        self.assertEqual(response.data["totalSalesAmount"], Decimal("0.00"))
        self.assertEqual(response.data["invoiceCount"], 0)
        self.assertEqual(response.data["totalInvoiceAmount"], Decimal("0.00"))
        self.assertEqual(response.data["totalItemsSold"], 0)

    def test_daily_report_requires_date(self):
        response = self.client.get("/api/v1/reports/daily-sales/")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "validation_error")

    def test_daily_report_counts_sales_and_invoices(self):
        sale = self.make_sale([(self.five_gallon, 2), (self.three_gallon, 1)])
        self.make_sale([(self.three_gallon, 4)])
        services.generate_invoice(sale.id)

        response = self.client.get("/api/v1/reports/daily-sales/", {"date": timezone.now().date().isoformat()})

        self.assertEqual(response.data["salesCount"], 2)
        self.assertEqual(response.data["totalSalesAmount"], Decimal("195.00"))
        self.assertEqual(response.data["invoiceCount"], 1)
        self.assertEqual(response.data["totalInvoiceAmount"], Decimal("95.00"))
        self.assertEqual(response.data["totalItemsSold"], 7)

    def test_monthly_report(self):
        self.make_sale([(self.five_gallon, 1)])
        now = timezone.now()

        response = self.client.get("/api/v1/reports/monthly-sales/", {"year": now.year, "month": now.month})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["year"], now.year)
        self.assertEqual(response.data["salesCount"], 1)
        self.assertEqual(response.data["totalSalesAmount"], Decimal("35.00"))

    def test_monthly_report_validates_month(self):
        response = self.client.get("/api/v1/reports/monthly-sales/", {"year": 2025, "month": 13})
        missing = self.client.get("/api/v1/reports/monthly-sales/", {"month": 3})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(missing.status_code, 400)

    def test_sales_report_excludes_inactive_clients_and_products(self):
        kept = self.make_sale([(self.five_gallon, 2)], client=self.abc)
        walk_in = self.make_sale([(self.five_gallon, 1)])
        inactive_client = Client.objects.create(name="Wellness Spa", email="booking@spa.com", phone="555-0109")
        self.make_sale([(self.five_gallon, 1)], client=inactive_client)
        discontinued = Product.objects.create(name="Vintage 5-Gallon", price=Decimal("30.00"))
        self.make_sale([(self.five_gallon, 1), (discontinued, 1)], client=self.abc)
        inactive_client.is_active = False
        inactive_client.save()
        discontinued.is_active = False
        discontinued.save()

        response = self.client.get("/api/v1/reports/sales/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["totalSales"], 2)
        self.assertEqual(response.data["totalItemsSold"], 3)
        self.assertEqual(response.data["totalRevenue"], Decimal("105.00"))
        self.assertEqual([row["saleId"] for row in response.data["sales"]], [walk_in.id, kept.id])
        self.assertEqual(response.data["sales"][0]["clientName"], "Walk-in")

    def test_sales_report_filters_by_client(self):
        self.make_sale([(self.five_gallon, 1)], client=self.abc)
        self.make_sale([(self.three_gallon, 1)])

        response = self.client.get("/api/v1/reports/sales/", {"clientId": self.abc.id})

        self.assertEqual(response.data["totalSales"], 1)
        self.assertEqual(response.data["clientId"], self.abc.id)
        self.assertEqual(response.data["sales"][0]["clientName"], "ABC Corporation")

    def test_sales_report_rejects_inverted_range(self):
        response = self.client.get("/api/v1/reports/sales/", {"startDate": "2025-02-01", "endDate": "2025-01-01"})

        self.assertEqual(response.status_code, 400)

    def test_top_clients_orders_by_revenue_and_labels_walk_in(self):
        other = Client.objects.create(name="XYZ Restaurant", email="orders@xyz.com", phone="555-0102")
        self.make_sale([(self.five_gallon, 3)], client=self.abc)
        self.make_sale([(self.three_gallon, 1)], client=other)
        self.make_sale([(self.five_gallon, 1)])
        other.is_active = False
        other.save()

        response = self.client.get("/api/v1/reports/top-clients/", {"limit": 5})

        self.assertEqual(response.status_code, 200)
        rows = response.data["results"]
        self.assertEqual([row["clientName"] for row in rows], ["ABC Corporation", "Walk-in", "Unknown"])
        self.assertEqual(rows[0]["totalAmount"], Decimal("105.00"))
        self.assertEqual(rows[0]["salesCount"], 1)
        self.assertIsNone(rows[1]["clientId"])

    def test_top_clients_ties_break_on_sale_count(self):
        other = Client.objects.create(name="XYZ Restaurant", email="orders@xyz.com", phone="555-0102")
        self.make_sale([(self.five_gallon, 2)], client=self.abc)
        self.make_sale([(self.five_gallon, 1)], client=other)
        self.make_sale([(self.five_gallon, 1)], client=other)

        response = self.client.get("/api/v1/reports/top-clients/")

        self.assertEqual(response.data["results"][0]["clientId"], other.id)

    def test_top_products_orders_by_revenue(self):
        self.make_sale([(self.five_gallon, 1), (self.three_gallon, 2)])
        self.make_sale([(self.three_gallon, 1)])

        response = self.client.get("/api/v1/reports/top-products/", {"limit": 1})

        rows = response.data["results"]
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["productId"], self.three_gallon.id)
        self.assertEqual(rows[0]["totalQuantity"], 3)
        self.assertEqual(rows[0]["totalRevenue"], Decimal("75.00"))

    def test_top_products_labels_inactive_products_unknown(self):
        self.make_sale([(self.five_gallon, 1)])
        self.five_gallon.is_active = False
        self.five_gallon.save()

        response = self.client.get("/api/v1/reports/top-products/")

        self.assertEqual(response.data["results"][0]["productName"], "Unknown")

    def test_limit_must_be_in_range(self):
        for limit in ("0", "-1", "1001", "ten"):
            with self.subTest(limit=limit):
                response = self.client.get("/api/v1/reports/top-clients/", {"limit": limit})
                self.assertEqual(response.status_code, 400)
                self.assertIn("limit", response.json()["errors"])


class ClientManagementTests(SalesTestCase):
    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.admin)

    def test_staff_cannot_manage_clients_and_denial_is_logged(self):
        self.client.force_authenticate(user=self.staff)

        with self.assertLogs("security.authorization", level="WARNING") as cm:
            response = self.client.get("/api/v1/clients/")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "permission_denied")
        self.assertTrue(any("permission_denied" in message for message in cm.output))

    def test_list_filters_by_name_and_email(self):
        Client.objects.create(name="XYZ Restaurant", email="orders@xyz.com", phone="555-0102")

        by_name = self.client.get("/api/v1/clients/", {"name": "abc"})
        by_email = self.client.get("/api/v1/clients/", {"email": "xyz.com"})

        self.assertEqual([row["name"] for row in by_name.json()["results"]], ["ABC Corporation"])
        self.assertEqual([row["name"] for row in by_email.json()["results"]], ["XYZ Restaurant"])

    def test_create_trims_fields(self):
        response = self.client.post(
            "/api/v1/clients/",
            {"name": "  Green Gym ", "email": " info@greengym.com ", "phone": " 555-0104 "},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["name"], "Green Gym")
        self.assertEqual(response.data["email"], "info@greengym.com")
        self.assertTrue(response.data["isActive"])

    def test_create_rejects_duplicate_email(self):
        response = self.client.post(
            "/api/v1/clients/",
            {"name": "Copy", "email": "contact@abc.com", "phone": "555-0000"},
            format="json",
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["message"], "Email already exists")

    def test_create_rejects_invalid_email_and_missing_fields(self):
        response = self.client.post("/api/v1/clients/", {"name": " ", "email": "nope"}, format="json")

        self.assertEqual(response.status_code, 400)
        errors = response.json()["errors"]
        self.assertIn("name", errors)
        self.assertIn("email", errors)
        self.assertIn("phone", errors)

    def test_update_may_keep_own_email(self):
        response = self.client.patch(
            f"/api/v1/clients/{self.abc.id}/",
            {"email": "contact@abc.com", "phone": "555-9999"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["phone"], "555-9999")

    def test_update_rejects_email_of_other_client(self):
        Client.objects.create(name="XYZ Restaurant", email="orders@xyz.com", phone="555-0102")

        response = self.client.put(f"/api/v1/clients/{self.abc.id}/", {"email": "orders@xyz.com"}, format="json")

        self.assertEqual(response.status_code, 409)

    def test_update_requires_a_field(self):
        response = self.client.patch(f"/api/v1/clients/{self.abc.id}/", {}, format="json")

        self.assertEqual(response.status_code, 400)

    def test_delete_is_soft(self):
        response = self.client.delete(f"/api/v1/clients/{self.abc.id}/")

        self.assertEqual(response.status_code, 200)
        self.abc.refresh_from_db()
        self.assertFalse(self.abc.is_active)

    def test_walk_in_customer_cannot_be_deleted(self):
        response = self.client.delete(f"/api/v1/clients/{WALK_IN_CLIENT_ID}/")

        self.assertEqual(response.status_code, 400)
        self.assertIn("Walk-in Customer", response.json()["message"])
        self.assertTrue(Client.objects.get(pk=WALK_IN_CLIENT_ID).is_active)

    def test_delete_missing_client(self):
        response = self.client.delete("/api/v1/clients/999999/")

        self.assertEqual(response.status_code, 404)

    def test_bulk_delete_skips_walk_in_customer(self):
        other = Client.objects.create(name="XYZ Restaurant", email="orders@xyz.com", phone="555-0102")

        response = self.client.post(
            "/api/v1/clients/bulk-delete/",
            {"ids": [WALK_IN_CLIENT_ID, self.abc.id, other.id]},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["deletedCount"], 2)
        self.assertEqual(payload["skippedCount"], 1)
        self.assertTrue(payload["skippedWalkIn"])
        self.assertTrue(Client.objects.get(pk=WALK_IN_CLIENT_ID).is_active)
        self.assertFalse(Client.objects.filter(pk__in=[self.abc.id, other.id], is_active=True).exists())

    def test_bulk_delete_rejects_bad_input(self):
        empty = self.client.post("/api/v1/clients/bulk-delete/", {"ids": []}, format="json")
        only_walk_in = self.client.post("/api/v1/clients/bulk-delete/", {"ids": [WALK_IN_CLIENT_ID]}, format="json")
        unknown = self.client.post("/api/v1/clients/bulk-delete/", {"ids": [999998, 999999]}, format="json")

        self.assertEqual(empty.status_code, 400)
        self.assertEqual(only_walk_in.status_code, 400)
        self.assertEqual(unknown.status_code, 404)
        self.assertTrue(Client.objects.get(pk=WALK_IN_CLIENT_ID).is_active)


class OverridePriceTests(SalesTestCase):
    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.admin)
        self.prices_url = f"/api/v1/clients/{self.abc.id}/prices/"

    def test_set_override_then_sale_uses_it(self):
        with self.assertLogs("sales.services", level="INFO") as cm:
            response = self.client.post(
                self.prices_url,
                {"productId": self.five_gallon.id, "price": "30.00"},
                format="json",
            )

        self.assertEqual(response.status_code, 201)
        self.assertTrue(any("override_price_set" in message for message in cm.output))

        self.client.force_authenticate(user=self.staff)
        sale = self.post_sale([{"productId": self.five_gallon.id, "quantity": 1}], client_id=self.abc.id)
        self.assertEqual(sale.data["items"][0]["unitPrice"], Decimal("30.00"))

    def test_setting_again_replaces_and_reactivates(self):
        ClientProductPrice.objects.create(client=self.abc, product=self.five_gallon, price=Decimal("30.00"), is_active=False)

        response = self.client.post(self.prices_url, {"productId": self.five_gallon.id, "price": "28.50"}, format="json")

        self.assertEqual(response.status_code, 200)
        override = ClientProductPrice.objects.get(client=self.abc, product=self.five_gallon)
        self.assertTrue(override.is_active)
        self.assertEqual(override.price, Decimal("28.50"))
        self.assertEqual(ClientProductPrice.objects.filter(client=self.abc).count(), 1)

    def test_list_shows_active_overrides_only(self):
        ClientProductPrice.objects.create(client=self.abc, product=self.five_gallon, price=Decimal("30.00"))
        ClientProductPrice.objects.create(client=self.abc, product=self.three_gallon, price=Decimal("20.00"), is_active=False)

        response = self.client.get(self.prices_url)

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["productId"] for row in response.data], [self.five_gallon.id])
        self.assertEqual(response.data[0]["basePrice"], Decimal("35.00"))

    def test_remove_override_restores_base_price(self):
        ClientProductPrice.objects.create(client=self.abc, product=self.five_gallon, price=Decimal("30.00"))

        with self.assertLogs("sales.services", level="INFO") as cm:
            response = self.client.delete(f"{self.prices_url}{self.five_gallon.id}/")
        effective = self.client.get(f"{self.prices_url}{self.five_gallon.id}/effective/")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(any("override_price_removed" in message for message in cm.output))
        self.assertEqual(effective.data, {"clientId": self.abc.id, "productId": self.five_gallon.id, "unitPrice": Decimal("35.00")})
        self.assertTrue(ClientProductPrice.objects.filter(client=self.abc, product=self.five_gallon).exists())

    def test_remove_missing_override(self):
        response = self.client.delete(f"{self.prices_url}{self.five_gallon.id}/")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Override price not found")

    def test_effective_price_uses_override(self):
        ClientProductPrice.objects.create(client=self.abc, product=self.five_gallon, price=Decimal("30.00"))

        response = self.client.get(f"{self.prices_url}{self.five_gallon.id}/effective/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["unitPrice"], Decimal("30.00"))

    def test_effective_price_for_inactive_product_conflicts(self):
        self.five_gallon.is_active = False
        self.five_gallon.save()

        response = self.client.get(f"{self.prices_url}{self.five_gallon.id}/effective/")

        self.assertEqual(response.status_code, 409)

    def test_override_price_must_be_positive(self):
        response = self.client.post(self.prices_url, {"productId": self.five_gallon.id, "price": "0"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("price", response.json()["errors"])

    def test_override_requires_active_product_and_client(self):
        self.three_gallon.is_active = False
        self.three_gallon.save()
        inactive_product = self.client.post(self.prices_url, {"productId": self.three_gallon.id, "price": "20.00"}, format="json")
        missing_product = self.client.post(self.prices_url, {"productId": 999999, "price": "20.00"}, format="json")
        self.abc.is_active = False
        self.abc.save()
        inactive_client = self.client.post(self.prices_url, {"productId": self.five_gallon.id, "price": "20.00"}, format="json")
        missing_client = self.client.post("/api/v1/clients/999999/prices/", {"productId": self.five_gallon.id, "price": "20.00"}, format="json")

        self.assertEqual(inactive_product.status_code, 409)
        self.assertEqual(missing_product.status_code, 404)
        self.assertEqual(inactive_client.status_code, 409)
        self.assertEqual(missing_client.status_code, 404)
