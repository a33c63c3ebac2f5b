from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from inventory.models import Product


class ProductApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()

        self.admin = self.user_model.objects.create_user(
            username="inventory-admin",
            password="pass1234",
            role="admin",
        )
        self.staff = self.user_model.objects.create_user(
            username="inventory-staff",
            password="pass1234",
            role="staff",
        )

        self.refill = Product.objects.create(name="5-Gallon Refill", price=Decimal("35.00"), quantity=500)
        self.bottle = Product.objects.create(name="500ml Bottle", price=Decimal("10.00"), quantity=1000)
        self.vintage = Product.objects.create(name="Vintage 5-Gallon", price=Decimal("30.00"), quantity=5, is_active=False)

    def test_list_hides_inactive_products_by_default(self):
        self.client.force_authenticate(user=self.staff)

        response = self.client.get("/api/v1/products/")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(sorted(payload.keys()), ["count", "next", "previous", "results"])
        names = [item["name"] for item in payload["results"]]
        self.assertEqual(names, ["5-Gallon Refill", "500ml Bottle"])

    def test_list_can_include_inactive_and_filter_by_name(self):
        self.client.force_authenticate(user=self.staff)

        response = self.client.get("/api/v1/products/", {"includeInactive": "true", "name": "gallon"})

        names = [item["name"] for item in response.json()["results"]]
        self.assertEqual(names, ["5-Gallon Refill", "Vintage 5-Gallon"])
        self.assertFalse(response.json()["results"][1]["isActive"])

    def test_retrieve_inactive_product_is_not_found(self):
        self.client.force_authenticate(user=self.staff)

        active = self.client.get(f"/api/v1/products/{self.refill.id}/")
        inactive = self.client.get(f"/api/v1/products/{self.vintage.id}/")

        self.assertEqual(active.status_code, 200)
        self.assertEqual(active.data["price"], Decimal("35.00"))
        self.assertEqual(inactive.status_code, 404)
        self.assertEqual(inactive.json()["message"], f"Product with ID {self.vintage.id} not found")

    def test_admin_creates_product(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            "/api/v1/products/",
            {"name": "  Alkaline 5-Gallon ", "price": "50.00", "description": "Alkaline water"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        product = Product.objects.get(pk=response.data["id"])
        self.assertEqual(product.name, "Alkaline 5-Gallon")
        self.assertEqual(product.quantity, 0)
        self.assertTrue(product.is_active)

    def test_create_validates_price_and_quantity(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            "/api/v1/products/",
            {"name": "Broken", "price": "-1.00", "quantity": -5},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        errors = response.json()["errors"]
        self.assertEqual(errors["price"], ["Price must be greater than or equal to 0"])
        self.assertEqual(errors["quantity"], ["Quantity must be greater than or equal to 0"])

    def test_staff_cannot_create_product_and_denial_is_logged(self):
        self.client.force_authenticate(user=self.staff)

        with self.assertLogs("security.authorization", level="WARNING") as cm:
            response = self.client.post("/api/v1/products/", {"name": "Pump", "price": "150.00"}, format="json")

        self.assertEqual(response.status_code, 403)
        self.assertTrue(any("products.manage" in message for message in cm.output))

    def test_update_can_reactivate_product(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.put(f"/api/v1/products/{self.vintage.id}/", {"isActive": True}, format="json")

        self.assertEqual(response.status_code, 200)
        self.vintage.refresh_from_db()
        self.assertTrue(self.vintage.is_active)
        self.assertEqual(self.vintage.name, "Vintage 5-Gallon")

    def test_update_requires_a_field(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.patch(f"/api/v1/products/{self.refill.id}/", {}, format="json")

        self.assertEqual(response.status_code, 400)

    def test_delete_is_soft(self):
        self.client.force_authenticate(user=self.admin)

        with self.assertLogs("inventory.views", level="INFO"):
            response = self.client.delete(f"/api/v1/products/{self.refill.id}/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Product deleted successfully (soft delete)")
        self.refill.refresh_from_db()
        self.assertFalse(self.refill.is_active)

    def test_anonymous_request_is_rejected_with_envelope(self):
        response = self.client.get("/api/v1/products/")

        self.assertEqual(response.status_code, 401)
        payload = response.json()
        self.assertEqual(payload["code"], "not_authenticated")
        self.assertEqual(payload["status"], 401)
