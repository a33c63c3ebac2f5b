from io import StringIO
import json
import logging
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import OperationalError
from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from common.logging import JsonFormatter
from inventory.models import Product
from sales.models import WALK_IN_CLIENT_ID, Client, Sale


class TokenTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.staff = self.user_model.objects.create_user(
            username="token-staff",
            password="pass1234",
            first_name="Staff",
            last_name="Member",
            role="staff",
        )

    def test_token_carries_role_claim(self):
        response = self.client.post(
            "/api/v1/token/",
            {"username": "token-staff", "password": "pass1234"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["role"], "staff")
        self.assertEqual(payload["username"], "token-staff")
        token = AccessToken(payload["access"])
        self.assertEqual(token["role"], "staff")
        self.assertEqual(token["full_name"], "Staff Member")
        self.assertFalse(token["is_superuser"])

    def test_bad_credentials_use_error_envelope(self):
        response = self.client.post(
            "/api/v1/token/",
            {"username": "token-staff", "password": "wrong"},
            format="json",
        )

        self.assertEqual(response.status_code, 401)
        payload = response.json()
        self.assertEqual(payload["code"], "authentication_failed")
        self.assertEqual(payload["status"], 401)

    def test_bearer_token_grants_access(self):
        token = self.client.post(
            "/api/v1/token/",
            {"username": "token-staff", "password": "pass1234"},
            format="json",
        ).json()["access"]

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        response = self.client.get("/api/v1/sales/")

        self.assertEqual(response.status_code, 200)


class HealthTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_healthz_echoes_request_id(self):
        response = self.client.get("/api/v1/healthz/", HTTP_X_REQUEST_ID="req-123")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok", "request_id": "req-123"})
        self.assertEqual(response["X-Request-ID"], "req-123")

    def test_readyz_checks_database(self):
        response = self.client.get("/api/v1/readyz/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ready")

    def test_readyz_reports_database_failure(self):
        with patch("core.views.connections") as connections:
            connections.__getitem__.return_value.cursor.side_effect = OperationalError("db down")
            with self.assertLogs("core.views", level="ERROR") as logs:
                response = self.client.get("/api/v1/readyz/")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["status"], "error")
        self.assertTrue(any("readiness_check_failed" in entry for entry in logs.output))


class JsonFormatterTests(TestCase):
    def test_business_fields_are_emitted(self):
        record = logging.LogRecord("sales.services", logging.INFO, __file__, 1, "sale_created", None, None)
        record.sale_id = 7
        record.total_amount = "95.00"

        payload = json.loads(JsonFormatter().format(record))

        self.assertEqual(payload["message"], "sale_created")
        self.assertEqual(payload["sale_id"], 7)
        self.assertEqual(payload["total_amount"], "95.00")
        self.assertNotIn("invoice_id", payload)


class SeedDemoDataTests(TestCase):
    def test_seed_creates_consistent_demo_data_once(self):
        call_command("seed_demo_data", sales=5, seed=7, stdout=StringIO())

        self.assertEqual(Client.objects.count(), 11)
        self.assertEqual(Client.objects.get(pk=WALK_IN_CLIENT_ID).name, "Walk-in Customer")
        self.assertEqual(Product.objects.count(), 15)
        self.assertEqual(Product.objects.filter(is_active=False).count(), 1)
        self.assertEqual(Sale.objects.count(), 5)
        for sale in Sale.objects.prefetch_related("items__product"):
            self.assertEqual(sale.total_amount, sum(item.subtotal for item in sale.items.all()))
            self.assertTrue(all(item.product.is_active for item in sale.items.all()))
        self.assertTrue(get_user_model().objects.get(username="admin").check_password("admin123"))

        call_command("seed_demo_data", sales=5, seed=7, stdout=StringIO())

        self.assertEqual(Sale.objects.count(), 5)
