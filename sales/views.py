import logging

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.exceptions import ResourceNotFound
from common.mixins import EntityLookupMixin
from common.permissions import RoleCapabilityPermission
from common.utils import end_of_day, query_date, query_int, start_of_day
from sales import services
from sales.models import Client, ClientProductPrice
from sales.pricing import resolve_unit_price
from sales.serializers import (
    ClientBulkDeleteSerializer,
    ClientPriceInputSerializer,
    ClientPriceSerializer,
    ClientSerializer,
    InvoiceCreateSerializer,
    InvoiceSerializer,
    SaleCreateSerializer,
    SaleSerializer,
)

logger = logging.getLogger(__name__)


class ClientViewSet(EntityLookupMixin, viewsets.ModelViewSet):
    """Client directory plus per-client price overrides. Admin only."""

    queryset = Client.objects.all()
    serializer_class = ClientSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "clients.manage",
        "retrieve": "clients.manage",
        "create": "clients.manage",
        "update": "clients.manage",
        "partial_update": "clients.manage",
        "destroy": "clients.manage",
        "bulk_delete": "clients.manage",
        "prices": "clients.manage",
        "remove_price": "clients.manage",
        "effective_price": "clients.manage",
    }
    entity_label = "Client"

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action != "list":
            return queryset

        params = self.request.query_params
        name = (params.get("name") or "").strip()
        if name:
            queryset = queryset.filter(name__icontains=name)
        email = (params.get("email") or "").strip()
        if email:
            queryset = queryset.filter(email__icontains=email)
        return queryset

    def perform_create(self, serializer):
        client = serializer.save(is_active=True)
        logger.info("client_created", extra={"client_id": client.id})

    def update(self, request, *args, **kwargs):
        kwargs["partial"] = True
        return super().update(request, *args, **kwargs)

    def destroy(self, request, *args, **kwargs):
        services.deactivate_client(self._client_pk())
        return Response({"message": "Client deleted successfully (soft delete)"}, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"], url_path="bulk-delete")
    def bulk_delete(self, request):
        serializer = ClientBulkDeleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = services.bulk_deactivate_clients(serializer.validated_data.get("ids"))
        return Response(result, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get", "post"], url_path="prices", pagination_class=None)
    def prices(self, request, pk=None):
        if request.method == "POST":
            serializer = ClientPriceInputSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            override, created = services.set_override_price(
                self._client_pk(),
                serializer.validated_data["productId"],
                serializer.validated_data["price"],
            )
            return Response(
                {"message": "Override price set successfully", "override": ClientPriceSerializer(override).data},
                status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
            )

        client = self.get_object()
        overrides = ClientProductPrice.objects.filter(client=client, is_active=True).select_related("product").order_by("product_id")
        return Response(ClientPriceSerializer(overrides, many=True).data)

    @action(detail=True, methods=["delete"], url_path=r"prices/(?P<product_id>\d+)")
    def remove_price(self, request, pk=None, product_id=None):
        services.remove_override_price(self._client_pk(), int(product_id))
        return Response({"message": "Override price removed successfully"}, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path=r"prices/(?P<product_id>\d+)/effective")
    def effective_price(self, request, pk=None, product_id=None):
        client_id = self._client_pk()
        unit_price = resolve_unit_price(client_id, int(product_id))
        return Response({"clientId": client_id, "productId": int(product_id), "unitPrice": unit_price})

    def _client_pk(self):
        raw = self.kwargs.get(self.lookup_url_kwarg or self.lookup_field)
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ResourceNotFound(f"Client with ID {raw} not found")


class SaleViewSet(EntityLookupMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin, mixins.CreateModelMixin, viewsets.GenericViewSet):
    """Sales are created once and never updated or deleted."""

    serializer_class = SaleSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "sales.view",
        "retrieve": "sales.view",
        "create": "sales.create",
    }
    entity_label = "Sale"

    def get_queryset(self):
        queryset = services.sale_queryset()
        if self.action != "list":
            return queryset

        params = self.request.query_params
        start_date = query_date(params, "startDate")
        end_date = query_date(params, "endDate")
        client_id = query_int(params, "clientId", minimum=0)
        if start_date:
            queryset = queryset.filter(sale_date__gte=start_of_day(start_date))
        if end_date:
            queryset = queryset.filter(sale_date__lte=end_of_day(end_date))
        if client_id is not None:
            queryset = queryset.filter(client_id=client_id) if client_id else queryset.filter(client__isnull=True)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = SaleCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sale = services.create_sale(
            client_id=serializer.validated_data.get("client_id"),
            items=serializer.validated_data.get("items") or [],
        )
        return Response(SaleSerializer(sale).data, status=status.HTTP_201_CREATED)


class InvoiceViewSet(EntityLookupMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = InvoiceSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "invoices.view",
        "retrieve": "invoices.view",
        "from_sale": "invoices.generate",
    }
    entity_label = "Invoice"

    def get_queryset(self):
        return services.invoice_queryset()

    @action(detail=False, methods=["post"], url_path=r"from-sale/(?P<sale_id>\d+)")
    def from_sale(self, request, sale_id=None):
        serializer = InvoiceCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice = services.generate_invoice(
            int(sale_id),
            manual_invoice_number=serializer.validated_data.get("manualInvoiceNumber"),
            due_date=serializer.validated_data.get("dueDate"),
        )
        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)
