import logging

from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.mixins import EntityLookupMixin
from common.permissions import RoleCapabilityPermission
from common.utils import query_bool
from inventory.models import Product
from inventory.serializers import ProductSerializer

logger = logging.getLogger(__name__)


class ProductViewSet(EntityLookupMixin, viewsets.ModelViewSet):
    """Product catalogue. Deletion is a soft delete; inactive products drop out of listings."""

    queryset = Product.objects.all()
    serializer_class = ProductSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "products.view",
        "retrieve": "products.view",
        "create": "products.manage",
        "update": "products.manage",
        "partial_update": "products.manage",
        "destroy": "products.manage",
    }
    entity_label = "Product"

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params

        if self.action == "list":
            if not query_bool(params, "includeInactive"):
                queryset = queryset.active()
            name = (params.get("name") or "").strip()
            if name:
                queryset = queryset.filter(name__icontains=name)
        elif self.action == "retrieve":
            queryset = queryset.active()

        return queryset

    def update(self, request, *args, **kwargs):
        kwargs["partial"] = True
        return super().update(request, *args, **kwargs)

    def destroy(self, request, *args, **kwargs):
        product = self.get_object()
        product.is_active = False
        product.save(update_fields=["is_active", "updated_at"])
        logger.info("product_deactivated", extra={"product_id": product.id})
        return Response({"message": "Product deleted successfully (soft delete)"}, status=status.HTTP_200_OK)
