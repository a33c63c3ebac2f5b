import logging

from django.db import DatabaseError, connections
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework_simplejwt.views import TokenObtainPairView

from core.serializers import RoleTokenObtainPairSerializer

logger = logging.getLogger(__name__)


class RoleTokenObtainPairView(TokenObtainPairView):
    """Username/password login returning an access/refresh pair plus the caller's role."""

    serializer_class = RoleTokenObtainPairSerializer
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "auth"


def _probe(request, state, http_status=status.HTTP_200_OK, **extra):
    return Response({"status": state, "request_id": getattr(request, "request_id", None), **extra}, status=http_status)


@api_view(["GET"])
@permission_classes([AllowAny])
@throttle_classes([])
def healthz(request):
    return _probe(request, "ok")


@api_view(["GET"])
@permission_classes([AllowAny])
@throttle_classes([])
def readyz(request):
    # Ready means the default database answers a trivial query.
    try:
        with connections["default"].cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError as exc:
        logger.exception("readiness_check_failed")
        return _probe(request, "error", status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return _probe(request, "ready")
