"""API error types and the `{code, message, errors, status}` envelope.

Every non-2xx response leaves the API through ``api_exception_handler`` so
clients only ever parse one error shape. Service-layer failures subclass
``ServiceError`` and may attach extra top-level keys (``invoiceId``,
``missing`` ...) that are merged into the envelope unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from django.conf import settings
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    AuthenticationFailed,
    MethodNotAllowed,
    NotAuthenticated,
    NotFound,
    ParseError,
    PermissionDenied,
    Throttled,
    UnsupportedMediaType,
    ValidationError,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR_MESSAGE = "An unexpected error occurred."
VALIDATION_FAILED_MESSAGE = "Validation failed."


class ServiceError(APIException):
    """Business-rule failure raised by the service layer.

    ``errors`` becomes the envelope's ``errors`` value and any keyword
    arguments are merged into the envelope as-is.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed."
    default_code = "service_error"

    def __init__(self, detail: str | None = None, *, errors: Any = None, code: str | None = None, **extra: Any):
        super().__init__(detail=detail, code=code)
        self.errors = errors
        self.extra = extra


class InvalidRequest(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = VALIDATION_FAILED_MESSAGE
    default_code = "validation_error"


class ResourceNotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class Conflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Request conflicts with the current state."
    default_code = "conflict"


# Checked in order; the first matching type wins.
STABLE_CODES: tuple[tuple[type[Exception], str], ...] = (
    (ValidationError, "validation_error"),
    (NotAuthenticated, "not_authenticated"),
    (AuthenticationFailed, "authentication_failed"),
    (PermissionDenied, "permission_denied"),
    (NotFound, "not_found"),
    (Http404, "not_found"),
    (MethodNotAllowed, "method_not_allowed"),
    (UnsupportedMediaType, "unsupported_media_type"),
    (ParseError, "parse_error"),
    (Throttled, "throttled"),
)


def error_envelope(*, code: str, message: str, errors: Any = None, status_code: int, **extra: Any) -> dict[str, Any]:
    envelope = {"code": code, "message": message, "errors": errors, "status": status_code}
    envelope.update(extra)
    return envelope


def api_exception_handler(exc: Exception, context: dict[str, Any]) -> Response:
    response = drf_exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.exception("unhandled_api_exception", extra={"view": type(view).__name__ if view else None})
        detail = {"error": str(exc)} if getattr(settings, "API_EXPOSE_ERROR_DETAIL", False) else {}
        return Response(
            error_envelope(
                code="internal_server_error",
                message=GENERIC_SERVER_ERROR_MESSAGE,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                **detail,
            ),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, ServiceError):
        response.data = error_envelope(
            code=str(getattr(exc.detail, "code", None) or exc.default_code),
            message=str(exc.detail),
            errors=exc.errors,
            status_code=response.status_code,
            **exc.extra,
        )
        return response

    response.data = error_envelope(
        code=_stable_code(exc),
        message=_message_for(exc, response.data),
        errors=_field_errors(response.data),
        status_code=response.status_code,
    )
    return response


def _stable_code(exc: Exception) -> str:
    for exception_type, code in STABLE_CODES:
        if isinstance(exc, exception_type):
            return code
    return str(getattr(exc, "default_code", "api_error"))


def _message_for(exc: Exception, data: Any) -> str:
    if isinstance(exc, ValidationError):
        return VALIDATION_FAILED_MESSAGE
    if isinstance(data, Mapping) and data.get("detail"):
        return str(data["detail"])
    if isinstance(data, str) and data:
        return data
    return str(getattr(exc, "detail", None) or GENERIC_SERVER_ERROR_MESSAGE)


def _field_errors(data: Any) -> Any:
    # A lone "detail" key is already carried by the message.
    if isinstance(data, Mapping):
        return None if set(data) == {"detail"} else data
    if isinstance(data, Sequence) and not isinstance(data, str):
        return data
    return None
