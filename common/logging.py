"""Structured JSON logging and the per-request access log.

Log calls pass context through ``extra=``; the formatter copies the known
keys below onto the JSON line and ignores everything else.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from datetime import datetime, timezone

CONTEXT_FIELDS = (
    # request
    "request_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "remote_addr",
    "user_id",
    "view",
    # sales and invoicing
    "sale_id",
    "invoice_id",
    "invoice_number",
    "client_id",
    "product_id",
    "item_count",
    "total_amount",
    "price",
    "attempt",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, getattr(record, key)) for key in CONTEXT_FIELDS if getattr(record, key, None) is not None
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        # Decimals and dates fall back to their string form.
        return json.dumps(payload, ensure_ascii=False, default=str)


def _authenticated_user_id(request) -> str | None:
    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        return None
    return str(user.pk)


class RequestLogMiddleware:
    """Propagate ``X-Request-ID`` and log one ``request_completed`` line per request."""

    logger = logging.getLogger("api.request")

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        started = time.perf_counter()

        response = self.get_response(request)

        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        self.logger.log(
            level,
            "request_completed",
            extra={
                "request_id": request.request_id,
                "method": request.method,
                "path": request.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "remote_addr": request.META.get("REMOTE_ADDR"),
                "user_id": _authenticated_user_id(request),
            },
        )
        response["X-Request-ID"] = request.request_id
        return response
