from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from common.exceptions import InvalidRequest

MONEY_QUANT = Decimal("0.01")
ZERO = Decimal("0.00")

TRUE_VALUES = {"1", "true", "t", "yes", "y", "on"}


def to_money(value):
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def query_bool(params, name, default=False):
    value = params.get(name)
    if value is None:
        return default
    return value.strip().lower() in TRUE_VALUES


def query_int(params, name, *, required=False, minimum=None, maximum=None, default=None):
    raw = params.get(name)
    if raw is None or raw == "":
        if required:
            raise InvalidRequest(f"Query parameter '{name}' is required.", errors={name: ["This query parameter is required."]})
        return default

    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise InvalidRequest(f"Query parameter '{name}' must be an integer.", errors={name: ["Must be an integer."]})

    if minimum is not None and value < minimum:
        raise InvalidRequest(f"Query parameter '{name}' must be >= {minimum}.", errors={name: [f"Must be >= {minimum}."]})
    if maximum is not None and value > maximum:
        raise InvalidRequest(f"Query parameter '{name}' must be <= {maximum}.", errors={name: [f"Must be <= {maximum}."]})
    return value


def query_date(params, name, *, required=False):
    """Parse a ``YYYY-MM-DD`` (or full ISO timestamp) query parameter into a date."""
    raw = (params.get(name) or "").strip()
    if not raw:
        if required:
            raise InvalidRequest(
                f"Query parameter '{name}' is required (YYYY-MM-DD).",
                errors={name: ["This query parameter is required."]},
            )
        return None

    try:
        parsed = parse_date(raw)
    except ValueError:
        parsed = None
    if parsed is None:
        try:
            parsed_dt = parse_datetime(raw)
        except ValueError:
            parsed_dt = None
        if parsed_dt is not None:
            parsed = parsed_dt.date()

    if parsed is None:
        raise InvalidRequest(f"Query parameter '{name}' must be a date (YYYY-MM-DD).", errors={name: ["Invalid date."]})
    return parsed


def start_of_day(value: date) -> datetime:
    return datetime.combine(value, time.min).replace(tzinfo=timezone.get_current_timezone())


def end_of_day(value: date) -> datetime:
    return datetime.combine(value, time.max).replace(tzinfo=timezone.get_current_timezone())
