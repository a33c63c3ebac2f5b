"""Read-only aggregates over committed sales and invoices.

Each report is a plain function so it can be called outside a request; the
views below only parse query parameters and shape the response.
"""

from django.conf import settings
from django.db.models import Count, Q, Sum
from django.db.models.functions import Coalesce
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.exceptions import InvalidRequest
from common.permissions import RoleCapabilityPermission
from common.utils import ZERO, end_of_day, query_date, query_int, start_of_day, to_money
from inventory.models import Product
from sales.models import Client, Invoice, Sale, SaleItem

WALK_IN_LABEL = "Walk-in"
UNKNOWN_LABEL = "Unknown"


def _filter_by_client(queryset, client_id):
    if client_id is None:
        return queryset
    if client_id == 0:
        return queryset.filter(client__isnull=True)
    return queryset.filter(client_id=client_id)


def sales_report(*, start_date=None, end_date=None, client_id=None):
    """Per-sale listing with totals, newest first.

    Sales of inactive clients and sales containing any inactive product are
    left out entirely, both from the listing and from the totals.
    """
    queryset = Sale.objects.select_related("client").filter(Q(client__isnull=True) | Q(client__is_active=True))
    if start_date:
        queryset = queryset.filter(sale_date__gte=start_of_day(start_date))
    if end_date:
        queryset = queryset.filter(sale_date__lte=end_of_day(end_date))
    queryset = _filter_by_client(queryset, client_id)
    queryset = queryset.exclude(items__product__is_active=False)

    sales = list(
        queryset.annotate(
            item_count=Count("items"),
            items_sold=Sum("items__quantity", default=0),
        ).order_by("-sale_date", "-id")
    )

    rows = [
        {
            "saleId": sale.id,
            "saleDate": sale.sale_date,
            "clientId": sale.client_id,
            "clientName": sale.client.name if sale.client else WALK_IN_LABEL,
            "totalAmount": sale.total_amount,
            "itemCount": sale.item_count,
        }
        for sale in sales
    ]
    return {
        "startDate": start_date,
        "endDate": end_date,
        "clientId": client_id,
        "totalSales": len(sales),
        "totalItemsSold": sum(sale.items_sold for sale in sales),
        "totalRevenue": to_money(sum((sale.total_amount for sale in sales), ZERO)),
        "sales": rows,
    }


def _period_summary(sales, invoices):
    sale_totals = sales.aggregate(count=Count("id"), amount=Coalesce(Sum("total_amount"), ZERO))
    invoice_totals = invoices.aggregate(count=Count("id"), amount=Coalesce(Sum("total_amount"), ZERO))
    items_sold = SaleItem.objects.filter(sale__in=sales).aggregate(total=Sum("quantity", default=0))["total"]
    return {
        "salesCount": sale_totals["count"],
        "totalSalesAmount": to_money(sale_totals["amount"]),
        "invoiceCount": invoice_totals["count"],
        "totalInvoiceAmount": to_money(invoice_totals["amount"]),
        "totalItemsSold": items_sold,
    }


def daily_sales_summary(target_date):
    start, end = start_of_day(target_date), end_of_day(target_date)
    summary = _period_summary(
        Sale.objects.filter(sale_date__gte=start, sale_date__lte=end),
        Invoice.objects.filter(issue_date__gte=start, issue_date__lte=end),
    )
    return {"date": target_date, **summary}


def monthly_sales_summary(year, month):
    summary = _period_summary(
        Sale.objects.filter(sale_date__year=year, sale_date__month=month),
        Invoice.objects.filter(issue_date__year=year, issue_date__month=month),
    )
    return {"year": year, "month": month, **summary}


def top_clients(limit):
    """Clients by revenue, then by number of sales. Walk-in sales group under a null client."""
    grouped = list(
        Sale.objects.values("client_id")
        .annotate(sales_count=Count("id"), total=Coalesce(Sum("total_amount"), ZERO))
        .order_by("-total", "-sales_count", "client_id")[:limit]
    )
    client_ids = [row["client_id"] for row in grouped if row["client_id"] is not None]
    names = dict(Client.objects.active().filter(pk__in=client_ids).values_list("id", "name"))

    results = []
    for row in grouped:
        if row["client_id"] is None:
            name = WALK_IN_LABEL
        else:
            name = names.get(row["client_id"], UNKNOWN_LABEL)
        results.append(
            {
                "clientId": row["client_id"],
                "clientName": name,
                "salesCount": row["sales_count"],
                "totalAmount": to_money(row["total"]),
            }
        )
    return results


def top_products(limit):
    """Products by revenue (sum of line subtotals), then by quantity sold."""
    grouped = list(
        SaleItem.objects.values("product_id")
        .annotate(total_quantity=Sum("quantity", default=0), total_revenue=Coalesce(Sum("subtotal"), ZERO))
        .order_by("-total_revenue", "-total_quantity", "product_id")[:limit]
    )
    product_ids = [row["product_id"] for row in grouped]
    names = dict(Product.objects.filter(pk__in=product_ids, is_active=True).values_list("id", "name"))

    return [
        {
            "productId": row["product_id"],
            "productName": names.get(row["product_id"], UNKNOWN_LABEL),
            "totalQuantity": row["total_quantity"],
            "totalRevenue": to_money(row["total_revenue"]),
        }
        for row in grouped
    ]


class BaseReportView(APIView):
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {"get": "reports.view"}

    def _parse_limit(self, request):
        return query_int(
            request.query_params,
            "limit",
            minimum=1,
            maximum=settings.REPORT_MAX_LIMIT,
            default=settings.REPORT_DEFAULT_LIMIT,
        )

    def _date_range(self, request):
        start_date = query_date(request.query_params, "startDate")
        end_date = query_date(request.query_params, "endDate")
        if start_date and end_date and start_date > end_date:
            raise InvalidRequest(
                "startDate must be before or equal to endDate.",
                errors={"dateRange": ["startDate must be before or equal to endDate."]},
            )
        return start_date, end_date


class SalesReportView(BaseReportView):
    def get(self, request):
        start_date, end_date = self._date_range(request)
        client_id = query_int(request.query_params, "clientId", minimum=0)
        return Response(sales_report(start_date=start_date, end_date=end_date, client_id=client_id))


class DailySalesReportView(BaseReportView):
    def get(self, request):
        target_date = query_date(request.query_params, "date", required=True)
        return Response(daily_sales_summary(target_date))


class MonthlySalesReportView(BaseReportView):
    def get(self, request):
        params = request.query_params
        year = query_int(params, "year", required=True, minimum=1, maximum=9999)
        month = query_int(params, "month", required=True, minimum=1, maximum=12)
        return Response(monthly_sales_summary(year, month))


class TopClientsReportView(BaseReportView):
    def get(self, request):
        return Response({"results": top_clients(self._parse_limit(request))})


class TopProductsReportView(BaseReportView):
    def get(self, request):
        return Response({"results": top_products(self._parse_limit(request))})
