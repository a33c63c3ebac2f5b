from django.urls import path
from rest_framework.routers import DefaultRouter

from sales.reports import (
    DailySalesReportView,
    MonthlySalesReportView,
    SalesReportView,
    TopClientsReportView,
    TopProductsReportView,
)
from sales.views import ClientViewSet, InvoiceViewSet, SaleViewSet

router = DefaultRouter()
router.register(r"clients", ClientViewSet, basename="client")
router.register(r"sales", SaleViewSet, basename="sale")
router.register(r"invoices", InvoiceViewSet, basename="invoice")

urlpatterns = router.urls

urlpatterns += [
    path("reports/sales/", SalesReportView.as_view(), name="report-sales"),
    path("reports/daily-sales/", DailySalesReportView.as_view(), name="report-daily-sales"),
    path("reports/monthly-sales/", MonthlySalesReportView.as_view(), name="report-monthly-sales"),
    path("reports/top-clients/", TopClientsReportView.as_view(), name="report-top-clients"),
    path("reports/top-products/", TopProductsReportView.as_view(), name="report-top-products"),
]
