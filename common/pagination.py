from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """Page-number pagination for list endpoints.

    Query parameters follow the API's camelCase convention (`?page=2&pageSize=25`);
    the page size is capped so a single listing of sales or invoices stays small.
    """

    page_size_query_param = "pageSize"
    max_page_size = 200
