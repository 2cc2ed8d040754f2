"""
Core — Pagination

Page-number paginator for ledger, alert and workflow lists. The page
payload carries the page position so the renderer can expose it in
``meta``.

@file core/pagination.py
"""

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


class StandardPagination(PageNumberPagination):
    page_size = DEFAULT_PAGE_SIZE
    page_size_query_param = 'page_size'
    max_page_size = MAX_PAGE_SIZE

    def get_paginated_response(self, data):
        return Response({
            'count': self.page.paginator.count,
            'page': self.page.number,
            'total_pages': self.page.paginator.num_pages,
            'next': self.get_next_link(),
            'previous': self.get_previous_link(),
            'results': data,
        })

    def get_paginated_response_schema(self, schema):
        response = super().get_paginated_response_schema(schema)
        response['properties']['page'] = {'type': 'integer', 'example': 1}
        response['properties']['total_pages'] = {'type': 'integer', 'example': 4}
        return response
