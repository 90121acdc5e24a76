import math

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class PageLimitPagination(PageNumberPagination):
    """?page=1&limit=10 -> {items, page, limit, total_items, total_pages}"""
    page_size = 10
    page_size_query_param = 'limit'
    max_page_size = 100

    def get_paginated_response(self, data):
        limit = self.page.paginator.per_page
        total = self.page.paginator.count
        return Response({
            'items': data,
            'page': self.page.number,
            'limit': limit,
            'total_items': total,
            'total_pages': max(1, math.ceil(total / limit)),
        })
