"""
Pagination classes for credits API.

Ledger listings use cursor pagination so new entries arriving while a
client pages through history never shift or duplicate rows.
"""

from rest_framework.pagination import CursorPagination


class LedgerEntryCursorPagination(CursorPagination):
    """
    Cursor pagination for ledger entries, newest first.

    Default: 20 entries per page
    Maximum: 100 entries per page
    """

    page_size = 20
    max_page_size = 100
    page_size_query_param = "page_size"
    ordering = ("-created_at", "-id")
    cursor_query_param = "cursor"
