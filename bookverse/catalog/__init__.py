"""
Catalog package for the BookVerse API.

This package holds everything behind the bookstore's REST endpoints:
the request/response schemas, the relation table that ties authors,
categories, publishers, books, users, reviews, orders and coupons
together, the JSON-document store that enforces those relations, and
the router that exposes the store over HTTP.
"""

from .router import router as catalog_router  # noqa: F401
from .store import CatalogStore  # noqa: F401
