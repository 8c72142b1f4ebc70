"""
Route definitions for the catalogue API.

Each collection gets the same five endpoints:

- POST   /<collection>        : create a record (201)
- GET    /<collection>        : list records
- GET    /<collection>/{id}   : get one record
- PUT    /<collection>/{id}   : partial update
- DELETE /<collection>/{id}   : delete (204)

Books, reviews and orders also accept ``?expand=`` on reads, e.g.
``GET /books?expand=author,category``. The handlers are thin: all
validation beyond the request schema, the reference checks and the delete
guards live in :class:`~.store.CatalogStore`, whose errors are turned into
JSON responses by the handlers registered in ``bookverse.main``.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from .schemas import (
    AuthorCreate,
    AuthorOut,
    AuthorUpdate,
    BookCreate,
    BookOut,
    BookUpdate,
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    CouponCreate,
    CouponOut,
    CouponUpdate,
    OrderCreate,
    OrderOut,
    OrderUpdate,
    PublisherCreate,
    PublisherOut,
    PublisherUpdate,
    ReviewCreate,
    ReviewOut,
    ReviewUpdate,
    UserCreate,
    UserOut,
    UserUpdate,
)
from .store import CatalogStore

router = APIRouter(tags=["catalog"])


def get_store(request: Request) -> CatalogStore:
    return request.app.state.store


def _expand_query(relations: str):
    return Query(
        default=None,
        description=f"Comma-separated relations to inline ({relations})",
    )


# Expanded records carry relation keys only when they were asked for.
_OUT = {"response_model_exclude_unset": True}


# ---------------------------------------------------------------------------
# Authors


@router.post("/authors", response_model=AuthorOut, status_code=201, **_OUT)
def create_author(payload: AuthorCreate, store: CatalogStore = Depends(get_store)):
    return store.create("authors", payload)


@router.get("/authors", response_model=List[AuthorOut], **_OUT)
def list_authors(store: CatalogStore = Depends(get_store)):
    return store.list("authors")


@router.get("/authors/{author_id}", response_model=AuthorOut, **_OUT)
def get_author(author_id: str, store: CatalogStore = Depends(get_store)):
    return store.get("authors", author_id)


@router.put("/authors/{author_id}", response_model=AuthorOut, **_OUT)
def update_author(author_id: str, payload: AuthorUpdate, store: CatalogStore = Depends(get_store)):
    return store.update("authors", author_id, payload)


@router.delete("/authors/{author_id}", status_code=204, response_class=Response)
def delete_author(author_id: str, store: CatalogStore = Depends(get_store)):
    store.delete("authors", author_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Books


@router.post("/books", response_model=BookOut, status_code=201, **_OUT)
def create_book(payload: BookCreate, store: CatalogStore = Depends(get_store)):
    return store.create("books", payload)


@router.get("/books", response_model=List[BookOut], **_OUT)
def list_books(
    expand: Optional[str] = _expand_query("author, category, publisher"),
    store: CatalogStore = Depends(get_store),
):
    return store.list("books", expand)


@router.get("/books/{book_id}", response_model=BookOut, **_OUT)
def get_book(
    book_id: str,
    expand: Optional[str] = _expand_query("author, category, publisher"),
    store: CatalogStore = Depends(get_store),
):
    return store.get("books", book_id, expand)


@router.put("/books/{book_id}", response_model=BookOut, **_OUT)
def update_book(book_id: str, payload: BookUpdate, store: CatalogStore = Depends(get_store)):
    return store.update("books", book_id, payload)


@router.delete("/books/{book_id}", status_code=204, response_class=Response)
def delete_book(book_id: str, store: CatalogStore = Depends(get_store)):
    store.delete("books", book_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Users
#
# ``UserOut`` has no password field; the store strips it as well.


@router.post("/users", response_model=UserOut, status_code=201, **_OUT)
def create_user(payload: UserCreate, store: CatalogStore = Depends(get_store)):
    return store.create("users", payload)


@router.get("/users", response_model=List[UserOut], **_OUT)
def list_users(store: CatalogStore = Depends(get_store)):
    return store.list("users")


@router.get("/users/{user_id}", response_model=UserOut, **_OUT)
def get_user(user_id: str, store: CatalogStore = Depends(get_store)):
    return store.get("users", user_id)


@router.put("/users/{user_id}", response_model=UserOut, **_OUT)
def update_user(user_id: str, payload: UserUpdate, store: CatalogStore = Depends(get_store)):
    return store.update("users", user_id, payload)


@router.delete("/users/{user_id}", status_code=204, response_class=Response)
def delete_user(user_id: str, store: CatalogStore = Depends(get_store)):
    store.delete("users", user_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Categories


@router.post("/categories", response_model=CategoryOut, status_code=201, **_OUT)
def create_category(payload: CategoryCreate, store: CatalogStore = Depends(get_store)):
    return store.create("categories", payload)


@router.get("/categories", response_model=List[CategoryOut], **_OUT)
def list_categories(store: CatalogStore = Depends(get_store)):
    return store.list("categories")


@router.get("/categories/{category_id}", response_model=CategoryOut, **_OUT)
def get_category(category_id: str, store: CatalogStore = Depends(get_store)):
    return store.get("categories", category_id)


@router.put("/categories/{category_id}", response_model=CategoryOut, **_OUT)
def update_category(
    category_id: str, payload: CategoryUpdate, store: CatalogStore = Depends(get_store)
):
    return store.update("categories", category_id, payload)


@router.delete("/categories/{category_id}", status_code=204, response_class=Response)
def delete_category(category_id: str, store: CatalogStore = Depends(get_store)):
    store.delete("categories", category_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Publishers


@router.post("/publishers", response_model=PublisherOut, status_code=201, **_OUT)
def create_publisher(payload: PublisherCreate, store: CatalogStore = Depends(get_store)):
    return store.create("publishers", payload)


@router.get("/publishers", response_model=List[PublisherOut], **_OUT)
def list_publishers(store: CatalogStore = Depends(get_store)):
    return store.list("publishers")


@router.get("/publishers/{publisher_id}", response_model=PublisherOut, **_OUT)
def get_publisher(publisher_id: str, store: CatalogStore = Depends(get_store)):
    return store.get("publishers", publisher_id)


@router.put("/publishers/{publisher_id}", response_model=PublisherOut, **_OUT)
def update_publisher(
    publisher_id: str, payload: PublisherUpdate, store: CatalogStore = Depends(get_store)
):
    return store.update("publishers", publisher_id, payload)


@router.delete("/publishers/{publisher_id}", status_code=204, response_class=Response)
def delete_publisher(publisher_id: str, store: CatalogStore = Depends(get_store)):
    store.delete("publishers", publisher_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Reviews


@router.post("/reviews", response_model=ReviewOut, status_code=201, **_OUT)
def create_review(payload: ReviewCreate, store: CatalogStore = Depends(get_store)):
    return store.create("reviews", payload)


@router.get("/reviews", response_model=List[ReviewOut], **_OUT)
def list_reviews(
    expand: Optional[str] = _expand_query("user, book"),
    store: CatalogStore = Depends(get_store),
):
    return store.list("reviews", expand)


@router.get("/reviews/{review_id}", response_model=ReviewOut, **_OUT)
def get_review(
    review_id: str,
    expand: Optional[str] = _expand_query("user, book"),
    store: CatalogStore = Depends(get_store),
):
    return store.get("reviews", review_id, expand)


@router.put("/reviews/{review_id}", response_model=ReviewOut, **_OUT)
def update_review(review_id: str, payload: ReviewUpdate, store: CatalogStore = Depends(get_store)):
    return store.update("reviews", review_id, payload)


@router.delete("/reviews/{review_id}", status_code=204, response_class=Response)
def delete_review(review_id: str, store: CatalogStore = Depends(get_store)):
    store.delete("reviews", review_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Orders
#
# Only ``status`` can change after creation; the total is fixed.


@router.post("/orders", response_model=OrderOut, status_code=201, **_OUT)
def create_order(payload: OrderCreate, store: CatalogStore = Depends(get_store)):
    return store.create("orders", payload)


@router.get("/orders", response_model=List[OrderOut], **_OUT)
def list_orders(
    expand: Optional[str] = _expand_query("user"),
    store: CatalogStore = Depends(get_store),
):
    return store.list("orders", expand)


@router.get("/orders/{order_id}", response_model=OrderOut, **_OUT)
def get_order(
    order_id: str,
    expand: Optional[str] = _expand_query("user"),
    store: CatalogStore = Depends(get_store),
):
    return store.get("orders", order_id, expand)


@router.put("/orders/{order_id}", response_model=OrderOut, **_OUT)
def update_order(order_id: str, payload: OrderUpdate, store: CatalogStore = Depends(get_store)):
    return store.update("orders", order_id, payload)


@router.delete("/orders/{order_id}", status_code=204, response_class=Response)
def delete_order(order_id: str, store: CatalogStore = Depends(get_store)):
    store.delete("orders", order_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Coupons


@router.post("/coupons", response_model=CouponOut, status_code=201, **_OUT)
def create_coupon(payload: CouponCreate, store: CatalogStore = Depends(get_store)):
    return store.create("coupons", payload)


@router.get("/coupons", response_model=List[CouponOut], **_OUT)
def list_coupons(store: CatalogStore = Depends(get_store)):
    return store.list("coupons")


@router.get("/coupons/{coupon_id}", response_model=CouponOut, **_OUT)
def get_coupon(coupon_id: str, store: CatalogStore = Depends(get_store)):
    return store.get("coupons", coupon_id)


@router.put("/coupons/{coupon_id}", response_model=CouponOut, **_OUT)
def update_coupon(coupon_id: str, payload: CouponUpdate, store: CatalogStore = Depends(get_store)):
    return store.update("coupons", coupon_id, payload)


@router.delete("/coupons/{coupon_id}", status_code=204, response_class=Response)
def delete_coupon(coupon_id: str, store: CatalogStore = Depends(get_store)):
    store.delete("coupons", coupon_id)
    return Response(status_code=204)
