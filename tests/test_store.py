import json
import threading

import pytest

from bookverse.catalog import store as store_module
from bookverse.catalog.errors import (
    DanglingReferenceError,
    DuplicateValueError,
    InvalidFieldError,
    NotFoundError,
    ReferencedError,
    StorageError,
)
from bookverse.catalog.relations import COLLECTIONS
from bookverse.catalog.schemas import BookUpdate, CategoryCreate
from bookverse.catalog.store import CatalogStore


def test_missing_file_is_initialized_with_every_collection(store, data_file):
    assert store.list("authors") == []
    raw = json.loads(data_file.read_text(encoding="utf-8"))
    assert set(raw) == {
        "authors", "books", "users", "categories",
        "publishers", "reviews", "orders", "coupons",
    }
    assert all(records == [] for records in raw.values())


def test_create_assigns_id_and_timestamp(author):
    assert author["id"]
    assert author["createdAt"]
    assert "updatedAt" not in author
    assert author["name"] == "Machado de Assis"
    assert author["biography"] == ""


def test_create_trims_strings_and_rejects_blank_required(store):
    created = store.create("categories", {"name": "  Romance  "})
    assert created["name"] == "Romance"

    with pytest.raises(InvalidFieldError) as exc:
        store.create("authors", {"name": "   "})
    assert exc.value.field == "name"


def test_create_accepts_validated_payload(store):
    created = store.create("categories", CategoryCreate(name="Poetry"))
    assert store.get("categories", created["id"])["name"] == "Poetry"


def test_unknown_collection_is_a_programming_error(store):
    with pytest.raises(ValueError):
        store.list("magazines")


def test_book_with_unknown_author_is_rejected_without_mutation(store, data_file):
    store.list("books")
    before = data_file.read_text(encoding="utf-8")

    with pytest.raises(DanglingReferenceError) as exc:
        store.create("books", {"title": "Orphan", "price": 1, "authorId": "nope"})

    assert exc.value.field == "authorId"
    assert store.list("books") == []
    assert data_file.read_text(encoding="utf-8") == before


def test_book_update_with_unknown_author_leaves_book_unchanged(store, book):
    with pytest.raises(DanglingReferenceError):
        store.update("books", book["id"], {"title": "Renamed", "authorId": "nope"})

    current = store.get("books", book["id"])
    assert current["title"] == "Dom Casmurro"
    assert "updatedAt" not in current


@pytest.mark.parametrize("field", ["categoryId", "publisherId"])
def test_book_create_checks_optional_references(store, author, field):
    with pytest.raises(DanglingReferenceError) as exc:
        store.create("books", {"title": "X", "price": 1, "authorId": author["id"], field: "nope"})
    assert exc.value.field == field


@pytest.mark.parametrize("field", ["categoryId", "publisherId"])
def test_book_update_checks_optional_references(store, book, field):
    with pytest.raises(DanglingReferenceError) as exc:
        store.update("books", book["id"], {"title": "Renamed", field: "nope"})
    assert exc.value.field == field

    current = store.get("books", book["id"])
    assert current["title"] == "Dom Casmurro"
    assert current[field] is None
    assert "updatedAt" not in current


def test_required_reference_cannot_be_empty(store):
    # The schemas reject this first; the relation table enforces it too.
    with pytest.raises(InvalidFieldError) as exc:
        store._check_references(store._load(), COLLECTIONS["reviews"], {"userId": None})
    assert exc.value.field == "userId"

    store._check_references(store._load(), COLLECTIONS["books"], {"categoryId": None})


def test_book_update_null_clears_and_absent_keeps_reference(store, book):
    category = store.create("categories", {"name": "Classics"})
    publisher = store.create("publishers", {"name": "Garnier", "foundationYear": 1844})

    updated = store.update(
        "books", book["id"], {"categoryId": category["id"], "publisherId": publisher["id"]}
    )
    assert updated["categoryId"] == category["id"]

    updated = store.update("books", book["id"], {"categoryId": None})
    assert updated["categoryId"] is None
    assert updated["publisherId"] == publisher["id"]

    updated = store.update("books", book["id"], BookUpdate(publisherId=""))
    assert updated["publisherId"] is None


def test_update_rejects_explicit_null_on_required_field(store, book):
    with pytest.raises(InvalidFieldError) as exc:
        store.update("books", book["id"], {"title": None})
    assert exc.value.field == "title"


@pytest.mark.parametrize("price", [-1, "10", float("inf"), float("nan")])
def test_book_price_must_be_a_non_negative_number(store, author, price):
    with pytest.raises(InvalidFieldError) as exc:
        store.create("books", {"title": "X", "price": price, "authorId": author["id"]})
    assert exc.value.field == "price"


def test_partial_update_changes_only_sent_fields(store, author):
    updated = store.update("authors", author["id"], {"biography": "  Novelist  "})
    assert updated["biography"] == "Novelist"
    assert updated["name"] == author["name"]
    assert updated["nationality"] == "Brazilian"
    assert updated["createdAt"] == author["createdAt"]
    assert updated["updatedAt"]


def test_update_unknown_id_is_not_found(store):
    with pytest.raises(NotFoundError):
        store.update("authors", "missing", {"name": "X"})


# ---------------------------------------------------------------------------
# Delete guards


def test_referenced_author_cannot_be_deleted_until_free(store, author, book):
    with pytest.raises(ReferencedError) as exc:
        store.delete("authors", author["id"])
    assert exc.value.field == "authorId"
    assert store.get("authors", author["id"])["id"] == author["id"]

    store.delete("books", book["id"])
    store.delete("authors", author["id"])
    with pytest.raises(NotFoundError):
        store.get("authors", author["id"])


@pytest.mark.parametrize(
    "collection, field, fields",
    [
        ("categories", "categoryId", {"name": "Classics"}),
        ("publishers", "publisherId", {"name": "Garnier"}),
    ],
)
def test_referenced_category_and_publisher_are_guarded(store, author, collection, field, fields):
    target = store.create(collection, fields)
    book = store.create(
        "books", {"title": "X", "price": 1, "authorId": author["id"], field: target["id"]}
    )

    with pytest.raises(ReferencedError):
        store.delete(collection, target["id"])

    store.update("books", book["id"], {field: None})
    store.delete(collection, target["id"])
    assert store.list(collection) == []


def test_delete_unknown_id_and_delete_twice(store, author):
    with pytest.raises(NotFoundError):
        store.delete("coupons", "missing")

    store.delete("authors", author["id"])
    with pytest.raises(NotFoundError):
        store.delete("authors", author["id"])


def test_user_deletion_is_unconditional(store, user, book):
    store.create("reviews", {"userId": user["id"], "bookId": book["id"], "rating": 5})
    store.create("orders", {"userId": user["id"], "items": [{"bookId": book["id"]}]})

    store.delete("users", user["id"])
    assert store.list("users") == []


# ---------------------------------------------------------------------------
# Uniqueness


def test_duplicate_email_is_rejected_after_trim(store, user):
    with pytest.raises(DuplicateValueError) as exc:
        store.create("users", {"name": "Other", "email": "  ana@example.com ", "password": "x"})
    assert exc.value.field == "email"


def test_email_comparison_is_case_sensitive(store, user):
    other = store.create("users", {"name": "Other", "email": "Ana@example.com", "password": "x"})
    assert other["email"] == "Ana@example.com"


def test_update_email_excludes_own_record(store, user):
    other = store.create("users", {"name": "Bia", "email": "bia@example.com", "password": "x"})

    with pytest.raises(DuplicateValueError):
        store.update("users", other["id"], {"email": "ana@example.com"})

    updated = store.update("users", user["id"], {"email": "ana@example.com"})
    assert updated["email"] == "ana@example.com"


def test_coupon_code_is_upper_cased_and_unique(store):
    coupon = store.create("coupons", {"code": " save10 ", "discountPercentage": 10})
    assert coupon["code"] == "SAVE10"

    with pytest.raises(DuplicateValueError) as exc:
        store.create("coupons", {"code": "Save10", "discountPercentage": 5})
    assert exc.value.field == "code"

    assert store.update("coupons", coupon["id"], {"code": "save10"})["code"] == "SAVE10"

    other = store.create("coupons", {"code": "WELCOME", "discountPercentage": 100})
    with pytest.raises(DuplicateValueError):
        store.update("coupons", other["id"], {"code": "save10"})


@pytest.mark.parametrize("discount", [0, -5, 100.5, "10", float("nan")])
def test_coupon_discount_range(store, discount):
    with pytest.raises(InvalidFieldError) as exc:
        store.create("coupons", {"code": "X", "discountPercentage": discount})
    assert exc.value.field == "discountPercentage"


# ---------------------------------------------------------------------------
# Users and passwords


def test_password_is_stored_but_never_returned(store, user, data_file):
    assert "password" not in user
    assert "password" not in store.get("users", user["id"])
    assert all("password" not in u for u in store.list("users"))

    updated = store.update("users", user["id"], {"password": "changed"})
    assert "password" not in updated

    raw = json.loads(data_file.read_text(encoding="utf-8"))
    assert raw["users"][0]["password"] == "changed"


def test_user_requires_name_email_and_password(store):
    with pytest.raises(InvalidFieldError) as exc:
        store.create("users", {"name": "Ana", "email": "ana@example.com"})
    assert exc.value.field == "password"


# ---------------------------------------------------------------------------
# Reviews


@pytest.mark.parametrize("rating", [0, 5.5, "5", float("nan")])
def test_review_rating_range(store, user, book, rating):
    with pytest.raises(InvalidFieldError) as exc:
        store.create("reviews", {"userId": user["id"], "bookId": book["id"], "rating": rating})
    assert exc.value.field == "rating"


def test_review_requires_existing_user_and_book(store, user, book):
    with pytest.raises(DanglingReferenceError) as exc:
        store.create("reviews", {"userId": "ghost", "bookId": book["id"], "rating": 3})
    assert exc.value.field == "userId"

    with pytest.raises(DanglingReferenceError) as exc:
        store.create("reviews", {"userId": user["id"], "bookId": "ghost", "rating": 3})
    assert exc.value.field == "bookId"


def test_review_expansion_strips_user_password(store, user, book):
    review = store.create(
        "reviews", {"userId": user["id"], "bookId": book["id"], "rating": 4, "comment": " Great "}
    )
    assert review["comment"] == "Great"

    expanded = store.get("reviews", review["id"], expand="user,book")
    assert expanded["user"]["email"] == "ana@example.com"
    assert "password" not in expanded["user"]
    assert expanded["book"]["title"] == "Dom Casmurro"

    listed = store.list("reviews", expand=["user"])
    assert "password" not in listed[0]["user"]
    assert "book" not in listed[0]


# ---------------------------------------------------------------------------
# Orders


def test_order_total_is_fixed_at_creation(store, author, user):
    b1 = store.create("books", {"title": "B1", "price": 10, "authorId": author["id"]})
    b2 = store.create("books", {"title": "B2", "price": 5, "authorId": author["id"]})

    order = store.create(
        "orders",
        {
            "userId": user["id"],
            "items": [{"bookId": b1["id"], "quantity": 2}, {"bookId": b2["id"], "quantity": 1}],
        },
    )
    assert order["total"] == 25
    assert order["status"] == "pending"

    store.update("books", b1["id"], {"price": 100})
    assert store.get("orders", order["id"])["total"] == 25


def test_order_quantity_defaults_to_one(store, user, book):
    order = store.create("orders", {"userId": user["id"], "items": [{"bookId": book["id"]}]})
    assert order["items"] == [{"bookId": book["id"], "quantity": 1}]
    assert order["total"] == 10

    order = store.create(
        "orders", {"userId": user["id"], "items": [{"bookId": book["id"], "quantity": None}]}
    )
    assert order["items"][0]["quantity"] == 1
    assert order["total"] == 10


def test_legacy_order_items_without_quantity_count_as_one(data_file):
    data_file.write_text(
        json.dumps(
            {
                "orders": [
                    {
                        "id": "o1",
                        "userId": "u1",
                        "items": [{"bookId": "b1"}, {"bookId": "b2", "quantity": None}],
                        "total": 15,
                        "status": "pending",
                        "createdAt": "2024-01-01T00:00:00+00:00",
                    }
                ]
            }
        ),
        encoding="utf-8",
    )

    order = CatalogStore(data_file).get("orders", "o1")
    assert order["items"] == [{"bookId": "b1", "quantity": 1}, {"bookId": "b2", "quantity": 1}]
    assert order["total"] == 15


def test_order_with_unknown_book_names_the_item(store, user, book):
    with pytest.raises(DanglingReferenceError) as exc:
        store.create(
            "orders",
            {"userId": user["id"], "items": [{"bookId": book["id"]}, {"bookId": "ghost"}]},
        )
    assert exc.value.field == "items[1].bookId"
    assert store.list("orders") == []


def test_order_requires_items_and_known_user(store, user, book):
    with pytest.raises(InvalidFieldError) as exc:
        store.create("orders", {"userId": user["id"], "items": []})
    assert exc.value.field == "items"

    with pytest.raises(DanglingReferenceError) as exc:
        store.create("orders", {"userId": "ghost", "items": [{"bookId": book["id"]}]})
    assert exc.value.field == "userId"


def test_order_update_only_touches_status(store, user, book):
    order = store.create("orders", {"userId": user["id"], "items": [{"bookId": book["id"]}]})

    updated = store.update("orders", order["id"], {"status": " shipped ", "total": 0})
    assert updated["status"] == "shipped"
    assert updated["total"] == 10


def test_order_expands_user(store, user, book):
    order = store.create("orders", {"userId": user["id"], "items": [{"bookId": book["id"]}]})
    expanded = store.get("orders", order["id"], expand="user")
    assert expanded["user"]["id"] == user["id"]
    assert "password" not in expanded["user"]


# ---------------------------------------------------------------------------
# Expansion


def test_list_books_expands_without_touching_stored_records(store, book, author, data_file):
    books = store.list("books", expand="author,category")

    assert books[0]["author"]["id"] == author["id"]
    assert books[0]["category"] is None
    assert "publisher" not in books[0]

    assert "author" not in store.list("books")[0]
    raw = json.loads(data_file.read_text(encoding="utf-8"))
    assert "author" not in raw["books"][0]


def test_expansion_ignores_unknown_tokens(store, book):
    expanded = store.get("books", book["id"], expand=" Author , bogus,,user")
    assert expanded["author"]["name"] == "Machado de Assis"
    assert "bogus" not in expanded
    assert "user" not in expanded


def test_expanded_view_is_a_copy(store, book):
    expanded = store.get("books", book["id"], expand="author")
    expanded["author"]["name"] = "Changed"
    expanded["title"] = "Changed"

    again = store.get("books", book["id"], expand="author")
    assert again["title"] == "Dom Casmurro"
    assert again["author"]["name"] == "Machado de Assis"


def test_unresolved_reference_expands_to_null(data_file):
    # Older files may lack collections and hold dangling ids.
    data_file.write_text(
        json.dumps(
            {
                "authors": [],
                "books": [
                    {
                        "id": "b1",
                        "title": "Lost",
                        "description": "",
                        "price": 1.0,
                        "file": None,
                        "authorId": "gone",
                        "categoryId": None,
                        "publisherId": None,
                        "createdAt": "2024-01-01T00:00:00+00:00",
                    }
                ],
            }
        ),
        encoding="utf-8",
    )
    store = CatalogStore(data_file)

    expanded = store.get("books", "b1", expand="author,publisher")
    assert expanded["author"] is None
    assert expanded["publisher"] is None
    assert store.list("coupons") == []


# ---------------------------------------------------------------------------
# Persistence


def test_records_survive_a_new_store(data_file, author):
    fresh = CatalogStore(data_file)
    assert fresh.get("authors", author["id"]) == author


def test_reload_picks_up_external_changes(store, data_file, author):
    raw = json.loads(data_file.read_text(encoding="utf-8"))
    raw["authors"] = []
    data_file.write_text(json.dumps(raw), encoding="utf-8")

    assert len(store.list("authors")) == 1
    store.reload()
    assert store.list("authors") == []


def test_concurrent_writers_do_not_lose_records(store, data_file):
    count = 40
    start = threading.Barrier(count)
    errors = []

    def writer(i):
        start.wait()
        try:
            store.create("categories", {"name": f"Category {i}"})
        except Exception as exc:  # collected and reported below
            errors.append(exc)

    threads = [threading.Thread(target=writer, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    names = {c["name"] for c in CatalogStore(data_file).list("categories")}
    assert names == {f"Category {i}" for i in range(count)}


def test_failed_write_leaves_store_unchanged(store, author, monkeypatch):
    def fail(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(store_module.os, "replace", fail)

    with pytest.raises(StorageError):
        store.create("authors", {"name": "Clarice Lispector"})
    with pytest.raises(StorageError):
        store.delete("authors", author["id"])

    assert [a["id"] for a in store.list("authors")] == [author["id"]]


def test_corrupt_document_raises_storage_error(data_file):
    data_file.write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError):
        CatalogStore(data_file).list("authors")
