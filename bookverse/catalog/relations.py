"""
Relationship rules between catalogue collections.

The catalogue is a handful of flat collections that point at each other
through ``<name>Id`` fields. This module is the single table that
describes those links; the store reads it to

* check that every reference resolves before a write,
* refuse deletes while a guarded reference still points at a record,
* inline related records when a reader asks for ``?expand=``.

Order line items (``items[].bookId``) are the one reference that does not
fit the table: they are checked by the store while it prices the order.
"""

from typing import Callable, Dict, FrozenSet, Iterable, List, NamedTuple, Optional, Tuple, Type, Union

from pydantic import BaseModel

from . import schemas


class Reference(NamedTuple):
    field: str
    target: str
    relation: str
    required: bool = False
    # When True the target cannot be deleted while this field points at it.
    guards_delete: bool = False


class UniqueField(NamedTuple):
    field: str
    normalize: Callable[[str], str]


class Collection(NamedTuple):
    name: str
    label: str
    create_schema: Type[BaseModel]
    update_schema: Type[schemas.PartialUpdate]
    references: Tuple[Reference, ...] = ()
    unique: Optional[UniqueField] = None
    hidden: FrozenSet[str] = frozenset()

    @property
    def relations(self) -> FrozenSet[str]:
        return frozenset(ref.relation for ref in self.references)


def _normalize_code(value: str) -> str:
    return value.strip().upper()


COLLECTIONS: Dict[str, Collection] = {
    c.name: c
    for c in (
        Collection("authors", "Author", schemas.AuthorCreate, schemas.AuthorUpdate),
        Collection(
            "books",
            "Book",
            schemas.BookCreate,
            schemas.BookUpdate,
            references=(
                Reference("authorId", "authors", "author", required=True, guards_delete=True),
                Reference("categoryId", "categories", "category", guards_delete=True),
                Reference("publisherId", "publishers", "publisher", guards_delete=True),
            ),
        ),
        Collection(
            "users",
            "User",
            schemas.UserCreate,
            schemas.UserUpdate,
            unique=UniqueField("email", str.strip),
            hidden=frozenset({"password"}),
        ),
        Collection("categories", "Category", schemas.CategoryCreate, schemas.CategoryUpdate),
        Collection("publishers", "Publisher", schemas.PublisherCreate, schemas.PublisherUpdate),
        Collection(
            "reviews",
            "Review",
            schemas.ReviewCreate,
            schemas.ReviewUpdate,
            references=(
                Reference("userId", "users", "user", required=True),
                Reference("bookId", "books", "book", required=True),
            ),
        ),
        Collection(
            "orders",
            "Order",
            schemas.OrderCreate,
            schemas.OrderUpdate,
            references=(Reference("userId", "users", "user", required=True),),
        ),
        Collection(
            "coupons",
            "Coupon",
            schemas.CouponCreate,
            schemas.CouponUpdate,
            unique=UniqueField("code", _normalize_code),
        ),
    )
}


def parse_expand(
    expand: Union[str, Iterable[str], None],
    collection: Optional[Collection] = None,
) -> FrozenSet[str]:
    """Turn an ``expand`` value into a set of relation names.

    Parameters
    ----------
    expand : str or Iterable[str] or None
        The raw query string (``"author, Category"``) or an iterable of
        tokens. Tokens are trimmed and lower-cased; blanks are dropped.
    collection : Optional[Collection]
        When given, tokens naming a relation the collection does not have
        are discarded rather than reported.

    Returns
    -------
    FrozenSet[str]
        The requested relation names.
    """
    if not expand:
        return frozenset()
    parts = expand.split(",") if isinstance(expand, str) else expand
    tokens = {p.strip().lower() for p in parts if p and p.strip()}
    if collection is not None:
        tokens &= collection.relations
    return frozenset(tokens)


def guarding_references(target: str) -> List[Tuple[Collection, Reference]]:
    """Every (collection, reference) pair that blocks deleting from ``target``."""
    return [
        (collection, ref)
        for collection in COLLECTIONS.values()
        for ref in collection.references
        if ref.target == target and ref.guards_delete
    ]


def public_view(collection: Collection, record: dict) -> dict:
    return {k: v for k, v in record.items() if k not in collection.hidden}
