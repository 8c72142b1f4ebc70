"""
Pydantic schema definitions for the catalog module.

Three families of models live here:

* ``*Create`` payloads validate the body of a ``POST``. Strings are
  trimmed, required strings must not be blank and numeric fields carry
  their allowed range.
* ``*Update`` payloads validate the body of a ``PUT``. Every field is
  optional; only the fields the client actually sent are applied (see
  :meth:`PartialUpdate.changes`). Fields listed in ``nullable`` may be
  cleared with an explicit ``null``, every other field rejects it.
* ``*Out`` models describe what the API returns. They never declare a
  ``password`` field, so a user's password cannot leak through a
  response even if a caller forgets to strip it.
"""

from typing import Any, ClassVar, Dict, FrozenSet, List, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, Field, StringConstraints
from typing_extensions import Annotated

from .errors import InvalidFieldError


def _blank_if_none(value: Any) -> Any:
    return "" if value is None else value


def _one_if_none(value: Any) -> Any:
    return 1 if value is None else value


def _upper(value: str) -> str:
    return value.upper()


def _none_if_blank(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


RequiredStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
PlainText = Annotated[str, StringConstraints(strip_whitespace=True)]
# Free text on create: null and missing both become "".
Text = Annotated[PlainText, BeforeValidator(_blank_if_none)]
# Optional string or reference id: "" and whitespace both become None.
NullableStr = Annotated[Optional[RequiredStr], BeforeValidator(_none_if_blank)]
CouponCode = Annotated[RequiredStr, AfterValidator(_upper)]

Price = Annotated[float, Field(ge=0, strict=True, allow_inf_nan=False)]
Rating = Annotated[float, Field(ge=1, le=5, strict=True, allow_inf_nan=False)]
Discount = Annotated[float, Field(gt=0, le=100, strict=True, allow_inf_nan=False)]


class PartialUpdate(BaseModel):
    """Base class for update payloads.

    Pydantic tracks which fields were present in the input in
    ``model_fields_set``, which lets an update tell "not sent" apart from
    "sent as null".
    """

    nullable: ClassVar[FrozenSet[str]] = frozenset()

    def changes(self) -> Dict[str, Any]:
        """Return the fields the client sent, rejecting illegal nulls."""
        sent = self.model_dump(exclude_unset=True)
        for name, value in sent.items():
            if value is None and name not in self.nullable:
                raise InvalidFieldError(f"Field '{name}' cannot be null.", field=name)
        return sent


# ---------------------------------------------------------------------------
# Authors, categories, publishers


class AuthorCreate(BaseModel):
    name: RequiredStr
    biography: Text = ""
    nationality: NullableStr = None


class AuthorUpdate(PartialUpdate):
    nullable: ClassVar[FrozenSet[str]] = frozenset({"nationality"})

    name: Optional[RequiredStr] = None
    biography: Optional[PlainText] = None
    nationality: NullableStr = None


class CategoryCreate(BaseModel):
    name: RequiredStr


class CategoryUpdate(PartialUpdate):
    name: Optional[RequiredStr] = None


class PublisherCreate(BaseModel):
    name: RequiredStr
    foundationYear: Optional[int] = None


class PublisherUpdate(PartialUpdate):
    nullable: ClassVar[FrozenSet[str]] = frozenset({"foundationYear"})

    name: Optional[RequiredStr] = None
    foundationYear: Optional[int] = None


# ---------------------------------------------------------------------------
# Users


class UserCreate(BaseModel):
    name: RequiredStr
    email: RequiredStr
    # Stored as given; hashing is out of scope for this service.
    password: RequiredStr


class UserUpdate(PartialUpdate):
    name: Optional[RequiredStr] = None
    email: Optional[RequiredStr] = None
    password: Optional[RequiredStr] = None


# ---------------------------------------------------------------------------
# Books


class BookCreate(BaseModel):
    title: RequiredStr
    description: Text = ""
    price: Price
    file: NullableStr = None
    authorId: RequiredStr
    categoryId: NullableStr = None
    publisherId: NullableStr = None


class BookUpdate(PartialUpdate):
    nullable: ClassVar[FrozenSet[str]] = frozenset({"file", "categoryId", "publisherId"})

    title: Optional[RequiredStr] = None
    description: Optional[PlainText] = None
    price: Optional[Price] = None
    file: NullableStr = None
    authorId: Optional[RequiredStr] = None
    categoryId: NullableStr = None
    publisherId: NullableStr = None


# ---------------------------------------------------------------------------
# Reviews


class ReviewCreate(BaseModel):
    userId: RequiredStr
    bookId: RequiredStr
    rating: Rating
    comment: Text = ""


class ReviewUpdate(PartialUpdate):
    rating: Optional[Rating] = None
    comment: Optional[PlainText] = None


# ---------------------------------------------------------------------------
# Orders


class OrderItemIn(BaseModel):
    bookId: RequiredStr
    quantity: Annotated[int, BeforeValidator(_one_if_none)] = Field(1, ge=1)


class OrderCreate(BaseModel):
    userId: RequiredStr
    items: List[OrderItemIn] = Field(..., min_length=1)


class OrderUpdate(PartialUpdate):
    status: Optional[RequiredStr] = None


# ---------------------------------------------------------------------------
# Coupons


class CouponCreate(BaseModel):
    code: CouponCode
    discountPercentage: Discount


class CouponUpdate(PartialUpdate):
    code: Optional[CouponCode] = None
    discountPercentage: Optional[Discount] = None


# ---------------------------------------------------------------------------
# Response models


class Record(BaseModel):
    id: str
    createdAt: str
    updatedAt: Optional[str] = None


class AuthorOut(Record):
    name: str
    biography: str = ""
    nationality: Optional[str] = None


class CategoryOut(Record):
    name: str


class PublisherOut(Record):
    name: str
    foundationYear: Optional[int] = None


class UserOut(Record):
    name: str
    email: str


class BookOut(Record):
    title: str
    description: str = ""
    price: float
    file: Optional[str] = None
    authorId: str
    categoryId: Optional[str] = None
    publisherId: Optional[str] = None
    # Present only when requested through ``?expand=``.
    author: Optional[AuthorOut] = None
    category: Optional[CategoryOut] = None
    publisher: Optional[PublisherOut] = None


class ReviewOut(Record):
    userId: str
    bookId: str
    rating: float
    comment: str = ""
    user: Optional[UserOut] = None
    book: Optional[BookOut] = None


class OrderItemOut(BaseModel):
    bookId: str
    # Items written before quantities were normalized may lack one.
    quantity: int = 1


class OrderOut(Record):
    userId: str
    items: List[OrderItemOut]
    total: float
    status: str
    user: Optional[UserOut] = None


class CouponOut(Record):
    code: str
    discountPercentage: float
