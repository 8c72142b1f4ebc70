"""
Exceptions raised by the catalogue store.

Every error derives from :class:`CatalogError`, which carries the HTTP
status the router should answer with, a short machine-readable ``code``
and, where it applies, the name of the offending ``field``. The router
turns any ``CatalogError`` into a JSON body of the form::

    {"error": "<message>", "code": "<code>", "field": "<field or null>"}
"""

from typing import Any, Dict, Optional, Sequence


class CatalogError(Exception):
    status_code = 400
    code = "catalog_error"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, "field": self.field}


class InvalidFieldError(CatalogError):
    """A required field is missing, has the wrong type or is out of range."""

    code = "invalid_field"


class DanglingReferenceError(CatalogError):
    """A reference field does not point to an existing record."""

    code = "dangling_reference"


class DuplicateValueError(CatalogError):
    """A unique field collides with another record."""

    status_code = 409
    code = "duplicate_value"


class NotFoundError(CatalogError):
    status_code = 404
    code = "not_found"


class ReferencedError(CatalogError):
    """Delete refused because another record still points to the target."""

    status_code = 409
    code = "referenced"


class StorageError(CatalogError):
    """Reading or writing the catalogue document failed."""

    status_code = 500
    code = "internal"


def _format_location(loc: Sequence[Any]) -> Optional[str]:
    parts = list(loc)
    # FastAPI prefixes request errors with where the value came from.
    if parts and parts[0] in ("body", "query", "path"):
        parts = parts[1:]
    field = ""
    for part in parts:
        if isinstance(part, int):
            field += f"[{part}]"
        else:
            field += f".{part}" if field else str(part)
    return field or None


def invalid_field_error(errors: Sequence[Dict[str, Any]]) -> InvalidFieldError:
    """Build an :class:`InvalidFieldError` from pydantic error dicts.

    Only the first error is reported; ``field`` is its location written as
    ``items[0].bookId``.
    """
    if not errors:
        return InvalidFieldError("Invalid request body.")
    first = errors[0]
    field = _format_location(first.get("loc") or ())
    message = first.get("msg") or "Invalid value"
    if field:
        return InvalidFieldError(f"Field '{field}': {message}.", field=field)
    return InvalidFieldError(f"{message}.")
