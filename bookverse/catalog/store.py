"""
JSON-document data store for the catalogue API.

The whole catalogue is a single JSON object on disk that maps each
collection name (``authors``, ``books``, ...) to an ordered list of
records. :class:`CatalogStore` owns the in-memory copy of that document
and is the only thing that reads or writes the file.

Every operation runs under one re-entrant lock, so the
read-validate-mutate-write cycle of one request can never interleave with
another's. A mutation first writes the complete new document to a
temporary file, atomically moves it over the data file and only then
replaces the in-memory copy; if the write fails nothing changes.

Which fields reference which collections, which of those references
block deletes and what ``?expand=`` may inline is described in
:mod:`.relations`.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, ValidationError

from .errors import (
    DanglingReferenceError,
    DuplicateValueError,
    InvalidFieldError,
    NotFoundError,
    ReferencedError,
    StorageError,
    invalid_field_error,
)
from .relations import COLLECTIONS, Collection, guarding_references, parse_expand, public_view

logger = logging.getLogger(__name__)

Document = Dict[str, List[Dict[str, Any]]]
Fields = Union[BaseModel, Mapping[str, Any]]
Expand = Union[str, Iterable[str], None]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def empty_document() -> Document:
    return {name: [] for name in COLLECTIONS}


def _collection(name: str) -> Collection:
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise ValueError(f"Unknown collection: {name!r}") from None


def _validate(schema: type, fields: Fields) -> Any:
    """Coerce ``fields`` into an instance of ``schema``.

    Payloads the router already validated are passed through untouched.
    Plain mappings (and other models) are validated here, so the store
    enforces the same rules when it is used without the HTTP layer.
    """
    if isinstance(fields, schema):
        return fields
    if isinstance(fields, BaseModel):
        fields = fields.model_dump(exclude_unset=True)
    try:
        return schema.model_validate(dict(fields))
    except ValidationError as exc:
        raise invalid_field_error(exc.errors()) from None


def _find(records: List[Dict[str, Any]], record_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if record_id is None:
        return None
    return next((r for r in records if r.get("id") == record_id), None)


class CatalogStore:
    """Catalogue persisted as one JSON document at ``path``."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._lock = threading.RLock()
        self._document: Optional[Document] = None

    # ------------------------------------------------------------------
    # Persistence

    def _load(self) -> Document:
        if self._document is None:
            self._document = self._read()
        return self._document

    def _read(self) -> Document:
        if not self.path.exists():
            logger.info("No catalogue found at %s, creating an empty one", self.path)
            document = empty_document()
            self._write(document)
            return document
        try:
            with self.path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as exc:
            logger.error("Could not read catalogue %s: %s", self.path, exc)
            raise StorageError("Could not read the catalogue.") from exc
        if not isinstance(raw, dict):
            logger.error("Catalogue %s is not a JSON object", self.path)
            raise StorageError("Could not read the catalogue.")
        # Collections missing from an older file start out empty.
        document = {name: list(raw.get(name) or []) for name in COLLECTIONS}
        # Older files kept order items as sent; a missing quantity counted as 1.
        for order in document["orders"]:
            for item in order.get("items") or []:
                if isinstance(item, dict) and item.get("quantity") is None:
                    item["quantity"] = 1
        return document

    def _write(self, document: Document) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError) as exc:
            logger.exception("Could not write catalogue %s", self.path)
            raise StorageError("Could not save the catalogue.") from exc

    def _commit(self, name: str, records: List[Dict[str, Any]]) -> None:
        document = dict(self._load())
        document[name] = records
        self._write(document)
        self._document = document

    def reload(self) -> None:
        """Drop the in-memory copy; the next operation re-reads the file."""
        with self._lock:
            self._document = None

    # ------------------------------------------------------------------
    # Rule checks

    def _check_references(
        self, document: Document, collection: Collection, values: Mapping[str, Any]
    ) -> None:
        for ref in collection.references:
            if ref.field not in values:
                continue
            value = values[ref.field]
            if value is None:
                if ref.required:
                    raise InvalidFieldError(f"{ref.field} is required.", field=ref.field)
                continue
            if _find(document[ref.target], value) is None:
                target = COLLECTIONS[ref.target]
                raise DanglingReferenceError(
                    f"{target.label} '{value}' not found ({ref.field} is invalid).",
                    field=ref.field,
                )

    def _check_unique(
        self,
        document: Document,
        collection: Collection,
        values: Mapping[str, Any],
        exclude_id: Optional[str] = None,
    ) -> None:
        unique = collection.unique
        if unique is None or values.get(unique.field) is None:
            return
        candidate = unique.normalize(values[unique.field])
        for record in document[collection.name]:
            if record.get("id") == exclude_id:
                continue
            existing = record.get(unique.field)
            if isinstance(existing, str) and unique.normalize(existing) == candidate:
                raise DuplicateValueError(
                    f"{collection.label} with {unique.field} '{candidate}' already exists.",
                    field=unique.field,
                )

    def _check_delete(self, document: Document, collection: Collection, record_id: str) -> None:
        for owner, ref in guarding_references(collection.name):
            if any(r.get(ref.field) == record_id for r in document[owner.name]):
                logger.debug(
                    "Refusing to delete %s %s: referenced by %s.%s",
                    collection.label, record_id, owner.name, ref.field,
                )
                raise ReferencedError(
                    f"{collection.label} is referenced by a {owner.label.lower()} "
                    f"({ref.field}) and cannot be deleted.",
                    field=ref.field,
                )

    def _price_order(self, document: Document, values: Dict[str, Any]) -> Dict[str, Any]:
        """Check every line item and fix the order total.

        The total is computed once from the current book prices and is
        never recomputed afterwards.
        """
        total = 0.0
        for i, item in enumerate(values["items"]):
            book = _find(document["books"], item["bookId"])
            if book is None:
                raise DanglingReferenceError(
                    f"Book '{item['bookId']}' not found.", field=f"items[{i}].bookId"
                )
            total += book["price"] * item["quantity"]
        values["total"] = total
        values["status"] = "pending"
        return values

    # ------------------------------------------------------------------
    # Views

    def _view(self, collection: Collection, record: Dict[str, Any]) -> Dict[str, Any]:
        return copy.deepcopy(public_view(collection, record))

    def _expand(
        self,
        document: Document,
        collection: Collection,
        record: Dict[str, Any],
        relations: Iterable[str],
    ) -> Dict[str, Any]:
        view = self._view(collection, record)
        for ref in collection.references:
            if ref.relation not in relations:
                continue
            related = _find(document[ref.target], record.get(ref.field))
            view[ref.relation] = (
                self._view(COLLECTIONS[ref.target], related) if related is not None else None
            )
        return view

    # ------------------------------------------------------------------
    # Operations

    def create(self, name: str, fields: Fields) -> Dict[str, Any]:
        """Validate and append a new record to a collection.

        Parameters
        ----------
        name : str
            Collection name, e.g. ``"books"``.
        fields : BaseModel or Mapping
            The record's fields. A mapping is validated against the
            collection's create schema first.

        Returns
        -------
        Dict[str, Any]
            The stored record with its generated ``id`` and ``createdAt``
            (hidden fields such as ``password`` removed).

        Raises
        ------
        InvalidFieldError, DanglingReferenceError, DuplicateValueError
            When validation fails; nothing is written in that case.
        """
        collection = _collection(name)
        values = _validate(collection.create_schema, fields).model_dump()
        with self._lock:
            document = self._load()
            self._check_references(document, collection, values)
            self._check_unique(document, collection, values)
            if name == "orders":
                values = self._price_order(document, values)
            record = {"id": str(uuid.uuid4()), **values, "createdAt": _now()}
            self._commit(name, document[name] + [record])
        logger.debug("Created %s %s", collection.label, record["id"])
        return self._view(collection, record)

    def list(self, name: str, expand: Expand = None) -> List[Dict[str, Any]]:
        """Return every record of a collection in insertion order.

        Parameters
        ----------
        name : str
            Collection name.
        expand : str or Iterable[str], optional
            Relations to inline, e.g. ``"author,category"``. Unknown
            relation names are ignored.

        Returns
        -------
        List[Dict[str, Any]]
            Copies of the stored records, expanded as requested.
        """
        collection = _collection(name)
        relations = parse_expand(expand, collection)
        with self._lock:
            document = self._load()
            return [self._expand(document, collection, r, relations) for r in document[name]]

    def get(self, name: str, record_id: str, expand: Expand = None) -> Dict[str, Any]:
        """Return one record by id; raises ``NotFoundError`` if it is absent.

        ``expand`` works as in :meth:`list`.
        """
        collection = _collection(name)
        relations = parse_expand(expand, collection)
        with self._lock:
            document = self._load()
            record = _find(document[name], record_id)
            if record is None:
                raise NotFoundError(f"{collection.label} '{record_id}' not found.")
            return self._expand(document, collection, record, relations)

    def update(self, name: str, record_id: str, fields: Fields) -> Dict[str, Any]:
        """Apply a partial update to one record.

        Parameters
        ----------
        name : str
            Collection name.
        record_id : str
            Id of the record to change.
        fields : BaseModel or Mapping
            Only the fields present here are changed. An explicit ``None``
            clears a nullable field and is rejected for any other.

        Returns
        -------
        Dict[str, Any]
            The updated record, with ``updatedAt`` set.
        """
        collection = _collection(name)
        changes = _validate(collection.update_schema, fields).changes()
        with self._lock:
            document = self._load()
            records = list(document[name])
            index = next((i for i, r in enumerate(records) if r.get("id") == record_id), None)
            if index is None:
                raise NotFoundError(f"{collection.label} '{record_id}' not found.")
            self._check_references(document, collection, changes)
            self._check_unique(document, collection, changes, exclude_id=record_id)
            record = {**records[index], **changes, "updatedAt": _now()}
            records[index] = record
            self._commit(name, records)
        logger.debug("Updated %s %s (%s)", collection.label, record_id, ", ".join(changes) or "no fields")
        return self._view(collection, record)

    def delete(self, name: str, record_id: str) -> None:
        """Remove one record.

        Parameters
        ----------
        name : str
            Collection name.
        record_id : str
            Id of the record to remove.

        Raises
        ------
        ReferencedError
            If a guarded reference (e.g. ``Book.authorId``) still points
            at the record.
        NotFoundError
            If no record has that id.
        """
        collection = _collection(name)
        with self._lock:
            document = self._load()
            self._check_delete(document, collection, record_id)
            remaining = [r for r in document[name] if r.get("id") != record_id]
            if len(remaining) == len(document[name]):
                raise NotFoundError(f"{collection.label} '{record_id}' not found.")
            self._commit(name, remaining)
        logger.debug("Deleted %s %s", collection.label, record_id)
