"""Document store with collection-scoped operations.

The catalog only needs a narrow contract from its store:

- insert one document
- find one document by identifier
- find many documents with an equality filter and a sort order
- update one document by identifier with set / inc / push / pull
  modifiers, returning the updated document
- delete one document by identifier

Each call is a single-document write. Nothing spans documents, so a
sequence of calls is never atomic as a whole.

Two backends implement the contract:

- ``InMemoryDocumentStore`` keeps documents in process memory.
- ``SqlDocumentStore`` keeps them in one SQLAlchemy ``documents`` table
  with a JSON body.

Example usage:
    store = InMemoryDocumentStore()
    products = store.collection("products")
    await products.insert_one({"_id": "prod_0001", "product_name": "Widget"})
    await products.update_one("prod_0001", push={"image_urls": "https://..."})
"""

import copy
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from catalog_admin.infrastructure.config import Settings
from catalog_admin.infrastructure.database import get_engine, get_session_factory
from catalog_admin.infrastructure.models import DocumentRecord

ASCENDING = 1
DESCENDING = -1

Document = dict[str, Any]
SortSpec = Sequence[tuple[str, int]]


# ============================================================================
# Errors
# ============================================================================


class DocumentStoreError(Exception):
    """Any failure reading from or writing to the document store."""

    def __init__(
        self, collection: str, message: str, document_id: str | None = None
    ) -> None:
        self.collection = collection
        self.message = message
        self.document_id = document_id
        super().__init__(f"[{collection}] {message}")


class DuplicateDocumentError(DocumentStoreError):
    """Insert of a document whose identifier already exists."""

    pass


# ============================================================================
# Contract
# ============================================================================


class Collection(Protocol):
    """Operations on one named collection."""

    name: str

    async def insert_one(self, document: Mapping[str, Any]) -> str: ...

    async def find_one(self, document_id: str) -> Document | None: ...

    async def find_many(
        self,
        filter: Mapping[str, Any] | None = None,
        sort: SortSpec | None = None,
    ) -> list[Document]: ...

    async def update_one(
        self,
        document_id: str,
        *,
        set_fields: Mapping[str, Any] | None = None,
        inc: Mapping[str, int] | None = None,
        push: Mapping[str, Any] | None = None,
        pull: Mapping[str, Any] | None = None,
        upsert: bool = False,
    ) -> Document | None: ...

    async def delete_one(self, document_id: str) -> bool: ...


class DocumentStore(Protocol):
    """Factory for collections."""

    def collection(self, name: str) -> Collection: ...

    async def close(self) -> None: ...


# ============================================================================
# Shared document helpers
# ============================================================================


def _require_id(collection: str, document: Mapping[str, Any]) -> str:
    document_id = document.get("_id")
    if not isinstance(document_id, str) or not document_id:
        raise DocumentStoreError(collection, "Document must have a string '_id'")
    return document_id


def apply_update(
    collection: str,
    document: Mapping[str, Any],
    *,
    set_fields: Mapping[str, Any] | None = None,
    inc: Mapping[str, int] | None = None,
    push: Mapping[str, Any] | None = None,
    pull: Mapping[str, Any] | None = None,
) -> Document:
    """Apply update modifiers to a copy of ``document``.

    Args:
        collection: Collection name, for error messages.
        document: Current document.
        set_fields: Fields to overwrite.
        inc: Numeric fields to increment (missing fields start at 0).
        push: Values to append to list fields (missing fields start empty).
        pull: Values to remove, every occurrence, from list fields.

    Returns:
        The updated document.

    Raises:
        DocumentStoreError: If a modifier targets ``_id`` or a field of the
            wrong type.
    """
    updated = copy.deepcopy(dict(document))
    document_id = updated.get("_id")

    for modifier in (set_fields, inc, push, pull):
        if modifier and "_id" in modifier:
            raise DocumentStoreError(collection, "'_id' cannot be modified", document_id)

    for key, value in (set_fields or {}).items():
        updated[key] = copy.deepcopy(value)

    for key, amount in (inc or {}).items():
        current = updated.get(key, 0)
        if not isinstance(current, int) or isinstance(current, bool):
            raise DocumentStoreError(
                collection, f"Cannot increment non-integer field '{key}'", document_id
            )
        updated[key] = current + amount

    for key, value in (push or {}).items():
        current = updated.setdefault(key, [])
        if not isinstance(current, list):
            raise DocumentStoreError(
                collection, f"Cannot push to non-list field '{key}'", document_id
            )
        current.append(copy.deepcopy(value))

    for key, value in (pull or {}).items():
        current = updated.get(key)
        if current is None:
            continue
        if not isinstance(current, list):
            raise DocumentStoreError(
                collection, f"Cannot pull from non-list field '{key}'", document_id
            )
        updated[key] = [item for item in current if item != value]

    return updated


def matches(document: Mapping[str, Any], filter: Mapping[str, Any] | None) -> bool:
    """Equality match on every filter field."""
    if not filter:
        return True
    return all(document.get(key) == value for key, value in filter.items())


def sort_documents(documents: list[Document], sort: SortSpec | None) -> list[Document]:
    """Sort by one or more ``(field, direction)`` pairs.

    Documents missing a sort field order before those that have it when
    ascending, and after them when descending.
    """
    ordered = list(documents)
    for key, direction in reversed(list(sort or [])):
        ordered.sort(
            key=lambda d: (d.get(key) is not None, d.get(key) if d.get(key) is not None else 0),
            reverse=direction == DESCENDING,
        )
    return ordered


# ============================================================================
# In-memory backend
# ============================================================================


class InMemoryCollection:
    """In-memory collection.

    Documents are deep-copied on the way in and out, so callers never share
    state with the store. No operation awaits part-way through, which makes
    each single-document write atomic under asyncio.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._documents: dict[str, Document] = {}

    async def insert_one(self, document: Mapping[str, Any]) -> str:
        """Insert a document. Raises DuplicateDocumentError on a taken id."""
        document_id = _require_id(self.name, document)
        if document_id in self._documents:
            raise DuplicateDocumentError(
                self.name, f"Document already exists: {document_id}", document_id
            )
        self._documents[document_id] = copy.deepcopy(dict(document))
        return document_id

    async def find_one(self, document_id: str) -> Document | None:
        """Get a document by id."""
        document = self._documents.get(document_id)
        return copy.deepcopy(document) if document is not None else None

    async def find_many(
        self,
        filter: Mapping[str, Any] | None = None,
        sort: SortSpec | None = None,
    ) -> list[Document]:
        """Find documents matching ``filter``, ordered by ``sort``."""
        found = [copy.deepcopy(d) for d in self._documents.values() if matches(d, filter)]
        return sort_documents(found, sort)

    async def update_one(
        self,
        document_id: str,
        *,
        set_fields: Mapping[str, Any] | None = None,
        inc: Mapping[str, int] | None = None,
        push: Mapping[str, Any] | None = None,
        pull: Mapping[str, Any] | None = None,
        upsert: bool = False,
    ) -> Document | None:
        """Update a document by id.

        Returns:
            The updated document, or None if nothing matched and
            ``upsert`` is False.
        """
        current = self._documents.get(document_id)
        if current is None:
            if not upsert:
                return None
            current = {"_id": document_id}
        updated = apply_update(
            self.name, current, set_fields=set_fields, inc=inc, push=push, pull=pull
        )
        self._documents[document_id] = updated
        return copy.deepcopy(updated)

    async def delete_one(self, document_id: str) -> bool:
        """Delete a document by id. Returns False if it did not exist."""
        return self._documents.pop(document_id, None) is not None


class InMemoryDocumentStore:
    """Document store held entirely in process memory."""

    def __init__(self) -> None:
        self._collections: dict[str, InMemoryCollection] = {}

    def collection(self, name: str) -> InMemoryCollection:
        """Get a collection, creating it on first use."""
        if name not in self._collections:
            self._collections[name] = InMemoryCollection(name)
        return self._collections[name]

    async def close(self) -> None:
        """Nothing to release."""
        pass


# ============================================================================
# SQL backend
# ============================================================================


_DATE_KEY = "$date"


def encode_value(value: Any) -> Any:
    """Make a document value JSON-safe. Datetimes become ``{"$date": iso}``."""
    if isinstance(value, datetime):
        return {_DATE_KEY: value.isoformat()}
    if isinstance(value, Mapping):
        return {key: encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    return value


def decode_value(value: Any) -> Any:
    """Reverse :func:`encode_value`."""
    if isinstance(value, dict):
        if set(value) == {_DATE_KEY}:
            return datetime.fromisoformat(value[_DATE_KEY])
        return {key: decode_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode_value(item) for item in value]
    return value


class SqlCollection:
    """Collection backed by the shared ``documents`` table.

    Every operation runs in its own transaction. Updates lock the target row
    with ``SELECT ... FOR UPDATE`` where the database supports it.
    """

    def __init__(
        self, name: str, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.name = name
        self._session_factory = session_factory

    async def insert_one(self, document: Mapping[str, Any]) -> str:
        """Insert a document. Raises DuplicateDocumentError on a taken id."""
        document_id = _require_id(self.name, document)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(
                        DocumentRecord(
                            collection=self.name,
                            id=document_id,
                            body=encode_value(dict(document)),
                        )
                    )
        except IntegrityError as e:
            raise DuplicateDocumentError(
                self.name, f"Document already exists: {document_id}", document_id
            ) from e
        except SQLAlchemyError as e:
            raise DocumentStoreError(self.name, f"Insert failed: {e}", document_id) from e
        return document_id

    async def find_one(self, document_id: str) -> Document | None:
        """Get a document by id."""
        try:
            async with self._session_factory() as session:
                record = await session.get(DocumentRecord, (self.name, document_id))
                return decode_value(record.body) if record is not None else None
        except SQLAlchemyError as e:
            raise DocumentStoreError(self.name, f"Read failed: {e}", document_id) from e

    async def find_many(
        self,
        filter: Mapping[str, Any] | None = None,
        sort: SortSpec | None = None,
    ) -> list[Document]:
        """Find documents matching ``filter``, ordered by ``sort``.

        Filtering and sorting run in Python over the collection's rows.
        """
        query = select(DocumentRecord).where(DocumentRecord.collection == self.name)
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                documents = [decode_value(r.body) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            raise DocumentStoreError(self.name, f"Read failed: {e}") from e
        return sort_documents([d for d in documents if matches(d, filter)], sort)

    async def update_one(
        self,
        document_id: str,
        *,
        set_fields: Mapping[str, Any] | None = None,
        inc: Mapping[str, int] | None = None,
        push: Mapping[str, Any] | None = None,
        pull: Mapping[str, Any] | None = None,
        upsert: bool = False,
    ) -> Document | None:
        """Update a document by id.

        Returns:
            The updated document, or None if nothing matched and
            ``upsert`` is False.
        """
        query = (
            select(DocumentRecord)
            .where(
                DocumentRecord.collection == self.name,
                DocumentRecord.id == document_id,
            )
            .with_for_update()
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(query)
                    record = result.scalar_one_or_none()
                    if record is None:
                        if not upsert:
                            return None
                        record = DocumentRecord(
                            collection=self.name,
                            id=document_id,
                            body={"_id": document_id},
                        )
                        session.add(record)
                    updated = apply_update(
                        self.name,
                        decode_value(record.body),
                        set_fields=set_fields,
                        inc=inc,
                        push=push,
                        pull=pull,
                    )
                    record.body = encode_value(updated)
        except IntegrityError as e:
            raise DuplicateDocumentError(
                self.name, f"Concurrent upsert of {document_id}", document_id
            ) from e
        except SQLAlchemyError as e:
            raise DocumentStoreError(self.name, f"Update failed: {e}", document_id) from e
        return updated

    async def delete_one(self, document_id: str) -> bool:
        """Delete a document by id. Returns False if it did not exist."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    record = await session.get(DocumentRecord, (self.name, document_id))
                    if record is None:
                        return False
                    await session.delete(record)
        except SQLAlchemyError as e:
            raise DocumentStoreError(self.name, f"Delete failed: {e}", document_id) from e
        return True


class SqlDocumentStore:
    """Document store backed by SQLAlchemy.

    Example usage:
        store = SqlDocumentStore(get_session_factory(), engine=get_engine())
        categories = store.collection("categories")
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine = engine

    def collection(self, name: str) -> SqlCollection:
        """Get a collection handle."""
        return SqlCollection(name, self._session_factory)

    async def close(self) -> None:
        """Dispose of the engine, if this store owns one."""
        if self._engine is not None:
            await self._engine.dispose()


def create_document_store(config: Settings) -> DocumentStore:
    """Build the backend selected by ``config.storage_backend``."""
    if config.storage_backend == "sql":
        return SqlDocumentStore(get_session_factory(), engine=get_engine())
    return InMemoryDocumentStore()
