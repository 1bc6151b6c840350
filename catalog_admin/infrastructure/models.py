"""SQLAlchemy models for the SQL document store.

Every collection shares one ``documents`` table. A document is keyed by
``(collection, id)`` and its body is stored as JSON.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from catalog_admin.infrastructure.database import Base


class DocumentRecord(Base):
    """One stored document.

    Attributes:
        collection: Collection name (e.g. "products").
        id: Document identifier, unique within its collection.
        body: Encoded document body, including ``_id``.
        created_at: Row creation timestamp.
        updated_at: Row modification timestamp.
    """

    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(100), primary_key=True)
    id: Mapped[str] = mapped_column(String(200), primary_key=True)
    body: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<DocumentRecord(collection={self.collection}, id={self.id})>"
