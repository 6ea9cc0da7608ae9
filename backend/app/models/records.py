"""
Travel Admin Backend — Record ORM Models
==========================================

What:  ORM models for the three record types: products, notices and
       representatives.
Why:   Maps records to rows; Alembic reads the metadata for migrations.
How:   Shared mixins supply the UUID key, timestamps and the image pair.

Image pair:
    `image` is the public locator readers fetch; `image_handle` is the key
    used only to delete the stored object later. Both are "" together or set
    together, and only the attachment lifecycle manager writes them.

Portable types (Uuid, DateTime(timezone=True), JSON) keep the same models
working on PostgreSQL in production and SQLite in tests.
"""

import uuid
from datetime import datetime, timezone
from typing import List

from sqlalchemy import JSON, DateTime, Float, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordMixin:
    """UUID primary key plus store-managed timestamps."""

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )


class AssetMixin:
    """Optional externally stored image."""

    image: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    image_handle: Mapped[str] = mapped_column(String(512), nullable=False, default="")


class Product(RecordMixin, AssetMixin, Base):
    """A catalog item (travel package)."""

    __tablename__ = "products"

    title: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    offer_price: Mapped[float] = mapped_column(Float, nullable=False)
    features: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (Index("idx_products_created_at", "created_at"),)

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, title='{self.title}')>"


class Notice(RecordMixin, Base):
    """A short announcement. Notices carry no image."""

    __tablename__ = "notices"

    title: Mapped[str] = mapped_column(String(500), nullable=False)

    __table_args__ = (Index("idx_notices_created_at", "created_at"),)

    def __repr__(self) -> str:
        return f"<Notice(id={self.id}, title='{self.title[:30]}')>"


class Representative(RecordMixin, AssetMixin, Base):
    """A personnel profile with optional social handles."""

    __tablename__ = "representatives"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    facebook: Mapped[str] = mapped_column(Text, nullable=False, default="")
    twitter: Mapped[str] = mapped_column(Text, nullable=False, default="")
    instagram: Mapped[str] = mapped_column(Text, nullable=False, default="")

    __table_args__ = (Index("idx_representatives_created_at", "created_at"),)

    def __repr__(self) -> str:
        return f"<Representative(id={self.id}, name='{self.name}')>"
