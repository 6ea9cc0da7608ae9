"""
Travel Admin Backend — Pydantic Response Schemas
==================================================

What:  The API contract: record representations and the response envelope.
Why:   Schemas are separate from ORM models so we control exactly what is
       exposed. The image handle is an internal reclamation key and is never
       serialized.
How:   Records are read from ORM objects (`from_attributes`) and dumped with
       camelCase aliases (`offerPrice`, `createdAt`).
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ══════════════════════════════════════════════════════════════════════════
# Record Representations
# ══════════════════════════════════════════════════════════════════════════


class RecordOut(BaseModel):
    """Fields every record carries."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime


class ProductOut(RecordOut):
    title: str
    category: str
    price: float
    offer_price: float
    features: List[str] = Field(default_factory=list)
    image: str = Field(default="", description="Public image URL, empty when none")


class NoticeOut(RecordOut):
    title: str


class RepresentativeOut(RecordOut):
    name: str
    facebook: str = ""
    twitter: str = ""
    instagram: str = ""
    image: str = Field(default="", description="Public image URL, empty when none")


# ══════════════════════════════════════════════════════════════════════════
# Envelopes
# ══════════════════════════════════════════════════════════════════════════


class Envelope(BaseModel):
    """
    Uniform response wrapper: `{success, message?, count?, data?, error?}`.

    `error` is a machine-readable code (validation_error, not_found, ...);
    `message` is meant for humans.
    """

    success: bool = True
    message: Optional[str] = None
    count: Optional[int] = None
    data: Optional[Any] = None
    error: Optional[str] = None

    def render(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class HealthResponse(BaseModel):
    success: bool = True
    message: str
    database: str = Field(description="Connected or Disconnected")
    timestamp: datetime


class DatabaseStatusResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    connected: bool
    connection_state: str
    message: str
