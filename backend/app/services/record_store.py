"""
Travel Admin Backend — Record Store
=====================================

What:  CRUD over one record type's table.
Why:   Keeps SQL out of the resource service and gives the lifecycle
       manager one guarantee it relies on: every write is committed before
       the method returns, and the commit is the last fallible step. An
       exception out of create/update therefore always means "not written",
       which is when a freshly stored image may be abandoned.
How:   Generic over the descriptor's ORM model; sessions are passed in per
       call (one session per request).

Query patterns:
    list_all:   SELECT ... ORDER BY created_at DESC, id DESC
                (idx_<table>_created_at; id breaks timestamp ties)
    get_by_id:  primary-key lookup through the session identity map

No refresh after commit:
    Sessions use expire_on_commit=False and every generated column (id,
    timestamps, defaults) is computed in Python at flush time, so the
    in-memory object already matches the row that was written.
"""

import logging
from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError
from app.services.resources import ResourceDescriptor

logger = logging.getLogger(__name__)


class RecordStore:
    """
    Persistence for records described by `descriptor`.

    Errors:
        NotFoundError    unknown id (get/update/delete)
        ValidationError  required field missing on create
        SQLAlchemyError  propagated; the resource service maps it to the
                         read or write failure envelope
    """

    def __init__(self, descriptor: ResourceDescriptor):
        self.descriptor = descriptor
        self.model = descriptor.model

    async def create(self, db: AsyncSession, values: Dict[str, Any]) -> Any:
        # Last line of defence; the descriptor already checked on parse
        self.descriptor.check_required(values)
        record = self.model(**values)
        db.add(record)
        logger.info("Creating %s", self.descriptor.name)

        # Durable from here on; nothing fallible follows
        await db.commit()
        return record

    async def list_all(self, db: AsyncSession) -> List[Any]:
        # id as secondary key keeps equal timestamps in a stable order
        result = await db.execute(
            select(self.model).order_by(
                desc(self.model.created_at),
                desc(self.model.id),
            )
        )
        return list(result.scalars().all())

    async def get_by_id(self, db: AsyncSession, record_id: UUID) -> Any:
        record = await db.get(self.model, record_id)
        if record is None:
            raise NotFoundError(resource=self.descriptor.name, resource_id=str(record_id))
        return record

    async def update_by_id(
        self,
        db: AsyncSession,
        record_id: UUID,
        values: Dict[str, Any],
    ) -> Any:
        """
        Apply `values` on top of the stored record.

        Attributes missing from `values` keep their stored value; callers
        never pass None to clear a field.
        """
        record = await self.get_by_id(db, record_id)
        for attr, value in values.items():
            setattr(record, attr, value)
        logger.info(
            "Updating %s %s (%s)",
            self.descriptor.name,
            record_id,
            ", ".join(sorted(values)) or "no fields",
        )

        # Durable from here on; nothing fallible follows
        await db.commit()
        return record

    async def delete_by_id(self, db: AsyncSession, record_id: UUID) -> Any:
        """Remove the record and return it as it was."""
        record = await self.get_by_id(db, record_id)
        await db.delete(record)
        await db.commit()
        logger.info("%s deleted: %s", self.descriptor.label, record_id)
        return record
