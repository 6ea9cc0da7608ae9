"""
Travel Admin Backend — Resource Service (Business Logic Orchestrator)
=======================================================================

What:  One generic service per record type: list, create, update, delete.
Why:   The three record types share every workflow; only the descriptor
       differs. Keeping HTTP out of here lets the workflows be tested
       against a real session and a fake object store.
How:   Composes the descriptor (parsing), the attachment lifecycle manager
       (images) and the record store (persistence), and returns envelopes.

Mutation Flow:
    ┌──────────┐   ┌──────────────┐   ┌──────────────┐   ┌──────────────┐
    │  parse   │──▶│  prepare     │──▶│  store write │──▶│  commit      │
    │ (fields) │   │ (store image)│   │  (committed) │   │ (reclaim old)│
    └──────────┘   └──────────────┘   └──────────────┘   └──────────────┘
         │                │                  │
    ValidationError  StorageError      write failed → abandon(new image)
    (no side effect) (record untouched)  → WriteFailedError

Error mapping:
    reads   unexpected failure → DatabaseError (500)
    writes  unexpected failure → WriteFailedError (400)
    application errors (validation, not found, storage) pass through as-is
"""

import logging
from typing import Any, Mapping, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    DatabaseError,
    TravelAdminError,
    ValidationError,
    WriteFailedError,
)
from app.schemas.records import Envelope
from app.services.attachments import AttachmentLifecycleManager
from app.services.object_store import Asset, Upload
from app.services.record_store import RecordStore
from app.services.resources import ResourceDescriptor

logger = logging.getLogger(__name__)


class ResourceService:
    """
    Workflows for one record type.

    Stateless: the session and lifecycle manager are passed per call.
    """

    def __init__(self, descriptor: ResourceDescriptor, store: Optional[RecordStore] = None):
        self.descriptor = descriptor
        self.store = store or RecordStore(descriptor)

    def parse_id(self, raw: str) -> UUID:
        try:
            return UUID(str(raw))
        except ValueError:
            raise ValidationError(
                message=f"Invalid {self.descriptor.name} id '{raw}'",
                field="id",
            )

    async def list_records(self, db: AsyncSession) -> Envelope:
        try:
            records = await self.store.list_all(db)
        except TravelAdminError:
            raise
        except Exception as e:
            logger.error("Error fetching %s: %s", self.descriptor.plural, str(e), exc_info=True)
            raise DatabaseError(
                message=f"Failed to fetch {self.descriptor.plural}",
                context={"error_type": type(e).__name__},
            )

        return Envelope(
            count=len(records),
            data=[self.descriptor.serialize(record) for record in records],
        )

    async def create_record(
        self,
        db: AsyncSession,
        lifecycle: AttachmentLifecycleManager,
        payload: Mapping[str, Any],
        upload: Optional[Upload] = None,
    ) -> Envelope:
        # Field errors surface before anything is uploaded
        values = self.descriptor.parse(payload)
        transition = await lifecycle.prepare(None, self._accepted(upload))

        # The store raises only when the row was not committed, so the new
        # image is referenced by nothing and can be dropped
        try:
            record = await self.store.create(db, {**values, **transition.fields()})
        except Exception as e:
            await lifecycle.abandon(transition)
            raise self._write_failure(e, "create")

        return Envelope(
            message=f"{self.descriptor.label} created successfully!",
            data=self.descriptor.serialize(record),
        )

    async def update_record(
        self,
        db: AsyncSession,
        lifecycle: AttachmentLifecycleManager,
        record_id: UUID,
        payload: Mapping[str, Any],
        upload: Optional[Upload] = None,
    ) -> Envelope:
        """
        Partial update. Omitted fields keep their value; a new image replaces
        the old one, which is reclaimed only after the write is committed.
        """
        values = self.descriptor.parse(payload, partial=True)

        # Nothing stored yet, so a missing record needs no cleanup
        try:
            existing = await self.store.get_by_id(db, record_id)
        except Exception as e:
            raise self._write_failure(e, "update")

        transition = await lifecycle.prepare(Asset.of(existing), self._accepted(upload))

        # Not committed: abandon the new image, the old one is still live
        try:
            record = await self.store.update_by_id(db, record_id, {**values, **transition.fields()})
        except Exception as e:
            await lifecycle.abandon(transition)
            raise self._write_failure(e, "update")

        # Committed: the old image is no longer referenced
        await lifecycle.commit(transition)

        return Envelope(
            message=f"{self.descriptor.label} updated successfully",
            data=self.descriptor.serialize(record),
        )

    async def delete_record(
        self,
        db: AsyncSession,
        lifecycle: AttachmentLifecycleManager,
        record_id: UUID,
    ) -> Envelope:
        """Delete the record, then reclaim its image (best-effort)."""
        try:
            record = await self.store.delete_by_id(db, record_id)
        except Exception as e:
            raise self._write_failure(e, "delete")

        # Record is gone; a failed reclaim only leaves an orphan behind
        if self.descriptor.supports_asset:
            await lifecycle.reclaim(Asset.of(record))

        return Envelope(
            message=f"{self.descriptor.label} deleted successfully",
            data=self.descriptor.serialize(record),
        )

    def _accepted(self, upload: Optional[Upload]) -> Optional[Upload]:
        # Record types without images ignore any uploaded file
        if upload is None or not self.descriptor.supports_asset:
            return None
        return upload

    def _write_failure(self, error: Exception, action: str) -> Exception:
        # Application errors already carry the right status and message
        if isinstance(error, TravelAdminError):
            return error
        logger.error(
            "Error during %s of %s: %s",
            action,
            self.descriptor.name,
            str(error),
            exc_info=True,
        )
        return WriteFailedError(
            message=f"Failed to {action} {self.descriptor.name}",
            context={"error_type": type(error).__name__},
        )
