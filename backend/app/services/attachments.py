"""
Travel Admin Backend — Attachment Lifecycle Manager
=====================================================

What:  Decides, for every record mutation, which image gets stored, which
       one gets reclaimed, and in what order.
Why:   A record must never point at a deleted image, and an object-store
       hiccup while cleaning up must never undo or fail a committed write.
How:   Two-phase: `prepare()` before the record write, `commit()` (or
       `abandon()`) after it.

Decision table (existing asset × uploaded image):

    existing | upload | action
    ---------+--------+---------------------------------------------------
    absent   | absent | nothing
    absent   | yes    | store new, attach
    present  | absent | nothing (old asset stays)
    present  | yes    | store new, attach, reclaim old after the write

Ordering:
    1. prepare():  store the new image. StorageError aborts the mutation
                   here, before the record is touched.
    2. record write (committed by the record store)
    3. commit():   reclaim the superseded image, exactly once. Failures are
                   logged and discarded.
       abandon():  the write failed instead; reclaim the image stored in
                   step 1 so it does not leak. The old one is untouched.

Deletes remove the record first and then call `reclaim()` on its asset.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from app.exceptions import StorageError
from app.services.object_store import Asset, ObjectStore, Upload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetTransition:
    """Outcome of `prepare()`: what to attach and what becomes stale."""

    attached: Optional[Asset] = None
    stale: Optional[Asset] = None

    @property
    def changed(self) -> bool:
        return self.attached is not None

    def fields(self) -> Dict[str, Any]:
        """Column values to merge into the record write (both or neither)."""
        if self.attached is None:
            return {}
        return {"image": self.attached.locator, "image_handle": self.attached.handle}


NO_CHANGE = AssetTransition()


class AttachmentLifecycleManager:
    """
    Owns every store/delete call against the object store.

    Stateless apart from the object store reference, so one instance is
    shared by all requests.
    """

    def __init__(self, object_store: ObjectStore):
        self.object_store = object_store

    async def prepare(
        self,
        existing: Optional[Asset],
        upload: Optional[Upload],
    ) -> AssetTransition:
        """
        Store the uploaded image, if any.

        Raises:
            StorageError: the image could not be stored; nothing was written.
        """
        # No upload: the existing image (if any) stays attached
        if upload is None:
            return NO_CHANGE

        # StorageError propagates; the record has not been touched yet
        attached = await self.object_store.store(upload)
        return AssetTransition(attached=attached, stale=existing)

    async def commit(self, transition: AssetTransition) -> bool:
        """
        Reclaim the superseded image after the record write succeeded.

        Returns:
            True when nothing needed reclaiming or the delete succeeded.
        """
        if transition.stale is None:
            return True
        # Same handle re-attached: deleting it would orphan the record
        if transition.attached is not None and transition.stale.handle == transition.attached.handle:
            return True
        return await self.reclaim(transition.stale)

    async def abandon(self, transition: AssetTransition) -> None:
        """The record write failed: drop the freshly stored image."""
        if transition.attached is None:
            return
        logger.info("Record write failed; reclaiming unattached image %s", transition.attached.handle)
        await self.reclaim(transition.attached)

    async def reclaim(self, asset: Optional[Asset]) -> bool:
        """
        Best-effort delete. Never raises StorageError.

        Returns:
            False when the object store refused; the orphan is only logged.
        """
        if asset is None:
            return True
        try:
            await self.object_store.delete(asset.handle)
            return True
        except StorageError as e:
            # Reclaim never fails the request; the orphan is only logged
            logger.warning(
                "Failed to reclaim image %s: %s | Context: %s",
                asset.handle,
                e.message,
                e.context,
            )
            return False
