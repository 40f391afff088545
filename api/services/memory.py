# SPDX-License-Identifier: Apache-2.0

"""
Process-local repositories for development and tests.

They honor the same contracts as the MongoDB repositories, including the
version check on update, and hand out copies so callers never share state
with the store.
"""

import hashlib
import logging
import threading
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from domain.errors import NotFoundError, StaleWriteError
from models.base import BaseEntity
from models.entities import (
    Assignment,
    AttachmentRef,
    AvailabilityBlock,
    Notification,
    Official,
    OrganizationApplication
)
from models.enums import ApplicationStatus, NotificationType
from utils.timeslots import normalize_date

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=BaseEntity)


class _VersionedStore(Generic[EntityT]):
    """Dictionary store with compare-and-set updates on ``version``."""

    entity_name = "Entity"

    def __init__(self):
        self._items: Dict[str, EntityT] = {}
        self._lock = threading.Lock()

    def create(self, entity: EntityT) -> EntityT:
        with self._lock:
            self._items[entity.id] = entity.model_copy(deep=True)
        return entity.model_copy(deep=True)

    def get(self, entity_id: str) -> EntityT:
        with self._lock:
            stored = self._items.get(entity_id)
        if stored is None:
            raise NotFoundError(self.entity_name, entity_id)
        return stored.model_copy(deep=True)

    def update(self, entity: EntityT) -> EntityT:
        with self._lock:
            stored = self._items.get(entity.id)
            if stored is None:
                raise NotFoundError(self.entity_name, entity.id)
            if stored.version != entity.version:
                raise StaleWriteError(
                    f"{self.entity_name} {entity.id} was modified concurrently "
                    f"(expected version {entity.version}, found {stored.version})"
                )
            updated = entity.model_copy(deep=True)
            updated.version = entity.version + 1
            self._items[entity.id] = updated
        return updated.model_copy(deep=True)

    def _select(self, predicate: Callable[[EntityT], bool]) -> List[EntityT]:
        with self._lock:
            matches = [item for item in self._items.values() if predicate(item)]
        return [item.model_copy(deep=True) for item in sorted(matches, key=lambda e: e.created_at)]

    def list_all(self) -> List[EntityT]:
        return self._select(lambda item: True)


class InMemoryApplicationRepository(_VersionedStore[OrganizationApplication]):
    entity_name = "Application"

    def find_by_status(self, status: ApplicationStatus) -> List[OrganizationApplication]:
        status = ApplicationStatus(status)
        return self._select(lambda app: app.status == status)

    def find_by_creator(self, creator_id: str) -> List[OrganizationApplication]:
        return self._select(lambda app: app.creator_id == creator_id)


class InMemoryOfficialRegistry(_VersionedStore[Official]):
    entity_name = "Official"

    def get_active(self) -> List[Official]:
        return self._select(lambda official: official.active)

    def toggle_active(self, official_id: str, updated_by: Optional[str] = None) -> Official:
        official = self.get(official_id)
        official.active = not official.active
        official.update_timestamp(updated_by)
        return self.update(official)


class InMemoryAssignmentRepository(_VersionedStore[Assignment]):
    entity_name = "Assignment"

    def for_official(self, official_id: str, on_date: Optional[str] = None) -> List[Assignment]:
        on_date = normalize_date(on_date) if on_date else None
        return self._select(
            lambda a: a.official_id == official_id and (on_date is None or a.scheduled_date == on_date)
        )

    def for_organization(self, organization_id: str) -> List[Assignment]:
        return self._select(lambda a: a.organization_id == organization_id)


class InMemoryAvailabilityRepository(_VersionedStore[AvailabilityBlock]):
    entity_name = "Availability block"

    def add(self, block: AvailabilityBlock) -> AvailabilityBlock:
        return self.create(block)

    def delete(self, block_id: str) -> None:
        with self._lock:
            if self._items.pop(block_id, None) is None:
                raise NotFoundError(self.entity_name, block_id)

    def for_official(self, official_id: str, on_date: Optional[str] = None) -> List[AvailabilityBlock]:
        on_date = normalize_date(on_date) if on_date else None
        return self._select(
            lambda b: b.official_id == official_id and (on_date is None or b.block_date == on_date)
        )

    def clear_for_official(self, official_id: str) -> int:
        with self._lock:
            doomed = [key for key, block in self._items.items() if block.official_id == official_id]
            for key in doomed:
                del self._items[key]
        return len(doomed)


class InMemoryAttachmentStore:
    """Content-addressed blobs kept in a dictionary."""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}

    def put(self, content: bytes, content_type: str) -> AttachmentRef:
        digest = hashlib.sha256(content).hexdigest()
        self._blobs.setdefault(digest, bytes(content))
        return AttachmentRef(sha256=digest, content_type=content_type, size=len(content))

    def get(self, sha256: str) -> bytes:
        if sha256 not in self._blobs:
            raise NotFoundError("Attachment", sha256)
        return self._blobs[sha256]

    def exists(self, sha256: str) -> bool:
        return sha256 in self._blobs


class InMemoryNotificationSink:
    """Collects notifications instead of delivering them."""

    def __init__(self):
        self.sent: List[Notification] = []

    def create(
        self,
        recipient_id: str,
        type: NotificationType,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None
    ) -> None:
        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            data=data or {}
        )
        self.sent.append(notification)
        logger.debug(f"Notification {notification.type} queued for {recipient_id}")

    def for_recipient(self, recipient_id: str) -> List[Notification]:
        return [n for n in self.sent if n.recipient_id == recipient_id]
