# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Persistence and collaborator interfaces consumed by the workflow services.

Implementations live in ``services.mongo_repositories`` (MongoDB) and
``services.memory`` (process-local, used for development and tests).
"""

from typing import Any, Dict, List, Optional, Protocol

from models.entities import (
    Assignment,
    AttachmentRef,
    AvailabilityBlock,
    CertificationRecord,
    Official,
    OrganizationApplication
)
from models.enums import ApplicationStatus, NotificationType


class ApplicationRepository(Protocol):
    """Organization applications, updated with optimistic concurrency."""

    def create(self, application: OrganizationApplication) -> OrganizationApplication: ...

    def get(self, application_id: str) -> OrganizationApplication:
        """Raises NotFoundError when missing."""
        ...

    def update(self, application: OrganizationApplication) -> OrganizationApplication:
        """
        Store the application if its version still matches the stored one.

        The returned copy carries the incremented version. Raises
        StaleWriteError on a version mismatch.
        """
        ...

    def find_by_status(self, status: ApplicationStatus) -> List[OrganizationApplication]: ...

    def find_by_creator(self, creator_id: str) -> List[OrganizationApplication]: ...

    def list_all(self) -> List[OrganizationApplication]: ...


class OfficialRegistry(Protocol):
    """Ministros de Fe."""

    def get(self, official_id: str) -> Official: ...

    def get_active(self) -> List[Official]: ...

    def list_all(self) -> List[Official]: ...

    def create(self, official: Official) -> Official: ...

    def update(self, official: Official) -> Official: ...

    def toggle_active(self, official_id: str, updated_by: Optional[str] = None) -> Official: ...


class AvailabilityRepository(Protocol):
    """Availability blocks declared by officials."""

    def add(self, block: AvailabilityBlock) -> AvailabilityBlock: ...

    def get(self, block_id: str) -> AvailabilityBlock: ...

    def delete(self, block_id: str) -> None: ...

    def for_official(self, official_id: str, on_date: Optional[str] = None) -> List[AvailabilityBlock]: ...

    def clear_for_official(self, official_id: str) -> int: ...


class AssignmentRepository(Protocol):
    """Official bookings, updated with optimistic concurrency."""

    def create(self, assignment: Assignment) -> Assignment: ...

    def get(self, assignment_id: str) -> Assignment: ...

    def update(self, assignment: Assignment) -> Assignment: ...

    def for_official(self, official_id: str, on_date: Optional[str] = None) -> List[Assignment]: ...

    def for_organization(self, organization_id: str) -> List[Assignment]: ...


class AttachmentStore(Protocol):
    """Content-addressed binary storage for signatures."""

    def put(self, content: bytes, content_type: str) -> AttachmentRef: ...

    def get(self, sha256: str) -> bytes: ...

    def exists(self, sha256: str) -> bool: ...


class NotificationSink(Protocol):
    """Fire-and-forget delivery of user notifications."""

    def create(
        self,
        recipient_id: str,
        type: NotificationType,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None
    ) -> None: ...


class DocumentGenerator(Protocol):
    """Produces printable artifacts from a finalized certification."""

    def generate(
        self,
        record: CertificationRecord,
        application: OrganizationApplication
    ) -> Dict[str, Any]: ...
