# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Service wiring.

``build_container`` assembles repositories and services from the
environment; tests build one directly with in-memory backends.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from models.base import generate_object_id, utcnow
from .amqp import create_amqp_notification_sink
from .attachments import MongoAttachmentStore
from .audit import AuditService
from .certification import CertificationService
from .documents import JsonSummaryGenerator
from .memory import (
    InMemoryApplicationRepository,
    InMemoryAssignmentRepository,
    InMemoryAttachmentStore,
    InMemoryAvailabilityRepository,
    InMemoryNotificationSink,
    InMemoryOfficialRegistry
)
from .mongo_repositories import (
    MongoApplicationRepository,
    MongoAssignmentRepository,
    MongoAvailabilityRepository,
    MongoOfficialRegistry
)
from .mongodb import MongoDBService, create_mongodb_service
from .repositories import (
    ApplicationRepository,
    AssignmentRepository,
    AttachmentStore,
    AvailabilityRepository,
    DocumentGenerator,
    NotificationSink,
    OfficialRegistry
)
from .scheduling import SchedulingEngine
from .workflow import OrganizationWorkflowService

logger = logging.getLogger(__name__)


@dataclass
class Container:
    """Everything the HTTP layer needs."""
    applications: ApplicationRepository
    officials: OfficialRegistry
    assignments: AssignmentRepository
    availability: AvailabilityRepository
    attachments: AttachmentStore
    notifications: NotificationSink
    audit: AuditService
    engine: SchedulingEngine
    workflow: OrganizationWorkflowService
    certification: CertificationService
    documents: DocumentGenerator
    mongo_service: Optional[MongoDBService] = None

    def close(self) -> None:
        if self.mongo_service is not None:
            self.mongo_service.close_connection()


def wire(
    applications: ApplicationRepository,
    officials: OfficialRegistry,
    assignments: AssignmentRepository,
    availability: AvailabilityRepository,
    attachments: AttachmentStore,
    notifications: NotificationSink,
    audit: AuditService,
    clock: Callable[[], datetime] = utcnow,
    id_factory: Callable[[], str] = generate_object_id,
    mongo_service: Optional[MongoDBService] = None
) -> Container:
    """Build the services on top of the given backends."""
    engine = SchedulingEngine(availability, assignments, clock=clock, id_factory=id_factory)
    workflow = OrganizationWorkflowService(
        applications,
        officials,
        assignments,
        engine,
        notifications,
        audit,
        clock=clock,
        id_factory=id_factory
    )
    certification = CertificationService(applications, assignments, attachments, workflow, clock=clock)
    return Container(
        applications=applications,
        officials=officials,
        assignments=assignments,
        availability=availability,
        attachments=attachments,
        notifications=notifications,
        audit=audit,
        engine=engine,
        workflow=workflow,
        certification=certification,
        documents=JsonSummaryGenerator(),
        mongo_service=mongo_service
    )


def build_memory_container(
    clock: Callable[[], datetime] = utcnow,
    id_factory: Callable[[], str] = generate_object_id
) -> Container:
    """Process-local backends and an in-memory notification sink."""
    return wire(
        InMemoryApplicationRepository(),
        InMemoryOfficialRegistry(),
        InMemoryAssignmentRepository(),
        InMemoryAvailabilityRepository(),
        InMemoryAttachmentStore(),
        InMemoryNotificationSink(),
        AuditService(),
        clock=clock,
        id_factory=id_factory
    )


def build_container() -> Container:
    """
    Build the container selected by ``STORAGE_BACKEND``.

    ``mongo`` uses MongoDB for persistence and AMQP for notifications;
    ``memory`` keeps everything in the process.
    """
    backend = os.getenv('STORAGE_BACKEND', 'memory').lower()
    if backend == 'memory':
        logger.info("Using in-memory storage backend")
        return build_memory_container()
    if backend != 'mongo':
        raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")

    mongo_service = create_mongodb_service()
    logger.info(
        "Using MongoDB storage backend",
        extra={"extra_fields": {"database": mongo_service.database_name}}
    )
    return wire(
        MongoApplicationRepository(mongo_service),
        MongoOfficialRegistry(mongo_service),
        MongoAssignmentRepository(mongo_service),
        MongoAvailabilityRepository(mongo_service),
        MongoAttachmentStore(mongo_service),
        create_amqp_notification_sink(),
        AuditService(mongo_service),
        mongo_service=mongo_service
    )
