# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB-backed repositories.

Documents use the camelCase aliases of the pydantic models and the entity id
as ``_id``. Updates replace the document only when the stored ``version``
still matches, then increment it.
"""

import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from opentelemetry import trace
from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from domain.errors import ConflictError, NotFoundError, StaleWriteError
from models.base import BaseEntity
from models.entities import Assignment, AvailabilityBlock, Official, OrganizationApplication
from models.enums import ApplicationStatus
from utils.timeslots import normalize_date
from .mongodb import (
    APPLICATIONS,
    ASSIGNMENTS,
    AVAILABILITY_BLOCKS,
    OFFICIALS,
    MongoDBService
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

EntityT = TypeVar("EntityT", bound=BaseEntity)


def to_document(entity: BaseEntity) -> Dict[str, Any]:
    """Serialize an entity for storage, keeping datetimes native."""
    document = entity.model_dump(by_alias=True, mode="python")
    document["_id"] = document.pop("id")
    return document


def from_document(model: Type[EntityT], document: Dict[str, Any]) -> EntityT:
    data = dict(document)
    data["id"] = str(data.pop("_id"))
    return model.model_validate(data)


class MongoRepository(Generic[EntityT]):
    """Versioned CRUD over one collection."""

    collection_name: str = ""
    model: Type[EntityT]
    entity_name = "Entity"

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service

    @property
    def collection(self) -> Collection:
        return self.mongo_service.get_collection(self.collection_name)

    def create(self, entity: EntityT) -> EntityT:
        with tracer.start_as_current_span(f"{self.collection_name}.create"):
            try:
                self.collection.insert_one(to_document(entity))
            except DuplicateKeyError as e:
                logger.warning(f"Duplicate key creating {self.entity_name} {entity.id}: {e}")
                raise ConflictError(f"{self.entity_name} already exists")
            return entity

    def get(self, entity_id: str) -> EntityT:
        document = self.collection.find_one({"_id": entity_id})
        if document is None:
            raise NotFoundError(self.entity_name, entity_id)
        return from_document(self.model, document)

    def update(self, entity: EntityT) -> EntityT:
        """Compare-and-set on version."""
        with tracer.start_as_current_span(f"{self.collection_name}.update") as span:
            span.set_attributes({"entity.id": entity.id, "entity.version": entity.version})

            updated = entity.model_copy(deep=True)
            updated.version = entity.version + 1
            result = self.collection.replace_one(
                {"_id": entity.id, "version": entity.version},
                to_document(updated)
            )
            if result.matched_count == 0:
                if self.collection.count_documents({"_id": entity.id}, limit=1) == 0:
                    raise NotFoundError(self.entity_name, entity.id)
                raise StaleWriteError(
                    f"{self.entity_name} {entity.id} was modified concurrently "
                    f"(expected version {entity.version})"
                )
            return updated

    def _find(self, query: Dict[str, Any]) -> List[EntityT]:
        cursor = self.collection.find(query).sort("createdAt", ASCENDING)
        return [from_document(self.model, document) for document in cursor]

    def list_all(self) -> List[EntityT]:
        return self._find({})


class MongoApplicationRepository(MongoRepository[OrganizationApplication]):
    collection_name = APPLICATIONS
    model = OrganizationApplication
    entity_name = "Application"

    def find_by_status(self, status: ApplicationStatus) -> List[OrganizationApplication]:
        return self._find({"status": ApplicationStatus(status).value})

    def find_by_creator(self, creator_id: str) -> List[OrganizationApplication]:
        return self._find({"creatorId": creator_id})


class MongoOfficialRegistry(MongoRepository[Official]):
    collection_name = OFFICIALS
    model = Official
    entity_name = "Official"

    def get_active(self) -> List[Official]:
        return self._find({"active": True})

    def toggle_active(self, official_id: str, updated_by: Optional[str] = None) -> Official:
        official = self.get(official_id)
        official.active = not official.active
        official.update_timestamp(updated_by)
        return self.update(official)


class MongoAssignmentRepository(MongoRepository[Assignment]):
    collection_name = ASSIGNMENTS
    model = Assignment
    entity_name = "Assignment"

    def for_official(self, official_id: str, on_date: Optional[str] = None) -> List[Assignment]:
        query: Dict[str, Any] = {"officialId": official_id}
        if on_date:
            query["scheduledDate"] = normalize_date(on_date)
        return self._find(query)

    def for_organization(self, organization_id: str) -> List[Assignment]:
        return self._find({"organizationId": organization_id})


class MongoAvailabilityRepository(MongoRepository[AvailabilityBlock]):
    collection_name = AVAILABILITY_BLOCKS
    model = AvailabilityBlock
    entity_name = "Availability block"

    def add(self, block: AvailabilityBlock) -> AvailabilityBlock:
        try:
            return self.create(block)
        except ConflictError:
            raise ConflictError("Duplicate block: the official already has an active block for this date and time")

    def delete(self, block_id: str) -> None:
        result = self.collection.delete_one({"_id": block_id})
        if result.deleted_count == 0:
            raise NotFoundError(self.entity_name, block_id)

    def for_official(self, official_id: str, on_date: Optional[str] = None) -> List[AvailabilityBlock]:
        query: Dict[str, Any] = {"officialId": official_id}
        if on_date:
            query["date"] = normalize_date(on_date)
        return self._find(query)

    def clear_for_official(self, official_id: str) -> int:
        result = self.collection.delete_many({"officialId": official_id})
        logger.info(f"Cleared {result.deleted_count} availability blocks for official {official_id}")
        return result.deleted_count
