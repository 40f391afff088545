# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Audit service for workflow action logging with OpenTelemetry correlation.
"""

import logging
from typing import Dict, List, Optional, Any
from opentelemetry import trace
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from .mongodb import AUDIT_LOGS, MongoDBService
from models.entities import AuditLog

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class AuditService:
    """
    Audit trail of state-changing actions.

    Entries go to the ``audit_logs`` collection when a MongoDB service is
    given, otherwise they are kept in memory. A failure to store an entry is
    logged and never aborts the audited operation.
    """

    def __init__(self, mongo_service: Optional[MongoDBService] = None):
        """Initialize audit service with an optional MongoDB dependency."""
        self.mongo_service = mongo_service
        self._memory: List[AuditLog] = []
        logger.info("Audit service initialized")

    def log_action(
        self,
        user_id: Optional[str],
        entity: str,
        entity_id: str,
        action: str,
        before: Optional[Dict[str, Any]] = None,
        after: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        """
        Log an audit trail entry with trace correlation and structured logging.

        Args:
            user_id: ID of user performing the action
            entity: Type of entity being acted upon
            entity_id: ID of the specific entity
            action: Action being performed
            before: State before the action (optional)
            after: State after the action (optional)

        Returns:
            Optional[str]: ID of the created entry, None if it could not be stored
        """
        with tracer.start_as_current_span("audit.log_action") as span:
            span_context = span.get_span_context()
            entry = AuditLog(
                user_id=user_id,
                entity=entity,
                entity_id=entity_id,
                action=action,
                before=before,
                after=after
            )
            if span_context.is_valid:
                entry.trace_id = format(span_context.trace_id, "032x")
                entry.span_id = format(span_context.span_id, "016x")

            span.set_attributes({
                "audit.entity": entity,
                "audit.action": action,
                "audit.entity_id": entity_id
            })

            try:
                if self.mongo_service is not None:
                    document = entry.model_dump(by_alias=True, mode="python")
                    document["_id"] = document.pop("id")
                    self.mongo_service.get_collection(AUDIT_LOGS).insert_one(document)
                else:
                    self._memory.append(entry)
            except PyMongoError as e:
                span.record_exception(e)
                logger.error(
                    "Failed to create audit trail entry",
                    extra={
                        "extra_fields": {
                            "entity": entity,
                            "entity_id": entity_id,
                            "action": action,
                            "error": str(e)
                        }
                    }
                )
                return None

            logger.info(
                "Audit trail entry created",
                extra={
                    "extra_fields": {
                        "audit_id": entry.id,
                        "entity": entity,
                        "entity_id": entity_id,
                        "action": action,
                        "user_id": user_id,
                        "trace_id": entry.trace_id,
                        "changes_count": len(self._calculate_changes(before or {}, after or {}))
                    }
                }
            )
            return entry.id

    def entries_for(self, entity_id: str, limit: int = 100) -> List[AuditLog]:
        """Most recent entries for one entity, newest first."""
        if self.mongo_service is None:
            matches = [e for e in self._memory if e.entity_id == entity_id]
            return sorted(matches, key=lambda e: e.timestamp, reverse=True)[:limit]

        cursor = (
            self.mongo_service.get_collection(AUDIT_LOGS)
            .find({"entityId": entity_id})
            .sort("timestamp", DESCENDING)
            .limit(limit)
        )
        entries = []
        for document in cursor:
            document = dict(document)
            document["id"] = str(document.pop("_id"))
            entries.append(AuditLog.model_validate(document))
        return entries

    def _calculate_changes(self, before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Any]:
        """Top-level keys whose values differ between two states."""
        changes = {}
        for key in set(before) | set(after):
            if before.get(key) != after.get(key):
                changes[key] = {"before": before.get(key), "after": after.get(key)}
        return changes
