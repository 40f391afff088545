# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and validation.
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from bson import ObjectId

from domain.errors import StaleWriteError


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class DomainModel(BaseModel):
    """Base for value objects serialized with camelCase keys."""

    model_config = ConfigDict(
        # Accept both snake_case names and camelCase aliases
        populate_by_name=True,
        alias_generator=to_camel,
        use_enum_values=True,
        validate_assignment=True
    )

    def to_document(self) -> dict:
        """JSON-compatible dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


class FrozenModel(DomainModel):
    """Immutable value object."""

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        use_enum_values=True,
        frozen=True
    )


class BaseEntity(DomainModel):
    """Base entity with common fields for all persisted objects."""

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utcnow, description="Last update timestamp")
    created_by: Optional[str] = Field(None, description="User ID who created this entity")
    updated_by: Optional[str] = Field(None, description="User ID who last updated this entity")
    version: int = Field(default=1, ge=1, description="Optimistic concurrency version")
    schema_version: int = Field(default=1, description="Schema version for migrations")

    def update_timestamp(self, updated_by: Optional[str], at: Optional[datetime] = None) -> None:
        """Update the timestamp and updated_by fields."""
        self.updated_at = at or utcnow()
        if updated_by:
            self.updated_by = updated_by

    def require_version(self, expected: Optional[int]) -> None:
        """Reject a write based on a stale read of this entity."""
        if expected is not None and expected != self.version:
            raise StaleWriteError(
                f"{type(self).__name__} {self.id} is at version {self.version}, "
                f"request was based on version {expected}"
            )
