# SPDX-License-Identifier: Apache-2.0

"""
Domain error types.

Each error aborts only the current operation and carries a human-readable
message for the acting user. ``errors`` holds the individual problems when
a validation produced more than one.
"""

from typing import List, Optional


class DomainError(Exception):
    """Base class for workflow, scheduling and validation failures."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])


class ConflictError(DomainError):
    """A uniqueness or overlap rule was violated."""
    pass


class StaleWriteError(ConflictError):
    """The entity changed since it was read."""
    pass


class PreconditionError(DomainError):
    """The operation is not permitted in the current state."""
    pass


class NotFoundError(DomainError):
    """A referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id
