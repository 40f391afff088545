# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas for the community organizations workflow.
"""

# Base models
from .base import BaseEntity, DomainModel, FrozenModel

# Enumerations
from .enums import (
    ApplicationStatus,
    AssignmentStatus,
    BlockType,
    BoardRole,
    CorrectionKind,
    DissolutionReason,
    NotificationType,
    OrganizationType,
    ProtocolStep
)

# Core entities
from .entities import (
    Assignment,
    AttachmentRef,
    Attendee,
    AuditLog,
    AvailabilityBlock,
    CertificationRecord,
    Correction,
    CorrectionSet,
    Directorio,
    FoundingMember,
    ManualPerson,
    MemberPerson,
    MinistroData,
    Notification,
    Official,
    OrganizationApplication,
    Seat
)

__all__ = [
    # Base models
    "BaseEntity",
    "DomainModel",
    "FrozenModel",

    # Enumerations
    "ApplicationStatus",
    "AssignmentStatus",
    "BlockType",
    "BoardRole",
    "CorrectionKind",
    "DissolutionReason",
    "NotificationType",
    "OrganizationType",
    "ProtocolStep",

    # Core entities
    "Assignment",
    "AttachmentRef",
    "Attendee",
    "AuditLog",
    "AvailabilityBlock",
    "CertificationRecord",
    "Correction",
    "CorrectionSet",
    "Directorio",
    "FoundingMember",
    "ManualPerson",
    "MemberPerson",
    "MinistroData",
    "Notification",
    "Official",
    "OrganizationApplication",
    "Seat"
]
