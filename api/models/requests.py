# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.

Bodies use camelCase keys; snake_case names are accepted as well.
"""

from typing import Dict, List, Optional

from pydantic import ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .base import DomainModel
from .entities import FoundingMember
from .enums import BlockType, CorrectionKind, DissolutionReason, OrganizationType


class RequestModel(DomainModel):
    """Base for request bodies; unknown keys are rejected."""

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        use_enum_values=True,
        extra="forbid"
    )


class VersionedRequest(RequestModel):
    expected_version: Optional[int] = Field(None, ge=1, description="Version the caller read")


# Officials

class CreateOfficialRequest(RequestModel):
    """Request model for registering a Ministro de Fe."""

    name: str = Field(..., min_length=1, max_length=200)
    rut: str = Field(..., min_length=1, max_length=20)
    email: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=30)
    active: bool = True


class UpdateOfficialRequest(RequestModel):
    """Contact data changes; omitted fields are left as they are."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    rut: Optional[str] = Field(None, min_length=1, max_length=20)
    email: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=30)


class CreateBlockRequest(RequestModel):
    """Request model for an availability block. No time blocks the whole day."""

    date: str
    time: Optional[str] = None
    block_type: BlockType = BlockType.MANUAL
    reason: Optional[str] = Field(None, max_length=500)


# Applications

class CreateApplicationRequest(RequestModel):
    """Request model for a new organization application."""

    organization_name: str = Field(..., min_length=1, max_length=200)
    organization_type: OrganizationType
    address: Optional[str] = Field(None, max_length=200)
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    creator_id: Optional[str] = None
    members: List[FoundingMember] = Field(default_factory=list)
    election_date: Optional[str] = None
    election_time: Optional[str] = None
    assembly_address: Optional[str] = Field(None, max_length=200)


class ScheduleRequest(VersionedRequest):
    """Book (or rebook) the Ministro de Fe for the assembly."""

    official_id: str
    date: str
    time: str
    location: str = Field(..., min_length=1, max_length=200)
    override: bool = False


class TransitionRequest(VersionedRequest):
    comment: Optional[str] = Field(None, max_length=2000)


class CorrectionInput(RequestModel):
    kind: CorrectionKind
    key: str = Field(..., min_length=1)
    comment: str = ""
    label: Optional[str] = None


class RejectRequest(VersionedRequest):
    """Corrections the applicant must address."""

    corrections: List[CorrectionInput] = Field(default_factory=list)
    general_comment: Optional[str] = Field(None, max_length=2000)


class SendToRegistryRequest(VersionedRequest):
    pending_corrections: List[CorrectionInput] = Field(default_factory=list)


class ResubmitRequest(VersionedRequest):
    user_response: Optional[str] = Field(None, max_length=5000)
    field_responses: Dict[str, str] = Field(default_factory=dict)


class DissolveRequest(VersionedRequest):
    reason: DissolutionReason
    details: Optional[str] = Field(None, max_length=2000)


# Assignments

class CancelAssignmentRequest(VersionedRequest):
    reason: Optional[str] = Field(None, max_length=500)


class PersonInput(RequestModel):
    """
    A founding member by id, or a person typed in by the official.

    Exactly one of ``member_id`` or ``name`` + ``rut`` must be given.
    """

    member_id: Optional[str] = None
    name: Optional[str] = None
    rut: Optional[str] = None
    birth_date: Optional[str] = None
    signature: Optional[str] = Field(None, description="Data URL or base64 image")

    @model_validator(mode='after')
    def validate_identity(self):
        manual = bool(self.name) or bool(self.rut)
        if self.member_id and manual:
            raise ValueError('Give either memberId or name and rut, not both')
        if not self.member_id and not (self.name and self.rut):
            raise ValueError('memberId or both name and rut are required')
        return self


class AdditionalSeatInput(PersonInput):
    cargo: str = Field(..., min_length=1, max_length=100)


class CertifyRequest(VersionedRequest):
    """Complete protocol run submitted by the official in one request."""

    president: PersonInput
    secretary: PersonInput
    treasurer: PersonInput
    additional_members: List[AdditionalSeatInput] = Field(default_factory=list)
    comision_electoral: List[PersonInput] = Field(default_factory=list)
    attendees: List[PersonInput] = Field(default_factory=list)
    official_signature: Optional[str] = None
    notes: str = Field("", max_length=5000)

    @field_validator('comision_electoral')
    @classmethod
    def validate_commission_size(cls, v):
        if len(v) > 3:
            raise ValueError('The Electoral Commission has 3 seats')
        return v
