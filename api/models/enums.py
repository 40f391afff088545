# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the certification workflow.
"""

from enum import Enum, IntEnum


class ApplicationStatus(str, Enum):
    """Lifecycle status of an organization application."""
    WAITING_MINISTRO_REQUEST = "waiting_ministro"
    MINISTRO_SCHEDULED = "ministro_scheduled"
    MINISTRO_APPROVED = "ministro_approved"
    PENDING_REVIEW = "pending_review"
    IN_REVIEW = "in_review"
    REJECTED = "rejected"
    SENT_TO_REGISTRY = "sent_registry"
    APPROVED = "approved"
    DISSOLVED = "dissolved"


class AssignmentStatus(str, Enum):
    """Status of a Ministro de Fe booking."""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BlockType(str, Enum):
    """Reason category for an availability block."""
    MANUAL = "manual"
    HOLIDAY = "holiday"
    VACATION = "vacation"


class CorrectionKind(str, Enum):
    """Area of the application a correction refers to."""
    FIELD = "fields"
    DOCUMENT = "documents"
    CERTIFICATE = "certificates"
    MEMBER = "members"
    COMMISSION = "commission"


class BoardRole(str, Enum):
    """Roles of the provisional board (directorio provisorio)."""
    PRESIDENT = "president"
    SECRETARY = "secretary"
    TREASURER = "treasurer"


BOARD_ROLE_LABELS = {
    BoardRole.PRESIDENT: "President",
    BoardRole.SECRETARY: "Secretary",
    BoardRole.TREASURER: "Treasurer",
}


class ProtocolStep(IntEnum):
    """Ordered steps of the constitutive assembly validation."""
    DIRECTORIO = 1
    ADDITIONAL_SEATS = 2
    ELECTORAL_COMMISSION = 3
    ATTENDEES = 4
    CONFIRMATION = 5


class AttendeeSource(str, Enum):
    """Where an attendee entry came from."""
    DIRECTORIO = "directorio"
    ADDITIONAL = "additional"
    COMMISSION = "commission"
    MEMBER = "member"
    EXTERNAL = "external"


class NotificationType(str, Enum):
    """Notification types sent to applicants."""
    MINISTRO_ASSIGNED = "ministro_assigned"
    SCHEDULE_CHANGE = "schedule_change"
    CERTIFICATION_COMPLETED = "certification_completed"
    CORRECTION_REQUIRED = "correction_required"
    STATUS_CHANGE = "status_change"


class DissolutionReason(str, Enum):
    """Accepted reasons for dissolving an approved organization."""
    INCUMPLIMIENTO = "incumplimiento"
    INACTIVA = "inactiva"
    SOLICITUD_USUARIO = "solicitud_usuario"
    VIOLACION_ESTATUTOS = "violacion_estatutos"
    IRREGULARIDADES = "irregularidades"
    OTRA = "otra"


class OrganizationType(str, Enum):
    """Community organization categories."""
    # Territoriales
    JUNTA_VECINOS = "JUNTA_VECINOS"
    COMITE_VECINOS = "COMITE_VECINOS"
    # Clubes
    CLUB_DEPORTIVO = "CLUB_DEPORTIVO"
    CLUB_ADULTO_MAYOR = "CLUB_ADULTO_MAYOR"
    CLUB_JUVENIL = "CLUB_JUVENIL"
    CLUB_CULTURAL = "CLUB_CULTURAL"
    # Centros
    CENTRO_MADRES = "CENTRO_MADRES"
    CENTRO_PADRES = "CENTRO_PADRES"
    CENTRO_CULTURAL = "CENTRO_CULTURAL"
    # Agrupaciones
    AGRUPACION_FOLCLORICA = "AGRUPACION_FOLCLORICA"
    AGRUPACION_CULTURAL = "AGRUPACION_CULTURAL"
    AGRUPACION_JUVENIL = "AGRUPACION_JUVENIL"
    AGRUPACION_AMBIENTAL = "AGRUPACION_AMBIENTAL"
    AGRUPACION_EMPRENDEDORES = "AGRUPACION_EMPRENDEDORES"
    # Comités
    COMITE_VIVIENDA = "COMITE_VIVIENDA"
    COMITE_ALLEGADOS = "COMITE_ALLEGADOS"
    COMITE_APR = "COMITE_APR"
    COMITE_ADELANTO = "COMITE_ADELANTO"
    COMITE_MEJORAMIENTO = "COMITE_MEJORAMIENTO"
    COMITE_CONVIVENCIA = "COMITE_CONVIVENCIA"
    # Organizaciones específicas
    ORG_SCOUT = "ORG_SCOUT"
    ORG_MUJERES = "ORG_MUJERES"
    ORG_INDIGENA = "ORG_INDIGENA"
    ORG_SALUD = "ORG_SALUD"
    ORG_SOCIAL = "ORG_SOCIAL"
    ORG_CULTURAL = "ORG_CULTURAL"
    OTRA = "OTRA"
