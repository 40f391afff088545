# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
JSON certificate summary.

Printable documents are produced by an external renderer; this generator
gives it (and the API) the data of a finalized certification.
"""

from typing import Any, Dict, List

from models.entities import COMMISSION_LABEL, CertificationRecord, OrganizationApplication, Seat, board_seats
from models.enums import BoardRole, BOARD_ROLE_LABELS, OrganizationType


def _signer(label: str, seat: Seat) -> Dict[str, Any]:
    return {
        "role": label,
        "name": seat.person.name,
        "rut": seat.person.rut,
        "source": seat.person.source,
        "signed": seat.signature is not None,
        "signature": seat.signature.sha256 if seat.signature else None
    }


class JsonSummaryGenerator:
    """DocumentGenerator returning a plain dict."""

    def generate(self, record: CertificationRecord, application: OrganizationApplication) -> Dict[str, Any]:
        board: List[Dict[str, Any]] = [_signer(label, seat) for label, seat in
                                       board_seats(record.directorio, record.additional_members)]
        ministro = application.ministro_data
        expires = application.provisional_directorio_expires_at

        return {
            "certificationId": record.id,
            "applicationId": application.id,
            "organization": {
                "name": application.organization_name,
                "type": OrganizationType(application.organization_type).value,
                "address": application.address
            },
            "assembly": {
                "date": ministro.scheduled_date if ministro else None,
                "time": ministro.scheduled_time if ministro else None,
                "location": ministro.location if ministro else None
            },
            "ministroDeFe": {
                "officialId": record.official_id,
                "name": ministro.name if ministro else None,
                "rut": ministro.rut if ministro else None,
                "signature": record.official_signature.sha256
            },
            "directorio": {
                role.value: _signer(BOARD_ROLE_LABELS[role], record.directorio.seat_for(role))
                for role in BoardRole
            },
            "board": board,
            "comisionElectoral": [_signer(COMMISSION_LABEL, seat) for seat in record.comision_electoral],
            "attendees": {
                "total": len(record.attendees),
                "recommended": record.recommended_attendees,
                "list": [
                    {
                        "name": attendee.person.name,
                        "rut": attendee.person.rut,
                        "source": attendee.source,
                        "signed": attendee.signature is not None
                    }
                    for attendee in record.attendees
                ]
            },
            "notes": record.notes,
            "warnings": list(record.warnings),
            "certifiedAt": record.certified_at.isoformat(),
            "provisionalDirectorioExpiresAt": expires.isoformat() if expires else None
        }
