# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['STORAGE_BACKEND'] = 'memory'

from models.entities import FoundingMember, Official  # noqa: E402
from models.enums import OrganizationType  # noqa: E402
from services.container import build_memory_container  # noqa: E402

SIGNATURE = "data:image/png;base64,c2lnbmF0dXJl"
OFFICIAL_SIGNATURE = "data:image/png;base64,b2ZmaWNpYWwtc2lnbmF0dXJl"
NOW = datetime(2025, 3, 10, 15, 0, tzinfo=timezone.utc)
ASSEMBLY_DATE = "2025-03-20"
APPLICANT = "applicant-1"
ADMIN = "admin-1"


class FixedClock:
    """Controllable replacement for ``utcnow``."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


def make_members(adults: int = 12, minors: int = 1) -> List[FoundingMember]:
    """Founding roster; adults are m1..mN, minors follow."""
    members = [
        FoundingMember(
            id=f"m{i}",
            name=f"Member {i}",
            rut=f"10.000.{i:03d}-{i % 10}",
            birth_date=f"{1970 + i}-06-15"
        )
        for i in range(1, adults + 1)
    ]
    members.extend(
        FoundingMember(
            id=f"minor{i}",
            name=f"Minor {i}",
            rut=f"25.000.{i:03d}-{i % 10}",
            birth_date="2012-05-01"
        )
        for i in range(1, minors + 1)
    )
    return members


@pytest.fixture
def clock():
    """Clock frozen at NOW."""
    return FixedClock(NOW)


@pytest.fixture
def container(clock):
    """In-memory services sharing the fixed clock."""
    return build_memory_container(clock=clock)


@pytest.fixture
def app(container):
    """Flask application wired to the in-memory container."""
    from app import create_app

    flask_app = create_app(container)
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def members():
    return make_members()


@pytest.fixture
def official(container):
    """Active Ministro de Fe."""
    return container.officials.create(
        Official(name="Ana Rojas", rut="11.111.111-1", email="ana.rojas@municipio.cl")
    )


@pytest.fixture
def other_official(container):
    return container.officials.create(Official(name="Pedro Soto", rut="22.222.222-2"))


@pytest.fixture
def application_data(members) -> Dict[str, Any]:
    return {
        "organization_name": "Junta de Vecinos Villa Esperanza",
        "organization_type": OrganizationType.JUNTA_VECINOS,
        "address": "Los Aromos 123",
        "contact_email": "directiva@villaesperanza.cl",
        "creator_id": APPLICANT,
        "members": members,
        "election_date": ASSEMBLY_DATE,
        "election_time": "10:00"
    }


@pytest.fixture
def application(container, application_data):
    """Application waiting for a Ministro de Fe."""
    return container.workflow.create_application(application_data, actor=APPLICANT)


@pytest.fixture
def scheduled(container, application, official):
    """(application, assignment) after booking the official."""
    return container.workflow.schedule_official(
        application.id, official.id, ASSEMBLY_DATE, "10:00", "Sede vecinal", actor=ADMIN
    )


@pytest.fixture
def certify_payload() -> Callable[..., Dict[str, Any]]:
    """Builder for a valid camelCase certify body."""

    def build(**overrides) -> Dict[str, Any]:
        payload = {
            "president": {"memberId": "m1", "signature": SIGNATURE},
            "secretary": {"memberId": "m2", "signature": SIGNATURE},
            "treasurer": {"memberId": "m3", "signature": SIGNATURE},
            "additionalMembers": [],
            "comisionElectoral": [
                {"memberId": "m4", "signature": SIGNATURE},
                {"memberId": "m5", "signature": SIGNATURE},
                {"memberId": "m6", "signature": SIGNATURE}
            ],
            "attendees": [
                {"memberId": "m7", "signature": SIGNATURE},
                {"memberId": "m8", "signature": SIGNATURE},
                {"name": "Vecina Invitada", "rut": "9.999.999-9", "signature": SIGNATURE}
            ],
            "officialSignature": OFFICIAL_SIGNATURE,
            "notes": "Assembly held at the community centre"
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def certified(container, scheduled, certify_payload):
    """Application in MINISTRO_APPROVED with its certification record."""
    from models.requests import CertifyRequest

    _, assignment = scheduled
    return container.certification.certify(
        assignment.id,
        CertifyRequest.model_validate(certify_payload()),
        actor="official-user"
    )
