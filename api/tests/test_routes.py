# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Endpoint tests through the Flask test client.

This module tests:
- Officials, availability blocks and bookings
- Application scheduling and the review workflow
- Assembly certification and the certificate summary
- Problem responses for domain and validation errors
"""

import pytest

PROBLEMS = "https://api.organizaciones.local/problems"
ADMIN = {"X-User-Id": "admin-1"}
APPLICANT = {"X-User-Id": "applicant-1"}
OFFICIAL_USER = {"X-User-Id": "official-user"}


def schedule_body(official_id, **overrides):
    body = {"officialId": official_id, "date": "2025-03-20", "time": "10:00", "location": "Sede vecinal"}
    body.update(overrides)
    return body


class TestHealth:
    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["service"] == "organizaciones-api"
        assert "mongodb" not in data

    def test_unknown_route_is_problem(self, client):
        response = client.get('/api/nowhere')
        assert response.status_code == 404
        assert response.get_json()["type"] == f"{PROBLEMS}/not-found"


class TestOfficialEndpoints:
    """Test the officials blueprint."""

    def test_create_official(self, client, container):
        response = client.post('/api/officials', json={
            "name": "Ana Rojas", "rut": "11.111.111-1", "email": "Ana.Rojas@Municipio.cl"
        }, headers=ADMIN)
        assert response.status_code == 201
        data = response.get_json()
        assert data["name"] == "Ana Rojas"
        assert data["email"] == "ana.rojas@municipio.cl"
        assert data["active"] is True
        assert data["createdBy"] == "admin-1"
        assert data["version"] == 1
        assert container.audit.entries_for(data["id"])[0].action == "create"

    def test_duplicate_rut_conflict(self, client, official):
        response = client.post('/api/officials', json={"name": "Otra Persona", "rut": "11111111-1"})
        assert response.status_code == 409
        problem = response.get_json()
        assert problem["type"] == f"{PROBLEMS}/resource-conflict"
        assert "11111111-1" in problem["detail"]

    def test_missing_fields_are_validation_errors(self, client):
        response = client.post('/api/officials', json={"rut": "11.111.111-1"})
        assert response.status_code == 400
        problem = response.get_json()
        assert problem["type"] == f"{PROBLEMS}/validation-error"
        assert problem["instance"] == "/api/officials"
        assert any(error["field"] == "name" for error in problem["errors"])

    def test_unknown_keys_rejected(self, client):
        response = client.post('/api/officials', json={"name": "Ana", "rut": "1-9", "role": "admin"})
        assert response.status_code == 400

    def test_body_must_be_json_object(self, client):
        response = client.post('/api/officials', data="not json", content_type='application/json')
        assert response.status_code == 400
        assert response.get_json()["type"] == f"{PROBLEMS}/bad-request"

    def test_get_unknown_official(self, client):
        response = client.get('/api/officials/nope')
        assert response.status_code == 404
        problem = response.get_json()
        assert problem["type"] == f"{PROBLEMS}/resource-not-found"
        assert problem["detail"] == "Official not found: nope"

    def test_update_and_toggle(self, client, official):
        response = client.patch(f'/api/officials/{official.id}', json={"phone": "+56 9 1234 5678"}, headers=ADMIN)
        assert response.status_code == 200
        assert response.get_json()["phone"] == "+56 9 1234 5678"
        assert response.get_json()["version"] == 2

        response = client.post(f'/api/officials/{official.id}/toggle-active', headers=ADMIN)
        assert response.get_json()["active"] is False

        active = client.get('/api/officials?active=true').get_json()
        inactive = client.get('/api/officials?active=false').get_json()
        assert active["total"] == 0
        assert [item["id"] for item in inactive["items"]] == [official.id]

    def test_blocks_and_availability(self, client, official):
        response = client.post(f'/api/officials/{official.id}/blocks', json={
            "date": "2025-03-21", "blockType": "holiday", "reason": "Feriado"
        }, headers=ADMIN)
        assert response.status_code == 201
        block = response.get_json()
        assert block["date"] == "2025-03-21"
        assert block["time"] is None
        assert block["blockType"] == "holiday"

        duplicate = client.post(f'/api/officials/{official.id}/blocks', json={"date": "2025-03-21"})
        assert duplicate.status_code == 409

        client.post(f'/api/officials/{official.id}/blocks', json={"date": "2025-03-20", "time": "9"})
        day = client.get(f'/api/officials/{official.id}/availability?date=2025-03-20&time=09:00').get_json()
        assert day["fullDayBlocked"] is False
        assert day["blockedTimes"] == ["09:00"]
        assert "09:00" not in day["availableTimes"]
        assert "10:00" in day["availableTimes"]
        assert day["isAvailable"] is False
        assert day["hasConflict"] is False

        blocked = client.get(f'/api/officials/{official.id}/availability?date=2025-03-21').get_json()
        assert blocked["fullDayBlocked"] is True
        assert blocked["availableTimes"] == []

        month = client.get(f'/api/officials/{official.id}/blocks?month=2025-03').get_json()
        assert month["total"] == 2
        assert month["blockedDays"] == ["2025-03-21"]

    def test_delete_block(self, client, official):
        block = client.post(f'/api/officials/{official.id}/blocks', json={"date": "2025-03-21"}).get_json()
        assert client.delete(f'/api/officials/{official.id}/blocks/{block["id"]}').status_code == 204
        assert client.get(f'/api/officials/{official.id}/blocks').get_json()["total"] == 0
        assert client.delete(f'/api/officials/{official.id}/blocks/{block["id"]}').status_code == 404

    def test_availability_requires_valid_date(self, client, official):
        missing = client.get(f'/api/officials/{official.id}/availability')
        assert missing.status_code == 400
        invalid = client.get(f'/api/officials/{official.id}/availability?date=20-03-2025')
        assert invalid.status_code == 400
        assert invalid.get_json()["type"] == f"{PROBLEMS}/invalid-value"

    def test_bad_month(self, client, official):
        assert client.get(f'/api/officials/{official.id}/blocks?month=march').status_code == 400

    def test_official_assignments_with_stats(self, client, official, scheduled):
        data = client.get(f'/api/officials/{official.id}/assignments').get_json()
        assert data["total"] == 1
        assert data["stats"]["pending"] == 1
        assert data["stats"]["signaturesValidated"] == 0


class TestApplicationEndpoints:
    """Test the applications blueprint."""

    def test_create_application(self, client):
        response = client.post('/api/applications', json={
            "organizationName": "Club Deportivo Los Halcones",
            "organizationType": "CLUB_DEPORTIVO",
            "members": [{"id": "m1", "name": "Member 1", "rut": "10.000.001-1", "birthDate": "1980-01-01"}]
        }, headers=APPLICANT)
        assert response.status_code == 201
        data = response.get_json()
        assert data["status"] == "waiting_ministro"
        assert data["creatorId"] == "applicant-1"
        assert data["statusHistory"][0]["status"] == "waiting_ministro"

    def test_invalid_organization_type(self, client):
        response = client.post('/api/applications', json={
            "organizationName": "Club", "organizationType": "NOT_A_TYPE"
        })
        assert response.status_code == 400
        assert response.get_json()["errors"][0]["field"] == "organizationType"

    def test_list_by_status(self, client, application):
        waiting = client.get('/api/applications?status=waiting_ministro').get_json()
        assert [item["id"] for item in waiting["items"]] == [application.id]
        assert client.get('/api/applications?status=approved').get_json()["total"] == 0
        assert client.get('/api/applications?creator=someone-else').get_json()["total"] == 0

    def test_schedule(self, client, application, official):
        response = client.post(
            f'/api/applications/{application.id}/schedule', json=schedule_body(official.id), headers=ADMIN
        )
        assert response.status_code == 201
        data = response.get_json()
        assert data["application"]["status"] == "ministro_scheduled"
        assert data["application"]["ministroData"]["officialId"] == official.id
        assert data["assignment"]["status"] == "pending"
        assert data["assignment"]["scheduledTime"] == "10:00"

    def test_double_booking_needs_override(self, client, container, application_data, official, scheduled):
        application_data["organization_name"] = "Centro de Madres Las Camelias"
        other = container.workflow.create_application(application_data, actor="applicant-2")

        refused = client.post(f'/api/applications/{other.id}/schedule', json=schedule_body(official.id))
        assert refused.status_code == 409
        assert "override" in refused.get_json()["detail"]

        accepted = client.post(
            f'/api/applications/{other.id}/schedule', json=schedule_body(official.id, override=True)
        )
        assert accepted.status_code == 201

    def test_blocked_slot_is_precondition_failure(self, client, container, application, official):
        container.engine.block_full_day(official.id, "2025-03-20", reason="Vacaciones")
        response = client.post(f'/api/applications/{application.id}/schedule', json=schedule_body(official.id))
        assert response.status_code == 422
        assert "Vacaciones" in response.get_json()["detail"]

    def test_stale_version(self, client, application, official):
        response = client.post(
            f'/api/applications/{application.id}/schedule',
            json=schedule_body(official.id, expectedVersion=7)
        )
        assert response.status_code == 409
        assert response.get_json()["type"] == f"{PROBLEMS}/stale-write"

    def test_wrong_status_transition(self, client, application):
        response = client.post(f'/api/applications/{application.id}/submit', headers=APPLICANT)
        assert response.status_code == 422
        assert response.get_json()["type"] == f"{PROBLEMS}/precondition-failed"

    def test_review_round_trip(self, client, certified):
        application, _ = certified
        base = f'/api/applications/{application.id}'

        assert client.post(f'{base}/submit', headers=APPLICANT).get_json()["status"] == "pending_review"
        assert client.post(f'{base}/start-review', headers=ADMIN).get_json()["status"] == "in_review"

        empty = client.post(f'{base}/reject', json={"corrections": []}, headers=ADMIN)
        assert empty.status_code == 422

        rejected = client.post(f'{base}/reject', json={
            "corrections": [{"kind": "fields", "key": "address", "comment": "Incomplete address"}],
            "generalComment": "Please review the address"
        }, headers=ADMIN).get_json()
        assert rejected["status"] == "rejected"
        assert rejected["corrections"]["items"][0]["comment"] == "Incomplete address"
        assert rejected["corrections"]["generalComment"] == "Please review the address"

        resubmitted = client.post(f'{base}/resubmit', json={
            "userResponse": "Fixed", "fieldResponses": {"address": "Los Aromos 123, Puente Alto"}
        }, headers=APPLICANT).get_json()
        assert resubmitted["status"] == "pending_review"

        client.post(f'{base}/start-review', headers=ADMIN)
        sent = client.post(f'{base}/send-to-registry', headers=ADMIN).get_json()
        assert sent["status"] == "sent_registry"
        approved = client.post(f'{base}/approve', json={"comment": "Registered"}, headers=ADMIN).get_json()
        assert approved["status"] == "approved"

        missing_details = client.post(f'{base}/dissolve', json={"reason": "otra"}, headers=ADMIN)
        assert missing_details.status_code == 422
        dissolved = client.post(f'{base}/dissolve', json={
            "reason": "inactiva", "details": "No activity for two years"
        }, headers=ADMIN).get_json()
        assert dissolved["status"] == "dissolved"

    def test_send_to_registry_with_pending_corrections(self, client, certified):
        application, _ = certified
        base = f'/api/applications/{application.id}'
        client.post(f'{base}/submit')
        client.post(f'{base}/start-review')
        response = client.post(f'{base}/send-to-registry', json={
            "pendingCorrections": [{"kind": "documents", "key": "estatutos"}]
        })
        assert response.status_code == 422
        assert "1 outstanding correction" in response.get_json()["detail"]


class TestAssignmentEndpoints:
    """Test the assignments blueprint."""

    def test_conflict_check(self, client, official, scheduled):
        _, assignment = scheduled
        data = client.get(
            f'/api/assignments/conflict?officialId={official.id}&date=2025-03-20&time=10'
        ).get_json()
        assert data["time"] == "10:00"
        assert data["hasConflict"] is True
        assert data["conflicts"][0]["assignmentId"] == assignment.id

        free = client.get(f'/api/assignments/conflict?officialId={official.id}&date=2025-03-20&time=11:00')
        assert free.get_json()["hasConflict"] is False

    def test_conflict_check_requires_parameters(self, client):
        assert client.get('/api/assignments/conflict?date=2025-03-20').status_code == 400

    def test_certify(self, client, scheduled, certify_payload):
        application, assignment = scheduled
        response = client.post(
            f'/api/assignments/{assignment.id}/certify', json=certify_payload(), headers=OFFICIAL_USER
        )
        assert response.status_code == 201
        data = response.get_json()
        assert data["application"]["status"] == "ministro_approved"
        record = data["certification"]
        assert record["applicationId"] == application.id
        assert record["directorio"]["president"]["person"]["id"] == "m1"
        assert len(record["comisionElectoral"]) == 3
        assert len(record["warnings"]) == 1

        assignment_data = client.get(f'/api/assignments/{assignment.id}').get_json()
        assert assignment_data["status"] == "completed"
        assert assignment_data["signaturesValidated"] is True

        again = client.post(f'/api/assignments/{assignment.id}/certify', json=certify_payload())
        assert again.status_code == 422

    def test_certify_minor_president(self, client, scheduled, certify_payload):
        _, assignment = scheduled
        payload = certify_payload(president={"memberId": "minor1", "signature": "c2lnbmF0dXJl"})
        response = client.post(f'/api/assignments/{assignment.id}/certify', json=payload)
        assert response.status_code == 422
        assert "under 18" in response.get_json()["detail"]

    def test_certify_board_member_on_commission(self, client, scheduled, certify_payload):
        _, assignment = scheduled
        payload = certify_payload()
        payload["comisionElectoral"][0] = {"memberId": "m1", "signature": "c2lnbmF0dXJl"}
        response = client.post(f'/api/assignments/{assignment.id}/certify', json=payload)
        assert response.status_code == 409
        assert "already hold the President seat" in response.get_json()["detail"]

    @pytest.mark.parametrize("seat", [
        {"memberId": "m1", "name": "Member 1", "rut": "10.000.001-1"},
        {"name": "Solo Nombre"},
    ])
    def test_certify_person_input_rules(self, client, scheduled, certify_payload, seat):
        _, assignment = scheduled
        response = client.post(f'/api/assignments/{assignment.id}/certify', json=certify_payload(president=seat))
        assert response.status_code == 400

    def test_certify_unknown_assignment(self, client, certify_payload):
        assert client.post('/api/assignments/nope/certify', json=certify_payload()).status_code == 404

    def test_cancel(self, client, scheduled):
        _, assignment = scheduled
        response = client.post(f'/api/assignments/{assignment.id}/cancel', json={"reason": "Lluvia"}, headers=ADMIN)
        assert response.status_code == 200
        assert response.get_json()["status"] == "cancelled"
        assert client.post(f'/api/assignments/{assignment.id}/cancel').status_code == 422

    def test_certificate(self, client, scheduled, certify_payload):
        application, assignment = scheduled
        assert client.get(f'/api/applications/{application.id}/certificate').status_code == 404

        client.post(f'/api/assignments/{assignment.id}/certify', json=certify_payload())
        summary = client.get(f'/api/applications/{application.id}/certificate').get_json()
        assert summary["organization"]["type"] == "JUNTA_VECINOS"
        assert summary["assembly"]["location"] == "Sede vecinal"
        assert summary["ministroDeFe"]["name"] == "Ana Rojas"
        assert summary["attendees"]["recommended"] == 50
