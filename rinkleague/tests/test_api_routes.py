"""
Unit tests for the API endpoints.

Most tests mock the service layer; TestIntegration drives the real services
against the test database through httpx.
"""
import pytest
import httpx
from fastapi.testclient import TestClient

from rinkleague.api.main import app
from rinkleague.services import (
    admin_roster_service,
    audit_service,
    auth_service,
    event_service,
    registration_service,
    roster_service,
    user_service,
)
from rinkleague.services.exceptions import AlreadyRegistered, EventNotFound, Forbidden, InvalidInput


# ============================================================================
# Test Fixtures and Helpers
# ============================================================================

def make_client_with_auth(monkeypatch, user_id=1, is_admin=False):
    """Helper to create authenticated test client."""
    def fake_verify_token(token):
        return {"user_id": user_id}

    async def fake_get_user_by_id(session, uid):
        return {
            "id": user_id,
            "email": "test@example.com",
            "first_name": "Test",
            "last_name": "User",
            "nickname": None,
            "display_name": "Test User",
            "phone": None,
            "is_admin": is_admin,
            "created_at": "2020-01-01T00:00:00Z",
        }

    monkeypatch.setattr(auth_service, "verify_token", fake_verify_token, raising=True)
    monkeypatch.setattr(user_service, "get_user_by_id", fake_get_user_by_id, raising=True)

    return TestClient(app), {"Authorization": "Bearer dummy"}


def _registration(user_id=1, status="going", position=0, reg_id=10):
    return {
        "id": reg_id,
        "event_id": 5,
        "user_id": user_id,
        "status": status,
        "position": position,
        "line": None,
        "assigned_position": None,
        "joined_at": "2026-03-01T18:00:00+00:00",
        "removed_at": None,
    }


def _event(**overrides):
    data = {
        "id": 5,
        "name": "Tuesday Skate",
        "league": "B",
        "type": "league",
        "start_time": "2030-01-01T19:00:00+00:00",
        "location": "TBD",
        "has_fee": False,
        "approval_needed": False,
        "is_active": True,
    }
    data.update(overrides)
    return data


# ============================================================================
# Health and Auth
# ============================================================================

class TestHealthAndAuth:
    """Tests for health check and authentication handling."""

    def test_health(self):
        client = TestClient(app)
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_join_requires_token(self):
        client = TestClient(app)
        response = client.post("/api/events/5/registrations")
        assert response.status_code in (401, 403)

    def test_invalid_token_rejected(self, monkeypatch):
        monkeypatch.setattr(auth_service, "verify_token", lambda token: None, raising=True)
        client = TestClient(app)
        response = client.post("/api/events/5/registrations", headers={"Authorization": "Bearer bad"})
        assert response.status_code == 401

    def test_audit_log_requires_admin(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, is_admin=False)
        response = client.get("/api/admin/audit", headers=headers)
        assert response.status_code == 403


# ============================================================================
# Event Endpoints
# ============================================================================

class TestEventEndpoints:
    """Tests for event endpoints."""

    def test_list_events_anonymous(self, monkeypatch):
        """Anonymous viewers get a non-admin context."""
        seen = {}

        async def fake_list_events(session, ctx, active=None):
            seen["ctx"] = ctx
            return [_event(going_count=1, waitlist_count=0, requested_count=0)]

        monkeypatch.setattr(event_service, "list_events", fake_list_events, raising=True)
        client = TestClient(app)

        response = client.get("/api/events")

        assert response.status_code == 200
        assert response.json()[0]["going_count"] == 1
        assert seen["ctx"].user_id is None
        assert seen["ctx"].is_admin is False

    def test_create_event_passes_payload(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, is_admin=True)
        captured = {}

        async def fake_create_event(session, ctx, data):
            captured.update(data)
            return _event(name=data["name"])

        monkeypatch.setattr(event_service, "create_event", fake_create_event, raising=True)

        response = client.post(
            "/api/events",
            json={"name": "Sunday", "league": "A", "type": "extra", "start_time": "2030-01-01T19:00:00Z"},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Sunday"
        assert captured["captain_ids"] == []

    def test_create_event_forbidden(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_create_event(session, ctx, data):
            raise Forbidden("Admin access required")

        monkeypatch.setattr(event_service, "create_event", fake_create_event, raising=True)

        response = client.post(
            "/api/events",
            json={"name": "Sunday", "league": "A", "type": "extra", "start_time": "2030-01-01T19:00:00Z"},
            headers=headers,
        )
        assert response.status_code == 403

    def test_update_sends_only_set_fields(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, is_admin=True)
        captured = {}

        async def fake_update_event(session, ctx, event_id, data):
            captured.update(data)
            return _event(cancelled_at="2030-01-01T00:00:00+00:00")

        monkeypatch.setattr(event_service, "update_event", fake_update_event, raising=True)

        response = client.patch("/api/events/5", json={"cancelled": True}, headers=headers)

        assert response.status_code == 200
        assert captured == {"cancelled": True}

    def test_get_missing_event(self, monkeypatch):
        async def fake_detail(session, ctx, event_id):
            raise EventNotFound()

        monkeypatch.setattr(event_service, "get_event_detail", fake_detail, raising=True)
        client = TestClient(app)

        response = client.get("/api/events/99")
        assert response.status_code == 404

    def test_calendar_export_is_public(self, monkeypatch):
        seen = {}

        async def fake_ics(session, event_id):
            seen["event_id"] = event_id
            return "BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n"

        monkeypatch.setattr(event_service, "export_event_ics", fake_ics, raising=True)
        client = TestClient(app)

        response = client.get("/api/events/5/event.ics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/calendar")
        assert response.headers["content-disposition"] == 'attachment; filename="event-5.ics"'
        assert response.text.startswith("BEGIN:VCALENDAR")
        assert seen["event_id"] == 5

    def test_calendar_export_cancelled_event(self, monkeypatch):
        async def fake_ics(session, event_id):
            raise EventNotFound()

        monkeypatch.setattr(event_service, "export_event_ics", fake_ics, raising=True)
        client = TestClient(app)

        response = client.get("/api/events/5/event.ics")
        assert response.status_code == 404


# ============================================================================
# Registration Endpoints
# ============================================================================

class TestRegistrationEndpoints:
    """Tests for join/leave and roster overrides."""

    def test_join_event(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, user_id=7)

        async def fake_join(session, ctx, event_id):
            assert ctx.user_id == 7
            return _registration(user_id=7, status="waitlist", position=3)

        monkeypatch.setattr(registration_service, "join_event", fake_join, raising=True)

        response = client.post("/api/events/5/registrations", headers=headers)

        assert response.status_code == 200
        assert response.json()["status"] == "waitlist"
        assert response.json()["position"] == 3

    def test_join_twice_is_400(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_join(session, ctx, event_id):
            raise AlreadyRegistered()

        monkeypatch.setattr(registration_service, "join_event", fake_join, raising=True)

        response = client.post("/api/events/5/registrations", headers=headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Already registered for this event"

    def test_leave_event_reports_promotion(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_leave(session, ctx, event_id):
            return {
                "registration": _registration(status="removed"),
                "promoted": _registration(user_id=2, reg_id=11),
            }

        monkeypatch.setattr(registration_service, "leave_event", fake_leave, raising=True)

        response = client.delete("/api/events/5/registrations", headers=headers)

        assert response.status_code == 200
        assert response.json()["promoted"]["user_id"] == 2

    def test_approve_all_not_shadowed_by_user_route(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, is_admin=True)

        async def fake_bulk(session, ctx, event_id):
            return {"count": 0, "approved": []}

        monkeypatch.setattr(admin_roster_service, "bulk_approve_all_requested", fake_bulk, raising=True)

        response = client.post("/api/events/5/registrations/approve-all", headers=headers)

        assert response.status_code == 200
        assert response.json() == {"count": 0, "approved": []}

    def test_reorder_bad_input(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, is_admin=True)

        async def fake_reorder(session, ctx, event_id, user_ids):
            raise InvalidInput("Waitlist order must not be empty")

        monkeypatch.setattr(admin_roster_service, "reorder_waitlist", fake_reorder, raising=True)

        response = client.put("/api/events/5/waitlist/order", json={"user_ids": []}, headers=headers)
        assert response.status_code == 400

    def test_line_position(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, is_admin=True)

        async def fake_set(session, ctx, event_id, user_id, line=None, assigned_position=None):
            reg = _registration(user_id=user_id)
            reg.update(line=line, assigned_position=assigned_position)
            return reg

        monkeypatch.setattr(admin_roster_service, "set_line_position", fake_set, raising=True)

        response = client.put(
            "/api/events/5/registrations/3/line-position",
            json={"line": 2, "assigned_position": "D"},
            headers=headers,
        )

        assert response.status_code == 200
        assert (response.json()["line"], response.json()["assigned_position"]) == (2, "D")

    def test_roster_csv(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, is_admin=True)

        async def fake_export(session, ctx, event_id):
            return "status,line\r\ngoing,1\r\n"

        monkeypatch.setattr(roster_service, "export_roster_csv", fake_export, raising=True)

        response = client.get("/api/events/5/roster.csv", headers=headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "going,1" in response.text

    def test_service_crash_is_500(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, is_admin=True)

        async def fake_promote(session, ctx, event_id):
            raise RuntimeError("database went away")

        monkeypatch.setattr(admin_roster_service, "move_all_waitlist_to_going", fake_promote, raising=True)

        response = client.post("/api/events/5/waitlist/promote-all", headers=headers)
        assert response.status_code == 500


# ============================================================================
# Admin Endpoints
# ============================================================================

class TestAdminEndpoints:
    """Tests for the audit log endpoint."""

    def test_audit_log(self, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, is_admin=True)
        captured = {}

        async def fake_list(session, ctx, limit=100, offset=0):
            captured.update(limit=limit, offset=offset)
            return {
                "entries": [
                    {
                        "id": 1,
                        "user_id": 1,
                        "user_name": "Test User",
                        "action": "event.create",
                        "entity_type": "event",
                        "entity_id": "5",
                        "details": {"name": "Tuesday Skate"},
                        "created_at": "2026-03-01T18:00:00+00:00",
                    }
                ],
                "total": 1,
            }

        monkeypatch.setattr(audit_service, "list_audit_entries", fake_list, raising=True)

        response = client.get("/api/admin/audit?limit=10&offset=20", headers=headers)

        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert captured == {"limit": 10, "offset": 20}


# ============================================================================
# End-to-end against the test database
# ============================================================================

class TestIntegration:
    """Real services and database behind the HTTP layer."""

    @pytest.mark.asyncio
    async def test_join_leave_promote_flow(self, test_engine, make_user, make_event):
        event_id = await make_event(max_players=1)
        ana = await make_user("Ana")
        ben = await make_user("Ben")
        admin = await make_user("Ada", is_admin=True)

        def auth(user_id):
            token = auth_service.create_access_token({"user_id": user_id})
            return {"Authorization": f"Bearer {token}"}

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post(f"/api/events/{event_id}/registrations", headers=auth(ana))
            assert response.json()["status"] == "going"

            response = await client.post(f"/api/events/{event_id}/registrations", headers=auth(ben))
            assert (response.json()["status"], response.json()["position"]) == ("waitlist", 0)

            response = await client.delete(f"/api/events/{event_id}/registrations", headers=auth(ana))
            assert response.status_code == 200
            assert response.json()["promoted"]["user_id"] == ben

            response = await client.get(f"/api/events/{event_id}", headers=auth(ben))
            body = response.json()
            assert body["my_status"] == "going"
            assert [r["user_id"] for r in body["going"]] == [ben]

            response = await client.get(f"/api/events/{event_id}/roster.csv", headers=auth(ben))
            assert response.status_code == 403

            response = await client.get(f"/api/events/{event_id}/roster.csv", headers=auth(admin))
            assert response.status_code == 200
            assert response.text.splitlines()[0] == (
                "status,line,assigned_position,waitlist_position,name,nickname,email,joined_at"
            )

            response = await client.get("/api/admin/audit", headers=auth(admin))
            actions = [e["action"] for e in response.json()["entries"]]
            assert actions == ["registration.promote"]
