"""
Unit tests for promotion notices and the SendGrid email service.
"""

from datetime import datetime
from types import SimpleNamespace

import pytest
import pytz

from rinkleague.services import email_service, notification_service
from rinkleague.services.notification_service import PromotionNotice


def _event(**overrides):
    values = {
        "id": 1,
        "name": "Friday Skate",
        "league": "C",
        "type": "extra",
        "start_time": datetime(2026, 3, 7, 19, 5, tzinfo=pytz.UTC),
        "location": "Rink on the Beach",
        "rink": None,
        "venue_key": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestDisplayHelpers:
    """Tests for event name and location formatting."""

    def test_event_display_name_falls_back_to_league(self):
        assert notification_service.event_display_name(_event(name=None)) == "C League - extra"

    def test_location_includes_rink(self):
        assert notification_service.location_display(_event(rink="Sheet B")) == "Rink on the Beach (Sheet B)"

    def test_blank_location_is_tbd(self):
        assert notification_service.location_display(_event(location=None)) == "TBD"


@pytest.mark.asyncio
async def test_build_notices_looks_up_emails(db_session, make_user):
    """Notices carry the member's email and event display fields."""
    user_id = await make_user("Ana", email="ana@example.com")
    registrations = [SimpleNamespace(user_id=user_id), SimpleNamespace(user_id=4040)]

    notices = await notification_service.build_notices(db_session, _event(rink="Sheet A"), registrations)

    assert notices == [
        PromotionNotice(
            user_id=user_id,
            email="ana@example.com",
            event_name="Friday Skate",
            start_time_display="Mar 7, 2026 at 7:05 PM",
            location_display="Rink on the Beach (Sheet A)",
            venue_key=None,
        )
    ]


@pytest.mark.asyncio
async def test_build_notices_empty(db_session):
    assert await notification_service.build_notices(db_session, _event(), []) == []


@pytest.mark.asyncio
async def test_dispatch_never_raises(monkeypatch):
    calls = []

    async def flaky_send(to, *args):
        calls.append(to)
        if to == "bad@example.com":
            raise RuntimeError("boom")
        return {"ok": True}

    monkeypatch.setattr(email_service, "send_waitlist_promoted_email", flaky_send)
    notices = [
        PromotionNotice(1, "bad@example.com", "E", "when", "where"),
        PromotionNotice(2, "good@example.com", "E", "when", "where"),
    ]

    results = await notification_service.dispatch_promotion_notices(notices)

    assert calls == ["bad@example.com", "good@example.com"]
    assert results[0] == {"ok": False, "error": "boom"}
    assert results[1] == {"ok": True}


class TestEmailService:
    """Tests for email_service with SendGrid mocked out."""

    @pytest.mark.asyncio
    async def test_disabled_email_reports_ok(self, monkeypatch):
        monkeypatch.setattr(email_service, "ENABLE_EMAIL", False)
        assert await email_service.send_email("a@example.com", "Hi", "<p>Hi</p>") == {"ok": True}

    @pytest.mark.asyncio
    async def test_missing_api_key_reports_ok(self, monkeypatch):
        monkeypatch.setattr(email_service, "ENABLE_EMAIL", True)
        monkeypatch.setattr(email_service, "SENDGRID_API_KEY", None)
        assert await email_service.send_email("a@example.com", "Hi", "<p>Hi</p>") == {"ok": True}

    @pytest.mark.asyncio
    async def test_promoted_email_sent_through_sendgrid(self, monkeypatch):
        sent = []

        class FakeClient:
            def __init__(self, api_key):
                self.api_key = api_key

            def send(self, message):
                sent.append(message.get())
                return SimpleNamespace(status_code=202, body="")

        monkeypatch.setattr(email_service, "ENABLE_EMAIL", True)
        monkeypatch.setattr(email_service, "SENDGRID_API_KEY", "SG.test")
        monkeypatch.setattr(email_service, "SendGridAPIClient", FakeClient)

        result = await email_service.send_waitlist_promoted_email(
            "ana@example.com",
            "Friday Skate",
            "Mar 7, 2026 at 7:05 PM",
            "Rink on the Beach",
            venue_key="rink_on_the_beach",
        )

        assert result == {"ok": True}
        assert sent[0]["subject"] == "You're in! Added to Friday Skate"
        html = sent[0]["content"][0]["value"]
        assert "Mar 7, 2026 at 7:05 PM" in html
        assert "Google Maps" in html

    @pytest.mark.asyncio
    async def test_sendgrid_error_status(self, monkeypatch):
        class RejectingClient:
            def __init__(self, api_key):
                pass

            def send(self, message):
                return SimpleNamespace(status_code=400, body="bad request")

        monkeypatch.setattr(email_service, "ENABLE_EMAIL", True)
        monkeypatch.setattr(email_service, "SENDGRID_API_KEY", "SG.test")
        monkeypatch.setattr(email_service, "SendGridAPIClient", RejectingClient)

        result = await email_service.send_email("a@example.com", "Hi", "<p>Hi</p>")

        assert result["ok"] is False
        assert "400" in result["error"]

    def test_directions_unknown_venue(self):
        assert email_service.get_directions_html("nowhere") == ""
        assert email_service.get_directions_html(None) == ""
