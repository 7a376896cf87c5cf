"""Tests for the webhook, session and health routes."""

import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock, patch

from app.api.routes import health, sessions, webhook
from app.api.routes.webhook import WebhookPayload
from app.config import Settings
from app.core.conversation import MessageKind
from app.core.session import Session, SessionStore, session_key

PAYLOAD = {
    "object": "whatsapp_business_account",
    "entry": [{
        "id": "WABA_ID",
        "changes": [{
            "field": "messages",
            "value": {
                "messaging_product": "whatsapp",
                "metadata": {
                    "display_phone_number": "15550000000",
                    "phone_number_id": "1041740029016016",
                },
                "contacts": [{"profile": {"name": " Ana "}, "wa_id": "5491155550000"}],
                "messages": [
                    {
                        "from": "5491155550000",
                        "id": "wamid.1",
                        "timestamp": "1736160000",
                        "type": "text",
                        "text": {"body": "hola"},
                    },
                    {
                        "from": "5491155550000",
                        "id": "wamid.2",
                        "timestamp": "1736160001",
                        "type": "interactive",
                        "interactive": {
                            "type": "list_reply",
                            "list_reply": {"id": "TURNO", "title": "Pedir turno"},
                        },
                    },
                    {
                        "from": "5491155550000",
                        "id": "wamid.3",
                        "timestamp": "1736160002",
                        "type": "interactive",
                        "interactive": {
                            "type": "button_reply",
                            "button_reply": {"id": "SI", "title": "Sí"},
                        },
                    },
                    {
                        "from": "5491155550000",
                        "id": "wamid.4",
                        "timestamp": "1736160003",
                        "type": "image",
                        "image": {"id": "media-1"},
                    },
                ],
            },
        }],
    }],
}

STATUS_ONLY = {
    "object": "whatsapp_business_account",
    "entry": [{"changes": [{"field": "messages", "value": {
        "metadata": {"phone_number_id": "1041740029016016"},
        "statuses": [{"id": "wamid.1", "status": "delivered"}],
    }}]}],
}


@pytest.fixture
def client():
    """Test client over the routers only (no lifespan)."""
    app = FastAPI()
    app.include_router(webhook.router)
    app.include_router(sessions.router)
    app.include_router(health.router)
    return TestClient(app)


class TestWebhookPayload:
    """Test Cloud API payload conversion."""

    def test_to_events(self):
        """Test text, list, button and other messages."""
        events = WebhookPayload.model_validate(PAYLOAD).to_events()

        assert len(events) == 1
        event = events[0]
        assert event.phone_number_id == "1041740029016016"
        assert event.contact_name == "Ana"

        kinds = [m.kind for m in event.messages]
        assert kinds == [
            MessageKind.TEXT,
            MessageKind.INTERACTIVE,
            MessageKind.INTERACTIVE,
            MessageKind.OTHER,
        ]
        assert event.messages[0].text == "hola"
        assert event.messages[1].selected_id == "TURNO"
        assert event.messages[2].selected_id == "SI"
        assert all(m.sender == "5491155550000" for m in event.messages)

    def test_status_only_changes_ignored(self):
        """Test deliveries without messages produce no events."""
        assert WebhookPayload.model_validate(STATUS_ONLY).to_events() == []


class TestVerify:
    """Test GET /webhook."""

    @pytest.fixture(autouse=True)
    def verify_token(self):
        with patch(
            "app.api.routes.webhook.get_settings",
            return_value=Settings(_env_file=None, verify_token="secret"),
        ):
            yield

    def test_handshake(self, client):
        """Test the challenge is echoed as plain text."""
        response = client.get("/webhook", params={
            "hub.mode": "subscribe",
            "hub.verify_token": "secret",
            "hub.challenge": "1158201444",
        })

        assert response.status_code == 200
        assert response.text == "1158201444"

    def test_wrong_token(self, client):
        """Test mismatched tokens are forbidden."""
        response = client.get("/webhook", params={
            "hub.mode": "subscribe",
            "hub.verify_token": "nope",
            "hub.challenge": "1",
        })

        assert response.status_code == 403

    def test_wrong_mode(self, client):
        """Test only subscribe is accepted."""
        response = client.get("/webhook", params={
            "hub.mode": "unsubscribe",
            "hub.verify_token": "secret",
            "hub.challenge": "1",
        })

        assert response.status_code == 403


class TestReceive:
    """Test POST /webhook."""

    def test_schedules_events(self, client):
        """Test messages are handed to a background task."""
        with patch("app.api.routes.webhook.schedule_events") as schedule:
            response = client.post("/webhook", json=PAYLOAD)

        assert response.status_code == 200
        schedule.assert_called_once()
        events = schedule.call_args.args[0]
        assert len(events[0].messages) == 4

    def test_unparseable_body_acknowledged(self, client):
        """Test garbage is logged and still answered with 200."""
        with patch("app.api.routes.webhook.schedule_events") as schedule:
            response = client.post(
                "/webhook",
                content=b"{not json",
                headers={"Content-Type": "application/json"},
            )

        assert response.status_code == 200
        schedule.assert_not_called()

    def test_status_only_not_scheduled(self, client):
        """Test status callbacks do nothing."""
        with patch("app.api.routes.webhook.schedule_events") as schedule:
            response = client.post("/webhook", json=STATUS_ONLY)

        assert response.status_code == 200
        schedule.assert_not_called()

    @pytest.mark.asyncio
    async def test_background_task_dispatches(self):
        """Test scheduled events reach the dispatcher."""
        dispatcher = MagicMock()
        dispatcher.handle_event = AsyncMock()
        events = WebhookPayload.model_validate(PAYLOAD).to_events()

        with patch("app.api.routes.webhook.get_dispatcher", return_value=dispatcher):
            task = webhook.schedule_events(events)
            await task
            await asyncio.sleep(0)

        dispatcher.handle_event.assert_awaited_once_with(events[0])
        assert task not in webhook._tasks


class TestSessionRoutes:
    """Test development-only session endpoints."""

    @pytest.fixture
    def store(self):
        store = SessionStore(ttl_seconds=0)
        store.set(session_key("broker", "549111"), Session(state="INFO"))
        with patch("app.api.routes.sessions.get_session_store", return_value=store):
            yield store

    def test_get_and_delete_in_development(self, client, store):
        """Test inspect then reset."""
        with patch(
            "app.api.routes.sessions.get_settings",
            return_value=Settings(_env_file=None, app_env="development"),
        ):
            response = client.get("/sessions/broker/549111")
            assert response.status_code == 200
            assert response.json()["state"] == "INFO"

            response = client.delete("/sessions/broker/549111")
            assert response.status_code == 204

            response = client.get("/sessions/broker/549111")
            assert response.status_code == 404

    def test_hidden_in_production(self, client, store):
        """Test the endpoints do not exist outside development."""
        with patch(
            "app.api.routes.sessions.get_settings",
            return_value=Settings(_env_file=None, app_env="production"),
        ):
            assert client.get("/sessions/broker/549111").status_code == 404
            assert client.delete("/sessions/broker/549111").status_code == 404

        assert len(store) == 1


class TestHealth:
    """Test health probes."""

    def test_health(self, client):
        """Test basic health."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_live(self, client):
        """Test liveness."""
        assert client.get("/health/live").json()["status"] == "alive"

    def test_ready_fails_without_flow(self, client):
        """Test readiness reports a broken default flow."""
        flows = MagicMock()
        flows.get_or_load_async = AsyncMock(side_effect=RuntimeError("no flow"))

        with patch("app.api.routes.health.get_flow_cache", return_value=flows):
            response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["flow"] == "error"
