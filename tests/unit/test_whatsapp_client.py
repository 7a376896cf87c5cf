"""Tests for the WhatsApp Cloud API client."""

import json

import httpx
import pytest
from unittest.mock import patch

from app.config import Settings
from app.core.flows import FlowRow, FlowSection
from app.infra.whatsapp import (
    ChannelUnavailableError,
    WhatsAppClient,
    WhatsAppError,
    build_list_payload,
    get_whatsapp_client,
    normalize_recipient,
)


class Recorder:
    """httpx transport handler that records requests."""

    def __init__(self, status_code: int = 200, body: dict = None):
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.body = body if body is not None else {"messages": [{"id": "wamid.1"}]}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def payload(self) -> dict:
        return json.loads(self.requests[-1].content)


def make_client(recorder: Recorder, **kwargs) -> WhatsAppClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return WhatsAppClient(
        phone_number_id="1041740029016016",
        token="token-abc",
        http_client=http,
        **kwargs,
    )


class TestNormalizeRecipient:
    """Test recipient normalization."""

    def test_strips_plus(self):
        """Test leading + removal."""
        assert normalize_recipient("+5411155584928") == "5411155584928"

    def test_argentine_mobile(self):
        """Test 549... becomes 54..."""
        assert normalize_recipient("5491155550000") == "541155550000"
        assert normalize_recipient("+5491155550000") == "541155550000"

    def test_other_numbers_unchanged(self):
        """Test non-Argentine numbers."""
        assert normalize_recipient(" 14155550000 ") == "14155550000"


class TestSendText:
    """Test text messages."""

    @pytest.mark.asyncio
    async def test_payload_and_auth(self):
        """Test endpoint, bearer token and body."""
        recorder = Recorder()
        client = make_client(recorder)

        await client.send_text("5491155550000", "Hola")

        request = recorder.requests[0]
        assert str(request.url) == "https://graph.facebook.com/v24.0/1041740029016016/messages"
        assert request.headers["Authorization"] == "Bearer token-abc"
        assert recorder.payload == {
            "messaging_product": "whatsapp",
            "to": "541155550000",
            "type": "text",
            "text": {"body": "Hola"},
        }

    @pytest.mark.asyncio
    async def test_force_to(self):
        """Test development recipient override."""
        recorder = Recorder()
        client = make_client(recorder, force_to="+54111558492828")

        await client.send_text("5491155550000", "Hola")

        assert recorder.payload["to"] == "54111558492828"

    @pytest.mark.asyncio
    async def test_no_normalization_in_production(self):
        """Test recipients are sent as received."""
        recorder = Recorder()
        client = make_client(recorder, normalize=False)

        await client.send_text("5491155550000", "Hola")

        assert recorder.payload["to"] == "5491155550000"

    @pytest.mark.asyncio
    async def test_error_carries_status_and_body(self):
        """Test non-2xx responses raise WhatsAppError."""
        recorder = Recorder(status_code=400, body={"error": {"message": "bad recipient"}})
        client = make_client(recorder)

        with pytest.raises(WhatsAppError) as exc_info:
            await client.send_text("5491155550000", "Hola")

        assert exc_info.value.status == 400
        assert "bad recipient" in exc_info.value.body


class TestSendInteractiveList:
    """Test list messages."""

    @pytest.fixture
    def sections(self):
        """One section with and without a description."""
        return [FlowSection(title="Opciones", rows=[
            FlowRow(id="A", title="Opción A", description="Detalle"),
            FlowRow(id="B", title="Opción B", description="  "),
        ])]

    @pytest.mark.asyncio
    async def test_full_payload(self, sections):
        """Test header, body, footer and action."""
        recorder = Recorder()
        client = make_client(recorder)

        await client.send_interactive_list(
            "5491155550000", "Menú", "Hola Ana", "Pie", "Ver opciones", sections
        )

        interactive = recorder.payload["interactive"]
        assert recorder.payload["type"] == "interactive"
        assert interactive["type"] == "list"
        assert interactive["header"] == {"type": "text", "text": "Menú"}
        assert interactive["body"] == {"text": "Hola Ana"}
        assert interactive["footer"] == {"text": "Pie"}
        assert interactive["action"]["button"] == "Ver opciones"
        assert interactive["action"]["sections"] == [{
            "title": "Opciones",
            "rows": [
                {"id": "A", "title": "Opción A", "description": "Detalle"},
                {"id": "B", "title": "Opción B"},
            ],
        }]

    def test_blank_header_and_footer_omitted(self, sections):
        """Test optional parts are left out of the payload."""
        payload = build_list_payload("541155550000", " ", "Hola", "", "Ver", sections)

        assert "header" not in payload["interactive"]
        assert "footer" not in payload["interactive"]


class TestGetWhatsAppClient:
    """Test client factory."""

    def test_requires_token(self):
        """Test no client without WHATSAPP_TOKEN."""
        with patch(
            "app.infra.whatsapp.get_settings",
            return_value=Settings(_env_file=None, whatsapp_token=None),
        ):
            with pytest.raises(ChannelUnavailableError):
                get_whatsapp_client("111")

    def test_production_settings(self):
        """Test production disables force_to and normalization."""
        settings = Settings(
            _env_file=None,
            app_env="production",
            whatsapp_token="t",
            whatsapp_force_to="+5411",
        )
        with patch("app.infra.whatsapp.get_settings", return_value=settings):
            client = get_whatsapp_client("111")

        assert client.force_to is None
        assert client.normalize is False
        assert client.url.endswith("/v24.0/111/messages")

    def test_development_settings(self):
        """Test development honours force_to."""
        settings = Settings(
            _env_file=None,
            app_env="development",
            whatsapp_token="t",
            whatsapp_force_to="+5411",
        )
        with patch("app.infra.whatsapp.get_settings", return_value=settings):
            client = get_whatsapp_client("111")

        assert client.force_to == "+5411"
        assert client.normalize is True
