"""
WhatsApp Cloud API client.

Sends the two message kinds flows use: plain text and interactive lists.
One client is built per business phone number id; all of them share a single
httpx.AsyncClient, closed on shutdown.
"""

import logging
from typing import Optional, Protocol, Sequence

import httpx

from app.config import get_settings
from app.core.flows.models import FlowSection

logger = logging.getLogger(__name__)


class WhatsAppError(Exception):
    """Raised when the Cloud API answers with a non-2xx status."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"WhatsApp API returned {status}: {body}")


class ChannelUnavailableError(Exception):
    """Raised when no client can be built (missing token)."""
    pass


class MessagingChannel(Protocol):
    """Outbound messaging capability used by the renderer and dispatcher."""

    async def send_text(self, recipient: str, body: str) -> None:
        ...

    async def send_interactive_list(
        self,
        recipient: str,
        header: str,
        body: str,
        footer: str,
        button_text: str,
        sections: Sequence[FlowSection],
    ) -> None:
        ...


def normalize_recipient(recipient: str) -> str:
    """Normalize a wa_id for the Cloud API test numbers.

    Strips a leading "+". Argentine mobile ids arrive as 549XXXXXXXXXX but the
    allowed-recipients list expects 54XXXXXXXXXX.
    """
    recipient = recipient.strip().removeprefix("+")
    if recipient.startswith("549") and len(recipient) > 3:
        return "54" + recipient[3:]
    return recipient


def build_list_payload(
    recipient: str,
    header: str,
    body: str,
    footer: str,
    button_text: str,
    sections: Sequence[FlowSection],
) -> dict:
    """Build an interactive list message; blank header/footer/descriptions are omitted."""
    wa_sections = []
    for section in sections:
        rows = []
        for row in section.rows:
            item = {"id": row.id, "title": row.title}
            if row.description.strip():
                item["description"] = row.description
            rows.append(item)
        wa_sections.append({"title": section.title, "rows": rows})

    interactive: dict = {
        "type": "list",
        "body": {"text": body},
        "action": {"button": button_text, "sections": wa_sections},
    }
    if header.strip():
        interactive["header"] = {"type": "text", "text": header}
    if footer.strip():
        interactive["footer"] = {"text": footer}

    return {
        "messaging_product": "whatsapp",
        "to": recipient,
        "type": "interactive",
        "interactive": interactive,
    }


# Shared HTTP client
_http_client: Optional[httpx.AsyncClient] = None


def _get_http_client() -> httpx.AsyncClient:
    """Get or create the shared HTTP client."""
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(timeout=get_settings().whatsapp_timeout)
    return _http_client


async def close_http_client() -> None:
    """Close the shared HTTP client."""
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


class WhatsAppClient:
    """
    Client for one business phone number.

    Outside production recipients are normalized, and in development
    ``force_to`` redirects every message to a single test number.
    """

    def __init__(
        self,
        phone_number_id: str,
        token: str,
        api_version: str = "v24.0",
        base_url: str = "https://graph.facebook.com",
        force_to: Optional[str] = None,
        normalize: bool = True,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize client.

        Args:
            phone_number_id: Business phone number id messages are sent from
            token: Graph API bearer token
            api_version: Graph API version
            base_url: Graph API base URL
            force_to: Recipient override (development only)
            normalize: Apply normalize_recipient to every recipient
            http_client: HTTP client (defaults to the shared one)
        """
        self.phone_number_id = phone_number_id
        self.url = f"{base_url.rstrip('/')}/{api_version}/{phone_number_id}/messages"
        self._token = token
        self.force_to = force_to or None
        self.normalize = normalize
        self._client = http_client

    def _recipient(self, recipient: str) -> str:
        if self.force_to:
            logger.warning(f"WHATSAPP_FORCE_TO active: original={recipient} forced={self.force_to}")
            recipient = self.force_to
        if self.normalize:
            recipient = normalize_recipient(recipient)
        return recipient

    async def send_text(self, recipient: str, body: str) -> None:
        """Send a plain text message."""
        payload = {
            "messaging_product": "whatsapp",
            "to": self._recipient(recipient),
            "type": "text",
            "text": {"body": body},
        }
        await self._post(payload)

    async def send_interactive_list(
        self,
        recipient: str,
        header: str,
        body: str,
        footer: str,
        button_text: str,
        sections: Sequence[FlowSection],
    ) -> None:
        """Send an interactive list message."""
        payload = build_list_payload(
            self._recipient(recipient),
            header,
            body,
            footer,
            button_text,
            sections,
        )
        await self._post(payload)

    async def _post(self, payload: dict) -> None:
        """POST a message payload.

        Raises:
            WhatsAppError: Non-2xx response
            httpx.HTTPError: Transport failure
        """
        client = self._client or _get_http_client()
        response = await client.post(
            self.url,
            json=payload,
            headers={"Authorization": f"Bearer {self._token}"},
        )

        if not response.is_success:
            logger.error(f"WhatsApp send failed: {response.status_code} {response.text}")
            raise WhatsAppError(response.status_code, response.text)

        logger.info(f"WhatsApp {payload['type']} sent to {payload['to']}")


def get_whatsapp_client(phone_number_id: str) -> WhatsAppClient:
    """Build a client for a business phone number from settings.

    Raises:
        ChannelUnavailableError: WHATSAPP_TOKEN is not set
    """
    settings = get_settings()
    if not settings.whatsapp_token:
        raise ChannelUnavailableError("WHATSAPP_TOKEN is not set")

    return WhatsAppClient(
        phone_number_id=phone_number_id,
        token=settings.whatsapp_token,
        api_version=settings.whatsapp_api_version,
        base_url=settings.whatsapp_base_url,
        force_to=settings.effective_force_to,
        normalize=not settings.is_production,
    )
