"""
WhatsApp Webhook Endpoints

GET  /webhook: subscription handshake
POST /webhook: inbound messages

The POST handler acknowledges immediately and processes each delivery in its
own background task, so a slow Cloud API or calendar call never makes Meta
retry the delivery.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.config import get_settings
from app.core.conversation import InboundEvent, InboundMessage, MessageKind, get_dispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["Webhook"])

# Keep references so running tasks are not garbage collected
_tasks: set[asyncio.Task] = set()


# === Cloud API payload ===


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ReplyOption(_Payload):
    """list_reply / button_reply."""

    id: str = ""
    title: str = ""
    description: str = ""


class Interactive(_Payload):
    type: str = ""
    list_reply: Optional[ReplyOption] = None
    button_reply: Optional[ReplyOption] = None


class TextBody(_Payload):
    body: str = ""


class WebhookMessage(_Payload):
    """One entry of value.messages."""

    id: str = ""
    sender: str = Field(default="", alias="from")
    timestamp: str = ""
    type: str = ""
    text: Optional[TextBody] = None
    interactive: Optional[Interactive] = None

    def to_inbound(self) -> InboundMessage:
        """Convert to the dispatcher's message type."""
        if self.type == "text" and self.text is not None:
            return InboundMessage.text_message(self.sender, self.text.body, message_id=self.id)

        if self.type == "interactive" and self.interactive is not None:
            reply = self.interactive.list_reply or self.interactive.button_reply
            if reply is not None:
                return InboundMessage.selection(
                    self.sender,
                    reply.id,
                    selected_title=reply.title,
                    message_id=self.id,
                )

        return InboundMessage(sender=self.sender, kind=MessageKind.OTHER, message_id=self.id)


class Profile(_Payload):
    name: str = ""


class Contact(_Payload):
    profile: Profile = Field(default_factory=Profile)
    wa_id: str = ""


class Metadata(_Payload):
    display_phone_number: str = ""
    phone_number_id: str = ""


class ChangeValue(_Payload):
    messaging_product: str = ""
    metadata: Metadata = Field(default_factory=Metadata)
    contacts: list[Contact] = Field(default_factory=list)
    messages: list[WebhookMessage] = Field(default_factory=list)


class Change(_Payload):
    field: str = ""
    value: ChangeValue = Field(default_factory=ChangeValue)


class Entry(_Payload):
    id: str = ""
    changes: list[Change] = Field(default_factory=list)


class WebhookPayload(_Payload):
    """Body of a Cloud API webhook delivery."""

    object: str = ""
    entry: list[Entry] = Field(default_factory=list)

    def to_events(self) -> list[InboundEvent]:
        """One event per change that carries messages; status-only changes are dropped."""
        events: list[InboundEvent] = []
        for entry in self.entry:
            for change in entry.changes:
                value = change.value
                if not value.messages:
                    continue
                contact_name = value.contacts[0].profile.name.strip() if value.contacts else ""
                events.append(
                    InboundEvent(
                        phone_number_id=value.metadata.phone_number_id,
                        contact_name=contact_name,
                        messages=[m.to_inbound() for m in value.messages],
                    )
                )
        return events


# === Routes ===


@router.get(
    "",
    response_class=PlainTextResponse,
    summary="Webhook verification",
    responses={403: {"description": "Mode or verify token mismatch"}},
)
async def verify(
    hub_mode: Optional[str] = Query(default=None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    hub_challenge: str = Query(default="", alias="hub.challenge"),
) -> PlainTextResponse:
    """
    Subscription handshake.

    Meta calls this once when the webhook is configured and expects the
    challenge echoed back as plain text.
    """
    if hub_mode == "subscribe" and hub_verify_token == get_settings().verify_token:
        logger.info("Webhook verification succeeded")
        return PlainTextResponse(hub_challenge)

    logger.warning(f"Webhook verification failed (mode={hub_mode})")
    return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)


@router.post(
    "",
    status_code=status.HTTP_200_OK,
    summary="Inbound messages",
)
async def receive(request: Request) -> dict:
    """
    Receive a webhook delivery.

    Always answers 200: an unparseable body is logged and dropped, since
    Meta would otherwise keep retrying it.
    """
    raw = await request.body()
    logger.debug(f"POST /webhook body={raw[:2000]!r}")

    try:
        payload = WebhookPayload.model_validate_json(raw)
    except ValidationError as e:
        logger.error(f"Unparseable webhook body: {e}")
        return {"status": "ignored"}

    events = payload.to_events()
    if events:
        schedule_events(events)
    return {"status": "ok"}


def schedule_events(events: list[InboundEvent]) -> asyncio.Task:
    """Process a delivery's events in one background task."""
    task = asyncio.create_task(_process_events(events))
    _tasks.add(task)
    task.add_done_callback(_tasks.discard)
    return task


async def _process_events(events: list[InboundEvent]) -> None:
    dispatcher = get_dispatcher()
    for event in events:
        await dispatcher.handle_event(event)


async def drain_tasks() -> None:
    """Wait for in-flight deliveries (used on shutdown)."""
    if _tasks:
        logger.info(f"Waiting for {len(_tasks)} in-flight webhook tasks")
        await asyncio.gather(*_tasks, return_exceptions=True)
