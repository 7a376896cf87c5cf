"""
Message Dispatcher.

Runs one inbound event through the conversation pipeline:

    resolve tenant -> read session -> decide -> scheduling hooks
        -> write session -> render and send

Every failure is turned into a log line plus, where possible, an apology
message to the user. Nothing raised here reaches the webhook task.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx

from app.core.conversation.messages import InboundEvent, InboundMessage, MessageKind
from app.core.conversation.renderer import Renderer, get_renderer
from app.core.conversation.state_machine import FlowStateMachine, get_state_machine
from app.core.conversation.tenant import TenantResolver, get_tenant_resolver
from app.core.flows import (
    INITIAL_STATE,
    ConfigCache,
    FlowDefinition,
    FlowRow,
    FlowSection,
    get_flow_cache,
)
from app.core.scheduling import (
    Attendee,
    CalendarConfig,
    Slot,
    SlotAvailabilityEngine,
    get_availability_engine,
    get_calendar_config_cache,
)
from app.core.session import Session, SessionStore, get_session_store, session_key
from app.infra.whatsapp import (
    ChannelUnavailableError,
    MessagingChannel,
    WhatsAppError,
    get_whatsapp_client,
)

logger = logging.getLogger(__name__)

ERROR_TEXT = "Perdón, hubo un error. Probá de nuevo."
RENDER_ERROR_TEXT = "Perdón, hubo un problema mostrando el menú."
BOOKING_ERROR_TEXT = "Perdón, no pudimos agendar el turno. Probá de nuevo."


@dataclass
class _Step:
    """What is about to be rendered for one message."""

    state: str
    variables: dict[str, str]
    offered_slots: dict[str, Slot] = field(default_factory=dict)
    selected_slot: Optional[Slot] = None
    extra_sections: Optional[list[FlowSection]] = None


class MessageDispatcher:
    """
    Orchestrates resolver, session store, state machine, renderer and the
    slot engine for each inbound message.

    Messages of one event are processed sequentially, in order.
    """

    def __init__(
        self,
        resolver: Optional[TenantResolver] = None,
        sessions: Optional[SessionStore] = None,
        state_machine: Optional[FlowStateMachine] = None,
        renderer: Optional[Renderer] = None,
        flows: Optional[ConfigCache[FlowDefinition]] = None,
        calendars: Optional[ConfigCache[CalendarConfig]] = None,
        availability: Optional[SlotAvailabilityEngine] = None,
        channel_factory: Optional[Callable[[str], MessagingChannel]] = None,
    ):
        """Initialize dispatcher. Every collaborator defaults to its singleton."""
        self.resolver = resolver if resolver is not None else get_tenant_resolver()
        self.sessions = sessions if sessions is not None else get_session_store()
        self.state_machine = state_machine if state_machine is not None else get_state_machine()
        self.renderer = renderer if renderer is not None else get_renderer()
        self.flows = flows if flows is not None else get_flow_cache()
        self.calendars = calendars if calendars is not None else get_calendar_config_cache()
        self.availability = availability if availability is not None else get_availability_engine()
        self.channel_factory = channel_factory if channel_factory is not None else get_whatsapp_client

    async def handle_event(self, event: InboundEvent) -> None:
        """Process every message of an inbound event. Never raises."""
        tenant = self.resolver.resolve(event.phone_number_id)

        for message in event.messages:
            try:
                await self._handle_message(tenant, event, message)
            except Exception as e:
                logger.exception(
                    f"Unhandled error for tenant={tenant} wa_id={message.sender}: {e}"
                )

    async def _handle_message(
        self,
        tenant: str,
        event: InboundEvent,
        message: InboundMessage,
    ) -> None:
        recipient = message.sender
        key = session_key(tenant, recipient)
        variables = {"name": event.display_name}

        session, found = self.sessions.get(key)
        if not found or not session.state:
            session = Session(state=INITIAL_STATE)
            self.sessions.set(key, session)

        logger.info(
            f"tenant={tenant} wa_id={recipient} state={session.state} "
            f"type={message.kind.value} name={variables['name']}"
        )

        try:
            channel = self.channel_factory(event.phone_number_id)
        except ChannelUnavailableError as e:
            logger.error(f"Cannot reply on phone_number_id={event.phone_number_id}: {e}")
            return

        try:
            # Loads on a miss in a worker thread; decide and render then hit the cache
            await self.flows.get_or_load_async(tenant)
            next_state, handled = self.state_machine.decide(
                tenant,
                session.state,
                message,
                offered_slot_ids=session.offered_slots.keys(),
            )
        except Exception as e:
            logger.error(f"tenant={tenant} decide failed in state={session.state}: {e}")
            await self._send_fallback(channel, recipient, ERROR_TEXT)
            return

        if not handled:
            next_state = INITIAL_STATE

        step = _Step(
            state=next_state,
            variables=variables,
            selected_slot=self._selected_slot(session, message, handled, next_state),
        )

        try:
            step = await self._run_scheduling(tenant, channel, recipient, event, step)
        except (WhatsAppError, httpx.HTTPError) as e:
            logger.error(f"tenant={tenant} send failed entering {next_state}: {e}")
            self.sessions.set(key, Session(state=INITIAL_STATE))
            await self._send_fallback(channel, recipient, ERROR_TEXT)
            return
        except Exception as e:
            logger.error(f"tenant={tenant} scheduling failed entering {next_state}: {e}")
            self.sessions.set(key, Session(state=INITIAL_STATE))
            await self._send_fallback(channel, recipient, BOOKING_ERROR_TEXT)
            return

        if step is None:
            # Hook already replied and reset the conversation
            self.sessions.set(key, Session(state=INITIAL_STATE))
            return

        self.sessions.set(
            key,
            Session(
                state=step.state,
                offered_slots=step.offered_slots,
                selected_slot=step.selected_slot,
            ),
        )

        try:
            await self.renderer.render_and_send(
                tenant,
                step.state,
                channel,
                recipient,
                step.variables,
                extra_sections=step.extra_sections,
            )
        except Exception as e:
            logger.error(f"tenant={tenant} render {step.state} failed: {e}")
            await self._send_fallback(channel, recipient, RENDER_ERROR_TEXT)

    @staticmethod
    def _selected_slot(
        session: Session,
        message: InboundMessage,
        handled: bool,
        next_state: str,
    ) -> Optional[Slot]:
        """Slot to carry into the next session.

        Picking an offered slot records it; the previous selection survives
        until it is booked or the conversation returns to MENU.
        """
        if not handled or next_state == INITIAL_STATE:
            return None
        if message.kind == MessageKind.INTERACTIVE and message.selected_id in session.offered_slots:
            return session.offered_slots[message.selected_id]
        return session.selected_slot

    async def _run_scheduling(
        self,
        tenant: str,
        channel: MessagingChannel,
        recipient: str,
        event: InboundEvent,
        step: _Step,
    ) -> Optional[_Step]:
        """Apply the scheduling hook of the state about to be rendered.

        Returns:
            The step to render, or None when the hook already answered the
            user and the session must go back to MENU

        Raises:
            CalendarConfigError, CalendarClientError, BookingError and the
            Google client errors; the caller apologises and resets.
            WhatsAppError or httpx.HTTPError when empty_text cannot be sent.
        """
        flow = await self.flows.get_or_load_async(tenant)
        state = flow.get_state(step.state)
        hook = state.scheduling if state else None
        if hook is None:
            return step

        if hook.action == "offer_slots":
            config = await self.calendars.get_or_load_async(tenant)
            slots = await self.availability.available_slots(config)
            if not slots:
                await channel.send_text(recipient, hook.empty_text)
                return None

            step.offered_slots = {slot.slot_id: slot for slot in slots}
            step.extra_sections = [
                FlowSection(
                    title=hook.section_title,
                    rows=[FlowRow(id=slot.slot_id, title=slot.label) for slot in slots],
                )
            ]
            return step

        if hook.action == "book_slot":
            selected = step.selected_slot
            if selected is None:
                logger.info(f"tenant={tenant} wa_id={recipient} reached {step.state} without a slot")
                return _Step(state=INITIAL_STATE, variables=step.variables)

            config = await self.calendars.get_or_load_async(tenant)
            attendee = Attendee(name=event.display_name, phone=recipient)
            event_id = await self.availability.book(config, selected.start_iso, attendee)
            logger.info(f"tenant={tenant} wa_id={recipient} booked {selected.label} event={event_id}")

            step.variables = {**step.variables, "slot": selected.label}
            step.selected_slot = None
            return step

        return step

    @staticmethod
    async def _send_fallback(channel: MessagingChannel, recipient: str, text: str) -> None:
        """Best-effort apology; failures are only logged."""
        try:
            await channel.send_text(recipient, text)
        except Exception as e:
            logger.error(f"Fallback message to {recipient} failed: {e}")


# Singleton
_dispatcher: Optional[MessageDispatcher] = None


def get_dispatcher() -> MessageDispatcher:
    """Get singleton MessageDispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = MessageDispatcher()
    return _dispatcher
