"""
Conversation Module

Tenant resolution, the message-driven flow state machine, the renderer and
the dispatcher that ties them together.

Usage:
    from app.core.conversation import InboundEvent, InboundMessage, get_dispatcher

    event = InboundEvent(
        phone_number_id="1041740029016016",
        contact_name="Ana",
        messages=[InboundMessage.text_message("5491155550000", "hola")],
    )
    await get_dispatcher().handle_event(event)
"""

from app.core.conversation.messages import (
    DEFAULT_CONTACT_NAME,
    InboundEvent,
    InboundMessage,
    MessageKind,
)
from app.core.conversation.tenant import TenantResolver, get_tenant_resolver
from app.core.conversation.state_machine import FlowStateMachine, get_state_machine
from app.core.conversation.renderer import (
    DEFAULT_LIST_BODY,
    RenderError,
    Renderer,
    get_renderer,
    render_sections,
)
from app.core.conversation.dispatcher import MessageDispatcher, get_dispatcher

__all__ = [
    # Messages
    "DEFAULT_CONTACT_NAME",
    "InboundEvent",
    "InboundMessage",
    "MessageKind",
    # Tenancy
    "TenantResolver",
    "get_tenant_resolver",
    # State machine
    "FlowStateMachine",
    "get_state_machine",
    # Rendering
    "DEFAULT_LIST_BODY",
    "RenderError",
    "Renderer",
    "get_renderer",
    "render_sections",
    # Dispatch
    "MessageDispatcher",
    "get_dispatcher",
]
