"""Renders flow states and sends them through a messaging channel."""

import logging
from typing import Mapping, Optional, Sequence

from app.core.flows import (
    ConfigCache,
    FlowDefinition,
    FlowRow,
    FlowSection,
    InteractiveListState,
    TextState,
    get_flow_cache,
)
from app.core.templating import render_vars
from app.infra.whatsapp import MessagingChannel

logger = logging.getLogger(__name__)

DEFAULT_LIST_BODY = "Elegí una opción:"


class RenderError(Exception):
    """Raised for states that cannot be rendered."""

    def __init__(self, tenant: str, state: str, message: str):
        self.tenant = tenant
        self.state = state
        super().__init__(f"tenant={tenant} state={state}: {message}")


def render_sections(
    sections: Sequence[FlowSection],
    variables: Optional[Mapping[str, str]] = None,
) -> list[FlowSection]:
    """Substitute variables in section titles, row titles and descriptions.

    Row ids are left untouched.
    """
    return [
        FlowSection(
            title=render_vars(section.title, variables),
            rows=[
                FlowRow(
                    id=row.id,
                    title=render_vars(row.title, variables),
                    description=render_vars(row.description, variables),
                )
                for row in section.rows
            ],
        )
        for section in sections
    ]


class Renderer:
    """
    Turns a state into exactly one outbound message.

    Text states become one text message; interactive list states become one
    list message. Never both.
    """

    def __init__(self, flows: Optional[ConfigCache[FlowDefinition]] = None):
        """Initialize renderer.

        Args:
            flows: Flow config cache (defaults to the shared one)
        """
        self._flows = flows

    @property
    def flows(self) -> ConfigCache[FlowDefinition]:
        """Lazy-load flow cache."""
        if self._flows is None:
            self._flows = get_flow_cache()
        return self._flows

    async def render_and_send(
        self,
        tenant: str,
        state_name: str,
        channel: MessagingChannel,
        recipient: str,
        variables: Optional[Mapping[str, str]] = None,
        extra_sections: Optional[Sequence[FlowSection]] = None,
    ) -> None:
        """
        Render a state and send it.

        Args:
            tenant: Tenant name
            state_name: State to render
            channel: Where to send
            recipient: User wa_id
            variables: Template variables ({{name}}, {{slot}}, ...)
            extra_sections: Already-rendered sections appended to the list

        Raises:
            FlowConfigError: The tenant's flow cannot be loaded
            RenderError: Unknown state or unsupported state kind
            WhatsAppError: The channel rejected the message
        """
        flow = self.flows.get_or_load(tenant)

        state = flow.get_state(state_name)
        if state is None:
            raise RenderError(tenant, state_name, "state not found")

        body = render_vars(state.body, variables)

        if isinstance(state, TextState):
            await channel.send_text(recipient, body)
            return

        if isinstance(state, InteractiveListState):
            presentation = state.presentation
            sections = render_sections(presentation.sections, variables)
            if extra_sections:
                sections.extend(extra_sections)

            await channel.send_interactive_list(
                recipient,
                header=render_vars(presentation.header, variables),
                body=body if body.strip() else DEFAULT_LIST_BODY,
                footer=render_vars(presentation.footer, variables),
                button_text=render_vars(presentation.button_text, variables),
                sections=sections,
            )
            return

        raise RenderError(tenant, state_name, f"unsupported state type {state.type!r}")


# Singleton
_renderer: Optional[Renderer] = None


def get_renderer() -> Renderer:
    """Get singleton Renderer."""
    global _renderer
    if _renderer is None:
        _renderer = Renderer()
    return _renderer
