"""
Flow State Machine.

Decides the next state from the current state and one inbound message.
Pure with respect to sessions: the caller reads and writes the session.

Transition rules (first match wins):
    text "menu" (any case, trimmed)   -> MENU, handled
    text + on_text_next               -> on_text_next, handled
    selection in on_select_next       -> mapped state, handled
    selection of an offered slot      -> scheduling.next_state, handled
    anything else                     -> MENU, not handled
"""

import logging
from typing import Iterable, Optional

from app.core.flows import (
    INITIAL_STATE,
    ConfigCache,
    FlowDefinition,
    InteractiveListState,
    get_flow_cache,
)
from app.core.conversation.messages import InboundMessage, MessageKind

logger = logging.getLogger(__name__)

MENU_KEYWORD = "menu"

Decision = tuple[str, bool]
"""(next_state, handled)."""


class FlowStateMachine:
    """Message-driven transitions over a tenant's flow definition."""

    def __init__(self, flows: Optional[ConfigCache[FlowDefinition]] = None):
        """Initialize state machine.

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

    def decide(
        self,
        tenant: str,
        current_state: str,
        message: InboundMessage,
        offered_slot_ids: Iterable[str] = (),
    ) -> Decision:
        """
        Compute the next state.

        Args:
            tenant: Tenant name
            current_state: State stored in the user's session
            message: Inbound message
            offered_slot_ids: Slot ids last offered to this user

        Returns:
            (next_state, handled); handled=False means "fall back to MENU"

        Raises:
            FlowConfigError: The tenant's flow cannot be loaded
        """
        flow = self.flows.get_or_load(tenant)

        state = flow.get_state(current_state)
        if state is None:
            logger.warning(f"tenant={tenant} unknown current state {current_state!r}")
            return INITIAL_STATE, False

        target: Optional[str] = None

        if message.kind == MessageKind.TEXT:
            text = message.text.strip()
            if text.lower() == MENU_KEYWORD:
                return INITIAL_STATE, True
            target = state.on_text_next

        elif message.kind == MessageKind.INTERACTIVE:
            selected = message.selected_id or ""
            if isinstance(state, InteractiveListState):
                target = state.on_select_next.get(selected)
            if not target and self._is_offered_slot(state, selected, offered_slot_ids):
                target = state.scheduling.next_state

        if not target:
            return INITIAL_STATE, False

        if not flow.has_state(target):
            logger.warning(
                f"tenant={tenant} state={current_state} transitions to missing state {target!r}"
            )
            return INITIAL_STATE, False

        return target, True

    @staticmethod
    def _is_offered_slot(state, selected: str, offered_slot_ids: Iterable[str]) -> bool:
        hook = state.scheduling
        if hook is None or hook.action != "offer_slots" or not hook.next_state:
            return False
        return bool(selected) and selected in set(offered_slot_ids)


# Singleton
_state_machine: Optional[FlowStateMachine] = None


def get_state_machine() -> FlowStateMachine:
    """Get singleton FlowStateMachine."""
    global _state_machine
    if _state_machine is None:
        _state_machine = FlowStateMachine()
    return _state_machine
